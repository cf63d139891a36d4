"""Figure generator — SVG geometry for module dots and finder-pattern corners.

Every figure is a closed-form shape inside a ``size``-sided cell at (x, y).
Module dots look at their neighbours so that adjacent dark modules fuse into
continuous blobs; finder corners are drawn in proportion to the 7x7 ring and
3x3 centre of the physical pattern.

Rotation is never baked into coordinates: shapes are drawn in one canonical
orientation and turned with a ``rotate(deg, cx, cy)`` transform about the
cell centre.
"""

import math
from collections.abc import Callable
from dataclasses import dataclass, field

from qrsvg.constants import CornerDotType, CornerSquareType, DotType
from qrsvg.errors import ConfigurationError

NeighborFn = Callable[[int, int], bool]

DOT = "dot"
CORNER_SQUARE = "corner_square"
CORNER_DOT = "corner_dot"

NEIGHBOR_OFFSETS = (
    (-1, -1), (-1, 0), (-1, 1),
    (0, -1), (0, 1),
    (1, -1), (1, 0), (1, 1),
)


def format_number(value: float) -> str:
    """Compact decimal form used for every coordinate written to a scene."""
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


_num = format_number


@dataclass
class PathGeometry:
    """One SVG primitive: ``tag`` is circle, rect or path."""

    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    transform: str | None = None


@dataclass(frozen=True)
class Neighborhood:
    """Occupancy of the 8 cells around a module, keyed by (d_row, d_col)."""

    cells: frozenset = frozenset()

    @classmethod
    def probe(cls, has_neighbor: NeighborFn | None) -> "Neighborhood":
        if has_neighbor is None:
            return cls()
        return cls(frozenset(off for off in NEIGHBOR_OFFSETS if has_neighbor(*off)))

    def has(self, d_row: int, d_col: int) -> bool:
        return (d_row, d_col) in self.cells

    @property
    def left(self) -> bool:
        return self.has(0, -1)

    @property
    def right(self) -> bool:
        return self.has(0, 1)

    @property
    def top(self) -> bool:
        return self.has(-1, 0)

    @property
    def bottom(self) -> bool:
        return self.has(1, 0)

    @property
    def orthogonal_count(self) -> int:
        return self.left + self.right + self.top + self.bottom


def _rotate(rotation: float, x: float, y: float, size: float) -> str | None:
    if not rotation:
        return None
    degrees = 180 * rotation / math.pi
    return f"rotate({_num(degrees)},{_num(x + size / 2)},{_num(y + size / 2)})"


# ---------------------------------------------------------------------------
# Basic shapes (canonical orientation, rotation 0)
# ---------------------------------------------------------------------------

def _circle(x, y, size, rotation=0.0) -> PathGeometry:
    return PathGeometry(
        "circle",
        {"cx": _num(x + size / 2), "cy": _num(y + size / 2), "r": _num(size / 2)},
        _rotate(rotation, x, y, size),
    )


def _square(x, y, size, rotation=0.0) -> PathGeometry:
    return PathGeometry(
        "rect",
        {"x": _num(x), "y": _num(y), "width": _num(size), "height": _num(size)},
        _rotate(rotation, x, y, size),
    )


def _path(d: str, x, y, size, rotation, evenodd=False) -> PathGeometry:
    attrs = {"d": d}
    if evenodd:
        attrs["clip-rule"] = "evenodd"
    return PathGeometry("path", attrs, _rotate(rotation, x, y, size))


def _side_rounded(x, y, size, rotation=0.0) -> PathGeometry:
    # right side is a half circle
    h = size / 2
    d = f"M {_num(x)} {_num(y)}v {_num(size)}h {_num(h)}a {_num(h)} {_num(h)}, 0, 0, 0, 0 {_num(-size)}"
    return _path(d, x, y, size, rotation)


def _corner_rounded(x, y, size, rotation=0.0) -> PathGeometry:
    # top right corner is rounded
    h = size / 2
    d = (
        f"M {_num(x)} {_num(y)}v {_num(size)}h {_num(size)}v {_num(-h)}"
        f"a {_num(h)} {_num(h)}, 0, 0, 0, {_num(-h)} {_num(-h)}"
    )
    return _path(d, x, y, size, rotation)


def _corner_extra_rounded(x, y, size, rotation=0.0) -> PathGeometry:
    # top right corner is a quarter circle of the full cell
    d = (
        f"M {_num(x)} {_num(y)}v {_num(size)}h {_num(size)}"
        f"a {_num(size)} {_num(size)}, 0, 0, 0, {_num(-size)} {_num(-size)}"
    )
    return _path(d, x, y, size, rotation)


def _corners_rounded(x, y, size, rotation=0.0) -> PathGeometry:
    # bottom left and top right corners are rounded
    h = size / 2
    d = (
        f"M {_num(x)} {_num(y)}v {_num(h)}"
        f"a {_num(h)} {_num(h)}, 0, 0, 0, {_num(h)} {_num(h)}"
        f"h {_num(h)}v {_num(-h)}"
        f"a {_num(h)} {_num(h)}, 0, 0, 0, {_num(-h)} {_num(-h)}"
    )
    return _path(d, x, y, size, rotation)


# ---------------------------------------------------------------------------
# Module dots
# ---------------------------------------------------------------------------

def _draw_dots(x, y, size, rotation, nb: Neighborhood) -> PathGeometry:
    return _circle(x, y, size, rotation)


def _draw_square(x, y, size, rotation, nb: Neighborhood) -> PathGeometry:
    return _square(x, y, size, rotation)


def _draw_rounded(x, y, size, rotation, nb: Neighborhood, corner=_corner_rounded) -> PathGeometry:
    left, right, top, bottom = nb.left, nb.right, nb.top, nb.bottom
    count = nb.orthogonal_count

    if count == 0:
        return _circle(x, y, size, rotation)

    if count > 2 or (left and right) or (top and bottom):
        return _square(x, y, size, rotation)

    if count == 2:
        turn = 0.0
        if left and top:
            turn = math.pi / 2
        elif top and right:
            turn = math.pi
        elif right and bottom:
            turn = -math.pi / 2
        return corner(x, y, size, rotation + turn)

    turn = 0.0
    if top:
        turn = math.pi / 2
    elif right:
        turn = math.pi
    elif bottom:
        turn = -math.pi / 2
    return _side_rounded(x, y, size, rotation + turn)


def _draw_extra_rounded(x, y, size, rotation, nb: Neighborhood) -> PathGeometry:
    return _draw_rounded(x, y, size, rotation, nb, corner=_corner_extra_rounded)


def _draw_classy(x, y, size, rotation, nb: Neighborhood, corner=_corner_rounded) -> PathGeometry:
    if nb.orthogonal_count == 0:
        return _corners_rounded(x, y, size, rotation + math.pi / 2)

    if not nb.left and not nb.top:
        return corner(x, y, size, rotation - math.pi / 2)

    if not nb.right and not nb.bottom:
        return corner(x, y, size, rotation + math.pi / 2)

    return _square(x, y, size, rotation)


def _draw_classy_rounded(x, y, size, rotation, nb: Neighborhood) -> PathGeometry:
    return _draw_classy(x, y, size, rotation, nb, corner=_corner_extra_rounded)


_DOT_DRAWERS = {
    DotType.DOTS.value: _draw_dots,
    DotType.ROUNDED.value: _draw_rounded,
    DotType.EXTRA_ROUNDED.value: _draw_extra_rounded,
    DotType.CLASSY.value: _draw_classy,
    DotType.CLASSY_ROUNDED.value: _draw_classy_rounded,
    DotType.SQUARE.value: _draw_square,
}


# ---------------------------------------------------------------------------
# Finder corners
# ---------------------------------------------------------------------------

def _corner_square_dot(x, y, size, rotation, nb=None) -> PathGeometry:
    ring = size / 7
    r = size / 2
    d = (
        f"M {_num(x + r)} {_num(y)}a {_num(r)} {_num(r)} 0 1 0 0.1 0z"
        f"m 0 {_num(ring)}a {_num(r - ring)} {_num(r - ring)} 0 1 1 -0.1 0Z"
    )
    return _path(d, x, y, size, rotation, evenodd=True)


def _corner_square_square(x, y, size, rotation, nb=None) -> PathGeometry:
    ring = size / 7
    inner = size - 2 * ring
    d = (
        f"M {_num(x)} {_num(y)}v {_num(size)}h {_num(size)}v {_num(-size)}z"
        f"M {_num(x + ring)} {_num(y + ring)}h {_num(inner)}v {_num(inner)}h {_num(-inner)}z"
    )
    return _path(d, x, y, size, rotation, evenodd=True)


def _corner_square_extra_rounded(x, y, size, rotation, nb=None) -> PathGeometry:
    u = size / 7
    outer = 2.5 * u
    inner = 1.5 * u
    straight = 2 * u
    d = (
        f"M {_num(x)} {_num(y + outer)}"
        f"v {_num(straight)}"
        f"a {_num(outer)} {_num(outer)}, 0, 0, 0, {_num(outer)} {_num(outer)}"
        f"h {_num(straight)}"
        f"a {_num(outer)} {_num(outer)}, 0, 0, 0, {_num(outer)} {_num(-outer)}"
        f"v {_num(-straight)}"
        f"a {_num(outer)} {_num(outer)}, 0, 0, 0, {_num(-outer)} {_num(-outer)}"
        f"h {_num(-straight)}"
        f"a {_num(outer)} {_num(outer)}, 0, 0, 0, {_num(-outer)} {_num(outer)}"
        f"M {_num(x + outer)} {_num(y + u)}"
        f"h {_num(straight)}"
        f"a {_num(inner)} {_num(inner)}, 0, 0, 1, {_num(inner)} {_num(inner)}"
        f"v {_num(straight)}"
        f"a {_num(inner)} {_num(inner)}, 0, 0, 1, {_num(-inner)} {_num(inner)}"
        f"h {_num(-straight)}"
        f"a {_num(inner)} {_num(inner)}, 0, 0, 1, {_num(-inner)} {_num(-inner)}"
        f"v {_num(-straight)}"
        f"a {_num(inner)} {_num(inner)}, 0, 0, 1, {_num(inner)} {_num(-inner)}"
    )
    return _path(d, x, y, size, rotation, evenodd=True)


_CORNER_SQUARE_DRAWERS = {
    CornerSquareType.DOT.value: _corner_square_dot,
    CornerSquareType.SQUARE.value: _corner_square_square,
    CornerSquareType.EXTRA_ROUNDED.value: _corner_square_extra_rounded,
}

def _corner_dot_dot(x, y, size, rotation, nb=None) -> PathGeometry:
    return _circle(x, y, size, rotation)


def _corner_dot_square(x, y, size, rotation, nb=None) -> PathGeometry:
    return _square(x, y, size, rotation)


_CORNER_DOT_DRAWERS = {
    CornerDotType.DOT.value: _corner_dot_dot,
    CornerDotType.SQUARE.value: _corner_dot_square,
}

# family -> (variant table, default variant)
_FAMILIES = {
    DOT: (_DOT_DRAWERS, DotType.SQUARE.value),
    CORNER_SQUARE: (_CORNER_SQUARE_DRAWERS, CornerSquareType.DOT.value),
    CORNER_DOT: (_CORNER_DOT_DRAWERS, CornerDotType.DOT.value),
}


def resolve_variant(family: str, variant) -> str:
    """Return ``variant`` if the family knows it, else the family default."""
    try:
        drawers, default = _FAMILIES[family]
    except KeyError:
        raise ConfigurationError(f"Unknown figure family: {family!r}") from None
    value = getattr(variant, "value", variant)
    return value if value in drawers else default


def draw(
    family: str,
    variant,
    x: float,
    y: float,
    size: float,
    rotation: float = 0.0,
    has_neighbor: NeighborFn | None = None,
) -> PathGeometry:
    """Draw one figure.

    Args:
        family: ``dot``, ``corner_square`` or ``corner_dot``.
        variant: Style name from the family's closed set. Unknown names fall
            back to the family default (square dots, dot corners).
        x, y: Top-left of the cell in pixels.
        size: Cell edge length in pixels.
        rotation: Radians, applied about the cell centre.
        has_neighbor: ``(d_row, d_col) -> bool`` telling whether the cell at
            that offset is dark. Only module dots consult it.

    Returns:
        PathGeometry for the caller to insert into its scene.
    """
    drawers, _ = _FAMILIES.get(family, (None, None))
    variant = resolve_variant(family, variant)
    neighborhood = Neighborhood.probe(has_neighbor) if family == DOT else Neighborhood()
    return drawers[variant](x, y, size, rotation, neighborhood)
