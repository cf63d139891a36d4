"""Canvas composer — turn a module matrix plus render options into an SVG scene.

Stages run strictly in order on every render::

    layout -> (logo load + sizing) -> mask -> background -> dots -> corners -> (logo embed)

The scene is built from scratch each time and swapped in once complete; a
re-render never patches the previous scene.
"""

import io
import itertools
import math
from collections.abc import Mapping
from dataclasses import dataclass

import svgwrite

from qrsvg import figures
from qrsvg.constants import FINDER_DOT_SIZE, FINDER_SIZE, GradientType
from qrsvg.errors import ConfigurationError, RenderInProgressError, ResourceError
from qrsvg.figures import format_number as _num
from qrsvg.gradient import compute_gradient
from qrsvg.image_loader import LoadedImage, load_image, to_data_uri
from qrsvg.image_size import DrawImageSize, calculate_image_size, max_hidden_axis_dots, max_hidden_dots
from qrsvg.logging import audit, get_logger, trace
from qrsvg.masking import DOT_MASK, SQUARE_MASK, ModuleMask, build_mask, mask_lookup
from qrsvg.matrix import ModuleMatrix
from qrsvg.options import Gradient, RenderOptions

log = get_logger("svg")

# (column, row, rotation) of the top-left, top-right and bottom-left finders
CORNERS = (
    (0, 0, 0.0),
    (1, 0, math.pi / 2),
    (0, 1, -math.pi / 2),
)


@dataclass(frozen=True)
class Layout:
    """Pixel placement of the module grid inside the canvas."""

    count: int
    dot_size: int
    x: int
    y: int

    @property
    def size(self) -> int:
        return self.count * self.dot_size


def compute_layout(options: RenderOptions, count: int) -> Layout:
    """Largest whole-pixel module size that fits, grid centred in the canvas.

    Raises:
        ConfigurationError: the matrix does not fit the drawable area.
    """
    if count <= 0:
        raise ConfigurationError("Module matrix is empty")
    if options.margin < 0:
        raise ConfigurationError(f"Margin must not be negative, got {options.margin}")
    min_size = min(options.width, options.height) - options.margin * 2
    dot_size = math.floor(min_size / count)
    if dot_size < 1:
        raise ConfigurationError(
            f"The canvas is too small: {count} modules do not fit in "
            f"{options.width}x{options.height} with margin {options.margin}"
        )
    return Layout(
        count=count,
        dot_size=dot_size,
        x=math.floor((options.width - count * dot_size) / 2),
        y=math.floor((options.height - count * dot_size) / 2),
    )


class QRSVG:
    """Renders one QR code into an owned ``svgwrite.Drawing``.

    Not safe for overlapping renders: a second ``render`` while one is
    awaiting the logo raises :class:`RenderInProgressError`.
    """

    _ids = itertools.count()

    def __init__(self, options: RenderOptions | Mapping | None = None, uid: str | None = None):
        self._options = options if isinstance(options, RenderOptions) else RenderOptions.from_dict(options)
        self._uid = uid or f"svg_qr_{next(QRSVG._ids)}"
        self._drawing: svgwrite.Drawing | None = None
        self._qr: ModuleMatrix | None = None
        self._image_cache: LoadedImage | None = None
        self._rendering = False
        # scratch state of the render in progress
        self._scene: svgwrite.Drawing | None = None
        self._style_rules: list[str] = []

    @property
    def id(self) -> str:
        return self._uid

    @property
    def options(self) -> RenderOptions:
        return self._options

    @options.setter
    def options(self, options: RenderOptions):
        self._options = options

    @property
    def width(self) -> int:
        return self._options.width

    @property
    def height(self) -> int:
        return self._options.height

    @property
    def rendering(self) -> bool:
        return self._rendering

    @property
    def drawing(self) -> svgwrite.Drawing | None:
        return self._drawing

    def to_string(self) -> str:
        if self._drawing is None:
            raise ConfigurationError("Nothing has been rendered yet")
        return self._drawing.tostring()

    def to_document(self) -> str:
        """Full SVG document including the XML declaration."""
        if self._drawing is None:
            raise ConfigurationError("Nothing has been rendered yet")
        buf = io.StringIO()
        self._drawing.write(buf)
        return buf.getvalue()

    # ------------------------------------------------------------------
    # Render pipeline
    # ------------------------------------------------------------------

    @trace
    async def render(self, qr: ModuleMatrix) -> svgwrite.Drawing:
        """Render ``qr`` with the current options and return the new scene."""
        if self._rendering:
            raise RenderInProgressError(f"{self.id} is already rendering")
        self._rendering = True
        try:
            drawing = await self._render(qr)
        finally:
            self._rendering = False
            self._scene = None
            self._style_rules = []
        return drawing

    async def update(self, changes: Mapping | None = None, qr: ModuleMatrix | None = None) -> svgwrite.Drawing:
        """Merge option ``changes`` and re-render the last (or given) matrix.

        Rejected without touching the options while a render is pending.
        """
        if self._rendering:
            raise RenderInProgressError(f"{self.id} is already rendering")
        if changes:
            self._options = self._options.merge(changes)
        qr = qr or self._qr
        if qr is None:
            raise ConfigurationError("update() needs a matrix; call render() first")
        return await self.render(qr)

    async def _render(self, qr: ModuleMatrix) -> svgwrite.Drawing:
        options = self._options
        layout = compute_layout(options, qr.module_count)

        image = None
        draw_size = DrawImageSize()
        if options.image:
            image = await self._load_image(options)
            if image is not None:
                draw_size = self._size_image(options, image, layout)

        hide = image is not None and options.image_options.hide_background_dots
        mask = build_mask(
            layout.count,
            hidden_rows=draw_size.hidden_rows if hide else 0,
            hidden_columns=draw_size.hidden_columns if hide else 0,
        )

        self._clear(options)
        self._draw_background(options)
        dots_target, dots_drawn = self._draw_dots(options, qr, layout, mask)
        self._draw_corners(options, layout, dots_target)

        if image is not None and draw_size.width > 0 and draw_size.height > 0:
            await self._draw_image(options, image, draw_size, layout)

        if self._style_rules:
            self._scene.embed_stylesheet("".join(self._style_rules))

        self._drawing = self._scene
        self._qr = qr
        audit("svg.rendered", logger=log,
              uid=self.id, count=layout.count, dot_size=layout.dot_size,
              dots=dots_drawn, image=bool(image),
              hidden=f"{mask.count ** 2 - int(mask.paintable.sum())}")
        return self._drawing

    def _clear(self, options: RenderOptions):
        scene = svgwrite.Drawing(size=(options.width, options.height), debug=False)
        scene["xmlns:xlink"] = "http://www.w3.org/1999/xlink"
        scene["data-internal-uid"] = self.id
        self._scene = scene
        self._style_rules = []

    async def _load_image(self, options: RenderOptions) -> LoadedImage | None:
        src = options.image
        if self._image_cache is not None and self._image_cache.source == src:
            return self._image_cache
        try:
            image = await load_image(src, cross_origin=options.image_options.cross_origin)
        except ResourceError as e:
            log.warning("logo skipped: %s", e)
            audit("image.load_failed", logger=log, uid=self.id, src=src[:80], error=str(e))
            return None
        self._image_cache = image
        return image

    def _size_image(self, options: RenderOptions, image: LoadedImage, layout: Layout) -> DrawImageSize:
        size = calculate_image_size(
            original_width=image.width,
            original_height=image.height,
            max_hidden_dots=max_hidden_dots(
                options.image_options.image_size,
                options.qr_options.error_correction_level,
                layout.count,
            ),
            max_hidden_axis_dots=max_hidden_axis_dots(layout.count),
            dot_size=layout.dot_size,
        )
        audit("image.sized", logger=log,
              uid=self.id, hidden=f"{size.hidden_columns}x{size.hidden_rows}",
              px=f"{size.width}x{size.height}")
        return size

    # ------------------------------------------------------------------
    # Paint regions
    # ------------------------------------------------------------------

    def _create_style(self, color: str | None, name: str):
        self._style_rules.append(f'[data-internal-uid="{self.id}"] .{name}{{ fill: {color}; }}')

    def _create_color(
        self,
        name: str,
        gradient: Gradient | None,
        color: str | None,
        x: float,
        y: float,
        width: float,
        height: float,
        additional_rotation: float = 0.0,
        clip: bool = True,
    ):
        scene = self._scene
        rect = scene.rect(insert=(x, y), size=(width, height))
        if clip:
            rect["clip-path"] = f"url('#clip-path-{name}')"

        if gradient is not None:
            definition = compute_gradient(gradient, x, y, width, height, additional_rotation)
            if definition.type == GradientType.RADIAL:
                element = scene.radialGradient(
                    center=(_num(definition.cx), _num(definition.cy)),
                    r=_num(definition.r),
                    focal=(_num(definition.cx), _num(definition.cy)),
                    id=name,
                    gradientUnits="userSpaceOnUse",
                )
            else:
                element = scene.linearGradient(
                    start=(definition.x1, definition.y1),
                    end=(definition.x2, definition.y2),
                    id=name,
                    gradientUnits="userSpaceOnUse",
                )
            for offset, stop_color in definition.stops:
                element.add_stop_color(offset=f"{_num(100 * offset)}%", color=stop_color)
            rect["fill"] = f"url('#{name}')"
            scene.defs.add(element)
        elif color:
            rect["fill"] = color

        scene.add(rect)

    def _paint_target(
        self,
        name: str,
        gradient: Gradient | None,
        color: str | None,
        box: tuple[float, float, float, float],
        additional_rotation: float = 0.0,
    ):
        """Container figures of a region go into.

        Gradient regions collect figures in a clipPath that masks a
        gradient-filled rect; solid regions use a class-styled group.
        """
        scene = self._scene
        if gradient is not None:
            clip = scene.defs.add(scene.clipPath(id=f"clip-path-{name}"))
            self._create_color(name, gradient, color, *box, additional_rotation=additional_rotation)
            return clip
        group = scene.add(scene.g(class_=name))
        self._create_style(color, name)
        return group

    def _add_figure(self, target, geometry: figures.PathGeometry):
        scene = self._scene
        attrs = dict(geometry.attrs)
        if geometry.transform:
            attrs["transform"] = geometry.transform
        if geometry.tag == "circle":
            element = scene.circle(center=(attrs.pop("cx"), attrs.pop("cy")), r=attrs.pop("r"), **attrs)
        elif geometry.tag == "rect":
            element = scene.rect(
                insert=(attrs.pop("x"), attrs.pop("y")),
                size=(attrs.pop("width"), attrs.pop("height")),
                **attrs,
            )
        else:
            element = scene.path(d=attrs.pop("d"), **attrs)
        target.add(element)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _draw_background(self, options: RenderOptions):
        background = options.background_options
        if background.gradient is not None:
            self._create_color(
                "background-color", background.gradient, background.color,
                0, 0, options.width, options.height, clip=False,
            )
        elif background.color:
            scene = self._scene
            scene.add(scene.rect(insert=(0, 0), size=(options.width, options.height), class_="background-color"))
            self._create_style(background.color, "background-color")

    def _dark_lookup(self, options: RenderOptions, qr: ModuleMatrix):
        """(grid_row, grid_col) -> dark, honouring the legacy transposed mapping."""
        count = qr.module_count
        legacy = options.use_legacy_dot_rotation

        def dark(row: int, col: int) -> bool:
            if not (0 <= row < count and 0 <= col < count):
                return False
            return qr.is_dark(col, row) if legacy else qr.is_dark(row, col)

        return dark

    def _draw_dots(self, options: RenderOptions, qr: ModuleMatrix, layout: Layout, mask: ModuleMask):
        dots = options.dots_options
        target = self._paint_target(
            "dot-color", dots.gradient, dots.color,
            (layout.x, layout.y, layout.size, layout.size),
        )
        dark = self._dark_lookup(options, qr)

        def neighbor_fn(row: int, col: int):
            return lambda d_row, d_col: mask(row + d_row, col + d_col) and dark(row + d_row, col + d_col)

        drawn = 0
        for row in range(layout.count):
            for col in range(layout.count):
                if not mask(row, col) or not dark(row, col):
                    continue
                geometry = figures.draw(
                    figures.DOT, dots.type,
                    layout.x + col * layout.dot_size,
                    layout.y + row * layout.dot_size,
                    layout.dot_size,
                    has_neighbor=neighbor_fn(row, col),
                )
                self._add_figure(target, geometry)
                drawn += 1
        return target, drawn

    def _draw_masked_dots(self, dots_type, target, mask, x: float, y: float, dot_size: int):
        """Draw a finder part module by module, fusing against its fixed mask."""
        rows, cols = mask.shape
        for row in range(rows):
            for col in range(cols):
                if not mask[row, col]:
                    continue
                geometry = figures.draw(
                    figures.DOT, dots_type,
                    x + col * dot_size, y + row * dot_size, dot_size,
                    has_neighbor=lambda d_row, d_col, r=row, c=col: mask_lookup(mask, r + d_row, c + d_col),
                )
                self._add_figure(target, geometry)

    def _draw_corners(self, options: RenderOptions, layout: Layout, dots_target):
        square = options.corners_square_options
        dot = options.corners_dot_options
        dot_size = layout.dot_size
        square_size = dot_size * FINDER_SIZE
        centre_size = dot_size * FINDER_DOT_SIZE
        offset = dot_size * (layout.count - FINDER_SIZE)

        for column, row, rotation in CORNERS:
            x = layout.x + column * offset
            y = layout.y + row * offset

            if square.gradient is not None or square.color:
                square_target = self._paint_target(
                    f"corners-square-color-{column}-{row}", square.gradient, square.color,
                    (x, y, square_size, square_size), additional_rotation=rotation,
                )
            else:
                square_target = dots_target

            if square.type:
                self._add_figure(
                    square_target,
                    figures.draw(figures.CORNER_SQUARE, square.type, x, y, square_size, rotation),
                )
            else:
                self._draw_masked_dots(options.dots_options.type, square_target, SQUARE_MASK, x, y, dot_size)

            dx = x + dot_size * 2
            dy = y + dot_size * 2
            if dot.gradient is not None or dot.color:
                dot_target = self._paint_target(
                    f"corners-dot-color-{column}-{row}", dot.gradient, dot.color,
                    (dx, dy, centre_size, centre_size), additional_rotation=rotation,
                )
            else:
                dot_target = dots_target

            if dot.type:
                self._add_figure(
                    dot_target,
                    figures.draw(figures.CORNER_DOT, dot.type, dx, dy, centre_size, rotation),
                )
            else:
                self._draw_masked_dots(options.dots_options.type, dot_target, DOT_MASK, x, y, dot_size)

    async def _draw_image(self, options: RenderOptions, image: LoadedImage, draw_size: DrawImageSize, layout: Layout):
        margin = options.image_options.margin
        dx = layout.x + margin + (layout.size - draw_size.width) / 2
        dy = layout.y + margin + (layout.size - draw_size.height) / 2
        dw = draw_size.width - margin * 2
        dh = draw_size.height - margin * 2
        if dw <= 0 or dh <= 0:
            log.warning("logo margin %s leaves no room in %dx%d footprint", margin, draw_size.width, draw_size.height)
            return

        href = await to_data_uri(image)
        scene = self._scene
        element = scene.image(href, insert=(_num(dx), _num(dy)), size=(f"{_num(dw)}px", f"{_num(dh)}px"))
        element["href"] = href
        scene.add(element)
