"""Map a configured gradient onto a bounding box.

Linear gradients are described by an abstract rotation rather than by
endpoints. The rotation is resolved against the box so that the gradient line
always runs from one box edge to the opposite one, whatever the angle.
"""

import math
from dataclasses import dataclass

from qrsvg.constants import GradientType
from qrsvg.options import Gradient

TWO_PI = 2 * math.pi


@dataclass(frozen=True)
class GradientDefinition:
    """Resolved gradient in user-space coordinates.

    Linear gradients fill ``x1..y2``; radial gradients fill ``cx``, ``cy``,
    ``r`` (the focal point equals the centre).
    """

    type: str
    stops: tuple[tuple[float, str], ...]
    x1: int = 0
    y1: int = 0
    x2: int = 0
    y2: int = 0
    cx: float = 0.0
    cy: float = 0.0
    r: float = 0.0


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def linear_endpoints(
    rotation: float,
    x: float,
    y: float,
    width: float,
    height: float,
) -> tuple[int, int, int, int]:
    """Endpoints of a linear gradient spanning the box at ``rotation`` radians.

    The angle is normalised into [0, 2π) and split at π/4, 3π/4, 5π/4, 7π/4.
    Near the horizontal the x endpoints sit on the left/right edges and y is
    shifted by ``tan``; near the vertical the y endpoints sit on the top/bottom
    edges and x is shifted by ``cot``. Boundary angles belong to the branch
    below them, where the tangent is ±1.

    Returns:
        (x1, y1, x2, y2) rounded to whole pixels.
    """
    angle = rotation % TWO_PI
    cx = x + width / 2
    cy = y + height / 2
    half_w = width / 2
    half_h = height / 2

    if angle <= 0.25 * math.pi or angle > 1.75 * math.pi:
        dy = half_h * math.tan(angle)
        x0, y0, x1, y1 = cx - half_w, cy - dy, cx + half_w, cy + dy
    elif angle <= 0.75 * math.pi:
        dx = half_w * math.cos(angle) / math.sin(angle)
        x0, y0, x1, y1 = cx - dx, cy - half_h, cx + dx, cy + half_h
    elif angle <= 1.25 * math.pi:
        dy = half_h * math.tan(angle)
        x0, y0, x1, y1 = cx + half_w, cy + dy, cx - half_w, cy - dy
    else:
        dx = half_w * math.cos(angle) / math.sin(angle)
        x0, y0, x1, y1 = cx + dx, cy + half_h, cx - dx, cy - half_h

    return (
        _round_half_up(x0),
        _round_half_up(y0),
        _round_half_up(x1),
        _round_half_up(y1),
    )


def compute_gradient(
    gradient: Gradient,
    x: float,
    y: float,
    width: float,
    height: float,
    additional_rotation: float = 0.0,
) -> GradientDefinition:
    """Resolve ``gradient`` against the box (x, y, width, height).

    Args:
        gradient: The configured gradient.
        x, y, width, height: Box the gradient fills.
        additional_rotation: Extra rotation (radians) added to the configured
            one; used to turn the same gradient with each finder corner.

    Returns:
        GradientDefinition ready to be emitted into a scene.
    """
    stops = tuple((stop.offset, stop.color) for stop in gradient.color_stops)

    if gradient.type == GradientType.RADIAL:
        return GradientDefinition(
            type=GradientType.RADIAL.value,
            stops=stops,
            cx=x + width / 2,
            cy=y + height / 2,
            r=max(width, height) / 2,
        )

    x1, y1, x2, y2 = linear_endpoints(
        (gradient.rotation or 0) + additional_rotation, x, y, width, height,
    )
    return GradientDefinition(
        type=GradientType.LINEAR.value,
        stops=stops,
        x1=x1,
        y1=y1,
        x2=x2,
        y2=y2,
    )
