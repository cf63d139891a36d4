"""Logo overlay sizing — turn a coverage budget into a module footprint."""

import math
from dataclasses import dataclass

from qrsvg.constants import ERROR_CORRECTION_PERCENTS, FINDER_SIZE
from qrsvg.logging import get_logger, trace

log = get_logger("image_size")


@dataclass(frozen=True)
class DrawImageSize:
    """Modules hidden behind the logo and the logo's pixel size."""

    hidden_columns: int = 0
    hidden_rows: int = 0
    width: int = 0
    height: int = 0


def _odd_floor(value: float) -> int:
    n = math.floor(value)
    return n if n % 2 else n - 1


def _odd_ceil(value: float) -> int:
    """Smallest odd integer >= value (at least 1)."""
    return max(1, 1 + 2 * math.ceil((value - 1) / 2))


def max_hidden_dots(image_size: float, error_correction_level: str, count: int) -> int:
    """Area budget: how many modules a logo may cover at this level."""
    cover_level = image_size * ERROR_CORRECTION_PERCENTS[error_correction_level]
    return math.floor(cover_level * count * count)


def max_hidden_axis_dots(count: int) -> int:
    """Per-axis budget: the finder bands on both sides are never hidden."""
    return count - 2 * FINDER_SIZE


@trace
def calculate_image_size(
    original_width: float,
    original_height: float,
    max_hidden_dots: int,
    max_hidden_axis_dots: int,
    dot_size: int,
) -> DrawImageSize:
    """Fit an image of the given intrinsic size into the hidden-module budget.

    The long image axis is sized first as an odd module count so that the
    hidden region stays centred on the odd-sized grid; the short axis gets
    the smallest odd count that still covers the scaled image. The long axis
    shrinks two modules at a time until the area budget holds.

    Args:
        original_width: Intrinsic image width in pixels.
        original_height: Intrinsic image height in pixels.
        max_hidden_dots: Maximum modules the image may cover.
        max_hidden_axis_dots: Maximum modules along either axis.
        dot_size: Module edge length in pixels.

    Returns:
        DrawImageSize; all zero if any input is non-positive.
    """
    if (
        original_width <= 0
        or original_height <= 0
        or max_hidden_dots <= 0
        or max_hidden_axis_dots <= 0
        or dot_size <= 0
    ):
        return DrawImageSize()

    wide = original_width >= original_height
    # short / long, in (0, 1]
    ratio = original_height / original_width if wide else original_width / original_height

    long_dots = _odd_floor(min(math.sqrt(max_hidden_dots / ratio), max_hidden_axis_dots))
    long_dots = max(long_dots, 1)
    short_dots = _odd_ceil(long_dots * ratio)
    while long_dots > 1 and long_dots * short_dots > max_hidden_dots:
        long_dots -= 2
        short_dots = _odd_ceil(long_dots * ratio)

    if long_dots * short_dots > max_hidden_dots:
        # a single module is already over budget
        return DrawImageSize()

    long_px = long_dots * dot_size
    short_px = round(long_px * ratio)

    if wide:
        size = DrawImageSize(hidden_columns=long_dots, hidden_rows=short_dots, width=long_px, height=short_px)
    else:
        size = DrawImageSize(hidden_columns=short_dots, hidden_rows=long_dots, width=short_px, height=long_px)

    log.debug(
        "image footprint %dx%d modules (%dx%d px) for %sx%s image, budget=%d axis=%d",
        size.hidden_columns, size.hidden_rows, size.width, size.height,
        original_width, original_height, max_hidden_dots, max_hidden_axis_dots,
    )
    return size
