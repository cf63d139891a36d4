"""Closed style sets and error-correction tables."""

from enum import Enum


class DotType(str, Enum):
    DOTS = "dots"
    ROUNDED = "rounded"
    CLASSY = "classy"
    CLASSY_ROUNDED = "classy-rounded"
    SQUARE = "square"
    EXTRA_ROUNDED = "extra-rounded"


class CornerSquareType(str, Enum):
    DOT = "dot"
    SQUARE = "square"
    EXTRA_ROUNDED = "extra-rounded"


class CornerDotType(str, Enum):
    DOT = "dot"
    SQUARE = "square"


class GradientType(str, Enum):
    LINEAR = "linear"
    RADIAL = "radial"


ERROR_CORRECTION_LEVELS = ("L", "M", "Q", "H")

# Fraction of the symbol a logo may obscure per level (nominal recovery capacity)
ERROR_CORRECTION_PERCENTS = {
    "L": 0.07,
    "M": 0.15,
    "Q": 0.25,
    "H": 0.30,
}

FINDER_SIZE = 7
FINDER_DOT_SIZE = 3
