"""QR-SVG — styled, scalable vector QR codes."""

__version__ = "0.1.0"

from qrsvg.constants import CornerDotType, CornerSquareType, DotType, ERROR_CORRECTION_PERCENTS, GradientType
from qrsvg.errors import ConfigurationError, QRSVGError, RenderInProgressError, ResourceError
from qrsvg.matrix import BoolMatrix, ModuleMatrix, QRCodeMatrix, make_matrix
from qrsvg.options import ColorStop, Gradient, RenderOptions
from qrsvg.styled import StyledQRCode
from qrsvg.svg import QRSVG

__all__ = [
    "BoolMatrix",
    "ColorStop",
    "ConfigurationError",
    "CornerDotType",
    "CornerSquareType",
    "DotType",
    "ERROR_CORRECTION_PERCENTS",
    "Gradient",
    "GradientType",
    "ModuleMatrix",
    "QRCodeMatrix",
    "QRSVG",
    "QRSVGError",
    "RenderInProgressError",
    "RenderOptions",
    "ResourceError",
    "StyledQRCode",
    "make_matrix",
]
