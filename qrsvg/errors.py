"""Exception taxonomy for QR-SVG rendering."""


class QRSVGError(Exception):
    """Base class for all qrsvg errors."""


class ConfigurationError(QRSVGError, ValueError):
    """Options cannot produce a drawing (canvas too small, bad gradient, ...)."""


class ResourceError(QRSVGError, OSError):
    """The logo image could not be fetched or decoded."""


class RenderInProgressError(QRSVGError, RuntimeError):
    """A render was started while another one on the same instance is pending."""
