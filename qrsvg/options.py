"""Render options — defaults, deep merge and sanitising of user-supplied option dicts."""

import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields

from qrsvg.constants import ERROR_CORRECTION_LEVELS, GradientType
from qrsvg.errors import ConfigurationError

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

# Accepted for compatibility with option documents written for the browser
# renderer; only SVG output exists here.
_IGNORED_KEYS = {"type", "shape"}


@dataclass(frozen=True)
class ColorStop:
    offset: float
    color: str


@dataclass(frozen=True)
class Gradient:
    """Linear or radial fill. ``rotation`` (radians) only applies to linear."""

    type: str = GradientType.LINEAR.value
    rotation: float = 0.0
    color_stops: tuple[ColorStop, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping) -> "Gradient":
        data = normalize_keys(data)
        _reject_unknown(cls, data, "gradient")
        kind = data.get("type", GradientType.LINEAR.value)
        kind = str(getattr(kind, "value", kind))
        if kind not in (GradientType.LINEAR.value, GradientType.RADIAL.value):
            raise ConfigurationError(f"Unknown gradient type: {kind!r}")
        raw_stops = data.get("color_stops") or ()
        if not isinstance(raw_stops, (list, tuple)):
            raise ConfigurationError("gradient.color_stops must be a list")
        stops = []
        for stop in raw_stops:
            if isinstance(stop, ColorStop):
                stops.append(stop)
                continue
            if not isinstance(stop, Mapping) or "color" not in stop:
                raise ConfigurationError(f"Color stop needs an offset and a color, got {stop!r}")
            offset = _number(stop.get("offset"), "gradient.color_stops.offset")
            if not 0 <= offset <= 1:
                raise ConfigurationError(f"Color stop offset {offset} outside [0, 1]")
            stops.append(ColorStop(offset=offset, color=str(stop["color"])))
        if not stops:
            raise ConfigurationError("A gradient needs at least one color stop")
        return cls(
            type=kind,
            rotation=float(_number(data.get("rotation") or 0, "gradient.rotation")),
            color_stops=tuple(stops),
        )


@dataclass(frozen=True)
class DotsOptions:
    type: str = "square"
    color: str | None = "#000"
    gradient: Gradient | None = None


@dataclass(frozen=True)
class CornersSquareOptions:
    type: str | None = None
    color: str | None = None
    gradient: Gradient | None = None


@dataclass(frozen=True)
class CornersDotOptions:
    type: str | None = None
    color: str | None = None
    gradient: Gradient | None = None


@dataclass(frozen=True)
class BackgroundOptions:
    color: str | None = "#fff"
    gradient: Gradient | None = None


@dataclass(frozen=True)
class ImageOptions:
    hide_background_dots: bool = True
    image_size: float = 0.4
    cross_origin: str | None = None
    margin: float = 0


@dataclass(frozen=True)
class QROptions:
    type_number: int = 0
    mode: str | None = None
    error_correction_level: str = "Q"


@dataclass(frozen=True)
class RenderOptions:
    """Everything one render pass needs besides the module matrix."""

    width: int = 300
    height: int = 300
    margin: float = 0
    data: str = ""
    image: str | None = None
    use_legacy_dot_rotation: bool = False
    qr_options: QROptions = field(default_factory=QROptions)
    image_options: ImageOptions = field(default_factory=ImageOptions)
    dots_options: DotsOptions = field(default_factory=DotsOptions)
    corners_square_options: CornersSquareOptions = field(default_factory=CornersSquareOptions)
    corners_dot_options: CornersDotOptions = field(default_factory=CornersDotOptions)
    background_options: BackgroundOptions = field(default_factory=BackgroundOptions)

    @classmethod
    def from_dict(cls, data: Mapping | None = None) -> "RenderOptions":
        """Build options from a nested dict, merged over the defaults.

        Keys may be snake_case or camelCase (``errorCorrectionLevel``).
        Numeric values given as strings are coerced.

        Raises:
            ConfigurationError: on unknown keys or invalid values.
        """
        merged = merge_options(asdict(cls()), normalize_keys(data or {}))
        for key in _IGNORED_KEYS:
            merged.pop(key, None)
        _reject_unknown(cls, merged, "options")

        qr = _section(QROptions, merged["qr_options"], "qr_options")
        level = str(qr.get("error_correction_level", "Q")).upper()
        if level not in ERROR_CORRECTION_LEVELS:
            raise ConfigurationError(f"Unknown error correction level: {level!r}")

        image_opts = _section(ImageOptions, merged["image_options"], "image_options")
        image_size = float(_number(image_opts["image_size"], "image_options.image_size"))
        if not 0 <= image_size <= 1:
            raise ConfigurationError(f"image_size {image_size} outside [0, 1]")

        return cls(
            width=int(_number(merged["width"], "width")),
            height=int(_number(merged["height"], "height")),
            margin=_non_negative(merged["margin"], "margin"),
            data=str(merged["data"] or ""),
            image=merged["image"] or None,
            use_legacy_dot_rotation=bool(merged["use_legacy_dot_rotation"]),
            qr_options=QROptions(
                type_number=int(_number(qr["type_number"] or 0, "qr_options.type_number")),
                mode=qr["mode"],
                error_correction_level=level,
            ),
            image_options=ImageOptions(
                hide_background_dots=bool(image_opts["hide_background_dots"]),
                image_size=image_size,
                cross_origin=image_opts["cross_origin"],
                margin=_non_negative(image_opts["margin"], "image_options.margin"),
            ),
            dots_options=_paint(DotsOptions, merged["dots_options"], "dots_options"),
            corners_square_options=_paint(
                CornersSquareOptions, merged["corners_square_options"], "corners_square_options"),
            corners_dot_options=_paint(CornersDotOptions, merged["corners_dot_options"], "corners_dot_options"),
            background_options=_paint(BackgroundOptions, merged["background_options"], "background_options"),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    def merge(self, changes: Mapping) -> "RenderOptions":
        """Return new options with ``changes`` deep-merged over these."""
        return RenderOptions.from_dict(merge_options(self.to_dict(), normalize_keys(changes)))


def normalize_keys(data):
    """Recursively convert camelCase dict keys to snake_case."""
    if isinstance(data, Mapping):
        return {_CAMEL_BOUNDARY.sub("_", str(k)).lower(): normalize_keys(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [normalize_keys(v) for v in data]
    return data


def merge_options(base: Mapping, changes: Mapping) -> dict:
    """Deep-merge ``changes`` into a copy of ``base``; lists are replaced, not merged."""
    merged = dict(base)
    for key, value in changes.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_options(merged[key], value)
        else:
            merged[key] = value
    return merged


def _number(value, name: str) -> int | float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e
    return int(number) if number.is_integer() else number


def _non_negative(value, name: str) -> int | float:
    number = _number(value, name)
    if number < 0:
        raise ConfigurationError(f"{name} must not be negative, got {number}")
    return number


def _reject_unknown(cls, data: Mapping, section: str):
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {section} key(s): {', '.join(unknown)}")


def _section(cls, data, section: str) -> dict:
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{section} must be a mapping")
    merged = merge_options(asdict(cls()), data)
    _reject_unknown(cls, merged, section)
    return merged


def _paint(cls, data, section: str):
    values = _section(cls, data, section)
    gradient = values.get("gradient")
    if isinstance(gradient, Mapping):
        values["gradient"] = Gradient.from_dict(gradient)
    elif gradient is not None and not isinstance(gradient, Gradient):
        raise ConfigurationError(f"{section}.gradient must be a mapping")
    return cls(**values)
