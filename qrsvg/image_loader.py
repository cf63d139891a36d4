"""Logo loading — fetch an image reference, read its size, inline it as a data URI."""

import asyncio
import base64
import binascii
import io
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote_to_bytes

import requests
from PIL import Image, UnidentifiedImageError

from qrsvg.errors import ResourceError
from qrsvg.logging import audit, get_logger, trace

log = get_logger("image_loader")

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class LoadedImage:
    """A decoded logo: intrinsic size plus the original bytes."""

    source: str
    width: int
    height: int
    mime_type: str
    content: bytes

    def __repr__(self):
        return f"LoadedImage({self.width}x{self.height}, {self.mime_type}, {len(self.content)} bytes)"


def _read_data_uri(src: str) -> bytes:
    header, sep, payload = src.partition(",")
    if not sep:
        raise ResourceError(f"Malformed data URI: {src[:40]}...")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ResourceError(f"Invalid base64 in data URI: {e}") from e
    return unquote_to_bytes(payload)


def _read_source(src: str, cross_origin: str | None, timeout: float) -> bytes:
    if src.startswith("data:"):
        return _read_data_uri(src)

    if src.startswith(("http://", "https://")):
        # Browser CORS modes have no meaning outside a browser; kept for logs only
        log.debug("fetching %s (cross_origin=%s)", src, cross_origin)
        try:
            resp = requests.get(src, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ResourceError(f"Could not fetch image '{src}': {e}") from e
        return resp.content

    try:
        return Path(src).read_bytes()
    except OSError as e:
        raise ResourceError(f"Could not read image '{src}': {e}") from e


def _decode(src: str, content: bytes) -> LoadedImage:
    try:
        with Image.open(io.BytesIO(content)) as img:
            width, height = img.size
            mime = Image.MIME.get(img.format or "", "application/octet-stream")
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ResourceError(f"Could not decode image '{src[:80]}': {e}") from e
    return LoadedImage(source=src, width=width, height=height, mime_type=mime, content=content)


def load_image_sync(src: str, cross_origin: str | None = None, timeout: float = DEFAULT_TIMEOUT) -> LoadedImage:
    """Blocking variant of :func:`load_image`."""
    image = _decode(src, _read_source(src, cross_origin, timeout))
    audit("image.loaded", logger=log, src=src[:80], size=f"{image.width}x{image.height}", mime=image.mime_type)
    return image


@trace
async def load_image(src: str, cross_origin: str | None = None, timeout: float = DEFAULT_TIMEOUT) -> LoadedImage:
    """Fetch and decode a logo without blocking the event loop.

    Args:
        src: File path, ``data:`` URI or http(s) URL.
        cross_origin: Browser CORS mode from the options; recorded only.
        timeout: Network timeout in seconds for URL sources.

    Raises:
        ResourceError: the source is missing, unreachable or not an image.
    """
    return await asyncio.to_thread(load_image_sync, src, cross_origin, timeout)


def data_uri(image: LoadedImage) -> str:
    encoded = base64.b64encode(image.content).decode("ascii")
    return f"data:{image.mime_type};base64,{encoded}"


async def to_data_uri(image: LoadedImage) -> str:
    """Inline the image bytes so the SVG is self-contained."""
    return await asyncio.to_thread(data_uri, image)
