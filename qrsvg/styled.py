"""Styled QR code — encode data, render it, export it."""

import asyncio
from collections.abc import Mapping
from pathlib import Path

from qrsvg.errors import ConfigurationError, RenderInProgressError
from qrsvg.logging import audit, get_logger, trace
from qrsvg.matrix import ModuleMatrix, make_matrix
from qrsvg.options import RenderOptions, merge_options, normalize_keys
from qrsvg.svg import QRSVG

log = get_logger("styled")

EXPORT_FORMATS = ("svg", "png")


class StyledQRCode:
    """Options in, SVG out.

    ``update`` behaves like a declarative binding: it merges the changes and
    re-renders only when the resulting options differ from the current ones.
    The symbol is re-encoded only when ``data`` or ``qr_options`` changed.

    Pass ``matrix`` to render a symbol built by another encoder.

    The constructor, ``render`` and ``update`` drive their own event loop.
    From async code use ``await StyledQRCode.create(...)``, ``arender`` and
    ``aupdate`` instead.
    """

    def __init__(self, options: Mapping | RenderOptions | None = None, matrix: ModuleMatrix | None = None,
                 uid: str | None = None, *, deferred: bool = False, **changes):
        if isinstance(options, RenderOptions):
            options = options.merge(changes) if changes else options
        else:
            options = RenderOptions.from_dict(merge_options(normalize_keys(options or {}), normalize_keys(changes)))
        self._options = options
        self._external_matrix = matrix is not None
        self._matrix = matrix
        self._svg = QRSVG(options, uid=uid)
        if not deferred:
            self.render()

    @classmethod
    async def create(cls, options: Mapping | RenderOptions | None = None, matrix: ModuleMatrix | None = None,
                     uid: str | None = None, **changes) -> "StyledQRCode":
        """Build and render inside a running event loop."""
        code = cls(options, matrix=matrix, uid=uid, deferred=True, **changes)
        await code.arender()
        return code

    @property
    def options(self) -> RenderOptions:
        return self._options

    @property
    def matrix(self) -> ModuleMatrix | None:
        return self._matrix

    @property
    def svg(self) -> QRSVG:
        return self._svg

    def _encode(self) -> ModuleMatrix | None:
        if self._external_matrix:
            return self._matrix
        if not self._options.data:
            return None
        qr = self._options.qr_options
        return make_matrix(
            self._options.data,
            ecc=qr.error_correction_level,
            version=qr.type_number or None,
            mode=qr.mode,
        )

    async def arender(self):
        """Encode (if needed) and draw. Without data nothing is drawn."""
        if self._matrix is None:
            self._matrix = self._encode()
        if self._matrix is None:
            log.debug("no data to encode; nothing drawn")
            return None
        self._svg.options = self._options
        return await self._svg.render(self._matrix)

    def render(self):
        """Blocking :meth:`arender`; not callable from a running event loop."""
        return asyncio.run(self.arender())

    def _apply(self, changes: Mapping | None, kwargs: Mapping) -> bool:
        if self._svg.rendering:
            raise RenderInProgressError(f"{self._svg.id} is already rendering")
        merged = merge_options(normalize_keys(changes or {}), normalize_keys(kwargs))
        new_options = self._options.merge(merged)
        if new_options == self._options:
            return False

        old = self._options
        self._options = new_options
        if not self._external_matrix and (old.data != new_options.data or old.qr_options != new_options.qr_options):
            self._matrix = None
        return True

    @trace
    def update(self, changes: Mapping | None = None, **kwargs) -> bool:
        """Merge option changes; re-render when something actually changed.

        Returns:
            True if a re-render happened.
        """
        if not self._apply(changes, kwargs):
            return False
        self.render()
        return True

    @trace
    async def aupdate(self, changes: Mapping | None = None, **kwargs) -> bool:
        """Async :meth:`update`."""
        if not self._apply(changes, kwargs):
            return False
        await self.arender()
        return True

    def to_svg(self) -> str:
        """The rendered SVG document (with XML declaration)."""
        if self._svg.drawing is None:
            raise ConfigurationError("Nothing to export: no data was given")
        return self._svg.to_document()

    def export(self, extension: str = "svg") -> bytes:
        """Serialize the rendered scene as ``svg`` or ``png`` bytes.

        PNG export rasterizes through cairosvg, imported lazily.
        """
        extension = extension.lower().lstrip(".")
        if extension not in EXPORT_FORMATS:
            raise ConfigurationError(f"Unsupported export format: {extension!r}")
        svg_bytes = self.to_svg().encode("utf-8")
        if extension == "svg":
            return svg_bytes

        import cairosvg

        return cairosvg.svg2png(
            bytestring=svg_bytes,
            output_width=self._options.width,
            output_height=self._options.height,
        )

    def save(self, path: str | Path, extension: str | None = None) -> Path:
        """Write the export to ``path``; format from ``extension`` or the suffix."""
        path = Path(path)
        extension = extension or path.suffix.lstrip(".") or "svg"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.export(extension))
        audit("qr.saved", logger=log, path=str(path), format=extension, uid=self._svg.id)
        return path
