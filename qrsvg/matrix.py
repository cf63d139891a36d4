"""Module matrix sources — the QR encoder side of a render."""

from collections.abc import Sequence
from enum import Enum
from typing import Protocol, runtime_checkable

import numpy as np
import qrcode
import qrcode.constants
import qrcode.exceptions
import qrcode.util

from qrsvg.errors import ConfigurationError
from qrsvg.logging import audit, get_logger, trace

log = get_logger("matrix")


class ECCLevel(Enum):
    L = qrcode.constants.ERROR_CORRECT_L  # 7%
    M = qrcode.constants.ERROR_CORRECT_M  # 15%
    Q = qrcode.constants.ERROR_CORRECT_Q  # 25%
    H = qrcode.constants.ERROR_CORRECT_H  # 30%


ECC_NAMES = {"L": ECCLevel.L, "M": ECCLevel.M, "Q": ECCLevel.Q, "H": ECCLevel.H}

# qrcode cannot force kanji mode, so it is not offered
MODES = {
    "numeric": qrcode.util.MODE_NUMBER,
    "alphanumeric": qrcode.util.MODE_ALPHA_NUM,
    "byte": qrcode.util.MODE_8BIT_BYTE,
}


@runtime_checkable
class ModuleMatrix(Protocol):
    """What a render needs from a QR symbol."""

    @property
    def module_count(self) -> int: ...

    def is_dark(self, row: int, col: int) -> bool: ...


class BoolMatrix:
    """Square matrix of booleans (lists of lists or a numpy array)."""

    def __init__(self, rows: Sequence[Sequence[bool]] | np.ndarray):
        grid = np.array(rows, dtype=bool)
        if grid.ndim != 2 or grid.shape[0] != grid.shape[1]:
            raise ConfigurationError(f"Module matrix must be square, got shape {grid.shape}")
        grid.setflags(write=False)
        self._grid = grid

    @property
    def module_count(self) -> int:
        return self._grid.shape[0]

    def is_dark(self, row: int, col: int) -> bool:
        return bool(self._grid[row, col])

    def __repr__(self):
        return f"BoolMatrix({self.module_count}x{self.module_count})"


class QRCodeMatrix:
    """Adapter over a built ``qrcode.QRCode``."""

    def __init__(self, qr: qrcode.QRCode):
        if qr.data_cache is None:
            qr.make()
        self._qr = qr

    @property
    def version(self) -> int:
        return self._qr.version

    @property
    def module_count(self) -> int:
        return self._qr.modules_count

    def is_dark(self, row: int, col: int) -> bool:
        return bool(self._qr.modules[row][col])

    def __repr__(self):
        return f"QRCodeMatrix(v{self.version}, {self.module_count}x{self.module_count})"


@trace
def make_matrix(
    data: str,
    ecc: str = "Q",
    version: int | None = None,
    mode: str | None = None,
) -> QRCodeMatrix:
    """Encode ``data`` into a module matrix.

    Args:
        data: The string to encode (URL, text, etc.)
        ecc: Error correction level: L/M/Q/H
        version: QR version 1-40 (None or 0 = smallest that fits)
        mode: numeric / alphanumeric / byte (None = auto)

    Returns:
        QRCodeMatrix over the encoded symbol.

    Raises:
        ConfigurationError: unknown level or mode, or data that does not fit.
    """
    try:
        ecc_level = ECC_NAMES[ecc.upper()]
    except KeyError:
        raise ConfigurationError(f"Unknown error correction level: {ecc!r}") from None

    version = version or None
    qr = qrcode.QRCode(
        version=version,
        error_correction=ecc_level.value,
        box_size=1,
        border=0,
    )

    if mode is None:
        qr.add_data(data)
    else:
        try:
            qr_mode = MODES[mode.lower()]
        except KeyError:
            raise ConfigurationError(f"Unknown symbol mode: {mode!r}") from None
        try:
            qr.add_data(qrcode.util.QRData(data, mode=qr_mode))
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Data cannot be encoded in {mode} mode: {e}") from e

    try:
        qr.make(fit=version is None)
    except qrcode.exceptions.DataOverflowError as e:
        raise ConfigurationError(f"Data does not fit in version {version}") from e

    matrix = QRCodeMatrix(qr)
    audit("qr.encoded", logger=log,
          data=data[:80], version=matrix.version,
          size=f"{matrix.module_count}x{matrix.module_count}", ecc=ecc.upper(),
          mode=mode or "auto")
    return matrix
