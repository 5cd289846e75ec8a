"""Utilities for building QR codes that embed in vector certificate artwork."""
from __future__ import annotations

from typing import Final

import qrcode

_DEFAULT_ERROR_CORRECTION: Final = qrcode.constants.ERROR_CORRECT_M


def generate_qr_matrix(data: str) -> list[list[bool]]:
    """Return the module matrix (``True`` for dark) encoding ``data``."""

    if not isinstance(data, str) or not data:
        raise ValueError("QR code data must be a non-empty string.")

    qr = qrcode.QRCode(
        version=None,
        error_correction=_DEFAULT_ERROR_CORRECTION,
        box_size=1,
        border=0,
    )
    qr.add_data(data)
    qr.make(fit=True)
    return [list(row) for row in qr.get_matrix()]


def generate_qr_svg_path(data: str, *, module_size: int = 2) -> tuple[str, int]:
    """Return ``(path_data, side_length)`` for a QR code rendered as one SVG path.

    Horizontal runs of dark modules are merged into a single rectangle each so
    the path stays small enough for size-limited storage.
    """

    if module_size < 1:
        raise ValueError("module_size must be a positive integer.")

    matrix = generate_qr_matrix(data)
    commands: list[str] = []
    for y, row in enumerate(matrix):
        x = 0
        width = len(row)
        while x < width:
            if not row[x]:
                x += 1
                continue
            start = x
            while x < width and row[x]:
                x += 1
            run = (x - start) * module_size
            commands.append(
                f"M{start * module_size} {y * module_size}h{run}v{module_size}h-{run}z"
            )

    return "".join(commands), len(matrix) * module_size


__all__ = ["generate_qr_matrix", "generate_qr_svg_path"]
