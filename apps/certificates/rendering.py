"""Render certificate artwork as a compact, self-contained SVG document."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Final
from urllib.parse import quote

from django.conf import settings
from django.utils.html import escape

from utils.qr_generator import generate_qr_svg_path

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_SIZE: Final = 4096
_NAME_LIMIT: Final = 30
_TITLE_LIMIT: Final = 40
_SIGNATURE_PREVIEW: Final = 16
_QR_ORIGIN: Final = (800, 530)

_TEMPLATE: Final = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 1000 700" width="1000" height="700">'
    "<defs>"
    '<linearGradient id="g1" x1="0%" y1="0%" x2="100%" y2="100%">'
    '<stop offset="0%" stop-color="#1e3a8a"/><stop offset="100%" stop-color="#3b82f6"/>'
    "</linearGradient>"
    '<linearGradient id="g2" x1="0%" y1="0%" x2="100%" y2="0%">'
    '<stop offset="0%" stop-color="#0084c7"/><stop offset="100%" stop-color="#00a8e8"/>'
    "</linearGradient>"
    "</defs>"
    '<rect width="1000" height="700" fill="url(#g1)"/>'
    '<rect x="40" y="40" width="920" height="620" fill="#fefefe" opacity="0.95"/>'
    '<rect x="50" y="50" width="900" height="600" fill="none" stroke="#3b82f6" stroke-width="4"/>'
    '<rect x="60" y="60" width="880" height="580" fill="none" stroke="url(#g2)" stroke-width="2"/>'
    '<text x="500" y="110" font-family="Arial,sans-serif" font-size="48" font-weight="bold" '
    'fill="#1e3a8a" text-anchor="middle">{issuer}</text>'
    '<text x="500" y="180" font-family="serif" font-size="32" font-weight="bold" fill="#374151" '
    'text-anchor="middle">Certificate of Completion</text>'
    '<line x1="200" y1="200" x2="800" y2="200" stroke="#3b82f6" stroke-width="2"/>'
    '<text x="500" y="250" font-family="Arial,sans-serif" font-size="18" fill="#6b7280" '
    'text-anchor="middle">This certifies that</text>'
    '<text x="500" y="310" font-family="serif" font-size="36" font-weight="bold" fill="#1e3a8a" '
    'text-anchor="middle">{recipient}</text>'
    '<text x="500" y="360" font-family="Arial,sans-serif" font-size="18" fill="#6b7280" '
    'text-anchor="middle">has successfully completed</text>'
    '<text x="500" y="415" font-family="Arial,sans-serif" font-size="28" font-weight="bold" '
    'fill="#374151" text-anchor="middle">{course}</text>'
    '<text x="500" y="465" font-family="Arial,sans-serif" font-size="16" fill="#6b7280" '
    'text-anchor="middle">Completed on {completed}</text>'
    '<text x="500" y="515" font-family="monospace" font-size="14" fill="#9ca3af" '
    'text-anchor="middle">Certificate No: {number}</text>'
    '<g transform="translate({qr_x},{qr_y})"><rect width="{qr_side}" height="{qr_side}" fill="#fff"/>'
    '<path d="{qr_path}" fill="#1e3a8a"/></g>'
    '<text x="{qr_x}" y="{caption_y}" font-family="Arial,sans-serif" font-size="11" '
    'fill="#6b7280">Scan to verify</text>'
    '<line x1="120" y1="580" x2="320" y2="580" stroke="#374151" stroke-width="1"/>'
    '<text x="120" y="600" font-family="Arial,sans-serif" font-size="13" '
    'fill="#6b7280">Platform Administrator</text>'
    '<text x="500" y="670" font-family="Arial,sans-serif" font-size="11" fill="#9ca3af" '
    'text-anchor="middle">Issued by {issuer} on the Hedera network</text>'
    '<text x="500" y="685" font-family="monospace" font-size="9" fill="#9ca3af" '
    'text-anchor="middle">Sig: {signature}...</text>'
    "</svg>"
)


@dataclass(frozen=True)
class CertificateArtwork:
    """Values printed on a certificate image."""

    recipient_name: str
    course_title: str
    completion_date: date
    certificate_number: str
    verification_url: str
    signature: str


def _truncate(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _format_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def svg_size(svg: str) -> int:
    """Return the encoded size of ``svg`` in bytes."""

    return len(svg.encode("utf-8"))


def build_verification_url(certificate_number: str) -> str:
    """Return the public verification page address for a certificate."""

    base = getattr(settings, "CERTIFICATE_VERIFY_BASE_URL", "http://localhost:8000").rstrip("/")
    return f"{base}/verify?cert={quote(certificate_number, safe='-')}"


def render_certificate_svg(artwork: CertificateArtwork) -> str:
    """Return the minified SVG for ``artwork``.

    Output is deterministic for identical input. User supplied text is
    escaped, and only a short prefix of the signature is printed; the full
    value lives in the metadata document. Images larger than a single ledger
    file write are still returned, since the uploader appends extra chunks.
    """

    if not artwork.verification_url:
        raise ValueError("A verification URL is required to render a certificate.")

    qr_path, qr_side = generate_qr_svg_path(artwork.verification_url)
    qr_x, qr_y = _QR_ORIGIN
    svg = _TEMPLATE.format(
        issuer=escape(getattr(settings, "CERTIFICATE_ISSUER_NAME", "Web3Versity")),
        recipient=escape(_truncate(artwork.recipient_name, _NAME_LIMIT)),
        course=escape(_truncate(artwork.course_title, _TITLE_LIMIT)),
        completed=_format_date(artwork.completion_date),
        number=escape(artwork.certificate_number),
        qr_x=qr_x,
        qr_y=qr_y,
        qr_side=qr_side,
        qr_path=qr_path,
        caption_y=qr_y + qr_side + 14,
        signature=escape(artwork.signature[:_SIGNATURE_PREVIEW]),
    )

    size = svg_size(svg)
    limit = int(getattr(settings, "CERTIFICATE_MAX_CHUNK_SIZE", DEFAULT_MAX_CHUNK_SIZE))
    if size > limit:
        logger.warning(
            "Certificate image exceeds a single file write",
            extra={
                "context": {
                    "certificate_number": artwork.certificate_number,
                    "size": size,
                    "limit": limit,
                }
            },
        )
    return svg


__all__ = [
    "CertificateArtwork",
    "build_verification_url",
    "render_certificate_svg",
    "svg_size",
]
