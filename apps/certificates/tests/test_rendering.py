from datetime import date

import pytest

from apps.certificates.rendering import (
    CertificateArtwork,
    build_verification_url,
    render_certificate_svg,
    svg_size,
)
from utils.qr_generator import generate_qr_matrix, generate_qr_svg_path


def _artwork(**overrides):
    values = {
        "recipient_name": "Ada Lovelace",
        "course_title": "Intro to Ledgers",
        "completion_date": date(2026, 1, 5),
        "certificate_number": "W3V-2026-00001",
        "verification_url": "https://learn.test/verify?cert=W3V-2026-00001",
        "signature": "ab" * 32,
    }
    values.update(overrides)
    return CertificateArtwork(**values)


def test_render_is_deterministic():
    assert render_certificate_svg(_artwork()) == render_certificate_svg(_artwork())


def test_render_prints_certificate_details():
    svg = render_certificate_svg(_artwork())

    assert svg.startswith('<svg xmlns="http://www.w3.org/2000/svg"')
    assert svg.endswith("</svg>")
    assert "\n" not in svg
    assert "Ada Lovelace" in svg
    assert "Intro to Ledgers" in svg
    assert "Completed on January 5, 2026" in svg
    assert "Certificate No: W3V-2026-00001" in svg
    assert "Issued by Web3Versity" in svg
    assert 'transform="translate(800,530)"' in svg


def test_render_prints_only_signature_prefix():
    signature = "0123456789abcdef" + "f" * 48
    svg = render_certificate_svg(_artwork(signature=signature))

    assert "Sig: 0123456789abcdef..." in svg
    assert signature not in svg


def test_render_escapes_user_text():
    svg = render_certificate_svg(
        _artwork(recipient_name='<script>alert("x")</script>', course_title="R&D")
    )

    assert "<script>" not in svg
    assert "&lt;script&gt;" in svg
    assert "R&amp;D" in svg


def test_render_truncates_long_names_and_titles():
    svg = render_certificate_svg(
        _artwork(recipient_name="N" * 45, course_title="T" * 60)
    )

    assert "N" * 27 + "..." in svg
    assert "N" * 28 not in svg
    assert "T" * 37 + "..." in svg
    assert "T" * 38 not in svg


def test_render_requires_verification_url():
    with pytest.raises(ValueError):
        render_certificate_svg(_artwork(verification_url=""))


def test_oversized_render_is_logged_but_returned(settings, mocker):
    settings.CERTIFICATE_MAX_CHUNK_SIZE = 100
    logger = mocker.patch("apps.certificates.rendering.logger")

    svg = render_certificate_svg(_artwork())

    assert svg_size(svg) > 100
    logger.warning.assert_called_once()
    context = logger.warning.call_args.kwargs["extra"]["context"]
    assert context["limit"] == 100
    assert context["size"] == svg_size(svg)


def test_svg_size_counts_encoded_bytes():
    assert svg_size("abc") == 3
    assert svg_size("é") == 2


def test_verification_url_uses_configured_base(settings):
    settings.CERTIFICATE_VERIFY_BASE_URL = "https://learn.example/"

    assert (
        build_verification_url("W3V-2026-00042")
        == "https://learn.example/verify?cert=W3V-2026-00042"
    )


def test_qr_path_merges_dark_runs():
    matrix = generate_qr_matrix("https://learn.test/verify?cert=W3V-2026-00001")
    path, side = generate_qr_svg_path(
        "https://learn.test/verify?cert=W3V-2026-00001", module_size=2
    )

    assert side == len(matrix) * 2
    runs = sum(
        1
        for row in matrix
        for index, dark in enumerate(row)
        if dark and (index == 0 or not row[index - 1])
    )
    assert path.count("M") == runs


def test_qr_rejects_empty_data():
    with pytest.raises(ValueError):
        generate_qr_matrix("")
