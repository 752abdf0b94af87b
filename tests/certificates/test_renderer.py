from datetime import datetime, timezone
from unittest.mock import patch

from smartlearn.services.certificates.renderer import CertificateRenderer, _get_font


def test_renders_pdf_bytes():
    pdf = CertificateRenderer().render(
        "Nimal Perera",
        "A Very Long Course Title That Needs To Shrink To Fit The Certificate Panel Width",
        "cert-123",
        datetime(2026, 3, 1, tzinfo=timezone.utc),
    )
    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1000


def test_font_falls_back_to_sized_default():
    with patch("smartlearn.services.certificates.renderer.os.path.exists", return_value=False):
        font = _get_font(40, bold=True)
    assert font.size == 40
