import io
import uuid
from datetime import datetime, timezone
from unittest.mock import patch

import requests
from PIL import Image, ImageFont

from lmsbox.services.certificate_service import (
    CertificateConfig,
    CertificateData,
    build_certificate_id,
    format_completion_date,
    png_to_pdf,
    render_png,
)


def _data(**overrides):
    values = dict(
        certificate_id="C-TEST-0001",
        organization_name="Acme Academy",
        learner_name="Lee Learner",
        course_title="Safety Basics",
        completed_at=datetime(2024, 5, 17, 9, 30, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return CertificateData(**values)


def _config(monkeypatch, **env):
    for key in ("CERTIFICATE_TEMPLATE_PATH", "CERTIFICATE_FONT_PATH", "CERTIFICATE_ISSUER"):
        monkeypatch.delenv(key, raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return CertificateConfig()


def test_certificate_id_is_deterministic_and_uppercase():
    course_id = uuid.UUID("0123456789abcdef0123456789abcdef")
    user_id = uuid.UUID("fedcba9876543210fedcba9876543210")
    completed = datetime(2024, 5, 17, 9, 30, 5, tzinfo=timezone.utc)
    assert build_certificate_id(course_id, user_id, completed) == "C-01234567-FEDCBA98-240517093005"


def test_completion_date_format():
    assert format_completion_date(datetime(2024, 5, 7)) == "07 May 2024"


def test_render_png_on_generated_canvas(monkeypatch):
    png = render_png(_data(), _config(monkeypatch))
    image = Image.open(io.BytesIO(png))
    assert image.format == "PNG"
    assert image.size == (2000, 1414)


def test_render_png_uses_template_when_present(monkeypatch, tmp_path):
    template = tmp_path / "template.png"
    Image.new("RGB", (1000, 707), color="white").save(template)
    png = render_png(_data(), _config(monkeypatch, CERTIFICATE_TEMPLATE_PATH=str(template)))
    assert Image.open(io.BytesIO(png)).size == (1000, 707)


def test_missing_template_falls_back_to_canvas(monkeypatch, tmp_path):
    config = _config(monkeypatch, CERTIFICATE_TEMPLATE_PATH=str(tmp_path / "nope.png"))
    png = render_png(_data(), config)
    assert Image.open(io.BytesIO(png)).size == (2000, 1414)


def test_unreachable_logo_is_skipped(monkeypatch):
    with patch("lmsbox.services.certificate_service.requests.get", side_effect=requests.ConnectionError("down")) as get:
        png = render_png(_data(logo_url="https://cdn.example.com/logo.png"), _config(monkeypatch))
    get.assert_called_once()
    assert png.startswith(b"\x89PNG")


def test_pdf_wraps_png():
    png_buf = io.BytesIO()
    Image.new("RGB", (400, 283), color="white").save(png_buf, format="PNG")
    pdf = png_to_pdf(png_buf.getvalue())
    assert pdf.startswith(b"%PDF")


def test_tiny_template_keeps_font_sizes_positive(monkeypatch, tmp_path):
    template = tmp_path / "tiny.png"
    Image.new("RGB", (40, 20), color="white").save(template)
    sizes = []

    def fake_load_font(preferred, fallback, size):
        sizes.append(size)
        return ImageFont.load_default()

    monkeypatch.setattr("lmsbox.services.certificate_service._load_font", fake_load_font)
    png = render_png(_data(), _config(monkeypatch, CERTIFICATE_TEMPLATE_PATH=str(template)))
    assert Image.open(io.BytesIO(png)).size == (40, 20)
    assert sizes and min(sizes) >= 1
