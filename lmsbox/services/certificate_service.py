"""
Course completion certificates.

Certificates are rendered on demand: Pillow draws the PNG (onto a template
image when configured, otherwise onto a generated bordered canvas) and
reportlab places that image on a landscape A4 page.
"""
from __future__ import annotations

import io
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import requests
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from lmsbox.db import models
from lmsbox.db.repositories import progress as progress_repo

logger = logging.getLogger(__name__)

NAVY = (27, 54, 93)
GOLD = (191, 155, 48)
CANVAS_SIZE = (2000, 1414)
_DEJAVU_BOLD = "/usr/share/fonts/truetype/dejavu/DejaVuSerif-Bold.ttf"
_DEJAVU_REGULAR = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"
_LOGO_TIMEOUT = 5
_LOGO_MAX_HEIGHT = 140


class CertificateConfig:
    """Configuration for certificate rendering from environment variables."""

    def __init__(self):
        self.template_path = os.getenv('CERTIFICATE_TEMPLATE_PATH', '') or None
        self.font_path = os.getenv('CERTIFICATE_FONT_PATH', '') or None
        self.issuer = os.getenv('CERTIFICATE_ISSUER', 'System')


class CertificateNotEligible(ValueError):
    """Raised when a learner cannot be issued a certificate; ``str()`` is the reason."""


@dataclass
class CertificateData:
    certificate_id: str
    organization_name: str
    learner_name: str
    course_title: str
    completed_at: datetime
    logo_url: Optional[str] = None


def build_certificate_id(course_id: uuid.UUID, user_id: uuid.UUID, completed_at: datetime) -> str:
    return f"C-{course_id.hex[:8]}-{user_id.hex[:8]}-{completed_at:%y%m%d%H%M%S}".upper()


def format_completion_date(value: datetime) -> str:
    return value.strftime("%d %B %Y")


def _load_font(preferred: Optional[str], fallback: str, size: int):
    for path in (preferred, fallback):
        if path and os.path.exists(path):
            try:
                return ImageFont.truetype(path, size)
            except OSError:
                logger.warning("Could not load certificate font %s", path)
    return ImageFont.load_default()


def _base_image(config: CertificateConfig) -> Image.Image:
    if config.template_path and os.path.exists(config.template_path):
        return Image.open(config.template_path).convert("RGB")
    if config.template_path:
        logger.warning("Certificate template not found: %s", config.template_path)
    width, height = CANVAS_SIZE
    img = Image.new("RGB", (width, height), color="white")
    draw = ImageDraw.Draw(img)
    draw.rectangle([40, 40, width - 40, height - 40], outline=NAVY, width=12)
    draw.rectangle([70, 70, width - 70, height - 70], outline=GOLD, width=4)
    return img


def _fetch_logo(url: str) -> Optional[Image.Image]:
    """Download the organization logo; None when it cannot be fetched or decoded."""
    try:
        response = requests.get(url, timeout=_LOGO_TIMEOUT)
        response.raise_for_status()
        return Image.open(io.BytesIO(response.content)).convert("RGBA")
    except (requests.RequestException, UnidentifiedImageError, OSError) as exc:
        logger.warning("Skipping certificate logo %s: %s", url, exc)
        return None


def _scaled(size: int, scale: float) -> int:
    # tiny templates must still yield a usable font size
    return max(1, int(size * scale))


def render_png(data: CertificateData, config: Optional[CertificateConfig] = None) -> bytes:
    config = config or CertificateConfig()
    img = _base_image(config)
    width, height = img.size
    draw = ImageDraw.Draw(img)
    scale = height / CANVAS_SIZE[1]

    title_font = _load_font(config.font_path, _DEJAVU_BOLD, _scaled(96, scale))
    name_font = _load_font(config.font_path, _DEJAVU_BOLD, _scaled(84, scale))
    text_font = _load_font(config.font_path, _DEJAVU_REGULAR, _scaled(44, scale))
    small_font = _load_font(config.font_path, _DEJAVU_REGULAR, _scaled(32, scale))

    def centered(text, font, y):
        bbox = draw.textbbox((0, 0), text, font=font)
        draw.text(((width - (bbox[2] - bbox[0])) / 2, y * scale), text, fill=NAVY, font=font)

    if data.logo_url:
        logo = _fetch_logo(data.logo_url)
        if logo is not None:
            max_height = _scaled(_LOGO_MAX_HEIGHT, scale)
            logo.thumbnail((max_height * 4, max_height))
            img.paste(logo, ((width - logo.width) // 2, int(60 * scale) + (max_height - logo.height)), logo)

    centered(data.organization_name, text_font, 220)
    centered("CERTIFICATE OF COMPLETION", title_font, 290)
    centered("This certifies that", text_font, 470)
    centered(data.learner_name, name_font, 560)
    centered("has successfully completed", text_font, 720)
    centered(data.course_title, name_font, 800)
    centered(f"Completed on {format_completion_date(data.completed_at)}", text_font, 1000)
    centered(f"Certificate ID: {data.certificate_id}", small_font, 1180)

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def png_to_pdf(png_bytes: bytes) -> bytes:
    """Place the PNG on a landscape A4 page, scaled to fit and centred."""
    page_width, page_height = landscape(A4)
    image = ImageReader(io.BytesIO(png_bytes))
    img_width, img_height = image.getSize()
    ratio = min(page_width / img_width, page_height / img_height)
    draw_width, draw_height = img_width * ratio, img_height * ratio

    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=(page_width, page_height))
    pdf.drawImage(
        image,
        (page_width - draw_width) / 2,
        (page_height - draw_height) / 2,
        width=draw_width,
        height=draw_height,
    )
    pdf.showPage()
    pdf.save()
    return buf.getvalue()


def issue_certificate(
    db: Session,
    *,
    user: models.User,
    course: models.Course,
    config: Optional[CertificateConfig] = None,
) -> tuple[models.LearnerProgress, bool]:
    """Stamp the certificate on the course-level progress row.

    Returns (row, newly_issued). Idempotent: an issued certificate keeps its id.
    Raises CertificateNotEligible with the reason otherwise.
    """
    config = config or CertificateConfig()
    if not course.certificate_enabled:
        raise CertificateNotEligible("Certificates are disabled for this course")
    if course.organization_id is None:
        raise CertificateNotEligible("Course has no organization")
    row = progress_repo.get_course_progress(db, user_id=user.id, course_id=course.id)
    if row is None or not row.completed:
        raise CertificateNotEligible("Course is not completed")
    if row.certificate_id:
        return row, False

    completed_at = models.ensure_aware(row.completed_at) or models.now_utc()
    row.certificate_id = build_certificate_id(course.id, user.id, completed_at)
    row.certificate_issued_at = models.now_utc()
    row.certificate_issued_by = config.issuer
    db.commit()
    db.refresh(row)
    logger.info("Issued certificate %s for course %s", row.certificate_id, course.id)
    return row, True


def certificate_data(db: Session, *, user: models.User, course: models.Course, row: models.LearnerProgress) -> CertificateData:
    organization = db.query(models.Organization).filter(models.Organization.id == course.organization_id).first()
    return CertificateData(
        certificate_id=row.certificate_id,
        organization_name=organization.display_name if organization else "",
        learner_name=user.full_name,
        course_title=course.title,
        completed_at=models.ensure_aware(row.completed_at) or models.now_utc(),
        logo_url=organization.logo_url if organization else None,
    )
