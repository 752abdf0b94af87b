"""
Certificate PDF renderer. Landscape A4, drawn with Pillow and saved as a
single-page PDF.
"""
import io
import logging
import os
from datetime import datetime

from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

# A4 landscape in PDF points; drawn at SCALE and saved at 72 * SCALE dpi
PAGE_SIZE = (842, 595)
SCALE = 2

PRIMARY = (25, 118, 210)       # #1976D2
TITLE = (21, 101, 192)         # #1565C0
BODY = (66, 66, 66)            # #424242
MUTED = (97, 97, 97)           # #616161
FAINT = (158, 158, 158)        # #9E9E9E
BACKGROUND = (227, 242, 253)   # #E3F2FD
PANEL = (255, 255, 255)

_FONT_PATHS = {
    True: (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
        "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    ),
    False: (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/usr/share/fonts/TTF/DejaVuSans.ttf",
    ),
}


def _get_font(size: int, bold: bool = False) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    for path in _FONT_PATHS[bold]:
        if os.path.exists(path):
            try:
                return ImageFont.truetype(path, size)
            except OSError:
                continue
    return ImageFont.load_default(size=size)


class CertificateRenderer:
    def render(
        self,
        student_name: str,
        course_title: str,
        certificate_id: str,
        issued_at: datetime,
    ) -> bytes:
        width, height = PAGE_SIZE[0] * SCALE, PAGE_SIZE[1] * SCALE
        img = Image.new("RGB", (width, height), BACKGROUND)
        draw = ImageDraw.Draw(img)

        margin = 30 * SCALE
        draw.rectangle((margin, margin, width - margin, height - margin), fill=PANEL)
        draw.rectangle(
            (margin + 10 * SCALE, margin + 10 * SCALE, width - margin - 10 * SCALE, height - margin - 10 * SCALE),
            outline=PRIMARY,
            width=3 * SCALE,
        )

        def centered(text: str, y: int, size: int, color, bold: bool = False, max_width: int | None = None) -> None:
            # Shrink long names/titles until they fit the panel
            size = size * SCALE
            limit = (max_width or (width - 2 * margin - 80 * SCALE))
            font = _get_font(size, bold)
            while size > 10 * SCALE and draw.textlength(text, font=font) > limit:
                size -= 2 * SCALE
                font = _get_font(size, bold)
            text_width = draw.textlength(text, font=font)
            draw.text(((width - text_width) / 2, y * SCALE), text, font=font, fill=color)

        centered("CERTIFICATE", 110, 48, TITLE, bold=True)
        centered("of Completion", 168, 20, MUTED)
        centered("This is to certify that", 225, 16, BODY)
        centered(student_name or "Student", 260, 36, PRIMARY, bold=True)
        centered("has successfully completed the course", 325, 16, BODY)
        centered(course_title, 360, 28, TITLE, bold=True)
        centered(f"Issued on {issued_at.strftime('%B %d, %Y')}", 440, 14, MUTED)
        centered(f"Certificate ID: {certificate_id}", 520, 10, FAINT)

        buf = io.BytesIO()
        img.save(buf, format="PDF", resolution=72.0 * SCALE)
        data = buf.getvalue()
        logger.info("certificate_rendered", extra={"certificate_id": certificate_id})
        return data
