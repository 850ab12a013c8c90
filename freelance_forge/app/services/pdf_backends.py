"""PDF render backends.

Two interchangeable strategies sit behind :class:`PdfRenderBackend`:

- ``native``: lays the invoice out in-process with reportlab drawing
  primitives, paginating the item table by hand.
- ``external``: pipes the finished HTML through a converter process such as
  ``wkhtmltopdf`` and returns whatever PDF it writes to stdout.

The backend is picked from settings by :func:`get_pdf_backend`.
"""

import logging
import os
import shlex
import subprocess
from abc import ABC, abstractmethod
from io import BytesIO
from typing import List, Optional, Sequence, Tuple, Union

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from freelance_forge.app.core.errors import PdfBackendError, PdfBackendTimeoutError
from freelance_forge.app.core.settings import Settings, get_settings
from freelance_forge.app.services.document_renderer import LineItemView, RenderContext
from freelance_forge.app.services.money import format_money

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"

BUILTIN_FONTS = ("Helvetica", "Helvetica-Bold")
# (regular, bold) DejaVu Sans locations on Debian/Ubuntu, Fedora and Arch
SYSTEM_FONT_CANDIDATES = (
    ("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
    ("/usr/share/fonts/dejavu-sans-fonts/DejaVuSans.ttf", "/usr/share/fonts/dejavu-sans-fonts/DejaVuSans-Bold.ttf"),
    ("/usr/share/fonts/TTF/DejaVuSans.ttf", "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf"),
)


def register_ttf_font(path: str) -> str:
    """Register a TrueType file with reportlab once and return its font name."""
    name = "Forge-" + os.path.splitext(os.path.basename(path))[0]
    if name not in pdfmetrics.getRegisteredFontNames():
        # asciiReadable keeps ASCII text as literal bytes in the content stream
        pdfmetrics.registerFont(TTFont(name, path, asciiReadable=True))
    return name


def resolve_fonts(font_path: Optional[str] = None, bold_font_path: Optional[str] = None) -> Tuple[str, str]:
    """Pick the (regular, bold) fonts for the native layout.

    The built-in Type1 fonts only cover Latin-1, so a Unicode TrueType font is
    preferred: the configured one, else a system DejaVu Sans. Glyphs missing
    from the chosen font (CJK in DejaVu, for example) still need a font that
    covers them to be configured.
    """
    if font_path:
        if not os.path.isfile(font_path):
            raise ValueError(f"PDF font file not found: {font_path}")
        if bold_font_path and not os.path.isfile(bold_font_path):
            raise ValueError(f"PDF font file not found: {bold_font_path}")
        regular = register_ttf_font(font_path)
        return regular, register_ttf_font(bold_font_path) if bold_font_path else regular

    for regular_path, bold_path in SYSTEM_FONT_CANDIDATES:
        if os.path.isfile(regular_path):
            regular = register_ttf_font(regular_path)
            return regular, register_ttf_font(bold_path) if os.path.isfile(bold_path) else regular

    logger.warning("No Unicode TrueType font found; native PDFs fall back to Helvetica and lose non-Latin text")
    return BUILTIN_FONTS


class PdfRenderBackend(ABC):
    """Turns a finished invoice document into PDF bytes."""

    name: str = "abstract"

    @abstractmethod
    def render(self, html: str, context: RenderContext) -> bytes:
        """Return the PDF for ``html``; ``context`` carries the same data unflattened."""


class NativePdfBackend(PdfRenderBackend):
    """Fixed A4 layout drawn with reportlab; ignores the HTML."""

    name = "native"

    PAGE_WIDTH, PAGE_HEIGHT = A4
    MARGIN_X = 18 * mm
    TOP_MARGIN = 20 * mm
    BOTTOM_MARGIN = 22 * mm
    LINE_HEIGHT = 13
    ROW_GAP = 4

    FONT_SIZE = 10

    def __init__(self, font_path: Optional[str] = None, bold_font_path: Optional[str] = None):
        self.font, self.font_bold = resolve_fonts(font_path, bold_font_path)
        content_width = self.PAGE_WIDTH - 2 * self.MARGIN_X
        # description | qty | unit price | line total, right edges for the numeric columns
        self.col_description = self.MARGIN_X
        self.description_width = content_width * 0.46
        self.col_qty_right = self.MARGIN_X + content_width * 0.58
        self.col_unit_right = self.MARGIN_X + content_width * 0.79
        self.col_total_right = self.MARGIN_X + content_width

    def render(self, html: str, context: RenderContext) -> bytes:
        buffer = BytesIO()
        pdf = canvas.Canvas(
            buffer,
            pagesize=(self.PAGE_WIDTH, self.PAGE_HEIGHT),
            invariant=1,
            pageCompression=0,
        )
        pdf.setTitle(f"Invoice {context.invoice_number}".strip())
        pdf.setAuthor(context.company_name or "Freelance Forge")

        y = self._draw_header(pdf, context)
        y = self._draw_column_captions(pdf, y)
        for item in context.items:
            lines = simpleSplit(item.description, self.font, self.FONT_SIZE, self.description_width) or [""]
            row_height = len(lines) * self.LINE_HEIGHT + self.ROW_GAP
            if y - row_height < self.BOTTOM_MARGIN:
                y = self._new_page(pdf, context)
            y = self._draw_item(pdf, item, lines, context.currency, y)

        totals_height = 3 * self.LINE_HEIGHT + 10
        if y - totals_height < self.BOTTOM_MARGIN:
            y = self._new_page(pdf, context, captions=False)
        y = self._draw_totals(pdf, context, y)
        self._draw_note(pdf, context, y)

        pdf.showPage()
        pdf.save()
        return buffer.getvalue()

    def _draw_lines(self, pdf, x: float, y: float, text: str) -> float:
        for line in text.splitlines() or [""]:
            pdf.drawString(x, y, line)
            y -= self.LINE_HEIGHT
        return y

    def _draw_header(self, pdf, context: RenderContext) -> float:
        y = self.PAGE_HEIGHT - self.TOP_MARGIN
        pdf.setFont(self.font_bold, 18)
        pdf.drawString(self.MARGIN_X, y, f"Invoice {context.invoice_number}".strip())
        pdf.setFont(self.font, self.FONT_SIZE)
        right = self.PAGE_WIDTH - self.MARGIN_X
        pdf.drawRightString(right, y, f"Invoice ID: {context.invoice_id}")
        pdf.drawRightString(right, y - self.LINE_HEIGHT, f"Date: {context.date}")
        y -= 2.5 * self.LINE_HEIGHT

        pdf.setFont(self.font_bold, self.FONT_SIZE)
        pdf.drawString(self.MARGIN_X, y, "From")
        pdf.setFont(self.font, self.FONT_SIZE)
        y -= self.LINE_HEIGHT
        if context.company_name:
            pdf.drawString(self.MARGIN_X, y, context.company_name)
            y -= self.LINE_HEIGHT
        y = self._draw_lines(pdf, self.MARGIN_X, y, context.issuer_address)
        y -= self.LINE_HEIGHT

        pdf.setFont(self.font_bold, self.FONT_SIZE)
        pdf.drawString(self.MARGIN_X, y, "Bill to")
        pdf.setFont(self.font, self.FONT_SIZE)
        y -= self.LINE_HEIGHT
        pdf.drawString(self.MARGIN_X, y, context.client_name)
        y -= self.LINE_HEIGHT
        y = self._draw_lines(pdf, self.MARGIN_X, y, context.client_address)
        return y - self.LINE_HEIGHT

    def _draw_column_captions(self, pdf, y: float) -> float:
        pdf.setFont(self.font_bold, self.FONT_SIZE)
        pdf.drawString(self.col_description, y, "Description")
        pdf.drawRightString(self.col_qty_right, y, "Qty")
        pdf.drawRightString(self.col_unit_right, y, "Unit price")
        pdf.drawRightString(self.col_total_right, y, "Total")
        pdf.setFont(self.font, self.FONT_SIZE)
        pdf.line(self.MARGIN_X, y - 4, self.col_total_right, y - 4)
        return y - self.LINE_HEIGHT - self.ROW_GAP

    def _new_page(self, pdf, context: RenderContext, captions: bool = True) -> float:
        pdf.showPage()
        y = self.PAGE_HEIGHT - self.TOP_MARGIN
        pdf.setFont(self.font, 8)
        pdf.drawString(self.MARGIN_X, y, f"Invoice {context.invoice_number} (continued)".strip())
        pdf.setFont(self.font, self.FONT_SIZE)
        y -= 2 * self.LINE_HEIGHT
        if captions:
            y = self._draw_column_captions(pdf, y)
        return y

    def _draw_item(self, pdf, item: LineItemView, lines: List[str], currency: str, y: float) -> float:
        top = y
        for line in lines:
            pdf.drawString(self.col_description, y, line)
            y -= self.LINE_HEIGHT
        pdf.drawRightString(self.col_qty_right, top, _format_quantity(item.quantity))
        pdf.drawRightString(self.col_unit_right, top, f"{format_money(item.unit_price, currency)} {currency}".strip())
        pdf.drawRightString(self.col_total_right, top, f"{format_money(item.line_total, currency)} {currency}".strip())
        return y - self.ROW_GAP

    def _draw_totals(self, pdf, context: RenderContext, y: float) -> float:
        pdf.line(self.col_qty_right, y + 6, self.col_total_right, y + 6)
        y -= 4
        pdf.drawRightString(self.col_unit_right, y, "Subtotal")
        pdf.drawRightString(self.col_total_right, y, f"{format_money(context.subtotal, context.currency)} {context.currency}".strip())
        y -= self.LINE_HEIGHT + 2
        pdf.setFont(self.font_bold, 12)
        pdf.drawRightString(self.col_unit_right, y, "Total")
        pdf.drawRightString(
            self.col_total_right, y, f"{format_money(context.total_amount, context.currency)} {context.currency}".strip()
        )
        pdf.setFont(self.font, self.FONT_SIZE)
        return y - 2 * self.LINE_HEIGHT

    def _draw_note(self, pdf, context: RenderContext, y: float) -> None:
        if not context.note:
            return
        pdf.setFont(self.font, 8)
        width = self.PAGE_WIDTH - 2 * self.MARGIN_X
        for line in simpleSplit(context.note, self.font, 8, width):
            if y < self.BOTTOM_MARGIN:
                pdf.showPage()
                pdf.setFont(self.font, 8)
                y = self.PAGE_HEIGHT - self.TOP_MARGIN
            pdf.drawString(self.MARGIN_X, y, line)
            y -= 10
        pdf.setFont(self.font, self.FONT_SIZE)


def _format_quantity(quantity) -> str:
    if quantity == quantity.to_integral_value():
        return str(int(quantity))
    return format(quantity.normalize(), "f")


class ExternalConverterBackend(PdfRenderBackend):
    """Runs an HTML-to-PDF converter per render: HTML on stdin, PDF on stdout."""

    name = "external"

    def __init__(self, command: Union[str, Sequence[str]], timeout_seconds: Optional[float] = 30.0):
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.command:
            raise ValueError("converter command must not be empty")
        self.timeout_seconds = timeout_seconds

    def render(self, html: str, context: RenderContext) -> bytes:
        try:
            # run() feeds stdin and drains stdout/stderr together, and kills the child on timeout
            completed = subprocess.run(
                self.command,
                input=html.encode("utf-8"),
                capture_output=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            logger.error(
                "PDF converter timed out after %ss for invoice %s",
                self.timeout_seconds,
                context.invoice_id,
                extra={"invoice_id": context.invoice_id, "backend": self.name},
            )
            raise PdfBackendTimeoutError(
                f"PDF converter timed out after {self.timeout_seconds} seconds",
                diagnostic=_decode(exc.stderr),
            ) from exc
        except OSError as exc:
            logger.error(
                "PDF converter %r could not be started: %s",
                self.command[0],
                exc,
                extra={"invoice_id": context.invoice_id, "backend": self.name},
            )
            raise PdfBackendError(f"PDF converter could not be started: {exc}", diagnostic=str(exc)) from exc

        diagnostic = _decode(completed.stderr)
        if completed.returncode != 0:
            logger.error(
                "PDF converter exited with status %s for invoice %s: %s",
                completed.returncode,
                context.invoice_id,
                diagnostic,
                extra={"invoice_id": context.invoice_id, "backend": self.name},
            )
            raise PdfBackendError(diagnostic or f"PDF converter exited with status {completed.returncode}", diagnostic)
        if not completed.stdout.startswith(PDF_MAGIC):
            raise PdfBackendError("PDF converter did not produce a PDF document", diagnostic)
        return completed.stdout


def _decode(stream: Optional[bytes]) -> str:
    if not stream:
        return ""
    return stream.decode("utf-8", errors="replace").strip()


def get_pdf_backend(settings: Optional[Settings] = None) -> PdfRenderBackend:
    settings = settings or get_settings()
    if settings.pdf_backend == "external":
        return ExternalConverterBackend(settings.pdf_converter_command, settings.pdf_converter_timeout_seconds)
    if settings.pdf_backend == "native":
        return NativePdfBackend(settings.pdf_font_path, settings.pdf_bold_font_path)
    raise ValueError(f"Unknown PDF backend: {settings.pdf_backend!r}")
