"""Invoice to PDF pipeline: resolve template, build context, render HTML, convert."""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from sqlalchemy.orm import Session

from freelance_forge.app.core.errors import TemplateRenderError
from freelance_forge.app.core.settings import get_settings
from freelance_forge.app.models.invoice import Invoice
from freelance_forge.app.services.document_renderer import Degraded, build_render_context, render_document
from freelance_forge.app.services.pdf_backends import PdfRenderBackend, get_pdf_backend
from freelance_forge.app.services.template_resolver import ResolvedTemplate, resolve_template

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"


@dataclass(frozen=True)
class InvoicePdf:
    content: bytes
    filename: str
    media_type: str = PDF_MEDIA_TYPE
    degraded: bool = False

    @property
    def headers(self) -> dict:
        return {"Content-Disposition": f'attachment; filename="{self.filename}"'}


def pdf_filename(invoice_id: Any) -> str:
    return f"invoice-{invoice_id}.pdf"


def generate_invoice_pdf(
    invoice: Any,
    line_items: Sequence[Any],
    template: ResolvedTemplate,
    backend: PdfRenderBackend,
    *,
    escape: bool = False,
    reject_degraded: bool = False,
) -> InvoicePdf:
    """Render one invoice to PDF bytes with the given template and backend.

    ``invoice`` and ``line_items`` only need the attributes the render context
    reads, so ORM rows and plain records both work.
    """
    context = build_render_context(invoice, line_items)
    outcome = render_document(template.html, template.is_custom, context, escape=escape)
    if isinstance(outcome, Degraded) and reject_degraded:
        raise TemplateRenderError(f"Invoice template could not be rendered: {outcome.cause}")

    content = backend.render(outcome.html, context)
    logger.info(
        "Rendered invoice %s with %s backend (%d bytes)",
        context.invoice_id,
        backend.name,
        len(content),
        extra={"invoice_id": context.invoice_id, "backend": backend.name},
    )
    return InvoicePdf(content=content, filename=pdf_filename(context.invoice_id), degraded=outcome.degraded)


def build_invoice_pdf(db: Session, invoice: Invoice, backend: Optional[PdfRenderBackend] = None) -> InvoicePdf:
    """Load the invoice's template and render it with the configured backend."""
    settings = get_settings()
    template = resolve_template(db, template_id=invoice.template_id, owner_id=invoice.owner_id)
    return generate_invoice_pdf(
        invoice,
        list(invoice.line_items),
        template,
        backend or get_pdf_backend(settings),
        escape=settings.template_escape_fields,
        reject_degraded=settings.pdf_reject_degraded,
    )
