"""Choose the template an invoice is rendered with.

At write time an explicitly referenced template must belong to the caller.
At render time a reference that no longer resolves (deleted, or never owned)
quietly falls back to the built-in default.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from freelance_forge.app.core.errors import InvoiceValidationError
from freelance_forge.app.crud.crud_invoice_template import invoice_templates
from freelance_forge.app.models.invoice_template import InvoiceTemplate
from freelance_forge.app.services.document_renderer import DEFAULT_TEMPLATE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedTemplate:
    html: str
    is_custom: bool


def default_template() -> ResolvedTemplate:
    return ResolvedTemplate(html=DEFAULT_TEMPLATE, is_custom=False)


def choose_template(html: Optional[str]) -> ResolvedTemplate:
    if html is None:
        return default_template()
    return ResolvedTemplate(html=html, is_custom=True)


def resolve_template(db: Session, *, template_id: Optional[int], owner_id: int) -> ResolvedTemplate:
    if template_id is None:
        return default_template()
    html = invoice_templates.get_html(db, template_id=template_id, owner_id=owner_id)
    if html is None:
        logger.info(
            "Invoice template %s not found for owner %s; using default template",
            template_id,
            owner_id,
            extra={"template_id": template_id, "owner_id": owner_id},
        )
    return choose_template(html)


def require_owned_template(db: Session, *, template_id: int, owner_id: int) -> InvoiceTemplate:
    template = invoice_templates.get(db, template_id=template_id, owner_id=owner_id)
    if template is None:
        raise InvoiceValidationError("invalid template")
    return template
