"""Owner-scoped persistence for invoice templates.

Every query is filtered by owner; a template id on its own never reads or
changes a row.
"""

import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from freelance_forge.app.models.invoice import Invoice
from freelance_forge.app.models.invoice_template import InvoiceTemplate
from freelance_forge.app.schemas.invoice_template import InvoiceTemplateCreate, InvoiceTemplateUpdate

logger = logging.getLogger(__name__)


class InvoiceTemplateRepository:
    def _owned(self, db: Session, owner_id: int) -> Query:
        return db.query(InvoiceTemplate).filter(InvoiceTemplate.owner_id == owner_id)

    def get(self, db: Session, *, template_id: int, owner_id: int) -> Optional[InvoiceTemplate]:
        return self._owned(db, owner_id).filter(InvoiceTemplate.id == template_id).one_or_none()

    def get_html(self, db: Session, *, template_id: int, owner_id: int) -> Optional[str]:
        """Return just the stored markup, which is all rendering needs."""
        return (
            db.query(InvoiceTemplate.html)
            .filter(InvoiceTemplate.id == template_id, InvoiceTemplate.owner_id == owner_id)
            .scalar()
        )

    def list_for_owner(self, db: Session, *, owner_id: int) -> List[InvoiceTemplate]:
        return self._owned(db, owner_id).order_by(InvoiceTemplate.created_at.desc(), InvoiceTemplate.id.desc()).all()

    def create(self, db: Session, *, owner_id: int, template_in: InvoiceTemplateCreate) -> InvoiceTemplate:
        template = InvoiceTemplate(owner_id=owner_id, name=template_in.name.strip(), html=template_in.html)
        db.add(template)
        db.commit()
        db.refresh(template)
        return template

    def update(self, db: Session, *, template: InvoiceTemplate, changes: InvoiceTemplateUpdate) -> InvoiceTemplate:
        if changes.name is not None:
            template.name = changes.name.strip()
        if changes.html is not None:
            template.html = changes.html
        db.commit()
        db.refresh(template)
        return template

    def delete(self, db: Session, *, template: InvoiceTemplate) -> int:
        """Delete ``template`` and return how many invoices referenced it.

        The foreign key nulls those references, so the invoices render with the
        default layout afterwards.
        """
        referencing = db.query(func.count(Invoice.id)).filter(Invoice.template_id == template.id).scalar()
        template_id, owner_id = template.id, template.owner_id
        db.delete(template)
        db.commit()
        if referencing:
            logger.info(
                "Deleted invoice template %s; %d invoices fall back to the default layout",
                template_id,
                referencing,
                extra={"template_id": template_id, "owner_id": owner_id},
            )
        return referencing


invoice_templates = InvoiceTemplateRepository()
