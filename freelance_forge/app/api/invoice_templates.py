"""Invoice template endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from freelance_forge.app.core.security import get_current_user
from freelance_forge.app.crud.crud_invoice_template import invoice_templates
from freelance_forge.app.db.session import get_db
from freelance_forge.app.models.invoice_template import InvoiceTemplate
from freelance_forge.app.models.user import User
from freelance_forge.app.schemas.invoice_template import (
    InvoiceTemplateCreate,
    InvoiceTemplateRead,
    InvoiceTemplateUpdate,
)

router = APIRouter(prefix="/invoice-templates", tags=["invoice_templates"])


def _get_owned_template(db: Session, template_id: int, owner_id: int) -> InvoiceTemplate:
    template = invoice_templates.get(db, template_id=template_id, owner_id=owner_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice template not found")
    return template


@router.post("/", response_model=InvoiceTemplateRead, status_code=status.HTTP_201_CREATED)
def create_invoice_template(
    template_in: InvoiceTemplateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not template_in.name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")
    return invoice_templates.create(db, owner_id=current_user.id, template_in=template_in)


@router.get("/", response_model=list[InvoiceTemplateRead])
def list_invoice_templates(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return invoice_templates.list_for_owner(db, owner_id=current_user.id)


@router.get("/{template_id}", response_model=InvoiceTemplateRead)
def get_invoice_template(template_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _get_owned_template(db, template_id, current_user.id)


@router.put("/{template_id}", response_model=InvoiceTemplateRead)
def update_invoice_template(
    template_id: int,
    template_in: InvoiceTemplateUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    template = _get_owned_template(db, template_id, current_user.id)
    if template_in.name is not None and not template_in.name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")
    return invoice_templates.update(db, template=template, changes=template_in)


@router.delete("/{template_id}", response_model=InvoiceTemplateRead)
def delete_invoice_template(template_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    template = _get_owned_template(db, template_id, current_user.id)
    deleted = InvoiceTemplateRead.model_validate(template)
    invoice_templates.delete(db, template=template)
    return deleted
