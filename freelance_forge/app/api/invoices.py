"""Invoice routes for owners, including PDF download."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from freelance_forge.app.core.security import get_current_user
from freelance_forge.app.db.session import get_db
from freelance_forge.app.models.invoice import Invoice
from freelance_forge.app.models.user import User
from freelance_forge.app.schemas.invoice import InvoiceCreate, InvoiceRead, InvoiceUpdate
from freelance_forge.app.services.invoice_pdf import build_invoice_pdf
from freelance_forge.app.services.invoices import create_invoice, delete_invoice, get_owned_invoice, update_invoice

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _get_invoice_or_404(db: Session, invoice_id: int, owner_id: int) -> Invoice:
    invoice = get_owned_invoice(db, invoice_id=invoice_id, owner_id=owner_id)
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice


@router.post("/", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice_endpoint(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return create_invoice(db, owner=current_user, invoice_in=payload)


@router.get("/", response_model=List[InvoiceRead])
def list_invoices(
    skip: int = 0,
    limit: int = 50,
    sort_order: str = "desc",
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sort_order_normalized = (sort_order or "desc").lower()
    if sort_order_normalized not in {"asc", "desc"}:
        raise HTTPException(status_code=400, detail="Invalid sort_order value")
    if sort_order_normalized == "asc":
        order_by_clause = [Invoice.date.asc(), Invoice.id.asc()]
    else:
        order_by_clause = [Invoice.date.desc(), Invoice.id.desc()]
    query = db.query(Invoice).filter(Invoice.owner_id == current_user.id)
    return query.order_by(*order_by_clause).offset(skip).limit(limit).all()


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _get_invoice_or_404(db, invoice_id, current_user.id)


@router.patch("/{invoice_id}", response_model=InvoiceRead)
def update_invoice_endpoint(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invoice = _get_invoice_or_404(db, invoice_id, current_user.id)
    return update_invoice(db, invoice=invoice, owner=current_user, invoice_in=payload)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice_endpoint(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    invoice = _get_invoice_or_404(db, invoice_id, current_user.id)
    delete_invoice(db, invoice=invoice)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{invoice_id}/pdf")
def download_invoice_pdf(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    invoice = _get_invoice_or_404(db, invoice_id, current_user.id)
    pdf = build_invoice_pdf(db, invoice)
    return Response(content=pdf.content, media_type=pdf.media_type, headers=pdf.headers)
