"""Invoice write paths: numbering, snapshots, line items and totals."""

import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from freelance_forge.app.core.errors import InvoiceValidationError
from freelance_forge.app.core.time import utc_today
from freelance_forge.app.models.company import Company
from freelance_forge.app.models.invoice import Invoice
from freelance_forge.app.models.invoice_line_item import InvoiceLineItem
from freelance_forge.app.models.user import User
from freelance_forge.app.schemas.invoice import InvoiceCreate, InvoiceUpdate
from freelance_forge.app.schemas.invoice_line_item import LineItemCreate
from freelance_forge.app.services.amounts import calculate_invoice_amounts, to_decimal
from freelance_forge.app.services.template_resolver import require_owned_template

logger = logging.getLogger(__name__)

INVOICE_NUMBER_PREFIX = "IN-"


def format_invoice_number(sequence: int) -> str:
    return f"{INVOICE_NUMBER_PREFIX}{sequence:05d}"


def next_invoice_number(db: Session, owner_id: int) -> str:
    """Reserve the owner's next number inside the caller's transaction."""
    owner = db.query(User).filter(User.id == owner_id).populate_existing().with_for_update().one()
    owner.invoice_sequence = (owner.invoice_sequence or 0) + 1
    return format_invoice_number(owner.invoice_sequence)


def _required_text(value: Optional[str], field_label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise InvoiceValidationError(f"{field_label} is required")
    return cleaned


def _normalize_currency(value: str) -> str:
    code = (value or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise InvoiceValidationError("currency must be a three letter code")
    return code


def _owned_company(db: Session, owner: User, company_id: int) -> Company:
    if owner.company_id != company_id:
        raise InvoiceValidationError("invalid company")
    company = db.query(Company).filter(Company.id == company_id).first()
    if company is None:
        raise InvoiceValidationError("invalid company")
    return company


def _issuer_address(db: Session, owner: User, company: Optional[Company]) -> str:
    if company is not None:
        return company.address
    if owner.address and owner.address.strip():
        return owner.address.strip()
    if owner.company_id is not None:
        fallback = db.query(Company).filter(Company.id == owner.company_id).first()
        if fallback is not None:
            return fallback.address
    raise InvoiceValidationError("issuer address is required; set a profile address or company")


def build_line_items(items: Sequence[LineItemCreate]) -> List[InvoiceLineItem]:
    amounts = calculate_invoice_amounts(items)
    line_items = []
    for position, (item, line) in enumerate(zip(items, amounts.lines)):
        line_items.append(
            InvoiceLineItem(
                position=position,
                description=_required_text(item.description, "line item description"),
                quantity=line.quantity,
                unit_price=line.unit_price,
                use_quantity=item.use_quantity,
                line_total=line.line_total,
            )
        )
    return line_items


def create_invoice(db: Session, *, owner: User, invoice_in: InvoiceCreate) -> Invoice:
    client_name = _required_text(invoice_in.client_name, "client name")
    client_address = _required_text(invoice_in.client_address, "client address")
    currency = _normalize_currency(invoice_in.currency)
    line_items = build_line_items(invoice_in.items)
    if invoice_in.template_id is not None:
        require_owned_template(db, template_id=invoice_in.template_id, owner_id=owner.id)
    company = _owned_company(db, owner, invoice_in.company_id) if invoice_in.company_id is not None else None

    invoice = Invoice(
        owner_id=owner.id,
        company_id=company.id if company else None,
        template_id=invoice_in.template_id,
        client_name=client_name,
        client_address=client_address,
        issuer_address=_issuer_address(db, owner, company),
        currency=currency,
        date=invoice_in.date or utc_today(),
        total_amount=sum((item.line_total for item in line_items), to_decimal(0, "total_amount")),
    )
    invoice.line_items = line_items
    invoice.invoice_number = next_invoice_number(db, owner.id)
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    logger.info(
        "Created invoice %s (%s) for owner %s",
        invoice.id,
        invoice.invoice_number,
        owner.id,
        extra={"invoice_id": invoice.id, "owner_id": owner.id},
    )
    return invoice


def update_invoice(db: Session, *, invoice: Invoice, owner: User, invoice_in: InvoiceUpdate) -> Invoice:
    """Apply a partial update; a supplied ``items`` list replaces every line item."""
    data = invoice_in.model_dump(exclude_unset=True)

    if data.get("client_name") is not None:
        invoice.client_name = _required_text(invoice_in.client_name, "client name")
    if data.get("client_address") is not None:
        invoice.client_address = _required_text(invoice_in.client_address, "client address")
    if data.get("currency") is not None:
        invoice.currency = _normalize_currency(invoice_in.currency)
    if data.get("date") is not None:
        invoice.date = invoice_in.date

    if "template_id" in data:
        if invoice_in.template_id is not None:
            require_owned_template(db, template_id=invoice_in.template_id, owner_id=owner.id)
        invoice.template_id = invoice_in.template_id

    if "company_id" in data:
        company = _owned_company(db, owner, invoice_in.company_id) if invoice_in.company_id is not None else None
        invoice.company_id = company.id if company else None
        invoice.issuer_address = _issuer_address(db, owner, company)

    if "items" in data:
        line_items = build_line_items(invoice_in.items or [])
        invoice.line_items.clear()
        db.flush()
        invoice.line_items.extend(line_items)
        invoice.total_amount = sum((item.line_total for item in line_items), to_decimal(0, "total_amount"))

    db.commit()
    db.refresh(invoice)
    return invoice


def get_owned_invoice(db: Session, *, invoice_id: int, owner_id: int) -> Optional[Invoice]:
    return db.query(Invoice).filter(Invoice.id == invoice_id, Invoice.owner_id == owner_id).first()


def delete_invoice(db: Session, *, invoice: Invoice) -> None:
    db.delete(invoice)
    db.commit()
