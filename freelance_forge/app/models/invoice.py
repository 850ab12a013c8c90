"""Invoice model.

Client and issuer fields are point-in-time snapshots taken when the invoice is
written, not joins against live rows.
"""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from freelance_forge.app.core.time import utc_now
from freelance_forge.app.db.base_class import Base


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (UniqueConstraint("owner_id", "invoice_number", name="uq_invoices_owner_number"),)

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(32), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="SET NULL"), nullable=True)
    template_id = Column(Integer, ForeignKey("invoice_templates.id", ondelete="SET NULL"), nullable=True)

    client_name = Column(String(255), nullable=False)
    client_address = Column(Text, nullable=False)
    issuer_address = Column(Text, nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    date = Column(Date, nullable=False)
    total_amount = Column(Numeric(14, 2), default=0.00, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    owner = relationship("User", back_populates="invoices")
    company = relationship("Company", back_populates="invoices")
    template = relationship("InvoiceTemplate", back_populates="invoices")
    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.position",
    )

    @property
    def amount(self):
        # Legacy alias kept for API responses; there is only one stored total
        return self.total_amount
