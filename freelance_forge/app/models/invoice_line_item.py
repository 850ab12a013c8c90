"""Invoice line item model for billable rows."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from freelance_forge.app.db.base_class import Base


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String(500), nullable=False)
    quantity = Column(Numeric(14, 3), nullable=False, default=1)
    unit_price = Column(Numeric(14, 2), nullable=False)
    use_quantity = Column(Boolean, nullable=False, default=True)
    line_total = Column(Numeric(14, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="line_items")
