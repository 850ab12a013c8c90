from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from freelance_forge.app.core.time import utc_now
from freelance_forge.app.db.base_class import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    address = Column(Text, nullable=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True)
    # Last invoice number handed out to this owner; bumped inside the creating transaction
    invoice_sequence = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    company = relationship("Company", back_populates="members")
    invoices = relationship("Invoice", back_populates="owner", cascade="all, delete-orphan", foreign_keys="Invoice.owner_id")
    invoice_templates = relationship(
        "InvoiceTemplate", back_populates="owner", cascade="all, delete-orphan", foreign_keys="InvoiceTemplate.owner_id"
    )
