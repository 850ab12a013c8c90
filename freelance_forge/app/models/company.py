"""Company model; its address is snapshotted onto invoices as the issuer address."""

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship

from freelance_forge.app.core.time import utc_now
from freelance_forge.app.db.base_class import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)
    registration_number = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    members = relationship("User", back_populates="company")
    invoices = relationship("Invoice", back_populates="company")
