"""Invoice schemas."""

from datetime import date as date_type
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from freelance_forge.app.schemas.invoice_line_item import LineItemCreate, LineItemRead


class InvoiceCreate(BaseModel):
    client_name: str
    client_address: str
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    date: Optional[date_type] = None
    company_id: Optional[int] = None
    template_id: Optional[int] = None
    items: List[LineItemCreate] = Field(default_factory=list)


class InvoiceUpdate(BaseModel):
    client_name: Optional[str] = None
    client_address: Optional[str] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    date: Optional[date_type] = None
    company_id: Optional[int] = None
    template_id: Optional[int] = None
    items: Optional[List[LineItemCreate]] = None


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    owner_id: int
    company_id: Optional[int] = None
    template_id: Optional[int] = None

    client_name: str
    client_address: str
    issuer_address: str
    currency: str
    date: date_type
    amount: float
    total_amount: float
    items: List[LineItemRead] = Field(default_factory=list, validation_alias=AliasChoices("line_items", "items"))

    created_at: datetime
    updated_at: datetime
