"""Company schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CompanyCreate(BaseModel):
    name: str
    address: str
    registration_number: str


class CompanyUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    registration_number: Optional[str] = None


class CompanyRead(CompanyCreate):
    id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
