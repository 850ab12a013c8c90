"""Invoice line item schemas."""

from pydantic import BaseModel, ConfigDict


class LineItemCreate(BaseModel):
    description: str
    quantity: float = 1.0
    unit_price: float
    use_quantity: bool = True


class LineItemRead(LineItemCreate):
    id: int
    position: int
    line_total: float

    model_config = ConfigDict(from_attributes=True)
