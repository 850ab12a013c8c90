"""Line total and invoice total computation.

Pure functions over line-item inputs. Inputs may be pydantic models, ORM rows
or plain mappings with ``quantity``, ``unit_price`` and optionally
``use_quantity`` (defaults to true).

Quantities are kept to three decimals and prices to cents, the same scale the
line item columns store, so a persisted row always satisfies
``line_total == round(quantity * unit_price, 2)``.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Sequence

from freelance_forge.app.core.errors import InvoiceValidationError

CENT = Decimal("0.01")
QUANTITY_STEP = Decimal("0.001")


@dataclass(frozen=True)
class LineAmount:
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class InvoiceAmounts:
    lines: List[LineAmount]
    total_amount: Decimal

    @property
    def line_totals(self) -> List[Decimal]:
        return [line.line_total for line in self.lines]


def _field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


def to_decimal(value: Decimal | float | int | str | None, field_name: str) -> Decimal:
    """Convert a user supplied number to Decimal, rejecting NaN and infinities."""
    if value is None:
        raise InvoiceValidationError(f"{field_name} is required")
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvoiceValidationError(f"{field_name} must be a number") from exc
    if not number.is_finite():
        raise InvoiceValidationError(f"{field_name} must be a finite number")
    return number


def _quantize(value: Any, step: Decimal, field_name: str) -> Decimal:
    try:
        return to_decimal(value, field_name).quantize(step, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise InvoiceValidationError(f"{field_name} is out of range") from exc


def quantize_quantity(value: Decimal | float | int | str | None) -> Decimal:
    return _quantize(value, QUANTITY_STEP, "quantity")


def quantize_price(value: Decimal | float | int | str | None) -> Decimal:
    return _quantize(value, CENT, "unit_price")


def price_line(
    quantity: Decimal | float | int | None,
    unit_price: Decimal | float | int | None,
    use_quantity: bool | None = True,
) -> LineAmount:
    """Round the operands to their stored scale, then derive the line total from them.

    Flat-fee items (``use_quantity`` false) charge the unit price regardless of quantity.
    """
    price = quantize_price(unit_price)
    qty = quantize_quantity(1 if quantity is None and use_quantity is False else quantity)
    if use_quantity is None or use_quantity:
        total = (qty * price).quantize(CENT, rounding=ROUND_HALF_UP)
    else:
        total = price
    return LineAmount(quantity=qty, unit_price=price, line_total=total)


def compute_line_total(
    quantity: Decimal | float | int | None,
    unit_price: Decimal | float | int | None,
    use_quantity: bool | None = True,
) -> Decimal:
    return price_line(quantity, unit_price, use_quantity).line_total


def calculate_invoice_amounts(items: Sequence[Any]) -> InvoiceAmounts:
    if not items:
        raise InvoiceValidationError("at least one line item required")

    lines = [
        price_line(
            _field(item, "quantity", 1),
            _field(item, "unit_price"),
            _field(item, "use_quantity", True),
        )
        for item in items
    ]
    total_amount = sum((line.line_total for line in lines), Decimal("0.00"))
    return InvoiceAmounts(lines=lines, total_amount=total_amount)


def sum_line_totals(line_items: Sequence[Any]) -> Decimal:
    """Sum the stored line totals of already persisted items."""
    return sum((to_decimal(_field(item, "line_total", 0), "line_total") for item in line_items), Decimal("0.00"))
