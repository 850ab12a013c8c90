"""Currency-aware money formatting.

Only two conventions exist: ``EUR`` groups with ``.`` and uses ``,`` for
decimals; every other code, recognized or not, groups with ``,`` and uses
``.`` for decimals. No locale database is consulted.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

DECIMAL_COMMA_CURRENCIES = {"EUR"}
CENT = Decimal("0.01")


def separators_for(currency: Optional[str]) -> tuple[str, str]:
    """Return ``(thousands_separator, decimal_separator)`` for a currency code."""
    code = (currency or "").strip().upper()
    if code in DECIMAL_COMMA_CURRENCIES:
        return ".", ","
    return ",", "."


def _group_thousands(digits: str, separator: str) -> str:
    groups = []
    while len(digits) > 3:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    groups.insert(0, digits)
    return separator.join(groups)


def format_money(amount: Decimal | float | int | str, currency: Optional[str] = None) -> str:
    """Format ``amount`` with exactly two fractional digits, rounding half up.

    >>> format_money(1234.5, "EUR")
    '1.234,50'
    >>> format_money(1000000, "GBP")
    '1,000,000.00'
    """
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    cents = abs(value).quantize(CENT, rounding=ROUND_HALF_UP)
    integer_part, fractional_part = f"{cents:f}".split(".")
    thousands, decimal_mark = separators_for(currency)
    grouped = _group_thousands(integer_part, thousands)
    # a value that rounds to zero carries no sign
    sign = "-" if value < 0 and cents else ""
    return f"{sign}{grouped}{decimal_mark}{fractional_part}"
