from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from config import get_settings
from periods import parse_month_key

MONTH_NAMES_RO = (
    "Ianuarie",
    "Februarie",
    "Martie",
    "Aprilie",
    "Mai",
    "Iunie",
    "Iulie",
    "August",
    "Septembrie",
    "Octombrie",
    "Noiembrie",
    "Decembrie",
)


def _group_ro(value: float, max_decimals: int, min_decimals: int = 0) -> str:
    quantized = Decimal(str(value)).quantize(
        Decimal(1).scaleb(-max_decimals), rounding=ROUND_HALF_UP
    )
    sign = "-" if quantized < 0 else ""
    integer_part, _, fraction = f"{abs(quantized):f}".partition(".")
    fraction = fraction.rstrip("0")
    if len(fraction) < min_decimals:
        fraction = fraction.ljust(min_decimals, "0")
    grouped = f"{int(integer_part):,}".replace(",", ".")
    return f"{sign}{grouped},{fraction}" if fraction else f"{sign}{grouped}"


def format_currency(value: float, label: Optional[str] = None) -> str:
    """Render an amount the way the ro-RO locale does, e.g. ``RON 1.234,5``."""
    label = label or get_settings().currency_label
    return f"{label} {_group_ro(value, 2)}"


def format_percentage(value: Optional[float], digits: int = 1) -> str:
    if value is None:
        return "-"
    return f"{_group_ro(value, digits, digits)}%"


def format_month(key: str) -> str:
    first = parse_month_key(key)
    return f"{MONTH_NAMES_RO[first.month - 1]} {first.year}"


def percent_change(previous: float, current: float) -> Optional[float]:
    if not previous:
        return None
    return (current - previous) / previous * 100


def default_if_empty(name: Optional[str], fallback: str = "Item nou") -> str:
    clean = (name or "").strip()
    return clean or fallback
