import re
from datetime import date
from typing import Optional

_MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})$")


def month_key(value: Optional[date] = None) -> str:
    value = value or date.today()
    return f"{value.year:04d}-{value.month:02d}"


def parse_month_key(key: str) -> date:
    match = _MONTH_KEY.match((key or "").strip())
    if not match:
        raise ValueError(f"Invalid month key: {key!r} (expected YYYY-MM)")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in key: {key!r}")
    return date(year, month, 1)


def shift_month(key: str, count: int) -> str:
    first = parse_month_key(key)
    index = first.year * 12 + (first.month - 1) + count
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def month_range(start: str, end: str) -> list[str]:
    if parse_month_key(start) > parse_month_key(end):
        raise ValueError("Start month must be before end month")
    keys = [start]
    while keys[-1] != end:
        keys.append(shift_month(keys[-1], 1))
    return keys
