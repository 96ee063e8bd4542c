# pms_client/utils/months.py
from typing import Tuple

MonthRange = Tuple[int, int]


def month_in_range(month: int, start: int, end: int) -> bool:
    """Inclusive month containment; a range with start > end wraps the year boundary."""
    if not all(1 <= m <= 12 for m in (month, start, end)):
        return False
    if start <= end:
        return start <= month <= end
    return month >= start or month <= end


def parse_month_range(raw: str) -> MonthRange:
    """Parse "8-9" / "12-1" into (start, end)."""
    start, sep, end = raw.strip().partition("-")
    if not sep:
        raise ValueError(f"Month range must look like 'start-end', got {raw!r}")
    bounds = (int(start), int(end))
    if not all(1 <= m <= 12 for m in bounds):
        raise ValueError(f"Month range out of bounds: {raw!r}")
    return bounds
