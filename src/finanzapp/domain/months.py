import re
from datetime import date, datetime

from finanzapp.core.exceptions import InvalidMonthError

_MONTH_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def validate_month(month: str) -> str:
    if not isinstance(month, str) or not _MONTH_RE.match(month):
        raise InvalidMonthError(month)
    return month


def month_key(value: date | datetime) -> str:
    return value.strftime("%Y-%m")


def current_month(today: date | None = None) -> str:
    return month_key(today or date.today())


def recent_months(count: int = 4, today: date | None = None) -> list[str]:
    """Month keys from the current month backwards, newest first."""
    anchor = today or date.today()
    year, month = anchor.year, anchor.month
    months: list[str] = []
    for _ in range(max(0, count)):
        months.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year -= 1
            month = 12
    return months
