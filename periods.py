import calendar
from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    first = month_start(d)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def days_in_month(d: date) -> int:
    return calendar.monthrange(d.year, d.month)[1]


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def parse_month_key(value: str) -> date:
    """Parse a ``YYYY-MM`` key into the first day of that month."""
    try:
        year_str, month_str = value.strip().split("-", 1)
        return date(int(year_str), int(month_str), 1)
    except ValueError as exc:
        raise ValueError(f"Invalid month '{value}', expected YYYY-MM") from exc


def month_period(d: date) -> Period:
    return Period(month_key(d), month_start(d), month_end(d))


def trailing_months(today: date, count: int) -> list[Period]:
    """Calendar months ending at the month of ``today``, oldest first."""
    if count <= 0:
        return []
    end_month = month_start(today)
    return [
        month_period(add_months(end_month, -offset))
        for offset in range(count - 1, -1, -1)
    ]
