import calendar
import datetime as dt

MONTH_KEY_FORMAT = "%Y-%m"


def parse_month_key(month_key: str) -> tuple[int, int] | None:
    if len(month_key) != 7:
        return None
    try:
        parsed = dt.datetime.strptime(month_key, MONTH_KEY_FORMAT)
    except ValueError:
        return None
    return parsed.year, parsed.month


def is_valid_month_key(month_key: str | None) -> bool:
    if not month_key:
        return False
    return parse_month_key(month_key) is not None


def month_key_for(value: dt.date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def month_display_name(month_key: str) -> str:
    parsed = parse_month_key(month_key)
    if parsed is None:
        return month_key
    year, month_value = parsed
    return f"{calendar.month_name[month_value]} {year}"


def budget_period_for(value: dt.datetime) -> tuple[dt.datetime, dt.datetime]:
    start = value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    last_day = calendar.monthrange(value.year, value.month)[1]
    end = value.replace(day=last_day, hour=23, minute=59, second=59, microsecond=999999)
    return start, end
