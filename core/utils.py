from datetime import date, datetime, time
from decimal import Decimal


def is_blank(value) -> bool:
    return value is None or not str(value).strip()


def join_unique(values, sep=", ") -> str:
    """Join the non-blank trimmed values, dropping repeats but keeping first-seen order."""
    seen = []
    for v in values:
        if is_blank(v):
            continue
        s = str(v).strip()
        if s not in seen:
            seen.append(s)
    return sep.join(seen)


def sort_desc_nulls_last(items, key):
    """
    Stable descending sort on key(item); items whose key is None go last,
    keeping their input order.
    """
    present = [i for i in items if key(i) is not None]
    missing = [i for i in items if key(i) is None]
    present.sort(key=key, reverse=True)
    return present + missing


def clamp_days(days, low=1, high=7) -> int:
    if days is None:
        return low
    return max(low, min(high, int(days)))


def first_five(postal_code):
    if postal_code is None:
        return None
    return postal_code[:5] if len(postal_code) >= 5 else postal_code


def to_display_value(value):
    """Make a raw column value JSON friendly for the table dumps."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "[binary]"
    if isinstance(value, (datetime, date, time)):
        return str(value)
    if isinstance(value, Decimal):
        return format(value, "f")
    return value
