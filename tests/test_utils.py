import csv
import io
from datetime import datetime
from decimal import Decimal

import pytest

from core.csv_utils import to_csv
from core.errors import build_error_envelope, root_cause
from core.utils import clamp_days, first_five, join_unique, sort_desc_nulls_last, to_display_value


@pytest.mark.parametrize("days, expected", [(0, 1), (1, 1), (3, 3), (7, 7), (8, 7), (-3, 1), (None, 1)])
def test_clamp_days(days, expected):
    assert clamp_days(days) == expected


def test_join_unique_keeps_first_seen_order():
    assert join_unique([" b", "a", None, "", "b ", "c"]) == "b, a, c"
    assert join_unique([None, "  "]) == ""


def test_sort_desc_nulls_last_is_stable():
    items = [("x", None), ("a", 1), ("b", 2), ("y", None), ("c", 2)]
    ordered = sort_desc_nulls_last(items, key=lambda i: i[1])
    assert [i[0] for i in ordered] == ["b", "c", "a", "x", "y"]


def test_first_five():
    assert first_five("33004-1234") == "33004"
    assert first_five("123") == "123"
    assert first_five(None) is None


def test_display_values():
    assert to_display_value(b"\x00\x01") == "[binary]"
    assert to_display_value(Decimal("3.50")) == "3.50"
    assert to_display_value(datetime(2025, 1, 2, 3, 4, 5)) == "2025-01-02 03:04:05"
    assert to_display_value(7) == 7


def test_csv_quotes_and_round_trips():
    awkward = 'a,"b"\nc'
    body = to_csv(["Name", "Value"], [[awkward, None], ["plain", 5]])

    assert body.splitlines()[0] == "Name,Value"
    assert '"a,""b""\nc",' in body
    assert body.endswith("plain,5\n")
    rows = list(csv.reader(io.StringIO(body)))
    assert rows[1] == [awkward, ""]


def test_error_envelope_reports_cause_and_root():
    try:
        try:
            raise ConnectionRefusedError("port 1433 closed")
        except ConnectionRefusedError as inner:
            raise RuntimeError("Failed to execute rate query") from inner
    except RuntimeError as e:
        body = build_error_envelope(e, "Failed to fetch rate query results")

    assert body == {
        "error": "Failed to fetch rate query results",
        "message": "Failed to execute rate query",
        "cause": "port 1433 closed",
        "rootCause": "ConnectionRefusedError: port 1433 closed",
    }


def test_error_envelope_without_cause_and_pool_hint():
    body = build_error_envelope(RuntimeError("QueuePool limit of size 10 overflow 0 reached"), "ctx")
    assert body["cause"] == "Unknown"
    assert body["rootCause"].startswith("RuntimeError")
    assert "hint" in body


def test_root_cause_survives_cycles():
    a = ValueError("a")
    b = ValueError("b")
    a.__cause__ = b
    b.__cause__ = a
    assert root_cause(a) is b
