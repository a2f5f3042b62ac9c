from __future__ import annotations

import math

import pytest

from core.records import (
    DateRecord,
    DepartmentRecord,
    as_count,
    closure_rate,
    normalize_date_records,
    normalize_department_records,
)


def test_date_rows_are_coerced_and_trimmed():
    result = normalize_date_records(
        [
            {"Month": " 2024-01 ", "Requests": "12", "CLOSED": "3"},
            {"month": "2024-02", "requests": 4.0, "closed": None},
        ]
    )

    assert result.skipped == 0
    assert result.records == (
        DateRecord(month="2024-01", requests=12, closed=3),
        DateRecord(month="2024-02", requests=4, closed=0),
    )


def test_date_rows_without_month_are_skipped_not_raised():
    rows = [
        {"month": "", "requests": 1, "closed": 1},
        {"requests": 5},
        "not a mapping",
        None,
        {"month": "2024-03", "requests": "abc", "closed": "-2"},
    ]

    result = normalize_date_records(rows)

    assert result.skipped == 4
    assert result.records == (DateRecord(month="2024-03", requests=0, closed=0),)


def test_department_rows_need_department_and_status():
    result = normalize_department_records(
        [
            {"department": "IT", "request_status": "종료", "request_date": "2024-01", "count": "7"},
            {"department": "IT", "status": " ", "record_date": "2024-01", "count": 1},
            {"department": None, "status": "요청", "record_date": "2024-01", "count": 1},
            {"Dept": " HR ", "Status": "요청", "RecordDate": "2024-01-02", "value": 2},
        ]
    )

    assert result.skipped == 2
    assert result.records == (
        DepartmentRecord(department="IT", status="종료", record_date="2024-01", count=7),
        DepartmentRecord(department="HR", status="요청", record_date="2024-01-02", count=2),
    )


def test_normalizer_does_not_mutate_input():
    rows = [{"month": " 2024-01 ", "requests": "1", "closed": "1"}]
    snapshot = [dict(r) for r in rows]

    normalize_date_records(rows)

    assert rows == snapshot


def test_output_never_exceeds_input_and_keeps_identifiers():
    rows = [{"month": m, "requests": i} for i, m in enumerate(["2024-01", "", None, "2024-02", "  "])]

    result = normalize_date_records(rows)

    assert len(result.records) + result.skipped == len(rows)
    assert all(r.month for r in result.records)


def test_empty_or_missing_input():
    assert normalize_date_records(None).records == ()
    assert normalize_department_records([]).skipped == 0


def test_skipped_rows_are_logged(caplog):
    caplog.set_level("INFO", logger="core.records")

    normalize_department_records([{"department": "IT"}, {"status": "종료"}])

    assert "skipped 2 malformed department rows" in caplog.text


@pytest.mark.parametrize(
    "value, expected",
    [("1,234", 1234), ("  8 ", 8), (3.9, 3), (-5, 0), ("nan", 0), (float("inf"), 0), (True, 0), ({}, 0)],
)
def test_as_count(value, expected):
    assert as_count(value) == expected


def test_closure_rate_bounds():
    assert closure_rate(0, 5) == 0.0
    assert closure_rate(4, 8) == 100.0
    assert math.isclose(closure_rate(3, 1), 33.333, rel_tol=1e-3)
    assert DateRecord("2024-01", 0, 0).closure_rate == 0.0
