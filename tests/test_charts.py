from __future__ import annotations

from core.charts import build_snapshot_surface, report_charts, to_vega_spec
from core.metrics_overview import compute_report_payload
from core.report import EMPTY_REPORT, build_report


def test_all_panels_present_for_full_report(date_rows, department_rows):
    charts = report_charts(build_report(date_rows, department_rows))

    assert set(charts) == {"monthly_volume", "closure_rate", "department_status", "status_distribution"}
    spec = to_vega_spec(charts["department_status"])
    assert spec["encoding"]["color"]["scale"]["domain"] == ["종료", "요청", "보류"]


def test_empty_report_has_no_surface():
    assert report_charts(EMPTY_REPORT) == {}
    assert build_snapshot_surface(EMPTY_REPORT) is None


def test_snapshot_surface_is_a_single_chart(date_rows, department_rows):
    surface = build_snapshot_surface(build_report(date_rows, department_rows))

    spec = to_vega_spec(surface)
    assert "vconcat" in spec


def test_payload_for_empty_and_full_reports(date_rows, department_rows):
    empty = compute_report_payload(EMPTY_REPORT)
    full = compute_report_payload(build_report(date_rows, department_rows))

    assert empty["empty"] is True
    assert empty["latest_month"] is None
    assert full["kpis"]["total_requests"] == 18
    assert full["kpis"]["closure_rate"] == 44.44
    assert full["departments"]["labels"] == ["Finance", "IT"]
    assert full["departments"]["rows"][0] == {"department": "Finance", "counts": {"종료": 4, "요청": 2, "보류": 0}}
