from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

from core.charts import report_charts, to_vega_spec
from core.export import round_half_up
from core.metrics_department import cross_tab_rows
from core.records import closure_rate
from core.report import ReportModel
from core.settings import ReportSettings


def compute_kpis(report: ReportModel) -> Dict[str, Any]:
    series = report.monthly_series
    if not series:
        return {}
    total_requests = sum(p.requests for p in series)
    total_closed = sum(p.closed for p in series)
    latest = series[-1]
    return {
        "months": len(series),
        "total_requests": total_requests,
        "total_closed": total_closed,
        "closure_rate": round_half_up(closure_rate(total_requests, total_closed), 2),
        "latest_month": latest.month,
        "latest_requests": latest.requests,
        "latest_closure_rate": round_half_up(latest.closure_rate, 2),
        "top_department": report.cross_tab.departments[0] if report.cross_tab.departments else None,
    }


def compute_report_payload(report: ReportModel, settings: Optional[ReportSettings] = None) -> Dict[str, Any]:
    settings = settings or ReportSettings()
    payload: Dict[str, Any] = {
        "settings": {
            "window_months": settings.window_months,
            "top_n": settings.top_n,
            "report_label": settings.report_label,
            "page_size": settings.page_size,
        },
        "latest_month": report.latest_month,
        "diagnostics": asdict(report.diagnostics),
    }
    if report.is_empty:
        return {**payload, "empty": True, "kpis": {}, "monthly": [], "departments": {}, "charts": {}}

    cross_tab = report.cross_tab
    payload.update(
        {
            "empty": False,
            "kpis": compute_kpis(report),
            "monthly": [asdict(p) for p in report.monthly_series],
            "departments": {
                "labels": list(cross_tab.departments),
                "statuses": list(cross_tab.statuses),
                "colors": dict(cross_tab.colors),
                "rows": cross_tab_rows(cross_tab),
            },
            "charts": {name: to_vega_spec(chart) for name, chart in report_charts(report).items()},
        }
    )
    return payload
