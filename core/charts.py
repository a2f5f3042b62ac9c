from __future__ import annotations

from typing import Any, Dict, Optional

import altair as alt
import pandas as pd

from core.metrics_department import CrossTab, cross_tab_long_frame
from core.metrics_monthly import MonthlySeries, monthly_frame
from core.report import ReportModel

alt.data_transformers.disable_max_rows()

REQUESTS_COLOR = "rgba(255, 99, 132, 1)"
CLOSED_COLOR = "rgba(53, 162, 235, 0.5)"
RATE_COLOR = "rgba(75, 192, 192, 1)"
PANEL_WIDTH = 520
PANEL_HEIGHT = 300


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def monthly_volume_chart(series: MonthlySeries) -> Optional[alt.LayerChart]:
    df = monthly_frame(series)
    if df.empty:
        return None
    x = alt.X("month:O", title="Month", sort=list(df["month"]))
    bars = (
        alt.Chart(df)
        .mark_bar(color=CLOSED_COLOR, cornerRadiusTopLeft=4, cornerRadiusTopRight=4)
        .encode(
            x=x,
            y=alt.Y("closed:Q", title="Count"),
            tooltip=["month", alt.Tooltip("closed:Q", title="Closed", format=",")],
        )
    )
    line = (
        alt.Chart(df)
        .mark_line(point=True, color=REQUESTS_COLOR, interpolate="monotone")
        .encode(
            x=x,
            y="requests:Q",
            tooltip=["month", alt.Tooltip("requests:Q", title="Requests", format=",")],
        )
    )
    return alt.layer(bars, line).properties(title="Monthly Requests vs Closed", width=PANEL_WIDTH, height=PANEL_HEIGHT)


def closure_rate_chart(series: MonthlySeries) -> Optional[alt.Chart]:
    df = monthly_frame(series)
    if df.empty:
        return None
    return (
        alt.Chart(df)
        .mark_area(line={"color": RATE_COLOR}, color=RATE_COLOR, opacity=0.2, interpolate="monotone")
        .encode(
            x=alt.X("month:O", title="Month", sort=list(df["month"])),
            y=alt.Y("closure_rate:Q", title="Closure Rate (%)", scale=alt.Scale(domain=[0, 100])),
            tooltip=["month", alt.Tooltip("closure_rate:Q", title="Closure Rate", format=".2f")],
        )
        .properties(title="Closure Rate Trend", width=PANEL_WIDTH, height=PANEL_HEIGHT)
    )


def _status_scale(cross_tab: CrossTab) -> alt.Scale:
    statuses = list(cross_tab.statuses)
    return alt.Scale(domain=statuses, range=[cross_tab.colors[s] for s in statuses])


def department_status_chart(cross_tab: CrossTab, latest_month: Optional[str] = None) -> Optional[alt.Chart]:
    df = cross_tab_long_frame(cross_tab)
    if df.empty:
        return None
    title = "Department Status" + (f" ({latest_month})" if latest_month else "")
    return (
        alt.Chart(df)
        .mark_bar(stroke="rgba(0, 0, 0, 0.1)", strokeWidth=1)
        .encode(
            x=alt.X("department:N", title=None, sort=list(cross_tab.departments), axis=alt.Axis(labelAngle=-45)),
            y=alt.Y("sum(count):Q", title="Requests", stack="zero"),
            color=alt.Color("status:N", title="Status", scale=_status_scale(cross_tab), sort=list(cross_tab.statuses)),
            tooltip=["department", "status", alt.Tooltip("count:Q", format=",")],
        )
        .properties(title=title, width=PANEL_WIDTH, height=PANEL_HEIGHT)
    )


def status_distribution_chart(cross_tab: CrossTab) -> Optional[alt.Chart]:
    if cross_tab.is_empty:
        return None
    df = pd.DataFrame(
        [{"status": s, "count": cross_tab.status_total(s)} for s in cross_tab.statuses],
        columns=["status", "count"],
    )
    return (
        alt.Chart(df)
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color("status:N", title="Status", scale=_status_scale(cross_tab), sort=list(cross_tab.statuses)),
            tooltip=["status", alt.Tooltip("count:Q", format=",")],
        )
        .properties(title="Status Distribution", width=PANEL_HEIGHT, height=PANEL_HEIGHT)
    )


def report_charts(report: ReportModel) -> Dict[str, Any]:
    charts = {
        "monthly_volume": monthly_volume_chart(report.monthly_series),
        "closure_rate": closure_rate_chart(report.monthly_series),
        "department_status": department_status_chart(report.cross_tab, report.latest_month),
        "status_distribution": status_distribution_chart(report.cross_tab),
    }
    return {name: chart for name, chart in charts.items() if chart is not None}


def build_snapshot_surface(report: ReportModel) -> Optional[alt.TopLevelMixin]:
    """Compose the dashboard panels into one chart, two per row, for rasterization."""
    panels = list(report_charts(report).values())
    if not panels:
        return None
    rows = [alt.hconcat(*panels[i : i + 2]) for i in range(0, len(panels), 2)]
    surface = rows[0] if len(rows) == 1 else alt.vconcat(*rows)
    return surface.resolve_scale(color="independent").configure_view(stroke=None)
