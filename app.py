import asyncio
from contextlib import contextmanager
from typing import Optional

import altair as alt
import streamlit as st

from core.charts import build_snapshot_surface, report_charts
from core.errors import WorkbookParseError
from core.export import ExportController, ExportDocument
from core.ingest import parse_request_workbook
from core.metrics_department import cross_tab_frame
from core.metrics_monthly import monthly_frame
from core.metrics_overview import compute_kpis
from core.report import EMPTY_REPORT, build_report_from_payload
from core.settings import normalize_settings

alt.data_transformers.disable_max_rows()
# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


class StreamlitProgress:
    """Progress indicator backed by a placeholder slot; cleared on hide."""

    def __init__(self) -> None:
        self._slot = st.empty()

    def show(self, message: str) -> None:
        self._slot.info(message)

    def hide(self) -> None:
        self._slot.empty()


def get_controller() -> ExportController:
    if "export_controller" not in st.session_state:
        st.session_state["export_controller"] = ExportController()
    controller: ExportController = st.session_state["export_controller"]
    controller.progress = StreamlitProgress()
    return controller


def render_download(document: Optional[ExportDocument], key: str):
    if document is None:
        return
    st.download_button(
        f"Download {document.filename}",
        data=document.content,
        file_name=document.filename,
        mime=document.media_type,
        key=key,
    )


# ---------- UI setup ----------
st.set_page_config(page_title="Request Status Report", layout="wide")
inject_base_styles()
st.title("Request Status Report")
st.caption("Monthly request volume, closure rate and latest-month department status.")

with st.sidebar:
    st.markdown("### Data")
    upload = st.file_uploader("Request log (.xlsx)", type=["xlsx"])
    st.markdown("---")
    st.markdown("### Settings")
    window_months = st.number_input("Trailing months", min_value=1, max_value=120, value=12)
    top_n = st.number_input("Top departments", min_value=1, max_value=100, value=10)
    report_label = st.text_input("Report label", value="request_report")
    page_size = st.selectbox("Snapshot page size", ["A4", "LETTER"], index=0)

settings = normalize_settings(
    {"window_months": window_months, "top_n": top_n, "report_label": report_label, "page_size": page_size}
)

report = EMPTY_REPORT
if upload is not None:
    try:
        raw = parse_request_workbook(upload.getvalue())
    except WorkbookParseError as exc:
        st.error(str(exc))
        st.stop()
    report = build_report_from_payload(raw, settings=settings)

if report.is_empty:
    if report.diagnostics.failed:
        st.warning("The uploaded data could not be summarized.")
    st.info("Upload a request log to see the report.")
    st.stop()

# ----- KPI tiles -----
kpis = compute_kpis(report)
tile_cols = st.columns(4)
tile_cols[0].metric("Requests (window)", f"{kpis['total_requests']:,}")
tile_cols[1].metric("Closed (window)", f"{kpis['total_closed']:,}")
tile_cols[2].metric("Closure rate", f"{kpis['closure_rate']:.2f}%")
tile_cols[3].metric(f"Latest month ({kpis['latest_month']})", f"{kpis['latest_requests']:,}", f"{kpis['latest_closure_rate']:.2f}% closed", delta_color="off")

diag = report.diagnostics
skipped = diag.skipped_date_rows + diag.skipped_department_rows + diag.swapped_field_rows
if skipped:
    st.caption(f"{skipped} malformed rows were skipped.")

# ----- Charts -----
charts = report_charts(report)
chart_cols = st.columns(2)
for idx, (name, title) in enumerate(
    [
        ("monthly_volume", "Monthly Requests"),
        ("department_status", "Department Status"),
        ("closure_rate", "Closure Rate Trend"),
        ("status_distribution", "Status Distribution"),
    ]
):
    with chart_cols[idx % 2]:
        with card(title):
            chart = charts.get(name)
            if chart is None:
                st.info("No data for this panel.")
            else:
                st.altair_chart(chart, use_container_width=True)

with st.expander("Data tables"):
    st.dataframe(monthly_frame(report.monthly_series), hide_index=True)
    st.dataframe(cross_tab_frame(report.cross_tab))

# ----- Exports -----
controller = get_controller()
export_cols = st.columns(2)
with export_cols[0]:
    if st.button("Export workbook", disabled=controller.busy):
        outcome = controller.export_workbook(report, label=settings.report_label)
        if outcome.ok:
            st.session_state["workbook_document"] = outcome.document
        else:
            st.error(outcome.message)
    render_download(st.session_state.get("workbook_document"), key="download_workbook")
with export_cols[1]:
    if st.button("Export snapshot (PDF)", disabled=controller.busy):
        outcome = asyncio.run(
            controller.export_snapshot(
                build_snapshot_surface(report),
                label=settings.report_label,
                page_size=settings.page_size,
            )
        )
        if outcome.ok:
            st.session_state["snapshot_document"] = outcome.document
        else:
            st.error(outcome.message)
    render_download(st.session_state.get("snapshot_document"), key="download_snapshot")
