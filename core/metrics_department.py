"""Department x status cross-tab for the latest period.

The source data has historically shipped with the department and status columns
transposed, in which case one of them holds a request date. Rows whose
department or status looks like ``YYYY-MM...`` are dropped before grouping, so a
date never shows up as a department or status label.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from core.palette import assign_status_colors
from core.records import DepartmentRecord


logger = logging.getLogger(__name__)

DATE_SHAPED = re.compile(r"^\d{4}-\d{2}")
DEFAULT_TOP_N = 10


def is_date_shaped(value: str) -> bool:
    return bool(DATE_SHAPED.match(value))


@dataclass(frozen=True)
class CrossTab:
    departments: Tuple[str, ...] = ()
    statuses: Tuple[str, ...] = ()
    counts: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    colors: Mapping[str, str] = field(default_factory=dict)
    swapped_rows: int = 0

    def cell(self, department: str, status: str) -> int:
        return int(self.counts.get(department, {}).get(status, 0))

    def department_total(self, department: str) -> int:
        return int(sum(self.counts.get(department, {}).values()))

    def status_total(self, status: str) -> int:
        return sum(self.cell(dept, status) for dept in self.departments)

    @property
    def is_empty(self) -> bool:
        return not self.departments


EMPTY_CROSS_TAB = CrossTab()


def filter_latest_period(records: Iterable[DepartmentRecord], latest_month: Optional[str]) -> List[DepartmentRecord]:
    if not latest_month:
        return []
    return [r for r in records if r.record_date and r.record_date.startswith(latest_month)]


def compute_cross_tab(
    records: Iterable[DepartmentRecord],
    latest_month: Optional[str],
    *,
    top_n: int = DEFAULT_TOP_N,
    palette: Optional[Mapping[str, str]] = None,
) -> CrossTab:
    if not latest_month:
        logger.info("no latest month; department cross-tab is empty")
        return EMPTY_CROSS_TAB

    latest = filter_latest_period(records, latest_month)

    grouped: Dict[str, Dict[str, int]] = {}
    statuses: Dict[str, None] = {}
    swapped = 0
    for record in latest:
        dept, status = record.department.strip(), record.status.strip()
        if not dept or not status:
            continue
        if is_date_shaped(dept) or is_date_shaped(status):
            swapped += 1
            logger.debug("dropped date-shaped department/status row: %r / %r", dept, status)
            continue
        by_status = grouped.setdefault(dept, {})
        by_status[status] = by_status.get(status, 0) + record.count
        statuses.setdefault(status, None)

    if swapped:
        logger.info("dropped %d rows with date-shaped department or status for %s", swapped, latest_month)

    # stable sort: ties keep first-encounter order
    ranked = sorted(grouped, key=lambda dept: sum(grouped[dept].values()), reverse=True)
    top = tuple(ranked[: max(1, int(top_n))])

    status_order = tuple(statuses)
    return CrossTab(
        departments=top,
        statuses=status_order,
        counts={dept: dict(grouped[dept]) for dept in top},
        colors=assign_status_colors(status_order, palette),
        swapped_rows=swapped,
    )


def cross_tab_frame(cross_tab: CrossTab) -> pd.DataFrame:
    """Wide frame indexed by department, one column per status.

    Departments live in the index rather than a column so a status literally
    labelled ``department`` cannot overwrite them.
    """
    return pd.DataFrame(
        [[cross_tab.cell(dept, status) for status in cross_tab.statuses] for dept in cross_tab.departments],
        index=pd.Index(list(cross_tab.departments), name="department"),
        columns=list(cross_tab.statuses),
    )


def cross_tab_rows(cross_tab: CrossTab) -> List[Dict[str, object]]:
    """JSON rows: ``{"department": ..., "counts": {status: count}}`` per ranked department."""
    return [
        {"department": dept, "counts": {status: cross_tab.cell(dept, status) for status in cross_tab.statuses}}
        for dept in cross_tab.departments
    ]


def cross_tab_long_frame(cross_tab: CrossTab) -> pd.DataFrame:
    rows = [
        {"department": dept, "status": status, "count": cross_tab.cell(dept, status)}
        for dept in cross_tab.departments
        for status in cross_tab.statuses
    ]
    return pd.DataFrame(rows, columns=["department", "status", "count"])
