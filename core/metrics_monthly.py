from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Tuple

import pandas as pd

from core.periods import month_sort_key
from core.records import DateRecord, closure_rate


@dataclass(frozen=True)
class MonthlyPoint:
    month: str
    requests: int
    closed: int
    closure_rate: float


MonthlySeries = Tuple[MonthlyPoint, ...]


def merge_months(records: Iterable[DateRecord]) -> Dict[str, Tuple[int, int]]:
    """Sum requests and closed per month; upstream may emit several rows for one month."""
    merged: Dict[str, Tuple[int, int]] = {}
    for record in records:
        requests, closed = merged.get(record.month, (0, 0))
        merged[record.month] = (requests + record.requests, closed + record.closed)
    return merged


def compute_monthly_series(records: Iterable[DateRecord], window: int = 12) -> MonthlySeries:
    merged = merge_months(records)
    if not merged:
        return ()

    window = max(1, int(window))
    recent: List[str] = sorted(merged, key=month_sort_key, reverse=True)[:window]
    recent.reverse()

    points = []
    for month in recent:
        requests, closed = merged[month]
        points.append(
            MonthlyPoint(
                month=month,
                requests=requests,
                closed=closed,
                closure_rate=closure_rate(requests, closed),
            )
        )
    return tuple(points)


def monthly_frame(series: MonthlySeries) -> pd.DataFrame:
    return pd.DataFrame(
        [asdict(point) for point in series],
        columns=["month", "requests", "closed", "closure_rate"],
    )
