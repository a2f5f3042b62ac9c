from __future__ import annotations

import logging
import warnings
from typing import Iterable, Optional, Tuple

import pandas as pd

from core.records import DateRecord


logger = logging.getLogger(__name__)


def month_sort_key(month: str) -> Tuple[int, int, int, str]:
    """Chronological key for a month label; unparseable labels rank below every real month."""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        parsed = pd.to_datetime(month, errors="coerce")
    if parsed is None or pd.isna(parsed):
        return 0, 0, 0, month
    return 1, int(parsed.year), int(parsed.month), month


def resolve_latest_month(records: Iterable[DateRecord]) -> Optional[str]:
    months = [r.month for r in records if r.month]
    if not months:
        logger.info("no date records; latest month unresolved")
        return None
    return max(months, key=month_sort_key)
