"""Return series construction and cross-symbol date alignment.

Alignment is an intersection: a date survives only when every input
series has an observation for it.
"""

from __future__ import annotations

import math
from typing import Dict, List, Mapping, Sequence

import numpy as np
import pandas as pd


def _as_series(values) -> pd.Series:
    if isinstance(values, pd.Series):
        return values.astype(float)
    return pd.Series(list(values), dtype=float)


def calc_period_returns(closes) -> pd.Series:
    """``r[i] = close[i] / close[i-1] - 1``; length is ``len(closes) - 1``."""
    series = _as_series(closes)
    if len(series) < 2:
        return series.iloc[0:0]
    values = series.to_numpy(dtype=float)
    returns = values[1:] / values[:-1] - 1.0
    return pd.Series(returns, index=series.index[1:], name=series.name)


def align_dates(series_list: Sequence[pd.Series]) -> List[pd.Timestamp]:
    """Dates of the first series, in its order, that appear in every series."""
    if not series_list:
        return []
    others = [set(s.index) for s in series_list[1:]]
    return [d for d in series_list[0].index if all(d in other for other in others)]


def align_series(series_by_symbol: Mapping[str, pd.Series]) -> Dict[str, pd.Series]:
    """Restrict every series to the common dates."""
    symbols = list(series_by_symbol)
    dates = align_dates([series_by_symbol[s] for s in symbols])
    index = pd.DatetimeIndex(dates)
    return {s: series_by_symbol[s].loc[index] for s in symbols}


def recent_window(dates: Sequence, n: int) -> list:
    """Last ``n`` dates of an aligned list (all of them when fewer)."""
    if n <= 0:
        return []
    return list(dates)[-n:]


def has_sufficient_points(dates: Sequence, minimum: int = 2) -> bool:
    return len(dates) >= minimum


def rebase_to_100(series: pd.Series) -> pd.Series:
    """Scale so the first observation equals 100.

    A non-positive or non-finite first observation cannot be rebased; the
    series then contributes zeros.
    """
    series = _as_series(series)
    if series.empty:
        return series
    first = float(series.iloc[0])
    if not math.isfinite(first) or first <= 0:
        return pd.Series(np.zeros(len(series)), index=series.index, name=series.name)
    return series / first * 100.0


def weighted_index(rebased: Mapping[str, pd.Series], weights: Mapping[str, float]) -> pd.Series:
    """Weighted average of already-aligned rebased series.

    Weights are renormalized over the symbols present; symbols with zero
    total weight fall back to an equal-weight average.
    """
    symbols = [s for s in rebased if s in weights]
    if not symbols:
        return pd.Series(dtype=float)
    total = sum(max(weights[s], 0.0) for s in symbols)
    frame = pd.DataFrame({s: rebased[s] for s in symbols})
    if total <= 0:
        return frame.mean(axis=1)
    w = pd.Series({s: max(weights[s], 0.0) / total for s in symbols})
    return frame.mul(w, axis=1).sum(axis=1)
