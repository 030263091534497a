"""Concentration (HHI) and diversification scoring.

Weights are fractions summing to 1. Inputs on a percent scale (summing to
well above 1) are divided by 100 first.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from portfolio_analytics_engine import config
from portfolio_analytics_engine.data_objects import ConcentrationMetrics, DiversificationMetrics


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _as_fractions(weights: Iterable[float]) -> List[float]:
    values = [float(w) for w in weights]
    if sum(values) > 1.5:
        values = [w / 100.0 for w in values]
    return values


def compute_hhi(weights: Iterable[float]) -> float:
    """Herfindahl index: sum of squared fractional weights."""
    return sum(w * w for w in _as_fractions(weights))


def effective_holdings(weights: Iterable[float]) -> float:
    hhi = compute_hhi(weights)
    return 1.0 / hhi if hhi > 0 else 0.0


def top_n_weight(weights: Iterable[float], n: int = 2) -> float:
    return sum(sorted(_as_fractions(weights), reverse=True)[:n])


def concentration_level(largest_pct: float, top2_pct: float, hhi: float) -> str:
    """Any single trigger promotes the level."""
    high = config.CONCENTRATION_THRESHOLDS["high"]
    medium = config.CONCENTRATION_THRESHOLDS["medium"]
    if largest_pct >= high["largest_pct"] or top2_pct >= high["top2_pct"] or hhi >= high["hhi"]:
        return "High"
    if largest_pct >= medium["largest_pct"] or top2_pct >= medium["top2_pct"] or hhi >= medium["hhi"]:
        return "Medium"
    return "Low"


def compute_concentration(weights: Sequence[float]) -> ConcentrationMetrics:
    fractions = _as_fractions(weights)
    if not fractions:
        return ConcentrationMetrics(level="Low", largest_position_pct=0.0, top2_pct=0.0, hhi=0.0, effective_holdings=0.0)

    largest_pct = max(fractions) * 100.0
    top2_pct = top_n_weight(fractions, 2) * 100.0
    hhi = compute_hhi(fractions)
    return ConcentrationMetrics(
        level=concentration_level(largest_pct, top2_pct, hhi),
        largest_position_pct=largest_pct,
        top2_pct=top2_pct,
        hhi=hhi,
        effective_holdings=1.0 / hhi if hhi > 0 else 0.0,
    )


def _band_score(value: float, worst: float, best: float) -> float:
    """Linear map of ``value`` from [worst, best] onto [0, 1], clamped."""
    if best == worst:
        return 1.0 if value == best else 0.0
    return _clamp((value - worst) / (best - worst), 0.0, 1.0)


def diversification_score(effective: float, sector_hhi: float, top2: float) -> float:
    """0-10 blend of breadth, sector evenness and top-2 weight (fractions)."""
    bands = config.DIVERSIFICATION_BANDS
    breadth = _band_score(effective, *bands["breadth"])
    sector_even = _band_score(sector_hhi, *bands["sector_hhi"])
    top2_score = _band_score(top2, *bands["top2"])
    w_breadth, w_sector, w_top2 = bands["weights"]
    return 10.0 * (w_breadth * breadth + w_sector * sector_even + w_top2 * top2_score)


def compute_diversification(weights: Sequence[float], sector_weights: Iterable[float]) -> DiversificationMetrics:
    fractions = _as_fractions(weights)
    if not fractions:
        return DiversificationMetrics(score=0.0, holdings=0, top2_pct=0.0, sector_hhi=0.0, effective_holdings=0.0)

    sector_hhi = compute_hhi(sector_weights)
    top2 = top_n_weight(fractions, 2)
    effective = effective_holdings(fractions)
    return DiversificationMetrics(
        score=diversification_score(effective, sector_hhi, top2),
        holdings=len(fractions),
        top2_pct=top2 * 100.0,
        sector_hhi=sector_hhi,
        effective_holdings=effective,
    )

