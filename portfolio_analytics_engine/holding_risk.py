"""Composite per-holding risk score.

Each holding gets twelve components scored 0-100 (higher = riskier). A
missing input never drops its component: the component keeps its weight
and scores a neutral fallback, so every score traces back to its inputs
and the weights always sum to 1.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from portfolio_analytics_engine import config
from portfolio_analytics_engine._vendor import _to_float
from portfolio_analytics_engine.constants import (
    NEUTRAL_COMPONENT_SCORE,
    RISK_COMPONENT_TABLE,
    UNKNOWN_EARNINGS_SCORE,
)
from portfolio_analytics_engine.data_objects import HoldingRiskProfile, RiskComponent
from portfolio_analytics_engine.risk_metrics import max_drawdown


WEIGHT_TOLERANCE = 1e-6


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_linear(value: Optional[float], low: float, high: float, invert: bool = False) -> Optional[float]:
    """Map ``value`` from [low, high] onto [0, 100], clamped.

    ``low`` may exceed ``high`` for measures where smaller is riskier.
    Returns None for a missing or non-finite value.
    """
    if value is None or not math.isfinite(value):
        return None
    if high == low:
        t = 1.0 if value >= high else 0.0
    else:
        t = min(1.0, max(0.0, (value - low) / (high - low)))
    if invert:
        t = 1.0 - t
    return float(round_half_up(t * 100.0))


def _or_neutral(score: Optional[float]) -> float:
    return NEUTRAL_COMPONENT_SCORE if score is None else score


@dataclass(frozen=True)
class RiskInputs:
    volatility_pct: Optional[float] = None
    max_drawdown_pct: Optional[float] = None
    beta: Optional[float] = None
    debt_to_equity: Optional[float] = None
    interest_coverage: Optional[float] = None
    pe: Optional[float] = None
    ps: Optional[float] = None
    peg: Optional[float] = None
    fcf_yield_pct: Optional[float] = None
    avg_dollar_volume: Optional[float] = None
    short_pct_float: Optional[float] = None
    short_ratio: Optional[float] = None
    days_to_earnings: Optional[float] = None
    weight_pct: Optional[float] = None

    def available_count(self) -> int:
        return sum(1 for f in fields(self) if getattr(self, f.name) is not None)


def _beta_score(beta: Optional[float]) -> float:
    if beta is None:
        return NEUTRAL_COMPONENT_SCORE
    return float(min(100, max(0, round_half_up(100.0 * abs(beta - 1.0) / 0.8))))


def _interest_coverage_score(coverage: Optional[float]) -> float:
    if coverage is None:
        return NEUTRAL_COMPONENT_SCORE
    if coverage <= 1:
        return 100.0
    return score_linear(coverage, 2, 8, invert=True)


def _valuation(inputs: RiskInputs) -> Tuple[float, Optional[float]]:
    if inputs.pe is not None and inputs.pe > 0:
        return score_linear(inputs.pe, 10, 40), inputs.pe
    if inputs.ps is not None:
        return _or_neutral(score_linear(inputs.ps, 1, 10)), inputs.ps
    return NEUTRAL_COMPONENT_SCORE, inputs.pe


def _short_interest_score(inputs: RiskInputs) -> float:
    # neutral only when neither measure is known
    if inputs.short_pct_float is None and inputs.short_ratio is None:
        return NEUTRAL_COMPONENT_SCORE
    scores = [
        score_linear(inputs.short_pct_float, 2, 20),
        score_linear(inputs.short_ratio, 1, 8),
    ]
    return max(s for s in scores if s is not None)


def _earnings_score(days: Optional[float]) -> float:
    if days is None:
        return UNKNOWN_EARNINGS_SCORE
    if days <= 7:
        return 100.0
    if days <= 21:
        return 60.0
    return 0.0


def build_risk_components(inputs: RiskInputs) -> List[RiskComponent]:
    pe_score, pe_raw = _valuation(inputs)
    scored: Dict[str, Tuple[float, Optional[float]]] = {
        "vol": (_or_neutral(score_linear(inputs.volatility_pct, 15, 60)), inputs.volatility_pct),
        "mdd": (_or_neutral(score_linear(inputs.max_drawdown_pct, 10, 60)), inputs.max_drawdown_pct),
        "beta": (_beta_score(inputs.beta), inputs.beta),
        "d2e": (_or_neutral(score_linear(inputs.debt_to_equity, 0, 250)), inputs.debt_to_equity),
        "icov": (_interest_coverage_score(inputs.interest_coverage), inputs.interest_coverage),
        "pe": (pe_score, pe_raw),
        "peg": (_or_neutral(score_linear(inputs.peg, 1, 2.5)), inputs.peg),
        "fcfy": (_or_neutral(score_linear(inputs.fcf_yield_pct, 5, 0)), inputs.fcf_yield_pct),
        "adv": (_or_neutral(score_linear(inputs.avg_dollar_volume, 2e6, 50e6, invert=True)), inputs.avg_dollar_volume),
        "short": (
            _short_interest_score(inputs),
            inputs.short_pct_float if inputs.short_pct_float is not None else inputs.short_ratio,
        ),
        "evt": (_earnings_score(inputs.days_to_earnings), inputs.days_to_earnings),
        "pos": (_or_neutral(score_linear(inputs.weight_pct, 1, 15)), inputs.weight_pct),
    }
    return [
        RiskComponent(key=key, label=label, score=scored[key][0], weight=weight, raw_value=scored[key][1])
        for key, label, weight in RISK_COMPONENT_TABLE
    ]


def combine_components(components: Sequence[RiskComponent]) -> float:
    """``Σ score × weight``; the weights must sum to 1."""
    total_weight = sum(c.weight for c in components)
    if abs(total_weight - 1.0) > WEIGHT_TOLERANCE:
        raise ValueError(f"Risk component weights must sum to 1, got {total_weight:.6f}")
    return sum(c.score * c.weight for c in components)


def risk_bucket(score: float) -> str:
    buckets = config.RISK_BUCKETS
    if score < buckets["low_below"]:
        return "Low"
    if score < buckets["medium_below"]:
        return "Medium"
    return "High"


def score_components(ticker: str, components: Sequence[RiskComponent]) -> HoldingRiskProfile:
    score = round_half_up(combine_components(components))
    return HoldingRiskProfile(
        ticker=ticker,
        risk_score=score,
        risk_bucket=risk_bucket(score),
        components=tuple(components),
    )


def score_holding(ticker: str, inputs: RiskInputs) -> HoldingRiskProfile:
    return score_components(ticker, build_risk_components(inputs))


def risk_inputs_from_daily_history(closes: Optional[pd.Series]) -> Tuple[Optional[float], Optional[float]]:
    """Annualized volatility % and max drawdown % from ~1y of daily closes.

    Uses log returns; returns (None, None) below the data-quality floor.
    """
    thresholds = config.DATA_QUALITY_THRESHOLDS
    if closes is None:
        return None, None
    values = pd.Series(closes, dtype=float).dropna()
    values = values[values > 0]
    if len(values) < thresholds["min_daily_closes_for_risk"]:
        return None, None
    log_returns = np.diff(np.log(values.to_numpy()))
    if len(log_returns) < thresholds["min_daily_returns_for_risk"]:
        return None, None
    volatility = float(np.std(log_returns, ddof=0)) * math.sqrt(252) * 100.0
    return volatility, max_drawdown(values) * 100.0


def days_until(when: Any, today: date) -> Optional[float]:
    if when is None:
        return None
    try:
        delta = (pd.Timestamp(when).date() - today).days
    except (TypeError, ValueError):
        return None
    return float(delta) if delta >= 0 else None


def risk_inputs_from_fundamentals(
    fundamentals: Optional[Mapping[str, Any]],
    *,
    weight_pct: Optional[float],
    volatility_pct: Optional[float] = None,
    max_drawdown_pct: Optional[float] = None,
    beta: Optional[float] = None,
    today: Optional[date] = None,
) -> RiskInputs:
    """Assemble ``RiskInputs`` from a gateway fundamentals dict plus history stats.

    ``days_to_earnings`` may be given directly or derived from an
    ``earnings_date`` field.
    """
    f = dict(fundamentals or {})
    days = _to_float(f.get("days_to_earnings"))
    if days is None and f.get("earnings_date") is not None:
        days = days_until(f["earnings_date"], today or date.today())
    return RiskInputs(
        volatility_pct=volatility_pct,
        max_drawdown_pct=max_drawdown_pct,
        beta=beta if beta is not None else _to_float(f.get("beta")),
        debt_to_equity=_to_float(f.get("debt_to_equity")),
        interest_coverage=_to_float(f.get("interest_coverage")),
        pe=_to_float(f.get("pe")),
        ps=_to_float(f.get("ps")),
        peg=_to_float(f.get("peg")),
        fcf_yield_pct=_to_float(f.get("fcf_yield_pct")),
        avg_dollar_volume=_to_float(f.get("avg_dollar_volume")),
        short_pct_float=_to_float(f.get("short_pct_float")),
        short_ratio=_to_float(f.get("short_ratio")),
        days_to_earnings=days,
        weight_pct=weight_pct,
    )
