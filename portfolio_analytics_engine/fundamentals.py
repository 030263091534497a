"""Portfolio-level valuation summary from per-holding fundamentals."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Tuple

from portfolio_analytics_engine._vendor import _to_float
from portfolio_analytics_engine.data_objects import ValuationSummary


def weighted_harmonic_pe(pairs: Iterable[Tuple[float, Optional[float]]]) -> Optional[float]:
    """Σw / Σ(w / pe) over positions with a positive P/E.

    The harmonic form is the P/E of the combined position (total price over
    total earnings); loss-makers are excluded.
    """
    weight_sum = 0.0
    inverse_sum = 0.0
    for weight, pe in pairs:
        if pe is None or pe <= 0 or weight <= 0:
            continue
        weight_sum += weight
        inverse_sum += weight / pe
    return weight_sum / inverse_sum if inverse_sum > 0 else None


def weighted_dividend_yield(pairs: Iterable[Tuple[float, Optional[float]]]) -> Optional[float]:
    """Weight-averaged dividend yield in percent; yields ≤ 1 are read as fractions."""
    weight_sum = 0.0
    total = 0.0
    for weight, dividend_yield in pairs:
        if dividend_yield is None or dividend_yield < 0 or weight <= 0:
            continue
        pct = dividend_yield * 100.0 if dividend_yield <= 1 else dividend_yield
        weight_sum += weight
        total += weight * pct
    return total / weight_sum if weight_sum > 0 else None


def summarize_valuation(
    fundamentals_by_ticker: Mapping[str, Mapping[str, Any]],
    weights_by_ticker: Mapping[str, float],
) -> ValuationSummary:
    pe_pairs = []
    yield_pairs = []
    pe_weight = 0.0
    yield_weight = 0.0
    total_weight = sum(w for w in weights_by_ticker.values() if w > 0)

    for ticker, weight in weights_by_ticker.items():
        f = fundamentals_by_ticker.get(ticker) or {}
        pe = _to_float(f.get("pe"))
        dividend_yield = _to_float(f.get("dividend_yield"))
        pe_pairs.append((weight, pe))
        yield_pairs.append((weight, dividend_yield))
        if pe is not None and pe > 0 and weight > 0:
            pe_weight += weight
        if dividend_yield is not None and dividend_yield >= 0 and weight > 0:
            yield_weight += weight

    return ValuationSummary(
        weighted_pe=weighted_harmonic_pe(pe_pairs),
        weighted_dividend_yield_pct=weighted_dividend_yield(yield_pairs),
        pe_coverage_pct=pe_weight / total_weight * 100.0 if total_weight > 0 else 0.0,
        yield_coverage_pct=yield_weight / total_weight * 100.0 if total_weight > 0 else 0.0,
    )
