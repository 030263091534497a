"""
Overall portfolio health score.

Blends four sub-scores (each 0-1) into a 0-100 score with an explainable
breakdown and positive/negative drivers:

- allocation: sector active share vs targets, diversification, largest position
- risk: volatility, drawdown, beta distance from 1
- performance: return relative to benchmark and absolute return
- quality: per-holding return, contribution, volatility, beta and composite risk score, weight-averaged

Works on the serialized snapshot dict so API consumers and the CLI share it.
"""

from __future__ import annotations

from typing import Any

HEALTH_WEIGHTS = {"allocation": 0.25, "risk": 0.30, "performance": 0.20, "quality": 0.25}


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, v))


def score_from_target_range(val: float, ideal_min: float, ideal_max: float, hard_min: float, hard_max: float) -> float:
    """1.0 inside [ideal_min, ideal_max], falling linearly to 0 at hard_min / hard_max."""
    if ideal_min <= val <= ideal_max:
        return 1.0
    if val < ideal_min:
        return _clamp01((val - hard_min) / (ideal_min - hard_min)) if ideal_min != hard_min else 0.0
    return _clamp01((hard_max - val) / (hard_max - ideal_max)) if hard_max != ideal_max else 0.0


def _beta_closeness(beta: float) -> float:
    return _clamp01(1.0 - min(abs(beta - 1.0), 1.0))


def _num(value: Any, default: float) -> float:
    return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else default


def _holding_quality(holdings: list[dict]) -> float:
    weighted = 0.0
    total_weight = 0.0
    for h in holdings:
        w = _num(h.get("weight_pct"), 0.0) / 100.0
        ret = h.get("return_since_purchase_pct")
        contrib = h.get("contribution_pct")
        vol = h.get("volatility_12m_pct")
        beta = h.get("beta")
        risk_score = h.get("risk_score")
        rr = _clamp01((ret + 25.0) / 50.0) if isinstance(ret, (int, float)) else 0.5
        cc = _clamp01((contrib + 2.0) / 4.0) if isinstance(contrib, (int, float)) else 0.5
        vv = score_from_target_range(vol, 10, 20, 5, 50) if isinstance(vol, (int, float)) else 0.5
        bb = _beta_closeness(beta) if isinstance(beta, (int, float)) else 0.5
        ss = _clamp01(1.0 - risk_score / 100.0) if isinstance(risk_score, (int, float)) else 0.5
        weighted += w * (0.3 * rr + 0.2 * cc + 0.15 * vv + 0.15 * bb + 0.2 * ss)
        total_weight += w
    if not holdings:
        return 0.5
    return _clamp01(weighted / max(total_weight, 1e-4))


def compute_portfolio_health(snapshot: dict) -> dict:
    """Health score payload: ``score``, ``components``, ``drivers`` and summary metrics."""
    holdings = [h for h in snapshot.get("holdings") or [] if isinstance(h, dict)]
    metrics = snapshot.get("metrics") or {}
    risk = snapshot.get("risk") or {}
    sectors = snapshot.get("sectors") or []

    # allocation
    active_share = 0.5 * sum(
        abs(_num(s.get("allocation_pct"), 0.0) - _num(s.get("target_pct"), 0.0)) for s in sectors
    )
    allocation_score = _clamp01(1.0 - active_share / 30.0) * 0.8 + 0.2
    div_raw = _num((risk.get("diversification") or {}).get("score"), 5.0)
    diversification_score = _clamp01(div_raw / 10.0)
    largest = _num((risk.get("concentration") or {}).get("largest_position_pct"), 15.0)
    concentration_score = score_from_target_range(largest, 0, 10, 0, 30)

    # risk
    vol = _num(metrics.get("volatility_pct"), 15.0)
    drawdown = _num(metrics.get("max_drawdown_pct"), 20.0)
    beta = _num(metrics.get("beta"), _num((risk.get("beta") or {}).get("value"), 1.0))
    vol_score = score_from_target_range(vol, 10, 15, 5, 35)
    drawdown_score = score_from_target_range(abs(drawdown), 5, 12, 0, 35)
    beta_score = _beta_closeness(beta)

    # performance
    portfolio_return = _num(metrics.get("portfolio_return_pct"), 0.0)
    benchmark_return = metrics.get("benchmark_return_pct")
    relative = portfolio_return - benchmark_return if isinstance(benchmark_return, (int, float)) else None
    abs_score = _clamp01(portfolio_return / 30.0)
    if relative is None:
        performance_score = 0.5 * abs_score + 0.25
    else:
        performance_score = 0.6 * _clamp01((relative + 15.0) / 30.0) + 0.4 * abs_score

    quality_score = _holding_quality(holdings)

    blends = {
        "allocation": 0.5 * allocation_score + 0.3 * diversification_score + 0.2 * concentration_score,
        "risk": 0.4 * vol_score + 0.35 * drawdown_score + 0.25 * beta_score,
        "performance": performance_score,
        "quality": quality_score,
    }
    labels = {
        "allocation": "Allocation & Diversification",
        "risk": "Risk Profile",
        "performance": "Performance",
        "quality": "Holdings Quality",
    }
    rationale = {
        "allocation": [
            f"Active sector difference ~{active_share:.1f}%",
            f"Diversification score {div_raw:.1f}/10",
            f"Largest position {largest:.1f}%",
        ],
        "risk": [f"Volatility {vol:.1f}%", f"Max drawdown {drawdown:.1f}%", f"Beta {beta:.2f}"],
        "performance": [
            f"Return {portfolio_return:.1f}%",
            f"Relative to benchmark {'n/a' if relative is None else f'{relative:.1f}pp'}",
        ],
        "quality": ["Weighted holding return, contribution, volatility, beta and risk score"],
    }
    components = [
        {
            "key": key,
            "label": labels[key],
            "weight": weight,
            "score_pct": round(blends[key] * 100),
            "contribution": round(weight * blends[key] * 100),
            "rationale": rationale[key],
        }
        for key, weight in HEALTH_WEIGHTS.items()
    ]
    overall = round(sum(HEALTH_WEIGHTS[k] * blends[k] for k in HEALTH_WEIGHTS) * 100)

    positives: list[str] = []
    negatives: list[str] = []
    checks = [
        (active_share <= 20, "Sector alignment close to benchmark", "Large sector tilts vs benchmark"),
        (div_raw >= 7, "Good diversification across holdings", "Diversification can be improved"),
        (largest <= 12, "No oversized positions", "Concentration risk: a position above 12%"),
        (vol <= 15, "Volatility within healthy range", "Elevated volatility"),
        (drawdown < 12, "Drawdowns have been contained", "Large historical drawdowns"),
        (0.9 <= beta <= 1.1, "Market risk close to the benchmark", "Beta deviates materially from 1"),
    ]
    for ok, good, bad in checks:
        if ok:
            positives.append(good)
        else:
            negatives.append(bad)
    if relative is not None:
        if relative >= 0:
            positives.append(f"Outperforming benchmark by {relative:.1f}pp")
        else:
            negatives.append(f"Underperforming benchmark by {abs(relative):.1f}pp")

    # total return since purchase only when cost basis covers at least half the weight
    with_cost = [h for h in holdings if isinstance(h.get("return_since_purchase_pct"), (int, float))]
    cost_weight = sum(_num(h.get("weight_pct"), 0.0) for h in with_cost)
    meaningful_cost_basis = cost_weight >= 50
    total_return = (
        sum(h["return_since_purchase_pct"] * _num(h.get("weight_pct"), 0.0) / 100.0 for h in with_cost)
        if meaningful_cost_basis
        else None
    )

    return {
        "score": overall,
        "components": components,
        "drivers": {"positives": positives, "negatives": negatives},
        "summary_metrics": {
            "total_return_pct": round(total_return, 2) if total_return is not None else None,
            "holdings_count": len(holdings),
            "sharpe_ratio": metrics.get("sharpe_ratio"),
            "has_meaningful_cost_basis": meaningful_cost_basis,
        },
    }
