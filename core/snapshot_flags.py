"""Snapshot-level interpretive flags for agent-oriented responses."""

from __future__ import annotations

import math
from typing import Any


def _to_float(value: Any) -> float | None:
    """Convert to finite float; return None for missing/invalid values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric):
        return None
    return numeric


def generate_snapshot_flags(snapshot: dict) -> list[dict]:
    """Generate severity-tagged flags from a serialized analysis snapshot."""
    if not isinstance(snapshot, dict) or not snapshot.get("holdings"):
        return [
            {
                "flag": "no_holdings",
                "severity": "error",
                "message": "Portfolio has no holdings; analytics show default values",
            }
        ]

    flags: list[dict] = []
    metrics = snapshot.get("metrics") or {}
    risk = snapshot.get("risk") or {}
    meta = snapshot.get("meta") or {}
    data_quality = meta.get("data_quality") or {}
    concentration = risk.get("concentration") or {}
    diversification = risk.get("diversification") or {}
    beta_block = risk.get("beta") or {}
    benchmark = meta.get("benchmark_symbol", "benchmark")

    if not metrics.get("has_benchmark"):
        flags.append(
            {
                "flag": "missing_benchmark",
                "severity": "warning",
                "message": f"Not enough aligned history against {benchmark}; return and risk metrics are defaults",
            }
        )

    if concentration.get("level") == "High":
        largest = _to_float(concentration.get("largest_position_pct")) or 0.0
        flags.append(
            {
                "flag": "high_concentration",
                "severity": "warning",
                "message": f"Concentrated portfolio: largest position is {largest:.1f}% of value",
                "largest_position_pct": round(largest, 1),
            }
        )

    div_score = _to_float(diversification.get("score"))
    if div_score is not None and div_score < 4:
        flags.append(
            {
                "flag": "low_diversification",
                "severity": "warning" if div_score < 2 else "info",
                "message": f"Diversification score {div_score:.1f}/10",
                "diversification_score": round(div_score, 1),
            }
        )

    beta_level = beta_block.get("level")
    beta_value = _to_float(beta_block.get("value"))
    if beta_level == "High" and beta_value is not None:
        flags.append(
            {
                "flag": "high_beta",
                "severity": "info",
                "message": f"Beta {beta_value:.2f}: portfolio moves more than the market",
                "beta": round(beta_value, 2),
            }
        )
    elif beta_level == "Low" and beta_value is not None:
        flags.append(
            {
                "flag": "low_beta",
                "severity": "info",
                "message": f"Beta {beta_value:.2f}: portfolio moves less than the market",
                "beta": round(beta_value, 2),
            }
        )

    risky = [
        h.get("ticker")
        for h in snapshot.get("holdings", [])
        if isinstance(h, dict) and h.get("risk_bucket") == "High"
    ]
    if risky:
        flags.append(
            {
                "flag": "high_risk_holdings",
                "severity": "warning",
                "message": f"{len(risky)} holding{'s' if len(risky) != 1 else ''} scored High risk: {', '.join(risky)}",
                "tickers": risky,
            }
        )

    drawdown = _to_float(metrics.get("max_drawdown_pct"))
    if drawdown is not None and drawdown > 20:
        flags.append(
            {
                "flag": "deep_drawdown",
                "severity": "warning",
                "message": f"Max drawdown of {drawdown:.1f}% in the analysis window",
                "max_drawdown_pct": round(drawdown, 2),
            }
        )

    portfolio_return = _to_float(metrics.get("portfolio_return_pct"))
    benchmark_return = _to_float(metrics.get("benchmark_return_pct"))
    if portfolio_return is not None and benchmark_return is not None and metrics.get("has_benchmark"):
        relative = portfolio_return - benchmark_return
        if relative < -5:
            flags.append(
                {
                    "flag": "underperforming_benchmark",
                    "severity": "warning",
                    "message": f"Trailing {benchmark} by {abs(relative):.1f}pp",
                    "relative_return_pct": round(relative, 2),
                }
            )
        elif relative > 0:
            flags.append(
                {
                    "flag": "outperforming_benchmark",
                    "severity": "success",
                    "message": f"Ahead of {benchmark} by {relative:.1f}pp",
                    "relative_return_pct": round(relative, 2),
                }
            )

    if data_quality.get("sector_target_source") == "fallback":
        flags.append(
            {
                "flag": "fallback_sector_targets",
                "severity": "info",
                "message": f"Sector targets for {benchmark} use the static fallback table",
            }
        )

    missing_quotes = list(data_quality.get("missing_quotes") or [])
    if missing_quotes:
        flags.append(
            {
                "flag": "missing_quotes",
                "severity": "warning",
                "message": f"No current quote for {', '.join(missing_quotes)}",
                "tickers": missing_quotes,
            }
        )

    dividends = snapshot.get("dividends") or {}
    income = _to_float(dividends.get("total_income"))
    if income is not None and income > 0:
        flags.append(
            {
                "flag": "dividend_income",
                "severity": "success",
                "message": f"${income:,.2f} of dividend income so far in {dividends.get('year')}",
                "total_income": round(income, 2),
            }
        )

    return _sort_flags(flags)


def _sort_flags(flags: list[dict]) -> list[dict]:
    """Sort by severity: error > warning > info > success."""
    order = {"error": 0, "warning": 1, "info": 2, "success": 3}
    return sorted(flags, key=lambda flag: order.get(flag.get("severity"), 99))
