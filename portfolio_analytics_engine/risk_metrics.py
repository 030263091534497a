"""Portfolio risk and performance metrics.

Called by:
- ``snapshot.AnalysisSnapshotBuilder`` for the scalar metric block.
- ``holding_risk`` for per-holding volatility and drawdown.

Contract notes:
- Inputs are normalized-to-100 index series (or closes) on aligned dates.
- Volatility and beta use population moments.
- Values that cannot be computed are ``None``, not a default number; beta
  falls back to 1.0 only when benchmark variance is exactly zero.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm

from portfolio_analytics_engine import config
from portfolio_analytics_engine.returns import calc_period_returns


EPS = 1e-12

_PERIODS_PER_YEAR = {"1d": 252, "1wk": 52, "1mo": 12}

# annualization method per reporting window
WINDOW_METHODS = {"ytd": "simple", "trailing_12m": "compound"}


def periods_per_year(interval: str) -> int:
    try:
        return _PERIODS_PER_YEAR[interval]
    except KeyError:
        raise ValueError(f"Unsupported interval: {interval}") from None


def _population_std(returns: pd.Series) -> float:
    if len(returns) < 2:
        return 0.0
    return float(np.std(returns.to_numpy(dtype=float), ddof=0))


def annualized_volatility(series: pd.Series, ppy: int) -> float:
    """Population std of period returns × √ppy, as a decimal."""
    return _population_std(calc_period_returns(series)) * math.sqrt(ppy)


def estimate_beta(portfolio: pd.Series, benchmark: pd.Series) -> Optional[float]:
    """cov/var over the trailing overlap of the two return series."""
    rp = calc_period_returns(portfolio).to_numpy(dtype=float)
    rb = calc_period_returns(benchmark).to_numpy(dtype=float)
    n = min(len(rp), len(rb))
    if n < 2:
        return None
    p, b = rp[-n:], rb[-n:]
    var_b = float(np.mean((b - b.mean()) ** 2))
    if var_b == 0.0:
        return 1.0
    cov = float(np.mean((p - p.mean()) * (b - b.mean())))
    return cov / var_b


def max_drawdown(series: pd.Series) -> float:
    """Largest peak-to-trough decline as a positive decimal."""
    values = pd.Series(series, dtype=float)
    if values.empty:
        return 0.0
    running_peak = values.cummax()
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdown = (values - running_peak) / running_peak
    drawdown = drawdown.replace([np.inf, -np.inf], np.nan).dropna()
    if drawdown.empty:
        return 0.0
    return abs(min(float(drawdown.min()), 0.0))


def cumulative_return(series: pd.Series) -> float:
    values = pd.Series(series, dtype=float)
    if len(values) < 2 or float(values.iloc[0]) <= 0:
        return 0.0
    return float(values.iloc[-1] / values.iloc[0] - 1.0)


def annualized_return(returns: pd.Series, ppy: int, method: str = "simple") -> float:
    """``simple``: mean × ppy. ``compound``: (1 + cum)^(ppy / n) - 1."""
    returns = pd.Series(returns, dtype=float)
    n = len(returns)
    if n == 0:
        return 0.0
    if method == "simple":
        return float(returns.mean() * ppy)
    if method == "compound":
        growth = float((1.0 + returns).prod())
        if growth <= 0:
            return -1.0
        return growth ** (ppy / n) - 1.0
    raise ValueError(f"Unknown annualization method: {method}")


def sharpe_ratio(ann_return: float, ann_vol: float, risk_free_rate: float) -> float:
    if ann_vol <= EPS:
        return 0.0
    return (ann_return - risk_free_rate) / ann_vol


def downside_deviation(returns: pd.Series, ppy: int, target: float = 0.0) -> float:
    """sqrt(mean over every period of min(0, r - target)^2) × √ppy."""
    values = pd.Series(returns, dtype=float).to_numpy()
    if len(values) == 0:
        return 0.0
    shortfall = np.minimum(0.0, values - target)
    return float(np.sqrt(np.mean(shortfall ** 2)) * math.sqrt(ppy))


def sortino_ratio(returns: pd.Series, ann_return: float, risk_free_rate: float, ppy: int, target: float = 0.0) -> float:
    dd = downside_deviation(returns, ppy, target)
    if dd <= EPS:
        return 0.0
    return (ann_return - risk_free_rate) / dd


def weighted_reference_beta(betas: Mapping[str, Optional[float]], weights: Mapping[str, float]) -> Optional[float]:
    """Weight-averaged provider betas; symbols without a beta are skipped."""
    beta_sum = 0.0
    weight_sum = 0.0
    for symbol, weight in weights.items():
        beta = betas.get(symbol)
        if beta is None or not math.isfinite(beta) or not math.isfinite(weight):
            continue
        beta_sum += beta * weight
        weight_sum += weight
    return beta_sum / weight_sum if weight_sum > 0 else None


def beta_level(beta: float) -> str:
    levels = config.BETA_LEVELS
    if beta < levels["low_below"]:
        return "Low"
    if beta <= levels["medium_max"]:
        return "Medium"
    return "High"


def capm_regression(
    portfolio_returns: pd.Series,
    benchmark_returns: pd.Series,
    risk_free_rate: float,
    *,
    ppy: int = 12,
    min_observations: Optional[int] = None,
) -> Dict[str, Any]:
    """OLS of portfolio excess returns on benchmark excess returns.

    Returns ``alpha_annual``, ``beta``, ``r_squared`` (decimals) and a
    ``warnings`` list; fields are ``None`` when the regression is not run.
    """
    if len(portfolio_returns) != len(benchmark_returns):
        raise ValueError("portfolio_returns and benchmark_returns must have the same length")
    if not portfolio_returns.index.equals(benchmark_returns.index):
        raise ValueError("portfolio_returns and benchmark_returns must have the same index")
    if min_observations is None:
        min_observations = config.DATA_QUALITY_THRESHOLDS.get("min_observations_for_capm_regression", 6)

    result: Dict[str, Any] = {"alpha_annual": None, "beta": None, "r_squared": None, "warnings": []}
    n = len(portfolio_returns)
    if n < min_observations:
        result["warnings"].append(
            f"Insufficient data for CAPM regression ({n} periods < {min_observations} required); "
            "alpha/r_squared not computed"
        )
        return result

    rf_period = risk_free_rate / ppy
    portfolio_excess = portfolio_returns.astype(float) - rf_period
    benchmark_excess = benchmark_returns.astype(float) - rf_period
    try:
        if float(benchmark_excess.std(ddof=0)) <= EPS or float(portfolio_excess.std(ddof=0)) <= EPS:
            # singular inputs: closed form instead of OLS
            result.update(alpha_annual=float(portfolio_excess.mean() * ppy), beta=0.0, r_squared=0.0)
            return result

        X = pd.DataFrame(
            {
                "const": np.ones(n, dtype=float),
                "benchmark_excess": benchmark_excess.to_numpy(dtype=float),
            },
            index=benchmark_excess.index,
        )
        y = portfolio_excess.to_numpy(dtype=float)
        model = sm.OLS(y, X).fit()
        y_hat = model.fittedvalues.to_numpy(dtype=float)
        sst = float(np.sum((y - y.mean()) ** 2))
        sse = float(np.sum((y - y_hat) ** 2))
        result.update(
            alpha_annual=float(model.params.iloc[0]) * ppy,
            beta=float(model.params.iloc[1]),
            r_squared=1.0 - (sse / sst) if sst > EPS else 0.0,
        )
    except (ValueError, np.linalg.LinAlgError) as exc:
        result["warnings"].append(
            f"CAPM regression failed; alpha/beta/r_squared not computed ({type(exc).__name__})"
        )
    return result


def sortino_target_for(risk_free_rate: float, ppy: int, target: Optional[str] = None) -> float:
    target = target or config.ANALYTICS_DEFAULTS.get("sortino_target", "zero")
    if target == "zero":
        return 0.0
    if target == "risk_free":
        return risk_free_rate / ppy
    raise ValueError(f"Unknown sortino target: {target}")


def compute_performance_metrics(
    portfolio_index: pd.Series,
    benchmark_index: pd.Series,
    risk_free_rate: float,
    *,
    interval: str = "1mo",
    window: str = "ytd",
    sortino_target: Optional[str] = None,
) -> Dict[str, Any]:
    """Scalar metrics for aligned, normalized-to-100 portfolio and benchmark series.

    Percent outputs are in percent units; ratios are plain numbers.
    """
    if window not in WINDOW_METHODS:
        raise ValueError(f"Unknown performance window: {window}")
    if len(portfolio_index) != len(benchmark_index):
        raise ValueError("portfolio and benchmark series must be aligned")

    ppy = periods_per_year(interval)
    returns = calc_period_returns(portfolio_index)
    bench_returns = calc_period_returns(benchmark_index)

    ann_vol = annualized_volatility(portfolio_index, ppy)
    ann_ret = annualized_return(returns, ppy, WINDOW_METHODS[window])
    target = sortino_target_for(risk_free_rate, ppy, sortino_target)
    capm = capm_regression(returns, bench_returns, risk_free_rate, ppy=ppy)

    return {
        "portfolio_return_pct": cumulative_return(portfolio_index) * 100.0,
        "benchmark_return_pct": cumulative_return(benchmark_index) * 100.0,
        "annualized_return_pct": ann_ret * 100.0,
        "volatility_pct": ann_vol * 100.0,
        "sharpe_ratio": sharpe_ratio(ann_ret, ann_vol, risk_free_rate),
        "sortino_ratio": sortino_ratio(returns, ann_ret, risk_free_rate, ppy, target),
        "max_drawdown_pct": max_drawdown(portfolio_index) * 100.0,
        "beta": estimate_beta(portfolio_index, benchmark_index),
        "alpha_annual_pct": capm["alpha_annual"] * 100.0 if capm["alpha_annual"] is not None else None,
        "r_squared": capm["r_squared"],
        "periods": len(returns),
        "warnings": capm["warnings"],
    }
