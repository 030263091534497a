"""Standalone-safe configuration surface for portfolio_analytics_engine."""

from __future__ import annotations

import os
from typing import Any


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value.strip() if value and value.strip() else default


_DEFAULTS: dict[str, Any] = {
    "ANALYTICS_DEFAULTS": {
        "benchmark_symbol": _env_str("ANALYTICS_BENCHMARK_SYMBOL", "^GSPC"),
        "reference_beta_symbol": _env_str("ANALYTICS_REFERENCE_BETA_SYMBOL", "^GSPC"),
        # "ytd" or "trailing_12m"
        "performance_window": _env_str("ANALYTICS_PERFORMANCE_WINDOW", "ytd"),
        "risk_free_fallback": _env_float("ANALYTICS_RISK_FREE_FALLBACK", 0.05),
        # "zero" or "risk_free"
        "sortino_target": _env_str("ANALYTICS_SORTINO_TARGET", "zero"),
        # dollars of notional value per weight percentage point when shares are unknown
        "notional_per_weight_point": _env_float("ANALYTICS_NOTIONAL_PER_WEIGHT_POINT", 100.0),
    },
    "SECTOR_CACHE": {
        "ttl_seconds": _env_int("SECTOR_CACHE_TTL_SECONDS", 6 * 60 * 60),
        "max_workers": _env_int("SECTOR_CACHE_MAX_WORKERS", 4),
        "warm_timeout_seconds": _env_float("SECTOR_CACHE_WARM_TIMEOUT", 10.0),
    },
    "DIVIDEND_DEFAULTS": {
        "lookback_years": _env_int("DIVIDEND_LOOKBACK_YEARS", 2),
        "max_workers": _env_int("DIVIDEND_MAX_WORKERS", 3),
        "top_n_holdings": _env_int("DIVIDEND_TOP_N_HOLDINGS", 10),
        "projection_months": _env_int("DIVIDEND_PROJECTION_MONTHS", 36),
        "monthly_contribution": _env_float("DIVIDEND_MONTHLY_CONTRIBUTION", 250.0),
        "distributed_growth_annual": _env_float("DIVIDEND_DISTRIBUTED_GROWTH", 0.01),
        "reinvest_growth_annual": _env_float("DIVIDEND_REINVEST_GROWTH", 0.04),
    },
    "FETCH_DEFAULTS": {
        "max_workers": _env_int("FETCH_MAX_WORKERS", 8),
        "daily_lookback_days": _env_int("FETCH_DAILY_LOOKBACK_DAYS", 252),
        "include_holding_risk": os.getenv("FETCH_INCLUDE_HOLDING_RISK", "true").lower() == "true",
    },
    "DATA_QUALITY_THRESHOLDS": {
        "min_history_points": 2,
        "min_daily_closes_for_risk": 60,
        "min_daily_returns_for_risk": 30,
        "min_monthly_points_for_beta": 6,
        "min_observations_for_capm_regression": 6,
        "benchmark_coverage_ratio": 0.5,
    },
    "CONCENTRATION_THRESHOLDS": {
        "high": {"largest_pct": 20.0, "top2_pct": 40.0, "hhi": 0.18},
        "medium": {"largest_pct": 12.0, "top2_pct": 25.0, "hhi": 0.10},
    },
    "DIVERSIFICATION_BANDS": {
        "breadth": (5.0, 15.0),
        "sector_hhi": (0.25, 0.10),
        "top2": (0.40, 0.20),
        "weights": (0.5, 0.3, 0.2),
    },
    "RISK_BUCKETS": {"low_below": 33.0, "medium_below": 66.0},
    "BETA_LEVELS": {"low_below": 0.8, "medium_max": 1.2},
    "MARKET_DATA_PROVIDER": _env_str("MARKET_DATA_PROVIDER", "fmp"),
    "FMP_API_KEY": os.getenv("FMP_API_KEY", ""),
}


try:  # pragma: no cover - project-level overrides
    import settings as _settings  # type: ignore

    for key in list(_DEFAULTS.keys()):
        if hasattr(_settings, key):
            _DEFAULTS[key] = getattr(_settings, key)
except ImportError:
    pass


ANALYTICS_DEFAULTS = _DEFAULTS["ANALYTICS_DEFAULTS"]
SECTOR_CACHE = _DEFAULTS["SECTOR_CACHE"]
DIVIDEND_DEFAULTS = _DEFAULTS["DIVIDEND_DEFAULTS"]
FETCH_DEFAULTS = _DEFAULTS["FETCH_DEFAULTS"]
DATA_QUALITY_THRESHOLDS = _DEFAULTS["DATA_QUALITY_THRESHOLDS"]
CONCENTRATION_THRESHOLDS = _DEFAULTS["CONCENTRATION_THRESHOLDS"]
DIVERSIFICATION_BANDS = _DEFAULTS["DIVERSIFICATION_BANDS"]
RISK_BUCKETS = _DEFAULTS["RISK_BUCKETS"]
BETA_LEVELS = _DEFAULTS["BETA_LEVELS"]
MARKET_DATA_PROVIDER = str(_DEFAULTS["MARKET_DATA_PROVIDER"])
FMP_API_KEY = str(_DEFAULTS["FMP_API_KEY"])


def configure(**overrides: Any) -> None:
    """Programmatically override package configuration values."""
    globals_dict = globals()
    for key, value in overrides.items():
        if key not in _DEFAULTS:
            raise KeyError(f"Unknown config key: {key}")
        globals_dict[key] = value
