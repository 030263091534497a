# Project-level analytics settings; portfolio_analytics_engine.config picks up
# any dictionary below that shares a name with one of its defaults.
import os
from pathlib import Path

from dotenv import load_dotenv

# Ensure local ".env" is loaded even for direct Python invocations
load_dotenv(Path(__file__).resolve().parent / ".env", override=False)

# Snapshot defaults
ANALYTICS_DEFAULTS = {
    "benchmark_symbol": os.getenv("ANALYTICS_BENCHMARK_SYMBOL", "^GSPC"),
    "reference_beta_symbol": os.getenv("ANALYTICS_REFERENCE_BETA_SYMBOL", "^GSPC"),
    "performance_window": os.getenv("ANALYTICS_PERFORMANCE_WINDOW", "ytd"),  # "ytd" or "trailing_12m"
    "risk_free_fallback": float(os.getenv("ANALYTICS_RISK_FREE_FALLBACK", "0.05")),  # used when the rate quote fails
    "sortino_target": os.getenv("ANALYTICS_SORTINO_TARGET", "zero"),  # "zero" or "risk_free"
    "notional_per_weight_point": float(os.getenv("ANALYTICS_NOTIONAL_PER_WEIGHT_POINT", "100.0")),
}

# Sector lookup cache (process-wide)
SECTOR_CACHE = {
    "ttl_seconds": int(os.getenv("SECTOR_CACHE_TTL_SECONDS", str(6 * 60 * 60))),
    "max_workers": int(os.getenv("SECTOR_CACHE_MAX_WORKERS", "4")),
    "warm_timeout_seconds": float(os.getenv("SECTOR_CACHE_WARM_TIMEOUT", "10.0")),
}

# Dividend income aggregation and projection
DIVIDEND_DEFAULTS = {
    "lookback_years": int(os.getenv("DIVIDEND_LOOKBACK_YEARS", "2")),
    "max_workers": int(os.getenv("DIVIDEND_MAX_WORKERS", "3")),
    "top_n_holdings": int(os.getenv("DIVIDEND_TOP_N_HOLDINGS", "10")),
    "projection_months": int(os.getenv("DIVIDEND_PROJECTION_MONTHS", "36")),
    "monthly_contribution": float(os.getenv("DIVIDEND_MONTHLY_CONTRIBUTION", "250.0")),
    "distributed_growth_annual": float(os.getenv("DIVIDEND_DISTRIBUTED_GROWTH", "0.01")),
    "reinvest_growth_annual": float(os.getenv("DIVIDEND_REINVEST_GROWTH", "0.04")),
}

# Data quality thresholds
DATA_QUALITY_THRESHOLDS = {
    "min_history_points": 2,                      # fewer monthly closes -> holding excluded from the index
    "min_daily_closes_for_risk": 60,              # per-holding volatility/drawdown need ~3 months of dailies
    "min_daily_returns_for_risk": 30,
    "min_monthly_points_for_beta": 6,             # monthly beta fallback for holdings without a provider beta
    "min_observations_for_capm_regression": 6,    # alpha / r_squared
    "benchmark_coverage_ratio": 0.5,              # share of holdings with history needed for has_benchmark
}

MARKET_DATA_PROVIDER = os.getenv("MARKET_DATA_PROVIDER", "fmp")
FMP_API_KEY = os.getenv("FMP_API_KEY", "")
