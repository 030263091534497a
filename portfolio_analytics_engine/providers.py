"""Market data gateway protocol and process-wide registry.

Every method may raise on upstream failure; callers go through
``fetching.fan_out`` which turns per-symbol exceptions into
``Unavailable`` values.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional, Protocol, Sequence, runtime_checkable

import pandas as pd


@runtime_checkable
class MarketDataGateway(Protocol):
    def fetch_quotes(self, symbols: Sequence[str]) -> Dict[str, float]:
        """Latest price per symbol; symbols without a quote are omitted."""
        ...

    def fetch_history(self, symbol: str, periods: int, interval: str = "1mo") -> pd.Series:
        """Closes indexed by DatetimeIndex, oldest first, at most ``periods`` points."""
        ...

    def fetch_risk_free_rate(self) -> float:
        """Annual risk-free rate as a decimal (0.05 == 5%)."""
        ...

    def fetch_beta(self, symbol: str) -> Optional[float]: ...

    def fetch_sector_profile(self, symbol: str) -> Dict[str, Any]:
        """Keys: sector, industry, quote_type, category, name (any may be missing)."""
        ...

    def fetch_sector_weightings(self, symbol: str) -> Any:
        """Raw fund sector breakdown in whatever shape the provider returns."""
        ...

    def fetch_fundamentals(self, symbol: str) -> Dict[str, Any]: ...

    def fetch_dividend_history(self, symbol: str, start_date: date) -> pd.DataFrame:
        """Columns ``date`` and ``amount`` (per share), optional ``currency``."""
        ...


_gateway: Optional[MarketDataGateway] = None


def set_market_data_gateway(gateway: Optional[MarketDataGateway]) -> None:
    global _gateway
    _gateway = gateway


def get_market_data_gateway() -> MarketDataGateway:
    global _gateway
    if _gateway is None:
        from portfolio_analytics_engine import config

        provider = config.MARKET_DATA_PROVIDER.lower()
        if provider == "yahoo":
            from portfolio_analytics_engine._yahoo_provider import YahooMarketDataGateway

            _gateway = YahooMarketDataGateway()
        elif provider == "fmp":
            from portfolio_analytics_engine._fmp_provider import FMPMarketDataGateway

            _gateway = FMPMarketDataGateway()
        else:
            raise ValueError(f"Unknown market data provider: {config.MARKET_DATA_PROVIDER}")
    return _gateway
