"""Public API for portfolio_analytics_engine."""

from portfolio_analytics_engine.data_objects import (
    AnalysisSnapshot,
    Holding,
    holdings_from_records,
)
from portfolio_analytics_engine.providers import (
    MarketDataGateway,
    set_market_data_gateway,
    get_market_data_gateway,
)
from portfolio_analytics_engine.sectors import (
    SectorResolver,
    set_sector_resolver,
    get_sector_resolver,
)
from portfolio_analytics_engine.snapshot import (
    AnalysisSnapshotBuilder,
    compute_snapshot,
    empty_snapshot,
)

__all__ = [
    "AnalysisSnapshot",
    "Holding",
    "holdings_from_records",
    "MarketDataGateway",
    "set_market_data_gateway",
    "get_market_data_gateway",
    "SectorResolver",
    "set_sector_resolver",
    "get_sector_resolver",
    "AnalysisSnapshotBuilder",
    "compute_snapshot",
    "empty_snapshot",
]
