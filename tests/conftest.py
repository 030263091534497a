import pytest

from portfolio_analytics_engine import config
from portfolio_analytics_engine.providers import set_market_data_gateway
from portfolio_analytics_engine.sectors import set_sector_resolver

from tests.fakes import FakeGateway, month_end_series


SPY_WEIGHTINGS = [
    {"sector": "Technology", "weightPercentage": "31.5%"},
    {"sector": "Financial Services", "weightPercentage": "13.0%"},
    {"sector": "Healthcare", "weightPercentage": "11.5%"},
    {"sector": "Consumer Cyclical", "weightPercentage": "10.5%"},
    {"sector": "Communication Services", "weightPercentage": "9.0%"},
    {"sector": "Industrials", "weightPercentage": "8.5%"},
    {"sector": "Consumer Defensive", "weightPercentage": "5.5%"},
    {"sector": "Energy", "weightPercentage": "3.5%"},
    {"sector": "Utilities", "weightPercentage": "2.5%"},
    {"sector": "Real Estate", "weightPercentage": "2.2%"},
    {"sector": "Basic Materials", "weightPercentage": "2.3%"},
]


@pytest.fixture(autouse=True)
def isolated_registries():
    """No test may reach the lazily created network gateway or share a sector cache."""
    set_market_data_gateway(None)
    set_sector_resolver(None)
    yield
    set_market_data_gateway(None)
    set_sector_resolver(None)


@pytest.fixture
def restore_config():
    """Snapshot module-level config values and put them back after the test."""
    saved = {key: getattr(config, key) for key in config._DEFAULTS}
    yield config
    config.configure(**saved)


@pytest.fixture
def trending_gateway():
    """Three equities plus ^GSPC with seven month-end closes ending 2024-06-30."""
    return FakeGateway(
        quotes={"AAPL": 210.0, "JNJ": 150.0, "XOM": 115.0},
        monthly={
            "AAPL": month_end_series([190, 185, 180, 171, 190, 192, 210]),
            "JNJ": month_end_series([160, 158, 155, 150, 147, 152, 150]),
            "XOM": month_end_series([100, 102, 108, 113, 118, 114, 115]),
            "^GSPC": month_end_series([4770, 4850, 5100, 5250, 5030, 5280, 5460]),
        },
        betas={"AAPL": 1.25, "JNJ": 0.55, "XOM": 0.9},
        sector_weightings={"SPY": SPY_WEIGHTINGS},
        fundamentals={
            "AAPL": {"pe": 32.0, "dividend_yield": 0.005, "debt_to_equity": 150.0},
            "JNJ": {"pe": 15.0, "dividend_yield": 0.03},
            "XOM": {"pe": 12.0, "dividend_yield": 0.033},
        },
    )
