from datetime import datetime, timezone

import pandas as pd
import pytest

from portfolio_analytics_engine.data_objects import (
    EnrichedHolding,
    Holding,
    PriceBar,
    SnapshotMeta,
    holdings_from_records,
    normalize_weight_pct,
    price_bars_to_series,
)


class TestHolding:
    """Input validation and weight normalization."""

    def test_ticker_is_normalized(self):
        assert Holding(" aapl ", weight=0.25).ticker == "AAPL"

    @pytest.mark.parametrize("weight,pct", [(0.25, 25.0), (25, 25.0), (1, 100.0), (0, 0.0)])
    def test_weight_pct(self, weight, pct):
        assert Holding("AAPL", weight=weight).weight_pct == pytest.approx(pct)
        assert normalize_weight_pct(weight) == pytest.approx(pct)

    def test_weight_already_in_percent_is_not_rescaled(self):
        holding = Holding.from_weight_pct("AAPL", 0.6, shares=3)
        assert holding.weight_pct == pytest.approx(0.6)
        assert holding.shares == 3
        with pytest.raises(ValueError, match="Weight for AAPL"):
            Holding.from_weight_pct("AAPL", -1.0)

    def test_empty_ticker(self):
        with pytest.raises(ValueError, match="Ticker cannot be empty"):
            Holding("  ")

    @pytest.mark.parametrize("weight", [-0.1, float("nan"), "heavy"])
    def test_bad_weight(self, weight):
        with pytest.raises(ValueError, match="Weight for AAPL"):
            Holding("AAPL", weight=weight)

    def test_negative_shares(self):
        with pytest.raises(ValueError, match="Shares for AAPL must be a non-negative number"):
            Holding("AAPL", shares=-5)

    def test_negative_purchase_price(self):
        with pytest.raises(ValueError, match="Purchase price for AAPL"):
            Holding("AAPL", purchase_price=-1)

    def test_from_dict_aliases(self):
        holding = Holding.from_dict({"symbol": "xom", "quantity": "12", "purchasePrice": 101.5})
        assert holding.ticker == "XOM"
        assert holding.shares == 12.0
        assert holding.purchase_price == 101.5
        assert holding.weight == 0.0
        assert holding.has_shares

    def test_holdings_from_records(self):
        holdings = holdings_from_records([{"ticker": "AAPL", "weight": 0.6}, {"ticker": "MSFT", "weight": None}])
        assert [h.weight_pct for h in holdings] == [pytest.approx(60.0), 0.0]


class TestPriceBars:
    def test_series_from_bars(self):
        series = price_bars_to_series(
            [PriceBar(pd.Timestamp("2024-01-31"), 100), PriceBar(pd.Timestamp("2024-02-29"), 101)], name="AAPL"
        )
        assert list(series) == [100.0, 101.0]
        assert series.name == "AAPL"

    def test_dates_must_increase(self):
        bars = [PriceBar(pd.Timestamp("2024-02-29"), 101), PriceBar(pd.Timestamp("2024-01-31"), 100)]
        with pytest.raises(ValueError, match="strictly increasing"):
            price_bars_to_series(bars)

    def test_duplicate_dates_rejected(self):
        bars = [PriceBar(pd.Timestamp("2024-01-31"), 100), PriceBar(pd.Timestamp("2024-01-31"), 101)]
        with pytest.raises(ValueError, match="strictly increasing"):
            price_bars_to_series(bars)


class TestSerialization:
    def test_enriched_holding_without_risk(self):
        holding = EnrichedHolding(
            ticker="AAPL",
            sector="Technology",
            price=210.123456,
            quote_available=True,
            shares=10.0,
            market_value=2101.23456,
            weight_pct=33.33333,
            purchase_price=150.0,
            return_since_purchase_pct=40.0823,
        )
        out = holding.to_dict()
        assert out["price"] == 210.1235
        assert out["market_value"] == 2101.23
        assert out["weight_pct"] == 33.33
        assert out["has_cost_basis"] is True
        assert out["risk_score"] is None
        assert out["risk_components"] == []

    def test_meta_is_json_safe(self):
        meta = SnapshotMeta(
            refreshed_at=datetime(2024, 6, 30, tzinfo=timezone.utc),
            benchmark_symbol="^GSPC",
            window="ytd",
            data_quality={"history_coverage": float("nan"), "missing_quotes": ("XOM",)},
        )
        out = meta.to_dict()
        assert out["refreshed_at"] == "2024-06-30T00:00:00+00:00"
        assert out["data_quality"] == {"history_coverage": None, "missing_quotes": ["XOM"]}

    def test_meta_data_quality_is_read_only(self):
        source = {"missing_quotes": ["XOM"], "holdings": 3}
        meta = SnapshotMeta(
            refreshed_at=datetime(2024, 6, 30, tzinfo=timezone.utc),
            benchmark_symbol="^GSPC",
            window="ytd",
            warnings=["stale quote"],
            data_quality=source,
        )
        source["missing_quotes"].append("AAPL")
        source["holdings"] = 99

        assert meta.data_quality["missing_quotes"] == ("XOM",)
        assert meta.data_quality["holdings"] == 3
        assert meta.warnings == ("stale quote",)
        with pytest.raises(TypeError):
            meta.data_quality["holdings"] = 0
        assert meta.to_dict()["data_quality"] == {"missing_quotes": ["XOM"], "holdings": 3}
