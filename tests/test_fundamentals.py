import pytest

from portfolio_analytics_engine.fundamentals import (
    summarize_valuation,
    weighted_dividend_yield,
    weighted_harmonic_pe,
)


class TestValuation:
    """Weighted P/E and dividend yield."""

    def test_harmonic_pe_skips_loss_makers(self):
        pe = weighted_harmonic_pe([(0.5, 10.0), (0.5, 40.0), (0.2, -8.0), (0.3, None)])
        assert pe == pytest.approx(1.0 / (0.5 / 10 + 0.5 / 40))

    def test_harmonic_pe_without_earnings(self):
        assert weighted_harmonic_pe([(1.0, -3.0)]) is None

    def test_yield_accepts_fractions_and_percents(self):
        assert weighted_dividend_yield([(0.5, 0.02), (0.5, 4.0)]) == pytest.approx(3.0)
        assert weighted_dividend_yield([]) is None

    def test_summary_coverage(self):
        summary = summarize_valuation(
            {"AAPL": {"pe": 30, "dividend_yield": 0.005}, "TSLA": {"pe": -20}},
            {"AAPL": 0.6, "TSLA": 0.3, "BTC": 0.1},
        )
        assert summary.weighted_pe == pytest.approx(30.0)
        assert summary.weighted_dividend_yield_pct == pytest.approx(0.5)
        assert summary.pe_coverage_pct == pytest.approx(60.0)
        assert summary.yield_coverage_pct == pytest.approx(60.0)

    def test_empty(self):
        summary = summarize_valuation({}, {})
        assert summary.weighted_pe is None
        assert summary.pe_coverage_pct == 0.0
