import pytest

from portfolio_analytics_engine.concentration import (
    compute_concentration,
    compute_diversification,
    compute_hhi,
    concentration_level,
    effective_holdings,
    top_n_weight,
)


class TestConcentration:
    """HHI, effective holdings and the concentration level."""

    def test_hhi_accepts_fractions_and_percents(self):
        assert compute_hhi([0.5, 0.5]) == pytest.approx(0.5)
        assert compute_hhi([50, 50]) == pytest.approx(0.5)

    def test_hhi_bounds(self):
        weights = [0.4, 0.3, 0.2, 0.1]
        hhi = compute_hhi(weights)
        assert 1 / len(weights) <= hhi <= 1.0
        assert effective_holdings(weights) == pytest.approx(1 / hhi)

    def test_single_holding(self):
        metrics = compute_concentration([1.0])
        assert metrics.level == "High"
        assert metrics.largest_position_pct == pytest.approx(100.0)
        assert metrics.effective_holdings == pytest.approx(1.0)

    def test_evenly_spread_portfolio_is_low(self):
        metrics = compute_concentration([0.05] * 20)
        assert metrics.level == "Low"
        assert metrics.top2_pct == pytest.approx(10.0)
        assert metrics.effective_holdings == pytest.approx(20.0)

    def test_any_trigger_promotes_the_level(self):
        assert concentration_level(25.0, 30.0, 0.05) == "High"
        assert concentration_level(8.0, 26.0, 0.05) == "Medium"
        assert concentration_level(8.0, 15.0, 0.05) == "Low"

    def test_top_two(self):
        assert top_n_weight([0.1, 0.5, 0.4]) == pytest.approx(0.9)

    def test_empty_portfolio(self):
        metrics = compute_concentration([])
        assert metrics.level == "Low"
        assert metrics.hhi == 0.0


class TestDiversification:
    """0-10 diversification score."""

    def test_score_rises_with_breadth(self):
        sector_weights = [0.2] * 5
        scores = [compute_diversification([1 / n] * n, sector_weights).score for n in (1, 3, 5, 10, 15)]
        assert scores == sorted(scores)
        assert scores[0] < scores[-1]

    def test_ideal_portfolio_scores_ten(self):
        result = compute_diversification([0.05] * 20, [0.1] * 10)
        assert result.score == pytest.approx(10.0)
        assert result.holdings == 20

    def test_single_holding_single_sector_scores_zero(self):
        assert compute_diversification([1.0], [1.0]).score == 0.0

    def test_percent_scale_matches_fractions(self):
        a = compute_diversification([60, 40], [100])
        b = compute_diversification([0.6, 0.4], [1.0])
        assert a.score == pytest.approx(b.score)
        assert a.top2_pct == pytest.approx(100.0)

    def test_empty_portfolio(self):
        result = compute_diversification([], [])
        assert result.score == 0.0
        assert result.holdings == 0
