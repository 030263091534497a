import pandas as pd
import pytest

from portfolio_analytics_engine.returns import (
    align_dates,
    align_series,
    calc_period_returns,
    has_sufficient_points,
    rebase_to_100,
    recent_window,
    weighted_index,
)
from tests.fakes import month_end_series


class TestCalcPeriodReturns:
    """Simple period returns from closes."""

    def test_length_is_one_shorter(self):
        returns = calc_period_returns([100.0, 110.0, 99.0])
        assert len(returns) == 2
        assert returns.iloc[0] == pytest.approx(0.10)
        assert returns.iloc[1] == pytest.approx(-0.10)

    def test_keeps_dates_of_the_later_close(self):
        closes = month_end_series([100, 105, 110])
        returns = calc_period_returns(closes)
        assert list(returns.index) == list(closes.index[1:])

    def test_single_close_has_no_returns(self):
        assert calc_period_returns([100.0]).empty


class TestAlignDates:
    """Intersection alignment across symbols."""

    def test_only_dates_present_everywhere(self):
        a = month_end_series([1, 2, 3, 4, 5], end="2024-05-31")
        b = month_end_series([1, 2, 3], end="2024-04-30")
        c = month_end_series([1, 2, 3, 4], end="2024-05-31").drop(pd.Timestamp("2024-03-31"))

        dates = align_dates([a, b, c])

        assert dates == [pd.Timestamp("2024-02-29"), pd.Timestamp("2024-04-30")]
        for d in dates:
            for s in (a, b, c):
                assert d in s.index

    def test_order_follows_first_series(self):
        a = month_end_series([1, 2, 3])
        b = a.iloc[::-1]
        assert align_dates([a, b]) == list(a.index)

    def test_empty_input(self):
        assert align_dates([]) == []

    def test_align_series_restricts_every_symbol(self):
        aligned = align_series(
            {
                "AAPL": month_end_series([1, 2, 3, 4]),
                "^GSPC": month_end_series([10, 20]),
            }
        )
        assert list(aligned["AAPL"].index) == list(aligned["^GSPC"].index)
        assert list(aligned["AAPL"]) == [3.0, 4.0]


class TestWindows:
    def test_recent_window_takes_the_tail(self):
        assert recent_window([1, 2, 3, 4], 2) == [3, 4]
        assert recent_window([1, 2], 5) == [1, 2]
        assert recent_window([1, 2], 0) == []

    def test_sufficient_points(self):
        assert has_sufficient_points([1, 2])
        assert not has_sufficient_points([1])


class TestRebaseAndWeightedIndex:
    """Normalize-to-100 and the weighted portfolio index."""

    def test_rebase_starts_at_100(self):
        rebased = rebase_to_100(month_end_series([50, 55, 45]))
        assert list(rebased) == pytest.approx([100.0, 110.0, 90.0])

    def test_non_positive_start_contributes_zeros(self):
        rebased = rebase_to_100(month_end_series([0, 55, 45]))
        assert list(rebased) == [0.0, 0.0, 0.0]

    def test_weighted_index_renormalizes(self):
        a = rebase_to_100(month_end_series([100, 110]))
        b = rebase_to_100(month_end_series([100, 90]))
        index = weighted_index({"A": a, "B": b}, {"A": 3.0, "B": 1.0})
        assert list(index) == pytest.approx([100.0, 105.0])

    def test_zero_weights_fall_back_to_equal(self):
        a = rebase_to_100(month_end_series([100, 110]))
        b = rebase_to_100(month_end_series([100, 90]))
        index = weighted_index({"A": a, "B": b}, {"A": 0.0, "B": 0.0})
        assert list(index) == pytest.approx([100.0, 100.0])
