from datetime import date

import pytest

from portfolio_analytics_engine.data_objects import DividendEvent, PeriodBucket
from portfolio_analytics_engine.dividends import (
    _assign_calendar_quarter,
    aggregate_dividends,
    bucket_monthly,
    build_future_projection,
    dividend_events_for_year,
    roll_up_quarterly,
    select_dividend_holdings,
    summarize_dividend_events,
)
from tests.fakes import FakeGateway, dividend_frame


class TestSelection:
    def test_top_positions_by_value_with_shares(self):
        positions = [
            ("KO", 100, 5000.0),
            ("PEP", 50, 8000.0),
            ("CASH", None, 9000.0),
            ("ZERO", 0, 9500.0),
            ("ABBV", 10, 8000.0),
        ]
        assert select_dividend_holdings(positions, 2) == [("ABBV", 10), ("PEP", 50)]

    def test_top_n_zero(self):
        assert select_dividend_holdings([("KO", 1, 1.0)], 0) == []


class TestEventsAndBuckets:
    """Cash events, monthly buckets and the quarterly roll-up."""

    def test_events_use_current_shares_for_the_requested_year(self):
        history = dividend_frame(
            [("2023-12-01", 0.46), ("2024-03-15", 0.50), ("2024-06-14", 0.0), ("2024-06-14", -1.0)]
        )
        events = dividend_events_for_year("KO", history, 100, 2024)
        assert len(events) == 1
        assert events[0].date == date(2024, 3, 15)
        assert events[0].cash_amount == pytest.approx(50.0)
        assert events[0].currency == "USD"

    def test_missing_history(self):
        assert dividend_events_for_year("KO", None, 100, 2024) == []

    def test_calendar_quarter_keys(self):
        assert _assign_calendar_quarter("2026-01") == "Q1_2026"
        assert _assign_calendar_quarter("2026-06") == "Q2_2026"
        assert _assign_calendar_quarter("2026-12") == "Q4_2026"

    def test_monthly_and_quarterly_totals(self):
        events = [
            DividendEvent.from_history("KO", "2024-03-15", 0.5, 100),
            DividendEvent.from_history("PEP", "2024-03-28", 1.0, 20),
            DividendEvent.from_history("KO", "2024-06-14", 0.5, 100),
            DividendEvent.from_history("KO", "2023-12-01", 0.5, 100),
        ]
        monthly = bucket_monthly(events, 2024)
        assert len(monthly) == 12
        assert monthly[2].key == "2024-03"
        assert monthly[2].label == "Mar"
        assert monthly[2].amount == pytest.approx(70.0)
        assert monthly[11].amount == 0.0

        quarterly = roll_up_quarterly(monthly, 2024)
        assert [q.key for q in quarterly] == ["Q1_2024", "Q2_2024", "Q3_2024", "Q4_2024"]
        assert [q.label for q in quarterly] == ["Q1", "Q2", "Q3", "Q4"]
        assert [q.amount for q in quarterly] == pytest.approx([70.0, 50.0, 0.0, 0.0])
        assert sum(q.amount for q in quarterly) == pytest.approx(sum(m.amount for m in monthly))


class TestProjection:
    """Distributed vs reinvested income paths."""

    def test_base_is_average_of_paying_months(self):
        monthly = [PeriodBucket("2024-03", "Mar", 60.0), PeriodBucket("2024-06", "Jun", 40.0)]
        projection = build_future_projection(monthly, 100.0, months=2, monthly_contribution=0.0)
        assert projection.base_monthly_income == pytest.approx(50.0)
        assert projection.points[0].distributed == pytest.approx(50.0 * (1 + 0.01 / 12))
        assert projection.points[1].reinvested == pytest.approx(50.0 * (1 + 0.04 / 12) ** 2)
        assert [p.label for p in projection.points] == ["M1", "M2"]

    def test_contribution_adds_to_reinvested_path(self):
        projection = build_future_projection([], 0.0, months=1, monthly_contribution=1200.0)
        assert projection.base_monthly_income == 25.0
        assert projection.points[0].reinvested == pytest.approx(25.0 * (1 + 0.04 / 12) + 1200.0 * 0.03 / 12)

    def test_reinvested_path_outgrows_distributed(self):
        projection = build_future_projection([PeriodBucket("2024-01", "Jan", 10.0)], 10.0, months=36)
        assert len(projection.points) == 36
        assert projection.total_reinvested > projection.total_distributed

    def test_summary_without_projection(self):
        insights = summarize_dividend_events([], 2024, include_projection=False)
        assert insights.total_income == 0.0
        assert insights.projection is None


class TestAggregateDividends:
    """Concurrent fetch with per-ticker failure isolation."""

    def test_march_payment_lands_in_march_and_q1(self):
        gateway = FakeGateway(dividends={"KO": dividend_frame([("2024-03-15", 0.5)])})
        insights = aggregate_dividends([("KO", 100, 5000.0)], gateway, year=2024, today=date(2024, 6, 30))

        by_month = {b.key: b.amount for b in insights.monthly_totals}
        by_quarter = {b.key: b.amount for b in insights.quarterly_totals}
        assert by_month["2024-03"] == pytest.approx(50.0)
        assert by_quarter["Q1_2024"] == pytest.approx(50.0)
        assert insights.total_income == pytest.approx(50.0)
        assert insights.unavailable == ()

    def test_failed_ticker_is_isolated(self):
        gateway = FakeGateway(
            dividends={"KO": dividend_frame([("2024-03-15", 0.5)]), "PEP": dividend_frame([("2024-01-05", 1.0)])},
            fail={("fetch_dividend_history", "PEP")},
        )
        insights = aggregate_dividends(
            [("KO", 100, 5000.0), ("PEP", 10, 1700.0), ("MSFT", 5, 2000.0)],
            gateway,
            year=2024,
            today=date(2024, 6, 30),
        )
        assert insights.total_income == pytest.approx(50.0)
        assert insights.unavailable == ("MSFT", "PEP")

    def test_year_defaults_to_today(self):
        gateway = FakeGateway(dividends={"KO": dividend_frame([("2023-09-15", 0.5), ("2024-03-15", 0.5)])})
        insights = aggregate_dividends([("KO", 10, 600.0)], gateway, today=date(2024, 6, 30))
        assert insights.year == 2024
        assert insights.total_income == pytest.approx(5.0)

    def test_no_share_positions_skips_fetching(self):
        gateway = FakeGateway()
        insights = aggregate_dividends([("KO", None, 5000.0)], gateway, year=2024, today=date(2024, 6, 30))
        assert insights.total_income == 0.0
        assert not gateway.calls
