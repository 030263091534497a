import json
from datetime import date

import pytest

from core.portfolio_health import HEALTH_WEIGHTS, compute_portfolio_health, score_from_target_range
from core.result_objects import SnapshotResult, _abbreviate_label, _format_rows_as_text
from core.snapshot_flags import generate_snapshot_flags
from portfolio_analytics_engine.data_objects import Holding
from portfolio_analytics_engine.providers import set_market_data_gateway
from portfolio_analytics_engine.snapshot import compute_snapshot, empty_snapshot
from run_snapshot import main, run_snapshot
from tests.fakes import FakeGateway, month_end_series


AS_OF = date(2024, 6, 30)


def _stressed_payload():
    return {
        "holdings": [{"ticker": "TSLA", "risk_bucket": "High"}],
        "metrics": {
            "has_benchmark": True,
            "portfolio_return_pct": -10.0,
            "benchmark_return_pct": 5.0,
            "max_drawdown_pct": 25.0,
        },
        "risk": {
            "concentration": {"level": "High", "largest_position_pct": 100.0},
            "diversification": {"score": 1.0},
            "beta": {"level": "High", "value": 1.6},
        },
        "meta": {
            "benchmark_symbol": "^GSPC",
            "data_quality": {"sector_target_source": "fallback", "missing_quotes": ["TSLA"]},
        },
        "dividends": {"total_income": 12.5, "year": 2024},
    }


def _trending_holdings():
    return [
        Holding("AAPL", shares=10, purchase_price=150.0),
        Holding("JNJ", shares=20, purchase_price=160.0),
        Holding("XOM", shares=30, purchase_price=100.0),
    ]


class TestSnapshotFlags:
    """Severity-tagged interpretation of a serialized snapshot."""

    def test_empty_snapshot(self):
        flags = generate_snapshot_flags({"holdings": []})
        assert [f["flag"] for f in flags] == ["no_holdings"]
        assert flags[0]["severity"] == "error"

    def test_stressed_portfolio(self):
        flags = generate_snapshot_flags(_stressed_payload())
        names = {f["flag"] for f in flags}
        assert names == {
            "high_concentration",
            "low_diversification",
            "high_beta",
            "high_risk_holdings",
            "deep_drawdown",
            "underperforming_benchmark",
            "fallback_sector_targets",
            "missing_quotes",
            "dividend_income",
        }
        order = {"error": 0, "warning": 1, "info": 2, "success": 3}
        severities = [order[f["severity"]] for f in flags]
        assert severities == sorted(severities)
        assert flags[-1]["flag"] == "dividend_income"

    def test_missing_benchmark_and_outperformance(self):
        payload = _stressed_payload()
        payload["metrics"]["has_benchmark"] = False
        names = {f["flag"] for f in generate_snapshot_flags(payload)}
        assert "missing_benchmark" in names
        assert "underperforming_benchmark" not in names

        payload["metrics"].update(has_benchmark=True, portfolio_return_pct=9.0)
        flags = {f["flag"]: f for f in generate_snapshot_flags(payload)}
        assert flags["outperforming_benchmark"]["relative_return_pct"] == 4.0


class TestPortfolioHealth:
    def test_target_range(self):
        assert score_from_target_range(12, 10, 15, 5, 35) == 1.0
        assert score_from_target_range(7.5, 10, 15, 5, 35) == 0.5
        assert score_from_target_range(25, 10, 15, 5, 35) == 0.5
        assert score_from_target_range(40, 10, 15, 5, 35) == 0.0

    def test_components_and_bounds(self, trending_gateway):
        payload = compute_snapshot(_trending_holdings(), gateway=trending_gateway, as_of=AS_OF).to_dict()
        health = compute_portfolio_health(payload)
        assert 0 <= health["score"] <= 100
        assert [c["key"] for c in health["components"]] == list(HEALTH_WEIGHTS)
        assert sum(c["weight"] for c in health["components"]) == pytest.approx(1.0)
        assert health["summary_metrics"]["holdings_count"] == 3
        assert health["summary_metrics"]["has_meaningful_cost_basis"] is True

    def test_empty_payload(self):
        health = compute_portfolio_health({})
        assert health["summary_metrics"]["holdings_count"] == 0
        assert health["summary_metrics"]["total_return_pct"] is None
        assert len(health["components"]) == 4

    def test_relative_return_drivers(self):
        health = compute_portfolio_health(
            {"metrics": {"portfolio_return_pct": 12.0, "benchmark_return_pct": 8.0}}
        )
        assert "Outperforming benchmark by 4.0pp" in health["drivers"]["positives"]


class TestSnapshotResult:
    """API payload and CLI report."""

    def test_api_response(self, trending_gateway):
        snapshot = compute_snapshot(_trending_holdings(), gateway=trending_gateway, as_of=AS_OF)
        response = SnapshotResult.from_snapshot(snapshot, portfolio_name="core").to_api_response()
        assert response["portfolio_name"] == "core"
        assert {"flags", "health", "analysis_date", "metrics", "holdings"} <= set(response)
        json.dumps(response)

    def test_cli_report(self, trending_gateway):
        snapshot = compute_snapshot(_trending_holdings(), gateway=trending_gateway, as_of=AS_OF)
        report = SnapshotResult.from_snapshot(snapshot, portfolio_name="core").to_cli_report()
        assert "Portfolio Analytics Snapshot" in report
        assert "Sector Allocation" in report
        for ticker in ("AAPL", "JNJ", "XOM"):
            assert ticker in report

    def test_empty_snapshot_report(self):
        result = SnapshotResult.from_snapshot(empty_snapshot("^GSPC", AS_OF))
        assert result.flags[0]["flag"] == "no_holdings"
        assert "(empty)" in result.to_cli_report()

    def test_helpers(self):
        assert _abbreviate_label("Consumer Discretionary", 20, {"Consumer Discretionary": "Cons Disc"}) == "Cons Disc"
        assert len(_abbreviate_label("Very Long Sector Name Here", 12)) <= 12
        lines = _format_rows_as_text(["A", "B"], [["x", "1"]] * 3, max_rows=2)
        assert lines[-1] == "… showing 2 of 3 rows"


@pytest.fixture
def portfolio_file(tmp_path):
    path = tmp_path / "portfolio.yaml"
    path.write_text("name: flat\nholdings:\n  AAPL: 0.6\n  MSFT: 0.4\n")
    return str(path)


@pytest.fixture
def flat_gateway():
    gateway = FakeGateway(
        quotes={"AAPL": 100.0, "MSFT": 100.0},
        monthly={s: month_end_series([100] * 13) for s in ("AAPL", "MSFT", "^GSPC")},
    )
    set_market_data_gateway(gateway)
    return gateway


class TestRunSnapshot:
    """Dual-mode CLI entrypoint."""

    def test_return_data(self, portfolio_file, flat_gateway):
        result = run_snapshot(portfolio_file, return_data=True)
        assert isinstance(result, SnapshotResult)
        assert result.portfolio_name == "flat"
        assert result.snapshot.meta.benchmark_symbol == "^GSPC"

    def test_json_output(self, portfolio_file, flat_gateway, capsys):
        assert main(["--portfolio", portfolio_file, "--json", "--no-dividends"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["dividends"] is None
        assert {h["ticker"] for h in payload["holdings"]} == {"AAPL", "MSFT"}

    def test_report_output(self, portfolio_file, flat_gateway, capsys):
        assert main(["--portfolio", portfolio_file, "--benchmark", "^gspc", "--window", "trailing_12m"]) == 0
        out = capsys.readouterr().out
        assert "Window: trailing_12m" in out

    def test_provider_flag_updates_config(self, portfolio_file, flat_gateway, restore_config):
        assert main(["--portfolio", portfolio_file, "--provider", "yahoo"]) == 0
        assert restore_config.MARKET_DATA_PROVIDER == "yahoo"

    def test_missing_file(self, tmp_path, capsys):
        assert main(["--portfolio", str(tmp_path / "missing.yaml")]) == 1
        assert "Snapshot failed" in capsys.readouterr().err
