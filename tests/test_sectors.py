import threading

import pytest

from portfolio_analytics_engine.constants import CANONICAL_SECTORS, FALLBACK_SECTOR_TARGETS
from portfolio_analytics_engine.sectors import (
    KeyedWeights,
    MappingWeights,
    NamedWeights,
    SectorResolver,
    build_sector_allocations,
    builtin_sector,
    classify_profile,
    get_sector_resolver,
    normalize_sector_name,
    normalize_sector_targets,
    parse_sector_weightings,
    resolve_benchmark_proxy,
    resolve_benchmark_targets,
    sector_color,
    sector_key_to_name,
    sector_weight_pairs,
    set_sector_resolver,
)
from tests.conftest import SPY_WEIGHTINGS
from tests.fakes import FakeGateway


class TestClassification:
    """Profile and name classification."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Industrials", "Industrial"),
            ("Consumer Cyclical", "Consumer Discretionary"),
            ("Consumer Defensive", "Consumer Staples"),
            ("Basic Materials", "Materials"),
            ("Health Care", "Healthcare"),
            ("Space Tourism", "Space Tourism"),
            ("", "Other"),
            (None, "Other"),
        ],
    )
    def test_normalize_sector_name(self, raw, expected):
        assert normalize_sector_name(raw) == expected

    def test_compact_keys(self):
        assert sector_key_to_name("financialServices") == "Financial Services"
        assert sector_key_to_name("realestate") == "Real Estate"
        assert sector_key_to_name("consumer_cyclical") == "Consumer Discretionary"

    def test_equity_profile_uses_sector(self):
        assert classify_profile({"quote_type": "EQUITY", "sector": "Consumer Cyclical"}) == "Consumer Discretionary"

    def test_equity_without_sector_is_unknown(self):
        assert classify_profile({"quote_type": "EQUITY", "sector": ""}) is None
        assert classify_profile({}) is None
        assert classify_profile(None) is None

    @pytest.mark.parametrize(
        "profile,expected",
        [
            ({"quote_type": "ETF", "name": "iShares Core US Aggregate Bond ETF"}, "Fixed Income"),
            ({"quote_type": "ETF", "category": "Long Government", "name": "20+ Year Treasury"}, "Government Bonds"),
            ({"quote_type": "ETF", "name": "SPDR Gold Shares"}, "Commodities"),
            ({"quote_type": "ETF", "name": "Vanguard Total Stock Market"}, "ETF"),
            ({"quote_type": "MUTUALFUND"}, "Mutual Fund"),
            ({"quote_type": "CRYPTOCURRENCY"}, "Digital Assets"),
        ],
    )
    def test_fund_and_non_equity_types(self, profile, expected):
        assert classify_profile(profile) == expected

    def test_builtin_table_and_class_suffix(self):
        assert builtin_sector("aapl") == "Technology"
        assert builtin_sector("JPM-PC") == "Financial Services"
        assert builtin_sector("ZZZZ") is None


class TestParseSectorWeightings:
    """Provider payload shapes."""

    def test_named_list_with_percent_strings(self):
        parsed = parse_sector_weightings(SPY_WEIGHTINGS)
        assert isinstance(parsed, NamedWeights)
        pairs = dict(sector_weight_pairs(parsed))
        assert pairs["Technology"] == pytest.approx(31.5)
        assert pairs["Industrial"] == pytest.approx(8.5)

    def test_keyed_list_of_fractions(self):
        parsed = parse_sector_weightings([{"technology": 0.3}, {"realestate": 0.7}])
        assert isinstance(parsed, KeyedWeights)
        assert sector_weight_pairs(parsed) == [("Technology", pytest.approx(30.0)), ("Real Estate", pytest.approx(70.0))]

    def test_flat_mapping(self):
        parsed = parse_sector_weightings({"technology": 0.6, "financialServices": 0.4})
        assert isinstance(parsed, MappingWeights)
        assert dict(sector_weight_pairs(parsed)) == {
            "Technology": pytest.approx(60.0),
            "Financial Services": pytest.approx(40.0),
        }

    def test_numeric_percent_payload_keeps_small_sectors_small(self):
        payload = [
            {"sector": "Technology", "weightPercentage": 59.5},
            {"sector": "Communication Services", "weightPercentage": 15.0},
            {"sector": "Consumer Cyclical", "weightPercentage": 14.0},
            {"sector": "Healthcare", "weightPercentage": 6.0},
            {"sector": "Industrials", "weightPercentage": 4.0},
            {"sector": "Energy", "weightPercentage": 0.5},
            {"sector": "Real Estate", "weightPercentage": 0.3},
            {"sector": "Financial Services", "weightPercentage": 0.7},
        ]
        pairs = dict(sector_weight_pairs(parse_sector_weightings(payload)))
        assert pairs["Energy"] == pytest.approx(0.5)
        assert pairs["Technology"] == pytest.approx(59.5)

        targets = normalize_sector_targets(pairs.items())
        assert targets["Energy"] == pytest.approx(0.5)
        assert targets["Real Estate"] == pytest.approx(0.3)
        assert targets["Financial Services"] == pytest.approx(0.7)

    def test_fraction_payload_with_explicit_percent_entry(self):
        parsed = parse_sector_weightings({"technology": 0.6, "energy": "40%"})
        assert dict(sector_weight_pairs(parsed)) == {
            "Technology": pytest.approx(60.0),
            "Energy": pytest.approx(40.0),
        }

    def test_nested_containers(self):
        payload = {"topHoldings": {"sectorWeightings": [{"technology": 0.5}, {"energy": 0.5}]}}
        parsed = parse_sector_weightings(payload)
        assert isinstance(parsed, KeyedWeights)
        assert dict(sector_weight_pairs(parsed)) == {"Technology": 50.0, "Energy": 50.0}

    @pytest.mark.parametrize("payload", ["garbage", [], [1, 2], {"topHoldings": {}}, None])
    def test_unknown_shapes(self, payload):
        assert parse_sector_weightings(payload) is None

    def test_normalize_targets_rescales_to_100(self):
        targets = normalize_sector_targets([("Technology", 30.0), ("Energy", 10.0), ("Technology", 10.0)])
        assert targets == {"Technology": pytest.approx(80.0), "Energy": pytest.approx(20.0)}

    def test_normalize_targets_without_positive_weight(self):
        assert normalize_sector_targets([("Technology", 0.0)]) is None


class TestBenchmarkTargets:
    def test_index_symbols_use_fund_proxy(self):
        assert resolve_benchmark_proxy("^gspc") == "SPY"
        assert resolve_benchmark_proxy("VTI") == "VTI"

    def test_provider_targets(self):
        gateway = FakeGateway(sector_weightings={"SPY": SPY_WEIGHTINGS})
        targets, source = resolve_benchmark_targets("^GSPC", gateway)
        assert source == "provider"
        assert sum(targets.values()) == pytest.approx(100.0)
        assert targets["Materials"] == pytest.approx(2.3)
        assert gateway.calls[("fetch_sector_weightings", "SPY")] == 1

    def test_provider_failure_falls_back(self):
        gateway = FakeGateway(fail={"fetch_sector_weightings"})
        targets, source = resolve_benchmark_targets("^GSPC", gateway)
        assert source == "fallback"
        assert targets == FALLBACK_SECTOR_TARGETS

    def test_unusable_payload_falls_back(self):
        gateway = FakeGateway(sector_weightings={"SPY": "n/a"})
        _, source = resolve_benchmark_targets("^GSPC", gateway)
        assert source == "fallback"


class TestSectorAllocations:
    """Portfolio vs benchmark sector rows."""

    def test_allocations_sum_to_100_and_include_benchmark_only_sectors(self):
        rows = build_sector_allocations(
            {"AAPL": 0.5, "MSFT": 0.2, "XOM": 0.3},
            {"AAPL": "Technology", "MSFT": "Technology", "XOM": "Energy"},
            FALLBACK_SECTOR_TARGETS,
        )
        by_sector = {r.sector: r for r in rows}
        assert sum(r.allocation_pct for r in rows) == pytest.approx(100.0)
        assert by_sector["Technology"].allocation_pct == pytest.approx(70.0)
        assert by_sector["Healthcare"].allocation_pct == 0.0
        assert by_sector["Healthcare"].target_pct == 13.0
        assert "Other" not in by_sector
        assert rows[0].sector == "Technology"
        assert by_sector["Energy"].active_tilt == pytest.approx(25.0)

    def test_rounding_keeps_the_total(self):
        rows = build_sector_allocations(
            {"A": 1.0, "B": 1.0, "C": 1.0},
            {"A": "Technology", "B": "Energy", "C": "Utilities"},
            {},
        )
        assert sum(r.allocation_pct for r in rows) == pytest.approx(100.0)
        assert sorted(r.allocation_pct for r in rows) == pytest.approx([33.3, 33.3, 33.4])

    def test_unknown_sector_gets_stable_color(self):
        assert sector_color("Space Tourism") == sector_color("space tourism")
        assert sector_color("Technology").startswith("#")

    def test_canonical_sectors_are_fixed_points_with_fixed_colors(self):
        for sector in CANONICAL_SECTORS:
            assert normalize_sector_name(sector) == sector
            assert sector_color(sector) == sector_color(sector.upper())
        assert len({sector_color(s) for s in CANONICAL_SECTORS}) == len(CANONICAL_SECTORS)


class _BlockingGateway(FakeGateway):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.release = threading.Event()

    def fetch_sector_profile(self, symbol):
        self.release.wait(5)
        return super().fetch_sector_profile(symbol)


class TestSectorResolver:
    """Non-blocking lookups, TTL cache and in-flight de-duplication."""

    def test_static_sectors_skip_the_provider(self):
        gateway = FakeGateway()
        resolver = SectorResolver(gateway, overrides={"abc": "industrials"})
        assert resolver.sector_for("ABC") == "Industrial"
        assert resolver.sector_for("msft") == "Technology"
        assert not gateway.calls
        resolver.shutdown()

    def test_warm_resolves_unknown_tickers(self):
        gateway = FakeGateway(profiles={"NEWCO": {"quote_type": "EQUITY", "sector": "Energy"}})
        resolver = SectorResolver(gateway)
        assert resolver.warm(["newco"], timeout=5) == {"NEWCO": "Energy"}
        assert resolver.sector_for("NEWCO") == "Energy"
        assert gateway.calls[("fetch_sector_profile", "NEWCO")] == 1
        resolver.shutdown()

    def test_miss_returns_other_without_waiting(self):
        gateway = _BlockingGateway(profiles={"NEWCO": {"sector": "Utilities"}})
        resolver = SectorResolver(gateway)
        try:
            assert resolver.sector_for("NEWCO") == "Other"
        finally:
            gateway.release.set()
            resolver.shutdown()

    def test_concurrent_refreshes_share_one_lookup(self):
        gateway = _BlockingGateway(profiles={"NEWCO": {"sector": "Utilities"}})
        resolver = SectorResolver(gateway)
        first = resolver.refresh("NEWCO")
        second = resolver.refresh("NEWCO")
        assert first is second
        gateway.release.set()
        assert first.result(timeout=5) == "Utilities"
        assert gateway.calls[("fetch_sector_profile", "NEWCO")] == 1
        resolver.shutdown()

    def test_stale_entries_are_served_then_refreshed(self):
        now = [0.0]
        gateway = FakeGateway(profiles={"NEWCO": {"sector": "Energy"}})
        resolver = SectorResolver(gateway, ttl_seconds=10, clock=lambda: now[0])
        resolver.warm(["NEWCO"], timeout=5)

        gateway.profiles["NEWCO"] = {"sector": "Utilities"}
        now[0] = 5.0
        assert resolver.sector_for("NEWCO") == "Energy"
        assert gateway.calls[("fetch_sector_profile", "NEWCO")] == 1

        now[0] = 20.0
        assert resolver.sector_for("NEWCO") == "Energy"
        assert resolver.warm(["NEWCO"], timeout=5) == {"NEWCO": "Utilities"}
        resolver.shutdown()

    def test_failed_lookup_is_not_cached(self):
        gateway = FakeGateway(fail={"fetch_sector_profile"})
        resolver = SectorResolver(gateway)
        assert resolver.warm(["NEWCO"], timeout=5) == {"NEWCO": "Other"}
        assert resolver.cached_sector("NEWCO") is None
        resolver.shutdown()

    def test_registry_keeps_one_resolver_per_gateway(self):
        gateway, other = FakeGateway(), FakeGateway()
        resolver = get_sector_resolver(gateway)
        assert get_sector_resolver(gateway) is resolver
        assert get_sector_resolver(other) is not resolver
        assert resolver.gateway is gateway
        assert get_sector_resolver() is not resolver

        set_sector_resolver(None)
        assert get_sector_resolver(gateway) is not resolver
