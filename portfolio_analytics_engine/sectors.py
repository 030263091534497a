"""Sector classification and portfolio-vs-benchmark sector allocation.

Three concerns live here:

* ``SectorResolver`` answers ``sector_for(ticker)`` without blocking. It
  owns a TTL cache and at most one in-flight provider lookup per ticker.
* Benchmark sector targets come from a proxy fund's sector breakdown.
  Provider payloads arrive in several shapes; ``parse_sector_weightings``
  tags each shape and ``normalize_sector_targets`` maps it onto the
  canonical sector set. Anything unusable falls back to a static table.
* ``build_sector_allocations`` merges portfolio and benchmark weights into
  ``SectorAllocation`` rows that sum to 100.
"""

from __future__ import annotations

import math
import re
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from portfolio_analytics_engine import config
from portfolio_analytics_engine._logging import log_critical_alert, portfolio_logger
from portfolio_analytics_engine._vendor import _to_float
from portfolio_analytics_engine.constants import (
    BENCHMARK_PROXIES,
    BUILTIN_SECTORS,
    DEFAULT_SECTOR_COLOR,
    FALLBACK_SECTOR_TARGETS,
    OTHER_SECTOR,
    SECTOR_COLOR_PALETTE,
    SECTOR_COLORS,
    SECTOR_KEY_ALIASES,
    SECTOR_NAME_ALIASES,
)
from portfolio_analytics_engine.data_objects import SectorAllocation


# ── name normalization ────────────────────────────────────────────────────────

def normalize_sector_name(raw: Optional[str]) -> str:
    """Map a provider label onto the canonical set; unknown labels pass through."""
    if not raw or not str(raw).strip():
        return OTHER_SECTOR
    label = str(raw).strip()
    return SECTOR_NAME_ALIASES.get(label.lower(), label)


def sector_key_to_name(raw_key: Optional[str]) -> str:
    """Map compact provider keys (``financialServices``, ``realestate``)."""
    if not raw_key:
        return OTHER_SECTOR
    compact = re.sub(r"[^a-zA-Z]", "", str(raw_key)).lower()
    return SECTOR_KEY_ALIASES.get(compact) or normalize_sector_name(raw_key)


def _classify_fund_text(text: str) -> str:
    text = text.lower()
    if any(word in text for word in ("treasury", "government bond", "govt")):
        return "Government Bonds"
    if any(word in text for word in ("bond", "fixed income", "aggregate", "credit")):
        return "Fixed Income"
    if any(word in text for word in ("gold", "silver", "commodit", "precious metal")):
        return "Commodities"
    if any(word in text for word in ("reit", "real estate")):
        return "Real Estate"
    return "ETF"


def classify_profile(profile: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Sector label for a provider profile, or None when nothing usable.

    Funds and non-equity instruments rarely carry a sector; they are
    classified by quote type and, for ETFs, by their category/name text.
    """
    if not profile:
        return None
    quote_type = str(profile.get("quote_type") or "").upper()

    if quote_type == "ETF":
        text = " ".join(str(profile.get(k) or "") for k in ("category", "name"))
        return _classify_fund_text(text)
    if quote_type == "MUTUALFUND":
        return "Mutual Fund"
    if quote_type == "CURRENCY":
        return "Currency"
    if quote_type == "CRYPTOCURRENCY":
        return "Digital Assets"
    if quote_type == "MONEYMARKET":
        return "Cash & Cash Equivalents"
    if quote_type == "INDEX":
        return "Index"

    sector = profile.get("sector")
    if sector and str(sector).strip():
        return normalize_sector_name(sector)
    return None


def builtin_sector(ticker: str) -> Optional[str]:
    """Builtin table lookup; ``BRK.B``-style class suffixes fall back to the root."""
    symbol = (ticker or "").strip().upper()
    if not symbol:
        return None
    if symbol in BUILTIN_SECTORS:
        return BUILTIN_SECTORS[symbol]
    root = re.split(r"[.\-]", symbol, maxsplit=1)[0]
    return BUILTIN_SECTORS.get(root)


# ── resolver ──────────────────────────────────────────────────────────────────

@dataclass
class _CacheEntry:
    sector: str
    fetched_at: float


class SectorResolver:
    """
    Ticker → sector lookup backed by overrides, a TTL cache and background refresh.

    ``sector_for`` never waits on the network: a miss returns "Other" (a
    stale hit returns the stale label) and schedules a refresh. Concurrent
    callers for the same ticker share one in-flight future.

    Example:
        resolver = SectorResolver(gateway)
        resolver.warm(["AAPL", "XOM"], timeout=5)
        resolver.sector_for("XOM")   # "Energy"
    """

    def __init__(
        self,
        gateway=None,
        *,
        ttl_seconds: Optional[float] = None,
        max_workers: Optional[int] = None,
        overrides: Optional[Mapping[str, str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._gateway = gateway
        self.ttl_seconds = float(ttl_seconds if ttl_seconds is not None else config.SECTOR_CACHE["ttl_seconds"])
        self._max_workers = int(max_workers if max_workers is not None else config.SECTOR_CACHE["max_workers"])
        self._overrides = {k.strip().upper(): normalize_sector_name(v) for k, v in (overrides or {}).items()}
        self._clock = clock
        self._lock = threading.Lock()
        self._cache: Dict[str, _CacheEntry] = {}
        self._inflight: Dict[str, Future] = {}
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def gateway(self):
        if self._gateway is None:
            from portfolio_analytics_engine.providers import get_market_data_gateway

            self._gateway = get_market_data_gateway()
        return self._gateway

    def _get_executor(self) -> ThreadPoolExecutor:
        # caller holds self._lock
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="sector-resolver")
        return self._executor

    def _static_sector(self, symbol: str) -> Optional[str]:
        return self._overrides.get(symbol) or builtin_sector(symbol)

    def _is_fresh(self, entry: _CacheEntry) -> bool:
        return (self._clock() - entry.fetched_at) < self.ttl_seconds

    def sector_for(self, ticker: str) -> str:
        symbol = (ticker or "").strip().upper()
        if not symbol:
            return OTHER_SECTOR
        static = self._static_sector(symbol)
        if static:
            return static

        with self._lock:
            entry = self._cache.get(symbol)
        if entry is not None and self._is_fresh(entry):
            return entry.sector

        self.refresh(symbol)
        return entry.sector if entry is not None else OTHER_SECTOR

    def cached_sector(self, ticker: str) -> Optional[str]:
        """Cached label regardless of age, without scheduling anything."""
        symbol = (ticker or "").strip().upper()
        with self._lock:
            entry = self._cache.get(symbol)
        return entry.sector if entry is not None else None

    def refresh(self, ticker: str) -> Optional[Future]:
        """Schedule a provider lookup unless one is already running.

        Returns the in-flight future (new or existing); None for tickers
        resolved statically.
        """
        symbol = (ticker or "").strip().upper()
        if not symbol or self._static_sector(symbol):
            return None
        with self._lock:
            existing = self._inflight.get(symbol)
            if existing is not None:
                return existing
            future = self._get_executor().submit(self._lookup, symbol)
            self._inflight[symbol] = future
        return future

    def _lookup(self, symbol: str) -> Optional[str]:
        try:
            sector = classify_profile(self.gateway.fetch_sector_profile(symbol))
        except Exception as exc:
            # not cached: the next sector_for call retries
            portfolio_logger.warning("sector lookup failed for %s: %s: %s", symbol, type(exc).__name__, exc)
            sector = None
            failed = True
        else:
            failed = False

        with self._lock:
            if not failed:
                self._cache[symbol] = _CacheEntry(sector or OTHER_SECTOR, self._clock())
            self._inflight.pop(symbol, None)
        return sector

    def warm(self, tickers: Iterable[str], timeout: Optional[float] = None) -> Dict[str, str]:
        """Refresh every stale or unknown ticker and wait (bounded) for the results."""
        if timeout is None:
            timeout = float(config.SECTOR_CACHE["warm_timeout_seconds"])
        symbols = list(dict.fromkeys((t or "").strip().upper() for t in tickers if t and str(t).strip()))

        pending: List[Future] = []
        for symbol in symbols:
            if self._static_sector(symbol):
                continue
            with self._lock:
                entry = self._cache.get(symbol)
            if entry is not None and self._is_fresh(entry):
                continue
            future = self.refresh(symbol)
            if future is not None:
                pending.append(future)

        if pending:
            done, not_done = wait(pending, timeout=timeout)
            if not_done:
                portfolio_logger.warning("sector warm-up timed out for %d tickers", len(not_done))
        return {symbol: self.sector_for(symbol) for symbol in symbols}

    def invalidate(self, ticker: Optional[str] = None) -> None:
        with self._lock:
            if ticker is None:
                self._cache.clear()
            else:
                self._cache.pop(ticker.strip().upper(), None)

    def shutdown(self, wait_for_pending: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait_for_pending)


_resolver: Optional[SectorResolver] = None
_gateway_resolvers: Dict[int, Tuple[Any, SectorResolver]] = {}
_resolver_lock = threading.Lock()


def set_sector_resolver(resolver: Optional[SectorResolver]) -> None:
    """Install the default resolver; ``None`` also drops every per-gateway resolver."""
    global _resolver
    dropped: List[SectorResolver] = []
    with _resolver_lock:
        _resolver = resolver
        if resolver is None:
            dropped = [r for _, r in _gateway_resolvers.values()]
            _gateway_resolvers.clear()
    for stale in dropped:
        stale.shutdown(wait_for_pending=False)


def get_sector_resolver(gateway=None) -> SectorResolver:
    """Process-wide resolver, one per gateway; ``None`` means the registry gateway."""
    global _resolver
    with _resolver_lock:
        if gateway is None:
            if _resolver is None:
                _resolver = SectorResolver()
            return _resolver
        held = _gateway_resolvers.get(id(gateway))
        if held is None or held[0] is not gateway:
            held = (gateway, SectorResolver(gateway))
            _gateway_resolvers[id(gateway)] = held
        return held[1]


# ── benchmark targets ─────────────────────────────────────────────────────────

def resolve_benchmark_proxy(symbol: str) -> str:
    """Index symbols map to a fund tracking them; other symbols map to themselves."""
    s = (symbol or "").strip().upper()
    return BENCHMARK_PROXIES.get(s, s)


@dataclass(frozen=True)
class NamedWeights:
    """``[{"sector": "Technology", "weight": 0.28}, ...]`` (also name/pct/weightPercentage)."""
    entries: Tuple[Tuple[str, Any], ...]


@dataclass(frozen=True)
class KeyedWeights:
    """``[{"technology": 0.28}, {"realestate": 0.02}, ...]``"""
    entries: Tuple[Tuple[str, Any], ...]


@dataclass(frozen=True)
class MappingWeights:
    """``{"technology": 0.28, "realestate": 0.02}``"""
    entries: Tuple[Tuple[str, Any], ...]


SectorWeightings = Union[NamedWeights, KeyedWeights, MappingWeights]

_WEIGHT_KEYS = ("weight", "pct", "weightPercentage", "weight_percentage")
_NAME_KEYS = ("sector", "name")
_NESTED_KEYS = ("sectorWeightings", "sector_weightings")


def _weight_field(entry: Mapping[str, Any]) -> Tuple[bool, Any]:
    for key in _WEIGHT_KEYS:
        if key in entry:
            return True, entry[key]
    return False, None


def parse_sector_weightings(payload: Any) -> Optional[SectorWeightings]:
    """Tag a provider payload with its shape; None when the shape is unknown."""
    if isinstance(payload, Mapping):
        for key in _NESTED_KEYS:
            if key in payload:
                return parse_sector_weightings(payload[key])
        # quoteSummary-style: prefer topHoldings, then fundProfile
        containers = [payload.get(c) for c in ("topHoldings", "fundProfile") if isinstance(payload.get(c), Mapping)]
        if containers:
            for nested in containers:
                parsed = parse_sector_weightings(nested)
                if parsed is not None:
                    return parsed
            return None
        entries = tuple(
            (str(k), v) for k, v in payload.items()
            if not isinstance(v, (Mapping, list, tuple)) and _to_float(v) is not None
        )
        return MappingWeights(entries) if entries else None

    if isinstance(payload, (list, tuple)) and payload:
        dicts = [e for e in payload if isinstance(e, Mapping)]
        if not dicts:
            return None
        named = []
        for entry in dicts:
            has_weight, weight = _weight_field(entry)
            name = next((entry[k] for k in _NAME_KEYS if k in entry), None)
            if has_weight and name is not None:
                named.append((str(name), weight))
        if named:
            return NamedWeights(tuple(named))
        keyed = [next(iter(entry.items())) for entry in dicts if len(entry) == 1]
        if keyed:
            return KeyedWeights(tuple((str(k), v) for k, v in keyed))
    return None


def _weight_number(value: Any) -> Tuple[Optional[float], bool]:
    """(number, explicitly percent) for one raw weight."""
    explicit_percent = isinstance(value, str) and value.strip().endswith("%")
    return _to_float(value), explicit_percent


def _payload_is_fractional(numbers: Iterable[float]) -> bool:
    # one unit per payload: fractions only when every bare weight fits in [0, 1]
    values = list(numbers)
    return bool(values) and all(v <= 1 for v in values) and sum(values) <= 1.5


def sector_weight_pairs(parsed: SectorWeightings) -> List[Tuple[str, float]]:
    """(canonical sector, percent) pairs for a tagged payload."""
    if isinstance(parsed, NamedWeights):
        namer = normalize_sector_name
    else:
        namer = sector_key_to_name
    rows = []
    for raw_name, raw_weight in parsed.entries:
        number, explicit_percent = _weight_number(raw_weight)
        if number is None or number < 0:
            continue
        rows.append((namer(raw_name), number, explicit_percent))
    scale = 100.0 if _payload_is_fractional(n for _, n, explicit in rows if not explicit) else 1.0
    return [(name, number if explicit else number * scale) for name, number, explicit in rows]


def normalize_sector_targets(pairs: Iterable[Tuple[str, float]]) -> Optional[Dict[str, float]]:
    """Aggregate per sector and rescale to sum to 100; None when nothing is positive."""
    totals: Dict[str, float] = {}
    for sector, pct in pairs:
        totals[sector or OTHER_SECTOR] = totals.get(sector or OTHER_SECTOR, 0.0) + pct
    totals = {k: v for k, v in totals.items() if v > 0}
    total = sum(totals.values())
    if total <= 0:
        return None
    return {k: v / total * 100.0 for k, v in totals.items()}


def resolve_benchmark_targets(benchmark_symbol: str, gateway=None) -> Tuple[Dict[str, float], str]:
    """Benchmark sector weights in percent and where they came from.

    Returns ``(targets, "provider")`` or ``(fallback table, "fallback")``;
    never raises for provider problems.
    """
    proxy = resolve_benchmark_proxy(benchmark_symbol)
    try:
        if gateway is None:
            from portfolio_analytics_engine.providers import get_market_data_gateway

            gateway = get_market_data_gateway()
        payload = gateway.fetch_sector_weightings(proxy)
        parsed = parse_sector_weightings(payload)
        targets = normalize_sector_targets(sector_weight_pairs(parsed)) if parsed is not None else None
        if targets:
            return targets, "provider"
        portfolio_logger.warning("unusable sector weightings for %s (proxy %s)", benchmark_symbol, proxy)
    except Exception as exc:
        log_critical_alert(
            "benchmark_sectors",
            "low",
            f"Sector weightings unavailable for {proxy}",
            "using fallback sector targets",
            {"error": f"{type(exc).__name__}: {exc}"},
        )
    return dict(FALLBACK_SECTOR_TARGETS), "fallback"


# ── colors ────────────────────────────────────────────────────────────────────

def sector_color(sector: Optional[str]) -> str:
    """Fixed color for known sectors; a stable palette pick for anything else."""
    s = (sector or "").strip().lower()
    if not s:
        return DEFAULT_SECTOR_COLOR
    for key, color in SECTOR_COLORS.items():
        if s == key or key in s:
            return color
    h = 0
    for ch in s:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return SECTOR_COLOR_PALETTE[h % len(SECTOR_COLOR_PALETTE)]


# ── allocation ────────────────────────────────────────────────────────────────

def _round_to_total(values: Mapping[str, float], total: float, digits: int = 1) -> Dict[str, float]:
    """Round so the rounded values add up to ``total`` (largest remainder)."""
    scale = 10 ** digits
    scaled = {k: v * scale for k, v in values.items()}
    floors = {k: math.floor(v) for k, v in scaled.items()}
    shortfall = int(round(total * scale)) - sum(floors.values())
    order = sorted(scaled, key=lambda k: (-(scaled[k] - floors[k]), k))
    for k in order[: max(shortfall, 0)]:
        floors[k] += 1
    return {k: floors[k] / scale for k in values}


def sector_weight_totals(weights_by_ticker: Mapping[str, float], sector_by_ticker: Mapping[str, str]) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for ticker, weight in weights_by_ticker.items():
        sector = sector_by_ticker.get(ticker) or OTHER_SECTOR
        totals[sector] = totals.get(sector, 0.0) + weight
    return totals


def build_sector_allocations(
    weights_by_ticker: Mapping[str, float],
    sector_by_ticker: Mapping[str, str],
    targets: Mapping[str, float],
) -> List[SectorAllocation]:
    """Portfolio sector weights (percent, 1 dp, summing to 100) next to benchmark targets.

    ``weights_by_ticker`` may be fractions or any positive scale; they are
    renormalized. Benchmark sectors without holdings appear at 0.
    """
    totals = sector_weight_totals(weights_by_ticker, sector_by_ticker)
    grand_total = sum(v for v in totals.values() if v > 0)
    if grand_total > 0:
        raw = {k: max(v, 0.0) / grand_total * 100.0 for k, v in totals.items()}
        allocations = _round_to_total(raw, 100.0)
    else:
        allocations = {}

    rows = []
    for sector in list(allocations) + [s for s in targets if s not in allocations]:
        target = float(targets.get(sector, 0.0))
        allocation = allocations.get(sector, 0.0)
        if sector not in allocations and target <= 0:
            continue
        rows.append(
            SectorAllocation(
                sector=sector,
                allocation_pct=allocation,
                target_pct=target,
                color_hint=sector_color(sector),
            )
        )
    rows.sort(key=lambda r: (-r.allocation_pct, -r.target_pct, r.sector))
    return rows
