"""
Analysis snapshot orchestration.

Agent orientation:
    Canonical entrypoint for one portfolio + benchmark analytics snapshot.
    Start here when a snapshot field looks wrong; each section below maps
    to one block of ``AnalysisSnapshot``.

Called by:
    - ``run_snapshot.run_snapshot`` (CLI)
    - ``core.result_objects.snapshot.SnapshotResult.from_snapshot`` consumers

Primary flow:
    1) Quotes -> market values -> portfolio weights.
    2) Sector labels + benchmark targets -> sector allocation.
    3) Monthly history for benchmark and holdings -> alignment -> metrics.
    4) Provider betas -> reference beta; weights -> concentration.
    5) Daily history + fundamentals -> per-holding risk; dividends; valuation.

Contract notes:
    - Data problems never raise; they degrade to defaults and are listed in
      ``meta.warnings`` / ``meta.data_quality``.
    - Only an empty holdings list yields the explicit empty-state snapshot.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from portfolio_analytics_engine import config
from portfolio_analytics_engine._logging import (
    log_critical_alert,
    log_operation,
    log_portfolio_operation,
    log_timing,
    portfolio_logger,
)
from portfolio_analytics_engine._vendor import _to_float
from portfolio_analytics_engine.concentration import compute_concentration, compute_diversification
from portfolio_analytics_engine.constants import OTHER_SECTOR
from portfolio_analytics_engine.data_objects import (
    AnalysisSnapshot,
    BetaAssessment,
    ConcentrationMetrics,
    DiversificationMetrics,
    EnrichedHolding,
    Holding,
    PerformancePoint,
    RiskBlock,
    SnapshotMeta,
    SnapshotMetrics,
)
from portfolio_analytics_engine.dividends import aggregate_dividends
from portfolio_analytics_engine.fetching import fan_out
from portfolio_analytics_engine.fundamentals import summarize_valuation
from portfolio_analytics_engine.holding_risk import (
    risk_inputs_from_daily_history,
    risk_inputs_from_fundamentals,
    score_holding,
)
from portfolio_analytics_engine.returns import align_dates, rebase_to_100, weighted_index
from portfolio_analytics_engine.risk_metrics import (
    WINDOW_METHODS,
    beta_level,
    compute_performance_metrics,
    estimate_beta,
    weighted_reference_beta,
)
from portfolio_analytics_engine.sectors import (
    SectorResolver,
    build_sector_allocations,
    get_sector_resolver,
    resolve_benchmark_targets,
    sector_weight_totals,
)


REFERENCE_BETA = 1.0


@dataclass(frozen=True)
class _Position:
    holding: Holding
    price: Optional[float]
    quote_available: bool
    market_value: float


def history_periods(window: str, as_of: date) -> int:
    """Monthly closes needed: prior year-end plus each month so far (ytd), or 13."""
    if window == "ytd":
        return as_of.month + 1
    if window == "trailing_12m":
        return 13
    raise ValueError(f"Unknown performance window: {window}")


def _clean_series(series: Any) -> pd.Series:
    if series is None:
        return pd.Series(dtype=float)
    values = pd.Series(series, dtype=float).dropna()
    values = values[values > 0]
    if len(values) and isinstance(values.index, pd.DatetimeIndex):
        values = values[~values.index.duplicated(keep="last")].sort_index()
    return values


def _month_end_index(series: pd.Series) -> pd.Series:
    """Key monthly bars by calendar month end so providers stamping the
    last trading day and ones stamping the first of the month still align."""
    if series.empty or not isinstance(series.index, pd.DatetimeIndex):
        return series
    index = series.index.tz_localize(None) if series.index.tz is not None else series.index
    keyed = pd.Series(series.to_numpy(), index=index.to_period("M").to_timestamp(how="end").normalize())
    return keyed[~keyed.index.duplicated(keep="last")]


def merge_duplicate_holdings(holdings: Sequence[Holding]) -> List[Holding]:
    """Collapse repeated tickers into one line (weights and shares add up)."""
    merged: Dict[str, Holding] = {}
    for h in holdings:
        existing = merged.get(h.ticker)
        if existing is None:
            merged[h.ticker] = h
            continue
        if existing.shares is not None and h.shares is not None:
            shares = existing.shares + h.shares
        else:
            shares = existing.shares if existing.shares is not None else h.shares
        merged[h.ticker] = Holding.from_weight_pct(
            h.ticker,
            existing.weight_pct + h.weight_pct,
            shares=shares,
            purchase_price=existing.purchase_price if existing.purchase_price is not None else h.purchase_price,
        )
    return list(merged.values())


def value_positions(
    holdings: Sequence[Holding],
    quotes: Mapping[str, float],
    notional_per_weight_point: float,
) -> Tuple[List[_Position], Dict[str, float]]:
    """Market value per holding and portfolio weights (fractions summing to 1)."""
    positions = []
    for h in holdings:
        quote = _to_float(quotes.get(h.ticker))
        quote_available = quote is not None and quote > 0
        price = quote if quote_available else h.purchase_price
        if h.has_shares and price is not None:
            value = h.shares * price
        else:
            value = h.weight_pct * notional_per_weight_point
        positions.append(_Position(holding=h, price=price, quote_available=quote_available, market_value=value))

    total = sum(p.market_value for p in positions)
    if total > 0:
        weights = {p.holding.ticker: p.market_value / total for p in positions}
    else:
        weights = {p.holding.ticker: 1.0 / len(positions) for p in positions} if positions else {}
    return positions, weights


def empty_snapshot(benchmark_symbol: str, as_of: Optional[date] = None, window: Optional[str] = None) -> AnalysisSnapshot:
    """Empty-state snapshot: default metrics and risk, no collections."""
    window = window or config.ANALYTICS_DEFAULTS["performance_window"]
    return AnalysisSnapshot(
        holdings=(),
        performance=(),
        sectors=(),
        metrics=SnapshotMetrics(),
        risk=RiskBlock(
            concentration=ConcentrationMetrics(level="Low", largest_position_pct=0.0, top2_pct=0.0, hhi=0.0, effective_holdings=0.0),
            diversification=DiversificationMetrics(score=0.0, holdings=0, top2_pct=0.0, sector_hhi=0.0, effective_holdings=0.0),
            beta=BetaAssessment(level="Medium", value=REFERENCE_BETA, source="default"),
        ),
        meta=SnapshotMeta(
            refreshed_at=datetime.now(timezone.utc),
            benchmark_symbol=benchmark_symbol,
            window=window,
            warnings=(),
            data_quality={"holdings": 0, "as_of": (as_of or date.today()).isoformat()},
        ),
        dividends=None,
        valuation=None,
    )


class AnalysisSnapshotBuilder:
    """
    Builds one ``AnalysisSnapshot`` from holdings and a market data gateway.

    Example:
        builder = AnalysisSnapshotBuilder(gateway, window="ytd")
        snapshot = builder.build(holdings, "^GSPC")
        snapshot.metrics.sharpe_ratio

    A builder holds no per-snapshot state; ``build`` can be called
    repeatedly and from several threads.
    """

    def __init__(
        self,
        gateway=None,
        sector_resolver: Optional[SectorResolver] = None,
        *,
        window: Optional[str] = None,
        as_of: Optional[date] = None,
        include_holding_risk: Optional[bool] = None,
        include_dividends: bool = True,
    ):
        self.window = window or config.ANALYTICS_DEFAULTS["performance_window"]
        if self.window not in WINDOW_METHODS:
            raise ValueError(f"Unknown performance window: {self.window}")
        self._gateway = gateway
        self._sector_resolver = sector_resolver
        self.as_of = as_of
        self.include_holding_risk = (
            config.FETCH_DEFAULTS["include_holding_risk"] if include_holding_risk is None else include_holding_risk
        )
        self.include_dividends = include_dividends

    @property
    def gateway(self):
        if self._gateway is None:
            from portfolio_analytics_engine.providers import get_market_data_gateway

            self._gateway = get_market_data_gateway()
        return self._gateway

    @property
    def sector_resolver(self) -> SectorResolver:
        if self._sector_resolver is None:
            # process-wide cache, one per gateway
            self._sector_resolver = get_sector_resolver(self._gateway)
        return self._sector_resolver

    @log_operation("analysis_snapshot")
    @log_timing(10.0)
    def build(self, holdings: Sequence[Holding], benchmark_symbol: Optional[str] = None) -> AnalysisSnapshot:
        benchmark_symbol = (benchmark_symbol or config.ANALYTICS_DEFAULTS["benchmark_symbol"]).strip().upper()
        as_of = self.as_of or date.today()
        holdings = merge_duplicate_holdings(list(holdings or []))
        if not holdings:
            return empty_snapshot(benchmark_symbol, as_of, self.window)

        started = time.perf_counter()
        gateway = self.gateway
        warnings: List[str] = []
        quality: Dict[str, Any] = {"holdings": len(holdings), "as_of": as_of.isoformat()}
        tickers = [h.ticker for h in holdings]
        max_workers = int(config.FETCH_DEFAULTS["max_workers"])

        # 1) quotes -> values -> weights
        quotes = self._fetch_quotes(gateway, tickers, warnings)
        positions, weights = value_positions(
            holdings, quotes, float(config.ANALYTICS_DEFAULTS["notional_per_weight_point"])
        )
        missing_quotes = [p.holding.ticker for p in positions if not p.quote_available]
        quality["missing_quotes"] = missing_quotes
        if missing_quotes:
            warnings.append(f"No current quote for: {', '.join(missing_quotes)}")

        # 2) sectors
        resolver = self.sector_resolver
        resolver.warm(tickers)
        sector_by_ticker = {t: resolver.sector_for(t) for t in tickers}
        targets, target_source = resolve_benchmark_targets(benchmark_symbol, gateway)
        quality["sector_target_source"] = target_source
        if target_source == "fallback":
            warnings.append(f"Benchmark sector weights unavailable for {benchmark_symbol}; using fallback targets")
        sectors = build_sector_allocations(weights, sector_by_ticker, targets)

        # 3) monthly history, alignment, metrics
        periods = history_periods(self.window, as_of)
        history = fan_out(
            lambda s: gateway.fetch_history(s, periods, "1mo"),
            tickers + [benchmark_symbol],
            max_workers=max_workers,
        )
        monthly = {s: _month_end_index(_clean_series(r.value_or(None))) for s, r in history.items()}
        risk_free_rate = self._fetch_risk_free_rate(gateway, warnings, quality)
        metrics_fields, performance = self._performance_block(
            benchmark_symbol, tickers, monthly, weights, risk_free_rate, warnings, quality
        )

        # 4) reference beta, concentration
        beta_results = fan_out(gateway.fetch_beta, tickers, max_workers=max_workers)
        provider_betas = {t: _to_float(r.value_or(None)) for t, r in beta_results.items()}
        reference = weighted_reference_beta(provider_betas, weights)
        quality["betas_unavailable"] = [t for t, b in provider_betas.items() if b is None]

        metrics = SnapshotMetrics(
            portfolio_beta_reference=reference,
            reference_beta=REFERENCE_BETA,
            beta_difference=reference - REFERENCE_BETA if reference is not None else None,
            risk_free_rate=risk_free_rate,
            **metrics_fields,
        )

        weight_list = [weights[t] for t in tickers]
        sector_fractions = list(sector_weight_totals(weights, sector_by_ticker).values())
        risk = RiskBlock(
            concentration=compute_concentration(weight_list),
            diversification=compute_diversification(weight_list, sector_fractions),
            beta=self._beta_assessment(metrics),
        )

        # 5) per-holding enrichment, dividends, valuation
        fundamentals = fan_out(gateway.fetch_fundamentals, tickers, max_workers=max_workers)
        fundamentals_by_ticker = {t: (r.value_or(None) or {}) for t, r in fundamentals.items()}
        quality["fundamentals_unavailable"] = [t for t, r in fundamentals.items() if not r.ok]

        enriched = self._enrich_holdings(
            positions,
            weights,
            sector_by_ticker,
            provider_betas,
            fundamentals_by_ticker,
            monthly.get(benchmark_symbol, pd.Series(dtype=float)),
            monthly,
            as_of,
            quality,
        )

        dividends = None
        if self.include_dividends:
            dividends = aggregate_dividends(
                [(p.holding.ticker, p.holding.shares, p.market_value) for p in positions],
                gateway,
                year=as_of.year,
                today=as_of,
            )
            if dividends.unavailable:
                warnings.append(f"Dividend history unavailable for: {', '.join(dividends.unavailable)}")

        valuation = summarize_valuation(fundamentals_by_ticker, weights)

        snapshot = AnalysisSnapshot(
            holdings=tuple(enriched),
            performance=tuple(performance),
            sectors=tuple(sectors),
            metrics=metrics,
            risk=risk,
            meta=SnapshotMeta(
                refreshed_at=datetime.now(timezone.utc),
                benchmark_symbol=benchmark_symbol,
                window=self.window,
                warnings=tuple(warnings),
                data_quality=quality,
            ),
            dividends=dividends,
            valuation=valuation,
        )
        log_portfolio_operation(
            "analysis_snapshot",
            {
                "holdings": len(holdings),
                "benchmark": benchmark_symbol,
                "has_benchmark": metrics.has_benchmark,
                "warnings": len(warnings),
            },
            execution_time=time.perf_counter() - started,
        )
        return snapshot

    # ── sections ─────────────────────────────────────────────────────────────

    @staticmethod
    def _fetch_quotes(gateway, tickers: List[str], warnings: List[str]) -> Dict[str, float]:
        try:
            return dict(gateway.fetch_quotes(tickers) or {})
        except Exception as exc:
            portfolio_logger.warning("quote batch failed: %s: %s", type(exc).__name__, exc)
            warnings.append("Current quotes unavailable; valuing holdings from purchase price or weight")
            return {}

    @staticmethod
    def _fetch_risk_free_rate(gateway, warnings: List[str], quality: Dict[str, Any]) -> float:
        fallback = float(config.ANALYTICS_DEFAULTS["risk_free_fallback"])
        try:
            rate = _to_float(gateway.fetch_risk_free_rate())
        except Exception as exc:
            log_critical_alert(
                "risk_free_rate",
                "low",
                "Risk-free rate unavailable",
                f"using fallback {fallback:.4f}",
                {"error": f"{type(exc).__name__}: {exc}"},
            )
            rate = None
        if rate is None or rate < 0 or not math.isfinite(rate):
            warnings.append(f"Risk-free rate unavailable; using fallback {fallback:.2%}")
            quality["risk_free_source"] = "fallback"
            return fallback
        quality["risk_free_source"] = "provider"
        return rate

    def _performance_block(
        self,
        benchmark_symbol: str,
        tickers: List[str],
        monthly: Mapping[str, pd.Series],
        weights: Mapping[str, float],
        risk_free_rate: float,
        warnings: List[str],
        quality: Dict[str, Any],
    ) -> Tuple[Dict[str, Any], List[PerformancePoint]]:
        thresholds = config.DATA_QUALITY_THRESHOLDS
        min_points = int(thresholds["min_history_points"])
        benchmark = monthly.get(benchmark_symbol, pd.Series(dtype=float))
        with_history = [t for t in tickers if len(monthly.get(t, ())) >= min_points]
        coverage = len(with_history) / len(tickers) if tickers else 0.0
        aligned = align_dates([benchmark] + [monthly[t] for t in with_history]) if with_history else []

        quality["holdings_with_history"] = len(with_history)
        quality["history_coverage"] = coverage
        quality["benchmark_points"] = len(benchmark)
        quality["aligned_points"] = len(aligned)

        has_benchmark = (
            len(benchmark) > 1
            and coverage > float(thresholds["benchmark_coverage_ratio"])
            and len(aligned) >= min_points
        )
        if not has_benchmark:
            warnings.append(
                f"Insufficient aligned history for {benchmark_symbol} "
                f"({len(with_history)}/{len(tickers)} holdings with history, {len(aligned)} common dates); "
                "performance metrics set to defaults"
            )
            return {"has_benchmark": False}, []

        index = pd.DatetimeIndex(aligned)
        rebased = {t: rebase_to_100(monthly[t].loc[index]) for t in with_history}
        portfolio_index = weighted_index(rebased, {t: weights[t] for t in with_history})
        benchmark_index = rebase_to_100(benchmark.loc[index])

        computed = compute_performance_metrics(
            portfolio_index,
            benchmark_index,
            risk_free_rate,
            interval="1mo",
            window=self.window,
        )
        warnings.extend(computed.pop("warnings"))
        performance = [
            PerformancePoint(date=d, portfolio=float(portfolio_index.loc[d]), benchmark=float(benchmark_index.loc[d]))
            for d in index
        ]
        fields = {
            "portfolio_return_pct": computed["portfolio_return_pct"],
            "benchmark_return_pct": computed["benchmark_return_pct"],
            "annualized_return_pct": computed["annualized_return_pct"],
            "volatility_pct": computed["volatility_pct"],
            "sharpe_ratio": computed["sharpe_ratio"],
            "sortino_ratio": computed["sortino_ratio"],
            "max_drawdown_pct": computed["max_drawdown_pct"],
            "beta": computed["beta"],
            "alpha_annual_pct": computed["alpha_annual_pct"],
            "r_squared": computed["r_squared"],
            "has_benchmark": True,
            "periods": computed["periods"],
        }
        return fields, performance

    @staticmethod
    def _beta_assessment(metrics: SnapshotMetrics) -> BetaAssessment:
        if metrics.has_benchmark and metrics.beta is not None:
            return BetaAssessment(level=beta_level(metrics.beta), value=metrics.beta, source="benchmark")
        if metrics.portfolio_beta_reference is not None:
            return BetaAssessment(
                level=beta_level(metrics.portfolio_beta_reference),
                value=metrics.portfolio_beta_reference,
                source="reference",
            )
        return BetaAssessment(level=beta_level(REFERENCE_BETA), value=REFERENCE_BETA, source="default")

    def _enrich_holdings(
        self,
        positions: Sequence[_Position],
        weights: Mapping[str, float],
        sector_by_ticker: Mapping[str, str],
        provider_betas: Mapping[str, Optional[float]],
        fundamentals_by_ticker: Mapping[str, Mapping[str, Any]],
        benchmark_monthly: pd.Series,
        monthly: Mapping[str, pd.Series],
        as_of: date,
        quality: Dict[str, Any],
    ) -> List[EnrichedHolding]:
        tickers = [p.holding.ticker for p in positions]
        daily: Dict[str, Optional[pd.Series]] = {}
        if self.include_holding_risk:
            lookback = int(config.FETCH_DEFAULTS["daily_lookback_days"])
            results = fan_out(
                lambda s: self.gateway.fetch_history(s, lookback, "1d"),
                tickers,
                max_workers=int(config.FETCH_DEFAULTS["max_workers"]),
            )
            daily = {t: r.value_or(None) for t, r in results.items()}
            quality["daily_history_unavailable"] = [t for t, r in results.items() if not r.ok]

        min_beta_points = int(config.DATA_QUALITY_THRESHOLDS["min_monthly_points_for_beta"])
        risk_inputs_available: Dict[str, int] = {}
        out = []
        for p in positions:
            h = p.holding
            weight_pct = weights[h.ticker] * 100.0
            fundamentals = fundamentals_by_ticker.get(h.ticker) or {}

            beta = provider_betas.get(h.ticker)
            if beta is None:
                beta = _to_float(fundamentals.get("beta"))
            if beta is None:
                beta = _monthly_beta(monthly.get(h.ticker), benchmark_monthly, min_beta_points)

            volatility_pct = None
            risk = None
            if self.include_holding_risk:
                volatility_pct, drawdown_pct = risk_inputs_from_daily_history(daily.get(h.ticker))
                inputs = risk_inputs_from_fundamentals(
                    fundamentals,
                    weight_pct=weight_pct,
                    volatility_pct=volatility_pct,
                    max_drawdown_pct=drawdown_pct,
                    beta=beta,
                    today=as_of,
                )
                risk_inputs_available[h.ticker] = inputs.available_count()
                risk = score_holding(h.ticker, inputs)

            return_pct = None
            contribution = None
            if p.quote_available and h.purchase_price is not None and h.purchase_price > 0:
                return_pct = (p.price / h.purchase_price - 1.0) * 100.0
                contribution = weight_pct / 100.0 * return_pct

            out.append(
                EnrichedHolding(
                    ticker=h.ticker,
                    sector=sector_by_ticker.get(h.ticker, OTHER_SECTOR),
                    price=p.price,
                    quote_available=p.quote_available,
                    shares=h.shares,
                    market_value=p.market_value,
                    weight_pct=weight_pct,
                    purchase_price=h.purchase_price,
                    return_since_purchase_pct=return_pct,
                    contribution_pct=contribution,
                    volatility_12m_pct=volatility_pct,
                    beta=beta,
                    risk=risk,
                )
            )
        if risk_inputs_available:
            quality["risk_inputs_available"] = risk_inputs_available
        return out


def _monthly_beta(series: Optional[pd.Series], benchmark: pd.Series, min_points: int) -> Optional[float]:
    if series is None or len(series) < min_points or len(benchmark) < min_points:
        return None
    dates = align_dates([series, benchmark])
    if len(dates) < min_points:
        return None
    index = pd.DatetimeIndex(dates)
    return estimate_beta(series.loc[index], benchmark.loc[index])


def compute_snapshot(holdings: Sequence[Holding], benchmark_symbol: str = "^GSPC", **kwargs: Any) -> AnalysisSnapshot:
    """Build a snapshot with a one-off ``AnalysisSnapshotBuilder``.

    Keyword arguments are passed to the builder (``gateway``,
    ``sector_resolver``, ``window``, ``as_of``, ``include_holding_risk``,
    ``include_dividends``).
    """
    return AnalysisSnapshotBuilder(**kwargs).build(holdings, benchmark_symbol)
