"""
Core Data Objects Module

Immutable containers for the analytics snapshot and its inputs.

Classes:
- Holding: one portfolio line as supplied by the caller (weight normalized to percent)
- PriceBar: one dated close
- SectorAllocation, RiskComponent, DividendEvent and friends: snapshot parts
- AnalysisSnapshot: the aggregate root returned by the snapshot builder

Objects keep full precision; rounding happens only in ``to_dict()`` so that
recomputing a snapshot from identical inputs yields identical numbers.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from portfolio_analytics_engine._vendor import _round_or_none, _to_float, make_json_safe


def normalize_weight_pct(weight: float) -> float:
    """Weights above 1 are percentages already; 1 and below are fractions."""
    return float(weight) if weight > 1 else float(weight) * 100.0


def _optional_non_negative(name: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    number = _to_float(value)
    if number is None or number < 0:
        raise ValueError(f"{name} must be a non-negative number, got {value!r}")
    return number


@dataclass(frozen=True)
class Holding:
    """
    One portfolio position as handed to the engine.

    ``weight`` may be a fraction (0.25) or a percentage (25); ``weight_pct``
    is the normalized percent-of-portfolio form used everywhere downstream.
    Lines built with ``from_weight_pct`` carry a weight that is already a
    percentage and is never rescaled.

    Raises:
        ValueError: empty ticker, negative/non-finite weight, negative shares
            or purchase price.
    """

    ticker: str
    weight: float = 0.0
    shares: Optional[float] = None
    purchase_price: Optional[float] = None
    weight_is_pct: bool = field(default=False, repr=False)

    def __post_init__(self):
        ticker = self.ticker.strip().upper() if isinstance(self.ticker, str) else ""
        if not ticker:
            raise ValueError("Ticker cannot be empty")
        object.__setattr__(self, "ticker", ticker)

        weight = _to_float(self.weight) if not isinstance(self.weight, str) else None
        if weight is None or weight < 0:
            raise ValueError(f"Weight for {ticker} must be a finite, non-negative number, got {self.weight!r}")
        object.__setattr__(self, "weight", weight)
        object.__setattr__(self, "shares", _optional_non_negative(f"Shares for {ticker}", self.shares))
        object.__setattr__(
            self, "purchase_price", _optional_non_negative(f"Purchase price for {ticker}", self.purchase_price)
        )

    @property
    def weight_pct(self) -> float:
        return self.weight if self.weight_is_pct else normalize_weight_pct(self.weight)

    @classmethod
    def from_weight_pct(
        cls,
        ticker: str,
        weight_pct: float,
        shares: Optional[float] = None,
        purchase_price: Optional[float] = None,
    ) -> "Holding":
        """Build a line from a weight already normalized to percent."""
        return cls(ticker=ticker, weight=weight_pct, shares=shares, purchase_price=purchase_price, weight_is_pct=True)

    @property
    def has_shares(self) -> bool:
        return self.shares is not None and self.shares > 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Holding":
        ticker = data.get("ticker") or data.get("symbol") or ""
        shares = data.get("shares", data.get("quantity"))
        purchase_price = data.get("purchase_price", data.get("purchasePrice", data.get("cost_basis")))
        return cls(
            ticker=ticker,
            weight=data.get("weight", 0.0) if data.get("weight") is not None else 0.0,
            shares=shares,
            purchase_price=purchase_price,
        )


@dataclass(frozen=True)
class PriceBar:
    date: pd.Timestamp
    close: float


def price_bars_to_series(bars: Iterable[PriceBar], name: Optional[str] = None) -> pd.Series:
    """Build a close series from bars, rejecting unordered or duplicate dates."""
    bars = list(bars)
    index = pd.DatetimeIndex([pd.Timestamp(bar.date) for bar in bars])
    if not index.is_unique or not index.is_monotonic_increasing:
        raise ValueError("Price bars must have strictly increasing dates")
    return pd.Series([float(bar.close) for bar in bars], index=index, name=name, dtype=float)


@dataclass(frozen=True)
class SectorAllocation:
    sector: str
    allocation_pct: float
    target_pct: float
    color_hint: str

    @property
    def active_tilt(self) -> float:
        return self.allocation_pct - self.target_pct

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sector": self.sector,
            "allocation_pct": round(self.allocation_pct, 1),
            "target_pct": round(self.target_pct, 1),
            "active_tilt": round(self.active_tilt, 1),
            "color_hint": self.color_hint,
        }


@dataclass(frozen=True)
class RiskComponent:
    key: str
    label: str
    score: float
    weight: float
    raw_value: Optional[float] = None

    def __post_init__(self):
        if not 0.0 <= self.score <= 100.0:
            raise ValueError(f"Risk component {self.key} score must be within [0, 100], got {self.score}")
        if not 0.0 <= self.weight <= 1.0:
            raise ValueError(f"Risk component {self.key} weight must be within [0, 1], got {self.weight}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "score": round(self.score, 1),
            "weight": round(self.weight, 4),
            "raw_value": _round_or_none(self.raw_value, 4),
        }


@dataclass(frozen=True)
class HoldingRiskProfile:
    ticker: str
    risk_score: int
    risk_bucket: str
    components: Tuple[RiskComponent, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_score": self.risk_score,
            "risk_bucket": self.risk_bucket,
            "risk_components": [c.to_dict() for c in self.components],
        }


@dataclass(frozen=True)
class DividendEvent:
    """
    One dividend payment translated into cash for the current position.

    ``cash_amount`` uses the share count at snapshot time, not the count held
    on the ex-date.
    """

    ticker: str
    date: date
    amount_per_share: float
    shares: float
    cash_amount: float
    currency: Optional[str] = None

    @classmethod
    def from_history(cls, ticker: str, when: Any, amount_per_share: float, shares: float, currency: Optional[str] = None) -> "DividendEvent":
        day = pd.Timestamp(when).date()
        return cls(
            ticker=ticker,
            date=day,
            amount_per_share=float(amount_per_share),
            shares=float(shares),
            cash_amount=float(amount_per_share) * float(shares),
            currency=currency,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "date": self.date.isoformat(),
            "amount_per_share": round(self.amount_per_share, 6),
            "shares": self.shares,
            "cash_amount": round(self.cash_amount, 2),
            "currency": self.currency,
        }


@dataclass(frozen=True)
class PeriodBucket:
    key: str
    label: str
    amount: float

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "label": self.label, "amount": round(self.amount, 2)}


@dataclass(frozen=True)
class ProjectionPoint:
    label: str
    distributed: float
    reinvested: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "distributed": round(self.distributed, 2),
            "reinvested": round(self.reinvested, 2),
        }


@dataclass(frozen=True)
class DividendProjection:
    points: Tuple[ProjectionPoint, ...]
    total_distributed: float
    total_reinvested: float
    base_monthly_income: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": [p.to_dict() for p in self.points],
            "total_distributed": round(self.total_distributed, 2),
            "total_reinvested": round(self.total_reinvested, 2),
            "base_monthly_income": round(self.base_monthly_income, 2),
        }


@dataclass(frozen=True)
class DividendInsights:
    year: int
    total_income: float
    monthly_totals: Tuple[PeriodBucket, ...]
    quarterly_totals: Tuple[PeriodBucket, ...]
    events: Tuple[DividendEvent, ...] = ()
    projection: Optional[DividendProjection] = None
    unavailable: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "total_income": round(self.total_income, 2),
            "monthly_totals": [b.to_dict() for b in self.monthly_totals],
            "quarterly_totals": [b.to_dict() for b in self.quarterly_totals],
            "events": [e.to_dict() for e in self.events],
            "projection": self.projection.to_dict() if self.projection else None,
            "unavailable": list(self.unavailable),
        }


@dataclass(frozen=True)
class ConcentrationMetrics:
    level: str
    largest_position_pct: float
    top2_pct: float
    hhi: float
    effective_holdings: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "largest_position_pct": round(self.largest_position_pct, 1),
            "top2_pct": round(self.top2_pct, 1),
            "hhi": round(self.hhi, 3),
            "effective_holdings": round(self.effective_holdings, 1),
        }


@dataclass(frozen=True)
class DiversificationMetrics:
    score: float
    holdings: int
    top2_pct: float
    sector_hhi: float
    effective_holdings: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": round(self.score, 1),
            "holdings": self.holdings,
            "top2_pct": round(self.top2_pct, 1),
            "sector_hhi": round(self.sector_hhi, 3),
            "effective_holdings": round(self.effective_holdings, 1),
        }


@dataclass(frozen=True)
class PerformancePoint:
    date: pd.Timestamp
    portfolio: float
    benchmark: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": pd.Timestamp(self.date).date().isoformat(),
            "portfolio": round(self.portfolio, 2),
            "benchmark": round(self.benchmark, 2),
        }


@dataclass(frozen=True)
class SnapshotMetrics:
    """Scalar portfolio metrics. Percent fields are in percent units; ratios are plain."""

    portfolio_return_pct: float = 0.0
    benchmark_return_pct: Optional[float] = None
    annualized_return_pct: float = 0.0
    volatility_pct: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    max_drawdown_pct: float = 0.0
    beta: Optional[float] = None
    alpha_annual_pct: Optional[float] = None
    r_squared: Optional[float] = None
    portfolio_beta_reference: Optional[float] = None
    reference_beta: float = 1.0
    beta_difference: Optional[float] = None
    risk_free_rate: float = 0.0
    has_benchmark: bool = False
    periods: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "portfolio_return_pct": round(self.portfolio_return_pct, 2),
            "benchmark_return_pct": _round_or_none(self.benchmark_return_pct, 2),
            "annualized_return_pct": round(self.annualized_return_pct, 2),
            "volatility_pct": round(self.volatility_pct, 2),
            "sharpe_ratio": round(self.sharpe_ratio, 2),
            "sortino_ratio": round(self.sortino_ratio, 2),
            "max_drawdown_pct": round(self.max_drawdown_pct, 2),
            "beta": _round_or_none(self.beta, 2),
            "alpha_annual_pct": _round_or_none(self.alpha_annual_pct, 2),
            "r_squared": _round_or_none(self.r_squared, 3),
            "portfolio_beta_reference": _round_or_none(self.portfolio_beta_reference, 2),
            "reference_beta": round(self.reference_beta, 2),
            "beta_difference": _round_or_none(self.beta_difference, 2),
            "risk_free_rate": round(self.risk_free_rate, 4),
            "has_benchmark": self.has_benchmark,
            "periods": self.periods,
        }


@dataclass(frozen=True)
class BetaAssessment:
    level: str
    value: float
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "value": round(self.value, 2), "source": self.source}


@dataclass(frozen=True)
class RiskBlock:
    concentration: ConcentrationMetrics
    diversification: DiversificationMetrics
    beta: BetaAssessment

    def to_dict(self) -> Dict[str, Any]:
        return {
            "concentration": self.concentration.to_dict(),
            "diversification": self.diversification.to_dict(),
            "beta": self.beta.to_dict(),
        }


@dataclass(frozen=True)
class EnrichedHolding:
    ticker: str
    sector: str
    price: Optional[float]
    quote_available: bool
    shares: Optional[float]
    market_value: float
    weight_pct: float
    purchase_price: Optional[float] = None
    return_since_purchase_pct: Optional[float] = None
    contribution_pct: Optional[float] = None
    volatility_12m_pct: Optional[float] = None
    beta: Optional[float] = None
    risk: Optional[HoldingRiskProfile] = None

    @property
    def has_cost_basis(self) -> bool:
        return self.purchase_price is not None and self.purchase_price > 0

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "ticker": self.ticker,
            "sector": self.sector,
            "price": _round_or_none(self.price, 4),
            "quote_available": self.quote_available,
            "shares": self.shares,
            "market_value": round(self.market_value, 2),
            "weight_pct": round(self.weight_pct, 2),
            "purchase_price": _round_or_none(self.purchase_price, 4),
            "has_cost_basis": self.has_cost_basis,
            "return_since_purchase_pct": _round_or_none(self.return_since_purchase_pct, 2),
            "contribution_pct": _round_or_none(self.contribution_pct, 2),
            "volatility_12m_pct": _round_or_none(self.volatility_12m_pct, 2),
            "beta": _round_or_none(self.beta, 2),
            "risk_score": None,
            "risk_bucket": None,
            "risk_components": [],
        }
        if self.risk is not None:
            out.update(self.risk.to_dict())
        return out


@dataclass(frozen=True)
class ValuationSummary:
    weighted_pe: Optional[float] = None
    weighted_dividend_yield_pct: Optional[float] = None
    pe_coverage_pct: float = 0.0
    yield_coverage_pct: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weighted_pe": _round_or_none(self.weighted_pe, 2),
            "weighted_dividend_yield_pct": _round_or_none(self.weighted_dividend_yield_pct, 2),
            "pe_coverage_pct": round(self.pe_coverage_pct, 1),
            "yield_coverage_pct": round(self.yield_coverage_pct, 1),
        }


@dataclass(frozen=True)
class SnapshotMeta:
    refreshed_at: datetime
    benchmark_symbol: str
    window: str
    warnings: Tuple[str, ...] = ()
    data_quality: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # read-only view; list counters become tuples
        frozen = {k: tuple(v) if isinstance(v, list) else v for k, v in dict(self.data_quality).items()}
        object.__setattr__(self, "warnings", tuple(self.warnings))
        object.__setattr__(self, "data_quality", MappingProxyType(frozen))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "refreshed_at": self.refreshed_at.isoformat(),
            "benchmark_symbol": self.benchmark_symbol,
            "window": self.window,
            "warnings": list(self.warnings),
            "data_quality": make_json_safe(dict(self.data_quality)),
        }


@dataclass(frozen=True)
class AnalysisSnapshot:
    """
    One fully computed analytics result for a portfolio + benchmark pair.

    Built once by ``AnalysisSnapshotBuilder``; recomputation produces a new
    snapshot rather than patching this one.
    """

    holdings: Tuple[EnrichedHolding, ...]
    performance: Tuple[PerformancePoint, ...]
    sectors: Tuple[SectorAllocation, ...]
    metrics: SnapshotMetrics
    risk: RiskBlock
    meta: SnapshotMeta
    dividends: Optional[DividendInsights] = None
    valuation: Optional[ValuationSummary] = None

    @property
    def is_empty(self) -> bool:
        return not self.holdings

    def scalar_metrics(self) -> Dict[str, Any]:
        """Metrics and risk scalars without timestamps; equal for equal inputs."""
        return {"metrics": self.metrics.to_dict(), "risk": self.risk.to_dict()}

    def to_dict(self) -> Dict[str, Any]:
        return make_json_safe(
            {
                "holdings": [h.to_dict() for h in self.holdings],
                "performance": [p.to_dict() for p in self.performance],
                "sectors": [s.to_dict() for s in self.sectors],
                "metrics": self.metrics.to_dict(),
                "risk": self.risk.to_dict(),
                "dividends": self.dividends.to_dict() if self.dividends else None,
                "valuation": self.valuation.to_dict() if self.valuation else None,
                "meta": self.meta.to_dict(),
            }
        )


def holdings_from_records(records: Iterable[Dict[str, Any]]) -> List[Holding]:
    return [Holding.from_dict(record) for record in records]
