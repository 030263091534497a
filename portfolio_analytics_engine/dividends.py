"""
Dividend Income Aggregator

Turns per-ticker dividend history into cash flows for the current
positions and buckets them by month and quarter for one calendar year.

Key functions:
- select_dividend_holdings(): top-N positions by value that hold shares
- dividend_events_for_year(): history rows -> DividendEvent for one year
- bucket_monthly() / roll_up_quarterly(): 12 and 4 period totals
- aggregate_dividends(): bounded concurrent fetch + aggregation
- build_future_projection(): distributed vs reinvested income paths

Cash amounts use the share count held at snapshot time for every event in
the year, not the count held on each ex-date.
"""

from __future__ import annotations

import calendar
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from portfolio_analytics_engine import config
from portfolio_analytics_engine._logging import log_portfolio_operation, portfolio_logger
from portfolio_analytics_engine._vendor import _to_float
from portfolio_analytics_engine.data_objects import (
    DividendEvent,
    DividendInsights,
    DividendProjection,
    PeriodBucket,
    ProjectionPoint,
)
from portfolio_analytics_engine.fetching import fetch_one


def select_dividend_holdings(positions: Iterable[Tuple[str, float, float]], top_n: int) -> List[Tuple[str, float]]:
    """``(ticker, shares)`` for the ``top_n`` positions by market value.

    ``positions`` are ``(ticker, shares, market_value)``; positions without
    shares are skipped. Ties break on ticker.
    """
    eligible = [(t, s, v) for t, s, v in positions if s is not None and s > 0]
    eligible.sort(key=lambda p: (-(p[2] or 0.0), p[0]))
    return [(t, s) for t, s, _ in eligible[: max(top_n, 0)]]


def dividend_events_for_year(ticker: str, history: Optional[pd.DataFrame], shares: float, year: int) -> List[DividendEvent]:
    if history is None or len(history) == 0:
        return []
    events = []
    for row in history.to_dict("records"):
        when = row.get("date")
        amount = _to_float(row.get("amount"))
        if when is None or amount is None or amount <= 0:
            continue
        ts = pd.Timestamp(when)
        if ts.year != year:
            continue
        currency = row.get("currency")
        events.append(
            DividendEvent.from_history(
                ticker,
                ts,
                amount,
                shares,
                currency if isinstance(currency, str) and currency else None,
            )
        )
    return events


def _month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def _assign_calendar_quarter(month_key: str) -> str:
    """Convert YYYY-MM to a quarter key like Q1_2026."""
    ts = pd.Timestamp(month_key + "-01")
    quarter = (ts.month - 1) // 3 + 1
    return f"Q{quarter}_{ts.year}"


def bucket_monthly(events: Iterable[DividendEvent], year: int) -> List[PeriodBucket]:
    totals = {m: 0.0 for m in range(1, 13)}
    for event in events:
        if event.date.year == year:
            totals[event.date.month] += event.cash_amount
    return [
        PeriodBucket(key=_month_key(year, m), label=calendar.month_abbr[m], amount=totals[m])
        for m in range(1, 13)
    ]


def roll_up_quarterly(monthly: Sequence[PeriodBucket], year: int) -> List[PeriodBucket]:
    totals: Dict[str, float] = {f"Q{q}_{year}": 0.0 for q in range(1, 5)}
    for bucket in monthly:
        quarter = _assign_calendar_quarter(bucket.key)
        if quarter in totals:
            totals[quarter] += bucket.amount
    return [PeriodBucket(key=key, label=key.split("_")[0], amount=amount) for key, amount in totals.items()]


def build_future_projection(
    monthly_totals: Sequence[PeriodBucket],
    total_income: float,
    *,
    months: Optional[int] = None,
    monthly_contribution: Optional[float] = None,
) -> DividendProjection:
    """Project monthly income forward on two paths.

    Base income is the average of the months that paid anything (else a
    twelfth of the year total, else 25). The distributed path grows 1%/yr;
    the reinvested path grows 4%/yr plus a 3%/yr yield on the monthly
    contribution.
    """
    defaults = config.DIVIDEND_DEFAULTS
    months = int(months if months is not None else defaults["projection_months"])
    contribution = float(monthly_contribution if monthly_contribution is not None else defaults["monthly_contribution"])

    paying = [b.amount for b in monthly_totals if b.amount > 0]
    if paying:
        base = sum(paying) / len(paying)
    elif total_income > 0:
        base = total_income / 12.0
    else:
        base = 25.0

    distributed_growth = float(defaults["distributed_growth_annual"]) / 12.0
    reinvest_growth = float(defaults["reinvest_growth_annual"]) / 12.0
    contribution_yield = 0.03 / 12.0

    points = []
    distributed = base
    reinvested = base
    total_distributed = 0.0
    total_reinvested = 0.0
    for i in range(1, months + 1):
        distributed = distributed * (1.0 + distributed_growth)
        reinvested = reinvested * (1.0 + reinvest_growth) + contribution * contribution_yield
        total_distributed += distributed
        total_reinvested += reinvested
        points.append(ProjectionPoint(label=f"M{i}", distributed=distributed, reinvested=reinvested))

    return DividendProjection(
        points=tuple(points),
        total_distributed=total_distributed,
        total_reinvested=total_reinvested,
        base_monthly_income=base,
    )


def summarize_dividend_events(
    events: Iterable[DividendEvent],
    year: int,
    *,
    include_projection: bool = True,
    unavailable: Sequence[str] = (),
) -> DividendInsights:
    ordered = sorted(events, key=lambda e: (e.date, e.ticker))
    monthly = bucket_monthly(ordered, year)
    quarterly = roll_up_quarterly(monthly, year)
    total = sum(b.amount for b in monthly)
    projection = build_future_projection(monthly, total) if include_projection else None
    return DividendInsights(
        year=year,
        total_income=total,
        monthly_totals=tuple(monthly),
        quarterly_totals=tuple(quarterly),
        events=tuple(ordered),
        projection=projection,
        unavailable=tuple(unavailable),
    )


def aggregate_dividends(
    positions: Iterable[Tuple[str, float, float]],
    gateway,
    *,
    year: Optional[int] = None,
    today: Optional[date] = None,
    top_n: Optional[int] = None,
    max_workers: Optional[int] = None,
    include_projection: bool = True,
) -> DividendInsights:
    """Fetch dividend history for the largest share-holding positions and aggregate it.

    A small worker pool bounds provider load; a ticker whose history fails
    is listed in ``unavailable`` and contributes nothing.
    """
    defaults = config.DIVIDEND_DEFAULTS
    today = today or date.today()
    year = year or today.year
    top_n = int(top_n if top_n is not None else defaults["top_n_holdings"])
    max_workers = int(max_workers if max_workers is not None else defaults["max_workers"])
    start = date(today.year - int(defaults["lookback_years"]), 1, 1)

    selected = select_dividend_holdings(positions, top_n)
    events: List[DividendEvent] = []
    unavailable: List[str] = []
    if selected:
        shares_by_ticker = dict(selected)
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            futures = {
                executor.submit(fetch_one, ticker, lambda t: gateway.fetch_dividend_history(t, start)): ticker
                for ticker, _ in selected
            }
            for future in as_completed(futures):
                ticker = futures[future]
                result = future.result()
                if not result.ok:
                    unavailable.append(ticker)
                    continue
                events.extend(dividend_events_for_year(ticker, result.value, shares_by_ticker[ticker], year))

    insights = summarize_dividend_events(
        events,
        year,
        include_projection=include_projection,
        unavailable=sorted(unavailable),
    )
    log_portfolio_operation(
        "dividend_aggregation",
        {"year": year, "tickers": len(selected), "events": len(events), "unavailable": len(unavailable)},
    )
    if unavailable:
        portfolio_logger.info("dividend history unavailable for: %s", ", ".join(sorted(unavailable)))
    return insights
