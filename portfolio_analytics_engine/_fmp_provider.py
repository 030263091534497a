"""Financial Modeling Prep backed market data gateway."""

from __future__ import annotations

import time
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
import requests

from portfolio_analytics_engine import config
from portfolio_analytics_engine._logging import log_errors, log_service_health, portfolio_logger
from portfolio_analytics_engine._vendor import _to_float


BASE_URL = "https://financialmodelingprep.com/stable"


class FMPMarketDataGateway:
    """Gateway over the FMP ``/stable`` REST endpoints.

    Every call raises ``ValueError`` on a non-OK response or an empty
    payload; the fan-out layer decides what a failure means.
    """

    def __init__(self, api_key: Optional[str] = None, *, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.api_key = api_key if api_key is not None else config.FMP_API_KEY
        self.timeout = timeout
        self.session = session

    def _get(self, endpoint: str, **params: Any) -> Any:
        url = f"{BASE_URL}/{endpoint}"
        query = {k: v for k, v in params.items() if v is not None}
        query["apikey"] = self.api_key
        getter = self.session.get if self.session is not None else requests.get
        started = time.perf_counter()
        resp = getter(url, params=query, timeout=self.timeout)
        elapsed = time.perf_counter() - started
        if not resp.ok:
            log_service_health("fmp", "error", elapsed, {"endpoint": endpoint, "status": resp.status_code})
            raise ValueError(f"FMP API error: {resp.status_code} {resp.text}")
        log_service_health("fmp", "ok", elapsed, {"endpoint": endpoint})
        return resp.json()

    def _first_row(self, endpoint: str, symbol: str) -> Dict[str, Any]:
        data = self._get(endpoint, symbol=symbol)
        if not isinstance(data, list) or not data:
            raise ValueError(f"No {endpoint} data returned for {symbol}")
        return data[0]

    def _optional_row(self, endpoint: str, symbol: str) -> Dict[str, Any]:
        try:
            return self._first_row(endpoint, symbol)
        except ValueError as exc:
            portfolio_logger.debug("optional %s lookup failed for %s: %s", endpoint, symbol, exc)
            return {}

    @log_errors("medium")
    def fetch_quotes(self, symbols: Sequence[str]) -> Dict[str, float]:
        if not symbols:
            return {}
        data = self._get("batch-quote", symbols=",".join(symbols))
        if not isinstance(data, list):
            raise ValueError("Malformed batch-quote payload")
        quotes: Dict[str, float] = {}
        for row in data:
            price = _to_float(row.get("price"))
            symbol = str(row.get("symbol") or "").upper()
            if symbol and price is not None and price > 0:
                quotes[symbol] = price
        return quotes

    def fetch_history(self, symbol: str, periods: int, interval: str = "1mo") -> pd.Series:
        # calendar-day window wide enough to cover the requested bar count
        if interval == "1d":
            span_days = int(periods * 7 / 5) + 10
        elif interval == "1wk":
            span_days = periods * 7 + 7
        else:
            span_days = periods * 31 + 31
        end = date.today()
        start = end - timedelta(days=span_days)
        data = self._get(
            "historical-price-eod/full",
            symbol=symbol,
            **{"from": start.isoformat(), "to": end.isoformat()},
        )
        rows = data.get("historical", []) if isinstance(data, dict) else data
        if not isinstance(rows, list) or not rows:
            raise ValueError(f"No price history returned for {symbol}")

        frame = pd.DataFrame(rows)
        closes = pd.Series(
            pd.to_numeric(frame["close"], errors="coerce").to_numpy(),
            index=pd.to_datetime(frame["date"]),
            name=symbol,
        ).dropna()
        closes = closes[~closes.index.duplicated(keep="last")].sort_index()

        if interval == "1mo":
            closes = closes.groupby(closes.index.to_period("M")).tail(1)
        elif interval == "1wk":
            closes = closes.groupby(closes.index.to_period("W")).tail(1)
        return closes.tail(periods)

    def fetch_risk_free_rate(self) -> float:
        data = self._get("treasury-rates")
        if not isinstance(data, list) or not data:
            raise ValueError("No treasury data returned")
        latest = max(data, key=lambda row: str(row.get("date", "")))
        rate = _to_float(latest.get("month3"))
        if rate is None:
            raise ValueError("Treasury payload missing month3 rate")
        return rate / 100.0

    def fetch_beta(self, symbol: str) -> Optional[float]:
        return _to_float(self._first_row("profile", symbol).get("beta"))

    def fetch_sector_profile(self, symbol: str) -> Dict[str, Any]:
        profile = self._first_row("profile", symbol)
        if profile.get("isEtf"):
            quote_type = "ETF"
        elif profile.get("isFund"):
            quote_type = "MUTUALFUND"
        else:
            quote_type = "EQUITY"
        return {
            "sector": profile.get("sector"),
            "industry": profile.get("industry"),
            "quote_type": quote_type,
            "category": None,
            "name": profile.get("companyName"),
        }

    def fetch_sector_weightings(self, symbol: str) -> Any:
        data = self._get("etf/sector-weightings", symbol=symbol)
        if not data:
            raise ValueError(f"No sector weightings returned for {symbol}")
        return data

    def fetch_fundamentals(self, symbol: str) -> Dict[str, Any]:
        profile = self._first_row("profile", symbol)
        ratios = self._optional_row("ratios-ttm", symbol)
        metrics = self._optional_row("key-metrics-ttm", symbol)

        price = _to_float(profile.get("price"))
        avg_volume = _to_float(profile.get("averageVolume"))
        debt_to_equity = _to_float(ratios.get("debtToEquityRatioTTM"))
        fcf_yield = _to_float(metrics.get("freeCashFlowYieldTTM"))
        dividend_yield = _to_float(ratios.get("dividendYieldTTM"))
        return {
            "beta": _to_float(profile.get("beta")),
            "pe": _to_float(ratios.get("priceToEarningsRatioTTM")),
            "ps": _to_float(ratios.get("priceToSalesRatioTTM")),
            "peg": _to_float(ratios.get("priceToEarningsGrowthRatioTTM")),
            # FMP reports ratios; the risk model works in percent
            "debt_to_equity": debt_to_equity * 100.0 if debt_to_equity is not None else None,
            "interest_coverage": _to_float(ratios.get("interestCoverageRatioTTM")),
            "fcf_yield_pct": fcf_yield * 100.0 if fcf_yield is not None else None,
            "avg_dollar_volume": avg_volume * price if avg_volume is not None and price is not None else None,
            "short_pct_float": None,
            "short_ratio": None,
            "days_to_earnings": None,
            "dividend_yield": dividend_yield,
        }

    def fetch_dividend_history(self, symbol: str, start_date: date) -> pd.DataFrame:
        data = self._get("dividends", symbol=symbol)
        rows: List[Dict[str, Any]] = []
        for row in data if isinstance(data, list) else []:
            amount = _to_float(row.get("adjDividend"))
            if amount is None:
                amount = _to_float(row.get("dividend"))
            if amount is None or not row.get("date"):
                continue
            rows.append({"date": pd.Timestamp(row["date"]), "amount": amount, "currency": row.get("currency")})

        frame = pd.DataFrame(rows, columns=["date", "amount", "currency"])
        if frame.empty:
            return frame
        frame = frame[frame["date"] >= pd.Timestamp(start_date)]
        return frame.sort_values("date").reset_index(drop=True)
