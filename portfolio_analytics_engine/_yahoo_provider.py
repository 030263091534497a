"""
Yahoo Finance backed market data gateway (yfinance).

Network IO lives here; shaping beyond "closes as a Series" and
"fundamentals as a flat dict" is left to the engine modules.
"""

from __future__ import annotations

import time
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Sequence

import pandas as pd
import yfinance as yf

from portfolio_analytics_engine._logging import log_errors, log_service_health
from portfolio_analytics_engine._vendor import _to_float


class YFinanceError(Exception):
    """Raised when a yfinance call returns nothing usable."""
    pass


RISK_FREE_SYMBOL = "^IRX"

_PERIOD_FOR_INTERVAL = {
    "1d": lambda n: f"{max(5, int(n * 7 / 5) + 10)}d",
    "1wk": lambda n: f"{max(1, n // 52 + 1)}y",
    "1mo": lambda n: f"{max(1, n // 12 + 1)}y",
}


def _strip_tz(index: pd.Index) -> pd.DatetimeIndex:
    index = pd.DatetimeIndex(index)
    if index.tz is not None:
        index = index.tz_localize(None)
    return index


class YahooMarketDataGateway:
    """Gateway over ``yfinance.Ticker`` / ``yfinance.download``."""

    def _info(self, symbol: str) -> Dict[str, Any]:
        started = time.perf_counter()
        info = yf.Ticker(symbol).info or {}
        log_service_health("yahoo", "ok" if info else "empty", time.perf_counter() - started, {"symbol": symbol})
        if not info:
            raise YFinanceError(f"No profile data returned for {symbol}")
        return info

    @log_errors("medium")
    def fetch_quotes(self, symbols: Sequence[str]) -> Dict[str, float]:
        if not symbols:
            return {}
        data = yf.download(list(symbols), period="5d", interval="1d", progress=False, auto_adjust=False)
        if data is None or len(data) == 0:
            raise YFinanceError(f"No quotes returned for {', '.join(symbols)}")

        closes = data["Close"]
        if isinstance(closes, pd.Series):
            closes = closes.to_frame(name=symbols[0])

        quotes: Dict[str, float] = {}
        for column in closes.columns:
            valid = closes[column].dropna()
            if not valid.empty and float(valid.iloc[-1]) > 0:
                quotes[str(column).upper()] = float(valid.iloc[-1])
        return quotes

    def fetch_history(self, symbol: str, periods: int, interval: str = "1mo") -> pd.Series:
        period = _PERIOD_FOR_INTERVAL.get(interval, _PERIOD_FOR_INTERVAL["1mo"])(periods)
        frame = yf.Ticker(symbol).history(period=period, interval=interval, auto_adjust=False)
        if frame is None or frame.empty or "Close" not in frame.columns:
            raise YFinanceError(f"No price history returned for {symbol}")

        closes = frame["Close"].dropna()
        closes.index = _strip_tz(closes.index)
        closes = closes[~closes.index.duplicated(keep="last")].sort_index()
        closes.name = symbol
        return closes.tail(periods)

    def fetch_risk_free_rate(self) -> float:
        closes = self.fetch_history(RISK_FREE_SYMBOL, 5, "1d")
        # ^IRX quotes the 13-week bill yield in percent
        return float(closes.iloc[-1]) / 100.0

    def fetch_beta(self, symbol: str) -> Optional[float]:
        return _to_float(self._info(symbol).get("beta"))

    def fetch_sector_profile(self, symbol: str) -> Dict[str, Any]:
        info = self._info(symbol)
        return {
            "sector": info.get("sector"),
            "industry": info.get("industry"),
            "quote_type": info.get("quoteType"),
            "category": info.get("category"),
            "name": info.get("longName") or info.get("shortName"),
        }

    def fetch_sector_weightings(self, symbol: str) -> Any:
        weightings = yf.Ticker(symbol).funds_data.sector_weightings
        if not weightings:
            raise YFinanceError(f"No sector weightings returned for {symbol}")
        return weightings

    def fetch_fundamentals(self, symbol: str) -> Dict[str, Any]:
        info = self._info(symbol)
        price = _to_float(info.get("currentPrice")) or _to_float(info.get("regularMarketPrice"))
        adv = _to_float(info.get("averageDailyVolume10Day"))
        free_cash_flow = _to_float(info.get("freeCashflow"))
        market_cap = _to_float(info.get("marketCap"))
        short_pct = _to_float(info.get("shortPercentOfFloat"))

        days_to_earnings = None
        earnings_ts = _to_float(info.get("earningsTimestamp"))
        if earnings_ts is not None:
            earnings_day = datetime.fromtimestamp(earnings_ts, tz=timezone.utc).date()
            delta = (earnings_day - date.today()).days
            days_to_earnings = delta if delta >= 0 else None

        return {
            "beta": _to_float(info.get("beta")),
            "pe": _to_float(info.get("trailingPE")),
            "ps": _to_float(info.get("priceToSalesTrailing12Months")),
            "peg": _to_float(info.get("trailingPegRatio")) or _to_float(info.get("pegRatio")),
            "debt_to_equity": _to_float(info.get("debtToEquity")),
            "interest_coverage": None,
            "fcf_yield_pct": (
                free_cash_flow / market_cap * 100.0
                if free_cash_flow is not None and market_cap
                else None
            ),
            "avg_dollar_volume": adv * price if adv is not None and price is not None else None,
            "short_pct_float": short_pct * 100.0 if short_pct is not None else None,
            "short_ratio": _to_float(info.get("shortRatio")),
            "days_to_earnings": days_to_earnings,
            "dividend_yield": _to_float(info.get("trailingAnnualDividendYield")),
        }

    def fetch_dividend_history(self, symbol: str, start_date: date) -> pd.DataFrame:
        dividends = yf.Ticker(symbol).dividends
        columns = ["date", "amount", "currency"]
        if dividends is None or len(dividends) == 0:
            return pd.DataFrame(columns=columns)

        dividends = dividends.copy()
        dividends.index = _strip_tz(dividends.index)
        frame = pd.DataFrame(
            {
                "date": dividends.index,
                "amount": pd.to_numeric(dividends.to_numpy(), errors="coerce"),
                "currency": None,
            },
            columns=columns,
        ).dropna(subset=["amount"])
        frame = frame[frame["date"] >= pd.Timestamp(start_date)]
        return frame.sort_values("date").reset_index(drop=True)
