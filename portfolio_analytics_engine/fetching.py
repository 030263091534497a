"""Concurrent per-symbol fetching with isolated failures.

Each symbol's fetch produces either a value or an ``Unavailable`` marker;
one failing symbol never cancels the rest of the batch.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, Optional, TypeVar

from portfolio_analytics_engine._logging import portfolio_logger


T = TypeVar("T")


@dataclass(frozen=True)
class Unavailable:
    """Marker for a symbol whose data could not be fetched."""

    symbol: str
    reason: str


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    symbol: str
    value: Optional[T] = None
    error: Optional[Unavailable] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or(self, default: Any) -> Any:
        return self.value if self.error is None else default


def fetch_one(symbol: str, fn: Callable[[str], T]) -> FetchResult[T]:
    """Run ``fn(symbol)`` and convert any exception into ``Unavailable``."""
    try:
        return FetchResult(symbol=symbol, value=fn(symbol))
    except Exception as exc:
        portfolio_logger.warning("fetch failed for %s: %s: %s", symbol, type(exc).__name__, exc)
        return FetchResult(symbol=symbol, error=Unavailable(symbol, f"{type(exc).__name__}: {exc}"))


def fan_out(
    fn: Callable[[str], T],
    symbols: Iterable[str],
    *,
    max_workers: int = 8,
) -> Dict[str, FetchResult[T]]:
    """Fetch every symbol concurrently and join before returning.

    Duplicate symbols are fetched once. The returned mapping preserves the
    input order of first appearance.
    """
    unique = list(dict.fromkeys(symbols))
    if not unique:
        return {}

    results: Dict[str, FetchResult[T]] = {}
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(unique)))) as executor:
        futures = {executor.submit(fetch_one, symbol, fn): symbol for symbol in unique}
        for future in as_completed(futures):
            symbol = futures[future]
            results[symbol] = future.result()

    failed = [symbol for symbol, result in results.items() if not result.ok]
    if failed:
        portfolio_logger.info("fan-out: %d/%d symbols unavailable (%s)", len(failed), len(unique), ", ".join(failed))
    return {symbol: results[symbol] for symbol in unique}
