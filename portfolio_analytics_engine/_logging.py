"""Logging surface for the analytics engine.

One named logger plus the instrumentation decorators used at the public
seams (snapshot builder, gateways, fan-out helpers).
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable


portfolio_logger = logging.getLogger("portfolio_analytics_engine")


def log_operation(name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Emit debug records when ``name`` starts and finishes."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            portfolio_logger.debug("operation start: %s", name)
            result = fn(*args, **kwargs)
            portfolio_logger.debug("operation done: %s", name)
            return result

        return wrapper

    return deco


def log_timing(threshold: float = 0.0) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Warn when the wrapped call takes longer than ``threshold`` seconds."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed = time.perf_counter() - started
                if elapsed > threshold:
                    portfolio_logger.warning(
                        "slow call: %s took %.3fs (threshold %.3fs)",
                        fn.__qualname__,
                        elapsed,
                        threshold,
                    )

        return wrapper

    return deco


def log_errors(severity: str = "medium") -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Log exceptions with a severity tag, then re-raise them."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                portfolio_logger.error(
                    "[%s] %s failed: %s: %s",
                    severity,
                    fn.__qualname__,
                    type(exc).__name__,
                    exc,
                )
                raise

        return wrapper

    return deco


def log_portfolio_operation(event: str, details: dict[str, Any] | None = None, execution_time: float | None = None) -> dict[str, Any]:
    if execution_time is not None:
        portfolio_logger.info("[%s] %s (%.3fs)", event, details or {}, execution_time)
    else:
        portfolio_logger.info("[%s] %s", event, details or {})
    return {"event": event, "details": details or {}, "execution_time": execution_time}


def log_critical_alert(alert_type: str, severity: str, message: str, action: str | None = None, details: dict[str, Any] | None = None) -> None:
    portfolio_logger.warning(
        "critical_alert[%s/%s]: %s action=%s %s",
        alert_type,
        severity,
        message,
        action or "-",
        details or {},
    )


def log_service_health(service: str, status: str, response_time: float | None = None, details: dict[str, Any] | None = None) -> None:
    portfolio_logger.info("service_health: %s %s %.3f %s", service, status, response_time or 0.0, details or {})
