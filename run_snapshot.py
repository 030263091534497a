#!/usr/bin/env python3
# coding: utf-8

# File: run_snapshot.py

"""
Analytics Snapshot CLI & API Interface Module

Dual-mode entrypoint: prints a formatted report from the command line, or
returns a ``SnapshotResult`` when called with ``return_data=True``.

    python run_snapshot.py --portfolio portfolio.yaml --benchmark ^GSPC
    python run_snapshot.py --portfolio portfolio.yaml --window trailing_12m --json
"""

import argparse
import json
import sys
from typing import Optional, Union

from dotenv import load_dotenv

load_dotenv()

from core.result_objects import SnapshotResult
from portfolio_analytics_engine import config
from portfolio_analytics_engine._logging import log_errors, log_operation, log_timing
from portfolio_analytics_engine.portfolio_config import load_portfolio_config
from portfolio_analytics_engine.snapshot import AnalysisSnapshotBuilder


@log_errors("high")
@log_operation("run_snapshot")
@log_timing(15.0)
def run_snapshot(
    filepath: str,
    *,
    benchmark: Optional[str] = None,
    window: Optional[str] = None,
    include_dividends: bool = True,
    return_data: bool = False,
    as_json: bool = False,
) -> Union[None, SnapshotResult]:
    """
    Compute an analytics snapshot for a portfolio YAML file.

    Benchmark precedence: ``benchmark`` argument, then the file's
    ``benchmark`` key, then ``ANALYTICS_DEFAULTS["benchmark_symbol"]``.

    Returns
    -------
    SnapshotResult or None
        ``SnapshotResult`` when ``return_data`` is True; otherwise prints
        the CLI report (or JSON with ``as_json``) and returns None.
    """
    cfg = load_portfolio_config(filepath)
    benchmark_symbol = benchmark or cfg.get("benchmark") or config.ANALYTICS_DEFAULTS["benchmark_symbol"]

    builder = AnalysisSnapshotBuilder(window=window, include_dividends=include_dividends)
    snapshot = builder.build(cfg["holdings"], benchmark_symbol)
    result = SnapshotResult.from_snapshot(snapshot, portfolio_name=cfg.get("name") or filepath)

    if return_data:
        return result
    if as_json:
        print(json.dumps(result.to_api_response(), indent=2))
    else:
        print(result.to_cli_report())
    return None


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Portfolio analytics snapshot")
    parser.add_argument("--portfolio", type=str, required=True, help="Path to YAML portfolio file")
    parser.add_argument("--benchmark", type=str, default=None, help="Benchmark symbol (default: file or ^GSPC)")
    parser.add_argument("--window", choices=["ytd", "trailing_12m"], default=None, help="Performance window")
    parser.add_argument("--provider", choices=["fmp", "yahoo"], default=None, help="Market data provider")
    parser.add_argument("--json", action="store_true", help="Print the API payload as JSON")
    parser.add_argument("--no-dividends", action="store_true", help="Skip dividend history fetches")
    args = parser.parse_args(argv)

    if args.provider:
        config.configure(MARKET_DATA_PROVIDER=args.provider)

    try:
        run_snapshot(
            args.portfolio,
            benchmark=args.benchmark,
            window=args.window,
            include_dividends=not args.no_dividends,
            as_json=args.json,
        )
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Snapshot failed: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
