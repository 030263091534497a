"""Portfolio YAML loading for the CLI and scripted snapshots.

Contract notes:
- ``holdings`` may be a list of mappings (``ticker``, ``weight``,
  ``shares``, ``purchase_price``), a ``{ticker: weight}`` mapping, or a
  ``{ticker: {weight, shares, purchase_price}}`` mapping.
- ``benchmark`` is optional; callers fall back to the configured default.
- Relative paths resolve against the working directory first, then the
  project root.
"""

from pathlib import Path
from typing import Any, Dict, List

import yaml

from portfolio_analytics_engine._logging import log_errors, log_operation
from portfolio_analytics_engine.data_objects import Holding

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _resolve_path(filepath: str) -> Path:
    resolved_path = Path(filepath)
    if not resolved_path.is_absolute() and not resolved_path.exists():
        candidate = _PROJECT_ROOT / resolved_path
        if candidate.exists():
            resolved_path = candidate
    if not resolved_path.exists():
        raise FileNotFoundError(f"Portfolio file not found: {filepath}")
    return resolved_path


def parse_holdings(raw: Any) -> List[Holding]:
    """Turn the ``holdings`` section into ``Holding`` objects."""
    if isinstance(raw, list):
        records = []
        for i, entry in enumerate(raw):
            if not isinstance(entry, dict):
                raise ValueError(f"holdings[{i}] must be a mapping, got {type(entry).__name__}")
            records.append(Holding.from_dict(entry))
        return records

    if isinstance(raw, dict):
        holdings = []
        for ticker, entry in raw.items():
            if isinstance(entry, dict):
                holdings.append(Holding.from_dict({"ticker": ticker, **entry}))
            elif isinstance(entry, (int, float)) and not isinstance(entry, bool):
                holdings.append(Holding(ticker=str(ticker), weight=entry))
            else:
                raise ValueError(f"holdings.{ticker} must be a weight or a mapping, got {entry!r}")
        return holdings

    raise ValueError("'holdings' must be a list or a mapping")


@log_errors("medium")
@log_operation("portfolio_config_load")
def load_portfolio_config(filepath: str = "portfolio.yaml") -> Dict[str, Any]:
    """
    Load a portfolio YAML and return ``{"holdings": [...], "benchmark": str | None, ...}``.

    Other top-level keys are kept as-is. No printing, no side effects.
    """
    resolved_path = _resolve_path(filepath)
    with open(resolved_path, "r") as f:
        cfg_raw = yaml.safe_load(f)

    if not isinstance(cfg_raw, dict):
        raise ValueError(f"Portfolio file {filepath} must contain a mapping")
    if "holdings" not in cfg_raw:
        raise ValueError(f"Portfolio file {filepath} has no 'holdings' section")

    cfg: Dict[str, Any] = dict(cfg_raw)
    cfg["holdings"] = parse_holdings(cfg_raw["holdings"] or [])
    benchmark = cfg.get("benchmark")
    cfg["benchmark"] = str(benchmark).strip().upper() if benchmark else None
    return cfg
