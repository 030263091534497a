"""Analysis snapshot result objects."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from portfolio_analytics_engine._vendor import make_json_safe
from portfolio_analytics_engine.data_objects import AnalysisSnapshot

from core.portfolio_health import compute_portfolio_health
from core.snapshot_flags import generate_snapshot_flags
from ._helpers import _DEFAULT_SECTOR_ABBR_MAP, _abbreviate_label, _fmt_number, _format_rows_as_text


@dataclass
class SnapshotResult:
    """
    Analysis snapshot plus its interpretive layer (flags and health score).

    Usage Patterns:
    1. **API Serialization**: ``to_api_response()`` for JSON transport
    2. **Formatted Reporting**: ``to_cli_report()`` for terminal display
    3. **Raw Access**: ``snapshot`` keeps the typed ``AnalysisSnapshot``

    Architecture Role:
        AnalysisSnapshotBuilder → SnapshotResult → Consumer (API/CLI)

    Example:
        ```python
        snapshot = compute_snapshot(holdings, "^GSPC")
        result = SnapshotResult.from_snapshot(snapshot, portfolio_name="core")
        result.health["score"]        # 72
        result.flags[0]["flag"]       # "high_concentration"
        print(result.to_cli_report())
        ```
    """

    snapshot: AnalysisSnapshot
    payload: Dict[str, Any]
    flags: List[Dict[str, Any]] = field(default_factory=list)
    health: Dict[str, Any] = field(default_factory=dict)
    portfolio_name: Optional[str] = None
    analysis_date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_snapshot(cls, snapshot: AnalysisSnapshot, portfolio_name: Optional[str] = None) -> "SnapshotResult":
        payload = snapshot.to_dict()
        return cls(
            snapshot=snapshot,
            payload=payload,
            flags=generate_snapshot_flags(payload),
            health=compute_portfolio_health(payload),
            portfolio_name=portfolio_name,
        )

    def to_api_response(self) -> Dict[str, Any]:
        """Snapshot payload with ``flags``, ``health`` and result metadata."""
        return make_json_safe(
            {
                **self.payload,
                "flags": self.flags,
                "health": self.health,
                "portfolio_name": self.portfolio_name,
                "analysis_date": self.analysis_date.isoformat(),
            }
        )

    def to_cli_report(self) -> str:
        sections = [
            self._format_header(),
            self._format_metrics(),
            self._format_holdings(),
            self._format_sectors(),
            self._format_risk(),
            self._format_dividends(),
            self._format_flags(),
        ]
        return "\n".join(s for s in sections if s)

    # ── sections ─────────────────────────────────────────────────────────────

    def _format_header(self) -> str:
        meta = self.payload["meta"]
        lines = ["📊 Portfolio Analytics Snapshot"]
        lines.append("=" * 50)
        lines.append(f"📁 Portfolio: {self.portfolio_name or '(in-memory)'}")
        lines.append(f"📈 Benchmark: {meta['benchmark_symbol']}  |  Window: {meta['window']}")
        lines.append(f"🕒 Refreshed: {meta['refreshed_at']}")
        lines.append(f"❤️  Health score: {self.health.get('score', 'n/a')}/100")
        return "\n".join(lines)

    def _format_metrics(self) -> str:
        m = self.payload["metrics"]
        rows = [
            ["Portfolio return", _fmt_number(m["portfolio_return_pct"], "{:+.2f}%")],
            ["Benchmark return", _fmt_number(m["benchmark_return_pct"], "{:+.2f}%")],
            ["Annualized return", _fmt_number(m["annualized_return_pct"], "{:+.2f}%")],
            ["Volatility", _fmt_number(m["volatility_pct"], "{:.2f}%")],
            ["Max drawdown", _fmt_number(m["max_drawdown_pct"], "{:.2f}%")],
            ["Sharpe ratio", _fmt_number(m["sharpe_ratio"])],
            ["Sortino ratio", _fmt_number(m["sortino_ratio"])],
            ["Beta", _fmt_number(m["beta"])],
            ["Alpha (annual)", _fmt_number(m["alpha_annual_pct"], "{:+.2f}%")],
            ["R²", _fmt_number(m["r_squared"], "{:.3f}")],
            ["Reference beta", _fmt_number(m["portfolio_beta_reference"])],
            ["Risk-free rate", _fmt_number(m["risk_free_rate"], "{:.2%}")],
        ]
        return "\n".join(_format_rows_as_text(["Metric", "Value"], rows, title="📐 Metrics"))

    def _format_holdings(self) -> str:
        rows = []
        for h in self.payload["holdings"]:
            rows.append(
                [
                    h["ticker"],
                    _abbreviate_label(h["sector"], 14, _DEFAULT_SECTOR_ABBR_MAP),
                    _fmt_number(h["weight_pct"], "{:.1f}%"),
                    _fmt_number(h["price"], "{:.2f}"),
                    _fmt_number(h["return_since_purchase_pct"], "{:+.1f}%"),
                    _fmt_number(h["volatility_12m_pct"], "{:.1f}%"),
                    str(h["risk_score"]) if h["risk_score"] is not None else "n/a",
                    h["risk_bucket"] or "n/a",
                ]
            )
        headers = ["Ticker", "Sector", "Weight", "Price", "Return", "Vol", "Risk", "Bucket"]
        return "\n".join(_format_rows_as_text(headers, rows, title="💼 Holdings"))

    def _format_sectors(self) -> str:
        rows = [
            [
                _abbreviate_label(s["sector"], 16, _DEFAULT_SECTOR_ABBR_MAP),
                _fmt_number(s["allocation_pct"], "{:.1f}%"),
                _fmt_number(s["target_pct"], "{:.1f}%"),
                _fmt_number(s["active_tilt"], "{:+.1f}"),
            ]
            for s in self.payload["sectors"]
        ]
        return "\n".join(
            _format_rows_as_text(["Sector", "Portfolio", "Target", "Tilt"], rows, title="🏭 Sector Allocation")
        )

    def _format_risk(self) -> str:
        risk = self.payload["risk"]
        c, d, b = risk["concentration"], risk["diversification"], risk["beta"]
        lines = ["\n⚖️  Risk"]
        lines.append(
            f"Concentration: {c['level']} (largest {c['largest_position_pct']:.1f}%, "
            f"top 2 {c['top2_pct']:.1f}%, HHI {c['hhi']:.3f}, effective {c['effective_holdings']:.1f})"
        )
        lines.append(f"Diversification: {d['score']:.1f}/10 across {d['holdings']} holdings")
        lines.append(f"Beta: {b['value']:.2f} ({b['level']}, {b['source']})")
        return "\n".join(lines)

    def _format_dividends(self) -> str:
        dividends = self.payload.get("dividends")
        if not dividends:
            return ""
        lines = [f"\n💵 Dividends {dividends['year']}: ${dividends['total_income']:,.2f}"]
        lines.append(
            "  ".join(f"{q['label']} ${q['amount']:,.2f}" for q in dividends["quarterly_totals"])
        )
        projection = dividends.get("projection")
        if projection:
            lines.append(
                f"Projected {len(projection['points'])}m: distributed ${projection['total_distributed']:,.2f}"
                f" | reinvested ${projection['total_reinvested']:,.2f}"
            )
        return "\n".join(lines)

    def _format_flags(self) -> str:
        if not self.flags:
            return ""
        icons = {"error": "❌", "warning": "⚠️ ", "info": "ℹ️ ", "success": "✅"}
        lines = ["\n🚩 Flags"]
        lines.extend(f"{icons.get(f['severity'], '•')} {f['message']}" for f in self.flags)
        warnings = self.payload["meta"].get("warnings") or []
        if warnings:
            lines.append("\nData warnings:")
            lines.extend(f"  - {w}" for w in warnings)
        return "\n".join(lines)
