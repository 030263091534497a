"""
Core Constants Module

Static reference tables for sector classification, benchmark proxies and
the composite holding-risk model. Kept in one place so the classifier, the
snapshot builder and the report layer agree on names and colors.
"""

# Canonical Sectors
# =================
# Every sector label leaving the engine is one of these, or a pass-through
# label for instruments outside the equity sector taxonomy (ETF, Fixed
# Income, Commodities...).

CANONICAL_SECTORS = (
    "Technology",
    "Communication Services",
    "Consumer Discretionary",
    "Consumer Staples",
    "Healthcare",
    "Financial Services",
    "Industrial",
    "Energy",
    "Materials",
    "Real Estate",
    "Utilities",
)

OTHER_SECTOR = "Other"

# Provider label -> canonical sector (matched on the lower-cased label)
SECTOR_NAME_ALIASES = {
    "technology": "Technology",
    "information technology": "Technology",
    "communication services": "Communication Services",
    "communications": "Communication Services",
    "telecommunication services": "Communication Services",
    "consumer discretionary": "Consumer Discretionary",
    "consumer cyclical": "Consumer Discretionary",
    "consumer staples": "Consumer Staples",
    "consumer defensive": "Consumer Staples",
    "health care": "Healthcare",
    "healthcare": "Healthcare",
    "financials": "Financial Services",
    "financial services": "Financial Services",
    "financial": "Financial Services",
    "industrials": "Industrial",
    "industrial": "Industrial",
    "energy": "Energy",
    "materials": "Materials",
    "basic materials": "Materials",
    "real estate": "Real Estate",
    "reit": "Real Estate",
    "reits": "Real Estate",
    "utilities": "Utilities",
    "utility": "Utilities",
}

# Compact provider keys (letters only, lower-cased) -> canonical sector
SECTOR_KEY_ALIASES = {
    "technology": "Technology",
    "informationtechnology": "Technology",
    "healthcare": "Healthcare",
    "healthcaresector": "Healthcare",
    "healthcareequipmentservices": "Healthcare",
    "financials": "Financial Services",
    "financial": "Financial Services",
    "financialservices": "Financial Services",
    "industrials": "Industrial",
    "industrial": "Industrial",
    "consumerdiscretionary": "Consumer Discretionary",
    "consumercyclical": "Consumer Discretionary",
    "consumerstaples": "Consumer Staples",
    "consumerdefensive": "Consumer Staples",
    "communicationservices": "Communication Services",
    "communications": "Communication Services",
    "telecommunicationservices": "Communication Services",
    "energy": "Energy",
    "materials": "Materials",
    "basicmaterials": "Materials",
    "realestate": "Real Estate",
    "reit": "Real Estate",
    "reits": "Real Estate",
    "utilities": "Utilities",
    "utility": "Utilities",
}

# Builtin Sector Overrides
# ========================
# Well-known tickers resolved without a provider round trip.

BUILTIN_SECTORS = {
    "AAPL": "Technology",
    "MSFT": "Technology",
    "GOOGL": "Technology",
    "GOOG": "Technology",
    "NVDA": "Technology",
    "META": "Technology",
    "AMZN": "Consumer Discretionary",
    "TSLA": "Consumer Discretionary",
    "JPM": "Financial Services",
    "V": "Financial Services",
    "GS": "Financial Services",
    "MS": "Financial Services",
    "BAC": "Financial Services",
    "JNJ": "Healthcare",
    "UNH": "Healthcare",
    "XOM": "Energy",
    "CVX": "Energy",
    "TTE": "Energy",
    "BP": "Energy",
    "SPY": "ETF",
    "QQQ": "ETF",
    "DIA": "ETF",
    "IWM": "ETF",
    "VTI": "ETF",
    "VOO": "ETF",
    "BND": "Fixed Income",
    "AGG": "Fixed Income",
    "LQD": "Fixed Income",
    "HYG": "Fixed Income",
    "TLT": "Government Bonds",
    "IEF": "Government Bonds",
    "SHY": "Government Bonds",
    "GLD": "Commodities",
    "SLV": "Commodities",
    "DBC": "Commodities",
    "GDX": "Materials",
    "VNQ": "Real Estate",
}

# Benchmark Proxies
# =================
# Index symbols have no sector breakdown of their own; a liquid fund
# tracking the same index stands in for them.

BENCHMARK_PROXIES = {
    "^GSPC": "SPY",
    "^NDX": "QQQ",
    "^DJI": "DIA",
    "^RUT": "IWM",
}

# Coarse S&P 500 sector weights used when the provider breakdown is unusable
FALLBACK_SECTOR_TARGETS = {
    "Technology": 25.0,
    "Healthcare": 13.0,
    "Financial Services": 12.0,
    "Industrial": 10.0,
    "Communication Services": 9.0,
    "Consumer Discretionary": 10.0,
    "Consumer Staples": 7.0,
    "Energy": 5.0,
    "Materials": 3.0,
    "Utilities": 3.0,
    "Real Estate": 3.0,
    "Other": 0.0,
}

# Sector Colors (for charts)
# ==========================

SECTOR_COLORS = {
    "information technology": "#2563eb",
    "technology": "#2563eb",
    "communication services": "#0284c7",
    "communications": "#0284c7",
    "telecommunication services": "#0284c7",
    "consumer discretionary": "#ea580c",
    "consumer cyclical": "#ea580c",
    "consumer staples": "#16a34a",
    "consumer defensive": "#16a34a",
    "health care": "#059669",
    "healthcare": "#059669",
    "financials": "#d97706",
    "financial services": "#d97706",
    "financial": "#d97706",
    "industrials": "#7c3aed",
    "industrial": "#7c3aed",
    "energy": "#dc2626",
    "materials": "#9333ea",
    "basic materials": "#9333ea",
    "real estate": "#be123c",
    "reit": "#be123c",
    "reits": "#be123c",
    "utilities": "#0f766e",
    "utility": "#0f766e",
    "etf": "#334155",
    "fund": "#334155",
    "index fund": "#334155",
    "other": "#6b7280",
}

SECTOR_COLOR_PALETTE = (
    "#2563eb", "#0284c7", "#ea580c", "#16a34a", "#059669", "#d97706",
    "#7c3aed", "#dc2626", "#9333ea", "#0f766e", "#3f6212", "#1f2937",
)

DEFAULT_SECTOR_COLOR = "#6b7280"

# Holding Risk Model
# ==================
# (key, label, weight). Weights sum to 1.0; the eleven market and
# fundamental factors share 90% and position size takes the last 10%.

RISK_COMPONENT_TABLE = (
    ("vol", "Volatility (12m)", 0.18),
    ("mdd", "Max Drawdown (12m)", 0.09),
    ("beta", "Beta", 0.045),
    ("d2e", "Debt/Equity", 0.135),
    ("icov", "Interest Coverage", 0.09),
    ("pe", "P/E (or P/S)", 0.054),
    ("peg", "PEG", 0.045),
    ("fcfy", "FCF Yield %", 0.036),
    ("adv", "Avg $ Volume (10d)", 0.09),
    ("short", "Short Interest", 0.09),
    ("evt", "Earnings Proximity", 0.045),
    ("pos", "Position Size (weight %)", 0.10),
)

NEUTRAL_COMPONENT_SCORE = 50.0
UNKNOWN_EARNINGS_SCORE = 20.0
