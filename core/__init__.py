"""
Core package: snapshot result objects, interpretive flags and the health score.

Everything here consumes the serialized snapshot dict produced by
``portfolio_analytics_engine``; nothing here fetches market data.
"""
