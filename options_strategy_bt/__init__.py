"""
Multi-leg Options Strategy Backtester

A deterministic, day-by-day backtesting engine: strategies are described as leg templates,
strikes are resolved with Black-Scholes against daily bars, and trades move through a simple
open -> closed lifecycle driven by configurable entry/exit rules.
"""

__version__ = "0.1.0"
