"""
Strategy rules: when to open and when to close trades
"""

from .entries import frequency_allows, should_enter
from .exits import evaluate_exit

__all__ = ["frequency_allows", "should_enter", "evaluate_exit"]
