"""
Valuation utilities outside the trade lifecycle
"""

from .walk import WalkLeg, WalkPoint, WalkMetrics, WalkResult, walk_strategy_value

__all__ = ["WalkLeg", "WalkPoint", "WalkMetrics", "WalkResult", "walk_strategy_value"]
