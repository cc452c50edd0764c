"""
Risk layer: buying power / margin requirements
"""

from .buying_power import BuyingPowerBreakdown, buying_power_breakdown, calculate_buying_power

__all__ = ["BuyingPowerBreakdown", "buying_power_breakdown", "calculate_buying_power"]
