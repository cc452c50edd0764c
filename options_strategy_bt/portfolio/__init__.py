"""
Portfolio layer: resolved legs, open/closed trades, daily snapshots.
"""

from .trades import (
    CONTRACT_MULTIPLIER,
    CloseReason,
    ResolvedLeg,
    ActiveTrade,
    ClosedTrade,
    DailyLog,
    close_trade,
    signed_value,
)

__all__ = [
    "CONTRACT_MULTIPLIER",
    "CloseReason",
    "ResolvedLeg",
    "ActiveTrade",
    "ClosedTrade",
    "DailyLog",
    "close_trade",
    "signed_value",
]
