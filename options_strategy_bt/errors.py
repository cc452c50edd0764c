"""
Exception hierarchy for backtest runs.
"""


class BacktestError(Exception):
    """Base class for errors raised by the backtest engine"""


class NoPriceDataError(BacktestError):
    """No price bars exist for the requested symbol/date range"""

    def __init__(self, symbol: str, start, end):
        self.symbol = symbol
        self.start = start
        self.end = end
        super().__init__(f"No historical price data available for {symbol} between {start} and {end}")


class UpstreamError(BacktestError):
    """The upstream market data source could not be reached or returned an error"""


class BacktestCancelled(BacktestError):
    """A cooperative cancellation request was observed inside the day loop"""

    def __init__(self, message: str = "cancelled"):
        super().__init__(message)
