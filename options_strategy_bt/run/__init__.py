"""
Run module: simulator, metrics, runner, progress sinks, CLI, and artifacts.
"""

from .simulator import TradeLifecycleSimulator, SimulationResult
from .metrics import SummaryMetrics, DetailMetrics, compute_summary, compute_details
from .progress import ProgressSink, LoggingProgressSink, RunRecordStore, RunRecordSink
from .runner import run_backtest, build_provider, BacktestRunResult
from .artifacts import RunArtifacts, generate_run_id

__all__ = [
    "TradeLifecycleSimulator",
    "SimulationResult",
    "SummaryMetrics",
    "DetailMetrics",
    "compute_summary",
    "compute_details",
    "ProgressSink",
    "LoggingProgressSink",
    "RunRecordStore",
    "RunRecordSink",
    "run_backtest",
    "build_provider",
    "BacktestRunResult",
    "RunArtifacts",
    "generate_run_id",
]
