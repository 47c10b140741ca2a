from .scheduler import RunDecision, RunScheduler
from .cells import CellRunner, CellRunState, compute_http_globals
from .coordinator import ExecutionCoordinator

__all__ = [
    "RunDecision", "RunScheduler",
    "CellRunner", "CellRunState", "compute_http_globals",
    "ExecutionCoordinator",
]
