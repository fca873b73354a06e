"""Background workers: chain mirror and job orchestrator."""

from medialane.workers.mirror_worker import MirrorTick, run_mirror_worker
from medialane.workers.orchestrator_worker import Orchestrator

__all__ = [
    "MirrorTick",
    "run_mirror_worker",
    "Orchestrator",
]
