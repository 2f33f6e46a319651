"""
subsync - resumable two-way sync between a remote membership list and a
tabular mirror, run as short scheduled invocations.
"""

__version__ = "0.1.0"

from subsync.config.loader import Config, load_config
from subsync.core.types import RunOutcome, RunResult
from subsync.exceptions import (
    ConfigurationError,
    MirrorError,
    QuotaExhaustedError,
    RemoteAPIError,
    StateStoreError,
    SubsyncError,
)
from subsync.jobs import run_puller_sync, run_pusher_sync

__all__ = [
    "__version__",
    "Config",
    "load_config",
    "RunOutcome",
    "RunResult",
    "run_puller_sync",
    "run_pusher_sync",
    "SubsyncError",
    "ConfigurationError",
    "StateStoreError",
    "MirrorError",
    "RemoteAPIError",
    "QuotaExhaustedError",
]
