"""
The two scheduled jobs: the Puller (remote -> mirror) and the Pusher
(mirror -> remote).
"""

from subsync.jobs.puller import run_puller_sync
from subsync.jobs.pusher import run_pusher_sync
from subsync.jobs.runtime import JobSettings, Runtime

__all__ = ["run_puller_sync", "run_pusher_sync", "JobSettings", "Runtime"]
