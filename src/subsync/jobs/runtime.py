"""
Per-invocation wiring for the sync jobs.

A Runtime turns the project configuration into the collaborators a job
needs (checkpoint store, mirror, remote client, classifier, settings) and
releases them when the invocation ends.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from subsync.config.loader import Config
from subsync.connections.manager import ConnectionManager
from subsync.core.budget import TimeBudgetGuard
from subsync.core.classifier import DEFAULT_QUOTA_MARKERS, ErrorClassifier
from subsync.core.dedup import IdentifierFormat
from subsync.core.state import MIRROR_ID, CheckpointStore
from subsync.exceptions import ConfigurationError
from subsync.mirror.table import MirrorTable
from subsync.remote.client import MembershipAPI
from subsync.remote.source import MembershipLister
from subsync.utils.logging import get_logger

logger = get_logger("subsync.jobs.runtime")


@dataclass(frozen=True)
class JobSettings:
    """
    Execution limits for one job.

    ``time_limit`` is the host's hard kill timeout; runs yield once
    ``time_limit - safety_margin`` seconds have passed. ``unit_delay`` is the
    pause after each side-effecting remote call.
    """

    time_limit: float = 360.0
    safety_margin: float = 30.0
    unit_delay: float = 0.0

    @classmethod
    def from_config(cls, config: dict[str, Any], job: str) -> JobSettings:
        defaults = DEFAULT_SETTINGS.get(job, cls())
        section = ((config.get("jobs") or {}).get(job)) or {}
        if not isinstance(section, dict):
            raise ConfigurationError(f"jobs.{job} must be a mapping")
        try:
            settings = cls(
                time_limit=float(section.get("time_limit", defaults.time_limit)),
                safety_margin=float(section.get("safety_margin", defaults.safety_margin)),
                unit_delay=float(section.get("unit_delay", defaults.unit_delay)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid value in jobs.{job}: {e}") from e
        if settings.time_limit <= 0 or not 0 <= settings.safety_margin < settings.time_limit:
            raise ConfigurationError(
                f"jobs.{job}: need time_limit > 0 and 0 <= safety_margin < time_limit",
                details={"time_limit": settings.time_limit, "safety_margin": settings.safety_margin},
            )
        if settings.unit_delay < 0:
            raise ConfigurationError(f"jobs.{job}.unit_delay must be >= 0")
        return settings


DEFAULT_SETTINGS: dict[str, JobSettings] = {
    "puller": JobSettings(time_limit=360.0, safety_margin=30.0, unit_delay=0.0),
    "pusher": JobSettings(time_limit=360.0, safety_margin=30.0, unit_delay=1.0),
}


class Runtime:
    """
    Collaborators for one job invocation.

    Connections are opened lazily and closed by ``aclose``. A remote client
    can be injected (tests, alternative transports); otherwise one is built
    from the ``remote`` config section on first use.
    """

    def __init__(self, config: Config | dict[str, Any], *, api: MembershipLister | None = None):
        self.config: dict[str, Any] = config.data if isinstance(config, Config) else dict(config)
        self._manager: ConnectionManager | None = None
        self._store: CheckpointStore | None = None
        self._classifier: ErrorClassifier | None = None
        self._api = api
        self._owns_api = api is None

    @property
    def connections(self) -> ConnectionManager:
        if self._manager is None:
            self._manager = ConnectionManager(self.config)
        return self._manager

    @property
    def store(self) -> CheckpointStore:
        if self._store is None:
            self._store = CheckpointStore(self.connections.for_role("state"))
        return self._store

    @property
    def classifier(self) -> ErrorClassifier:
        if self._classifier is None:
            markers = (self.config.get("remote") or {}).get("quota_markers") or DEFAULT_QUOTA_MARKERS
            self._classifier = ErrorClassifier(markers)
        return self._classifier

    @property
    def identifier_format(self) -> IdentifierFormat:
        return IdentifierFormat(prefix=str(self.config.get("identifier_prefix", "UC")))

    def settings(self, job: str) -> JobSettings:
        return JobSettings.from_config(self.config, job)

    def mirror_id(self) -> str:
        """The configured mirror id; its absence is a setup error."""
        mirror_id = self.store.get(MIRROR_ID)
        if not mirror_id:
            raise ConfigurationError(
                "No mirror configured. Run 'subsync mirror set <id>' first.", details={"key": MIRROR_ID}
            )
        return mirror_id

    def mirror(self, mirror_id: str | None = None) -> MirrorTable:
        return MirrorTable(self.connections.for_role("mirror"), mirror_id or self.mirror_id())

    async def api(self, guard: TimeBudgetGuard | None = None) -> MembershipLister:
        """The remote client, opened on first use and bound to the run's time budget."""
        if self._api is None:
            client = MembershipAPI.from_config(self.config.get("remote") or {}, classifier=self.classifier, guard=guard)
            self._api = await client.__aenter__()
        elif guard is not None and isinstance(self._api, MembershipAPI) and self._api.guard is None:
            self._api.guard = guard
        return self._api

    async def aclose(self) -> None:
        if self._owns_api and isinstance(self._api, MembershipAPI):
            await self._api.close()
            self._api = None
        self.close()

    def close(self) -> None:
        """Close the database connections (the remote client is left alone)."""
        if self._manager is not None:
            self._manager.close_all()
            self._manager = None
            self._store = None
