"""
Dedup filter: the set of identifiers already satisfied on the far side.

The Puller builds it from the mirror (identifiers already written), the
Pusher from a run-scoped listing of the remote membership (identifiers
already joined). Either way it is computed once per run and never persisted.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace

from subsync.core.types import CandidateUnit, MirrorRecord
from subsync.utils.logging import get_logger

logger = get_logger("subsync.dedup")


@dataclass(frozen=True)
class IdentifierFormat:
    """Format predicate for external identifiers (a required prefix)."""

    prefix: str = "UC"

    def matches(self, identifier: str | None) -> bool:
        if not identifier or not isinstance(identifier, str):
            return False
        identifier = identifier.strip()
        return identifier.startswith(self.prefix) and len(identifier) > len(self.prefix)


class DedupFilter:
    """
    Set of identifiers that need no further work.

    Examples:
        >>> dedup = DedupFilter(["UC1"])
        >>> "UC1" in dedup, "UC2" in dedup
        (True, False)
    """

    def __init__(self, identifiers: Iterable[str] = (), identifier_format: IdentifierFormat | None = None):
        self.identifier_format = identifier_format or IdentifierFormat()
        self._seen: set[str] = {i.strip() for i in identifiers if i}

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and identifier.strip() in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def add(self, identifier: str) -> None:
        self._seen.add(identifier.strip())

    def add_all(self, records: Iterable[MirrorRecord]) -> None:
        for record in records:
            self.add(record.identifier)

    def new_records(self, records: Iterable[MirrorRecord]) -> list[MirrorRecord]:
        """
        Records not yet satisfied, in input order.

        Drops identifiers already in the set, repeats within ``records`` and
        identifiers failing the format predicate. Does not add the survivors;
        call ``add_all`` once they are durably written.
        """
        fresh: list[MirrorRecord] = []
        batch: set[str] = set()
        for record in records:
            identifier = record.identifier.strip() if record.identifier else ""
            if not self.identifier_format.matches(identifier):
                logger.warning(f"Skipping item with malformed identifier {record.identifier!r}")
                continue
            if identifier in self._seen or identifier in batch:
                continue
            batch.add(identifier)
            if identifier != record.identifier:
                record = replace(record, identifier=identifier)
            fresh.append(record)
        return fresh

    def mark(self, candidates: Iterable[CandidateUnit]) -> int:
        """Set ``remote_present`` on each candidate; returns how many are present."""
        present = 0
        for candidate in candidates:
            candidate.remote_present = candidate.identifier in self
            present += candidate.remote_present
        return present
