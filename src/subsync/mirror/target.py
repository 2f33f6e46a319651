"""
Indexed view of the mirror used by the Pusher.
"""

from __future__ import annotations

from subsync.core.dedup import IdentifierFormat
from subsync.core.types import CandidateUnit
from subsync.mirror.table import HEADER_ROW, MirrorTable


class IndexedTarget:
    """
    Ordered candidate identifiers read from the mirror.

    Position ``n`` is the n-th data row (zero-based), so the push checkpoint
    stays valid while the Puller appends new rows behind it.
    """

    def __init__(self, mirror: MirrorTable, identifier_format: IdentifierFormat | None = None):
        self.mirror = mirror
        self.identifier_format = identifier_format or IdentifierFormat()

    def candidates_from(self, index: int) -> list[CandidateUnit]:
        """
        Candidates at positions ``index`` and after, read in one pass.

        Blank cells are kept as empty identifiers so positions stay aligned
        with the rows; the Pusher skips them.
        """
        if index < 0:
            raise ValueError("index must be >= 0")
        start_row = HEADER_ROW + 1 + index
        values = self.mirror.read_column("identifier", start_row=start_row)
        return [
            CandidateUnit(identifier=(value or "").strip(), position=index + offset)
            for offset, value in enumerate(values)
        ]

    def count(self) -> int:
        return self.mirror.row_count()

    def is_valid(self, candidate: CandidateUnit) -> bool:
        return self.identifier_format.matches(candidate.identifier)
