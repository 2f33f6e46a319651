"""
The durable tabular mirror and the Pusher's indexed view of it.
"""

from subsync.mirror.table import HEADER, MirrorTable, validate_mirror_id
from subsync.mirror.target import IndexedTarget

__all__ = ["HEADER", "MirrorTable", "IndexedTarget", "validate_mirror_id"]
