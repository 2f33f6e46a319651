"""
Remote membership API: HTTP client, paginated source and retry policy.
"""

from subsync.remote.client import MembershipAPI
from subsync.remote.retry import NO_RETRY_POLICY, RetryPolicy
from subsync.remote.source import MembershipLister, PaginatedSource

__all__ = [
    "MembershipAPI",
    "MembershipLister",
    "PaginatedSource",
    "RetryPolicy",
    "NO_RETRY_POLICY",
]
