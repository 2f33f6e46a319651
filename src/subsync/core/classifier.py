"""
Failure classification for the sync loop.

Every exception raised by a remote call or a store call is turned into a
ClassifiedError at the loop boundary. Nothing deeper in the loop looks at
raw error messages.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from subsync.core.types import ErrorKind
from subsync.exceptions import (
    ConfigurationError,
    MirrorError,
    QuotaExhaustedError,
    RemoteAPIError,
    StateStoreError,
)

DEFAULT_QUOTA_MARKERS: tuple[str, ...] = ("quotaExceeded", "dailyLimitExceeded")

# Failures of the engine's own collaborators end the run
FATAL_ERRORS: tuple[type[BaseException], ...] = (ConfigurationError, StateStoreError, MirrorError)


@dataclass(frozen=True)
class ClassifiedError:
    """A failure together with the kind assigned by the classifier."""

    kind: ErrorKind
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__

    @property
    def is_quota(self) -> bool:
        return self.kind is ErrorKind.QUOTA

    @property
    def is_fatal(self) -> bool:
        return self.kind is ErrorKind.FATAL

    def __str__(self) -> str:
        return f"[{self.kind.value}] {type(self.error).__name__}: {self.message}"


class ErrorClassifier:
    """
    Assigns every failure to Quota, Transient or Fatal.

    Quota is recognised by a stable marker the remote API reserves for
    exceeded-quota responses, matched against the error's reason code and
    message. The marker list is configurable because the engine depends on
    it being stable.

    Examples:
        >>> classifier = ErrorClassifier()
        >>> classifier.classify(RemoteAPIError("forbidden", status=403, reason="quotaExceeded"))
        <ErrorKind.QUOTA: 'quota'>
        >>> classifier.classify(TimeoutError("read timed out"))
        <ErrorKind.TRANSIENT: 'transient'>
    """

    def __init__(self, quota_markers: Iterable[str] | None = None):
        markers = tuple(quota_markers) if quota_markers is not None else DEFAULT_QUOTA_MARKERS
        if not markers:
            raise ValueError("at least one quota marker is required")
        self.quota_markers = markers

    def classify(self, error: BaseException) -> ErrorKind:
        if isinstance(error, QuotaExhaustedError):
            return ErrorKind.QUOTA
        if isinstance(error, FATAL_ERRORS):
            return ErrorKind.FATAL
        if self._has_quota_marker(error):
            return ErrorKind.QUOTA
        return ErrorKind.TRANSIENT

    def wrap(self, error: BaseException) -> ClassifiedError:
        return ClassifiedError(kind=self.classify(error), error=error)

    def _has_quota_marker(self, error: BaseException) -> bool:
        haystacks = [str(error)]
        if isinstance(error, RemoteAPIError) and error.reason:
            haystacks.append(error.reason)
        return any(marker in text for marker in self.quota_markers for text in haystacks)
