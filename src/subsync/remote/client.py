"""
HTTP client for the remote membership API.

Speaks the YouTube Data API shape: memberships are ``subscriptions``,
listed with ``GET /subscriptions?mine=true&pageToken=...`` and joined with
``POST /subscriptions``. Only the two operations the sync engine needs are
exposed.

Every non-2xx response becomes a RemoteAPIError carrying the HTTP status and
the API's reason code; deciding what that error *means* is left to the
ErrorClassifier.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

import aiohttp

from subsync.config.resolver import is_unresolved
from subsync.core.budget import TimeBudgetGuard
from subsync.core.classifier import ErrorClassifier
from subsync.core.types import ErrorKind, MirrorRecord, Page
from subsync.exceptions import ConfigurationError, QuotaExhaustedError, RemoteAPIError
from subsync.remote.retry import RetryPolicy
from subsync.utils.logging import get_logger

logger = get_logger("subsync.remote.client")

DEFAULT_BASE_URL = "https://www.googleapis.com/youtube/v3"

# Reasons meaning "the membership already exists": the unit is satisfied
DUPLICATE_REASONS: tuple[str, ...] = ("subscriptionDuplicate",)

MAX_PAGE_SIZE = 50

# Floor for a budget-capped request timeout (aiohttp treats 0 as "no timeout")
MIN_REQUEST_TIMEOUT = 1.0


class MembershipAPI:
    """
    Async client for listing and joining memberships.

    Example:
        ```python
        async with MembershipAPI(access_token=token) as api:
            page = await api.list_page(None)
            await api.join("UCxxxxxxxx")
        ```
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        access_token: str | None = None,
        headers: dict[str, str] | None = None,
        page_size: int = MAX_PAGE_SIZE,
        timeout: float = 30,
        retry_policy: RetryPolicy | None = None,
        classifier: ErrorClassifier | None = None,
        guard: TimeBudgetGuard | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root (default: YouTube Data API v3)
            access_token: OAuth bearer token; sent as ``Authorization`` header
            headers: Extra default headers
            page_size: Items requested per listing page (1-50)
            timeout: Total timeout per HTTP request in seconds
            retry_policy: In-call retry for throttling and 5xx responses
            classifier: Used to make sure quota errors are never retried
            guard: Time budget of the current run; caps request timeouts and
                stops retrying once another attempt would not fit
        """
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        self.base_url = base_url.rstrip("/")
        self.default_headers = dict(headers or {})
        if access_token:
            self.default_headers["Authorization"] = f"Bearer {access_token}"
        self.page_size = page_size
        self.request_timeout = float(timeout)
        self.timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        self.retry_policy = retry_policy or RetryPolicy()
        self.classifier = classifier or ErrorClassifier()
        self.guard = guard
        self.session: aiohttp.ClientSession | None = None

    @classmethod
    def from_config(
        cls,
        remote_config: dict[str, Any],
        classifier: ErrorClassifier | None = None,
        guard: TimeBudgetGuard | None = None,
    ) -> MembershipAPI:
        """Build a client from the ``remote`` section of config.yaml."""
        token = remote_config.get("access_token")
        if not token or is_unresolved(token):
            raise ConfigurationError(
                "remote.access_token is not set (expected an OAuth token, usually via ${SUBSYNC_ACCESS_TOKEN})"
            )
        retry_config = remote_config.get("retry") or {}
        return cls(
            base_url=remote_config.get("base_url", DEFAULT_BASE_URL),
            access_token=token,
            page_size=int(remote_config.get("page_size", MAX_PAGE_SIZE)),
            timeout=float(remote_config.get("timeout", 30)),
            retry_policy=RetryPolicy(**retry_config),
            classifier=classifier,
            guard=guard,
        )

    async def __aenter__(self) -> MembershipAPI:
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout, headers=self.default_headers)
        return self.session

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def list_page(self, page_token: str | None) -> Page:
        """
        Fetch one page of the caller's memberships.

        Args:
            page_token: Opaque token from the previous page, or None for the first page

        Returns:
            Page of MirrorRecords plus the next page token (None on the last page)
        """
        params: dict[str, Any] = {"part": "snippet", "mine": "true", "maxResults": self.page_size}
        if page_token:
            params["pageToken"] = page_token
        payload = await self._request("GET", "/subscriptions", params=params)

        items = []
        for item in payload.get("items") or []:
            snippet = item.get("snippet") or {}
            channel_id = (snippet.get("resourceId") or {}).get("channelId")
            if not channel_id:
                logger.debug(f"Listing item without channelId skipped: {item.get('id')}")
                continue
            items.append(MirrorRecord.for_channel(channel_id, snippet.get("title")))
        return Page(items=items, next_cursor=payload.get("nextPageToken") or None)

    async def join(self, identifier: str) -> bool:
        """
        Join (subscribe to) one identifier.

        Returns:
            True if the membership was created, False if it already existed.

        Raises:
            QuotaExhaustedError: The account quota is used up
            RemoteAPIError: Any other failure
        """
        body = {"snippet": {"resourceId": {"kind": "youtube#channel", "channelId": identifier}}}
        try:
            await self._request("POST", "/subscriptions", params={"part": "snippet"}, json=body)
        except RemoteAPIError as e:
            if e.reason in DUPLICATE_REASONS:
                logger.debug(f"{identifier} already joined")
                return False
            raise
        return True

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Perform one API call with bounded in-call retry.

        Raises:
            RemoteAPIError: When the call fails and is not (or no longer) retryable
        """
        session = await self._ensure_session()
        url = f"{self.base_url}{path}"
        attempt = 0

        while True:
            start_time = time.monotonic()
            try:
                async with session.request(
                    method, url, params=params, json=json, timeout=self._attempt_timeout()
                ) as response:
                    duration = time.monotonic() - start_time
                    if response.status <= 299:
                        logger.debug(f"{method} {path} {response.status} {duration:.2f}s")
                        if response.content_type == "application/json":
                            return await response.json()  # type: ignore[no-any-return]
                        return {}
                    text = await response.text()
                    error = _error_from_response(method, path, response.status, text)
                    retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                    logger.warning(f"{method} {path} {response.status} {duration:.2f}s - {error.reason or text[:200]}")
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                error = RemoteAPIError(f"{method} {path} failed: {type(e).__name__}: {e}")
                error.__cause__ = e
                retry_after = None
                logger.warning(str(error))

            if self.classifier.classify(error) is ErrorKind.QUOTA:
                raise QuotaExhaustedError(error.message, status=error.status, reason=error.reason) from error
            if not self.retry_policy.should_retry(status=error.status, reason=error.reason, attempt=attempt):
                raise error
            delay = self.retry_policy.get_delay(attempt, retry_after)
            if self.guard is not None and self.guard.remaining() < delay + self.request_timeout:
                logger.warning(
                    f"Not retrying {method} {path}: {self.guard.remaining():.1f}s of budget left, "
                    f"a retry needs up to {delay + self.request_timeout:.1f}s"
                )
                raise error
            attempt += 1
            logger.debug(f"Retry {attempt}/{self.retry_policy.max_attempts} for {method} {path} in {delay:.2f}s")
            await asyncio.sleep(delay)

    def _attempt_timeout(self) -> aiohttp.ClientTimeout:
        """Per-request timeout, never running past the end of the time budget."""
        if self.guard is None:
            return self.timeout
        total = max(MIN_REQUEST_TIMEOUT, min(self.request_timeout, self.guard.remaining()))
        return aiohttp.ClientTimeout(total=total)


def _error_from_response(method: str, path: str, status: int, text: str) -> RemoteAPIError:
    """Build a RemoteAPIError from a Google-style JSON error body (or raw text)."""
    reason = None
    message = text[:500] if text else f"HTTP {status}"
    try:
        body = json.loads(text) if text else {}
    except ValueError:
        body = {}
    error_obj = body.get("error") if isinstance(body, dict) else None
    if isinstance(error_obj, dict):
        message = error_obj.get("message") or message
        errors = error_obj.get("errors") or []
        if errors and isinstance(errors[0], dict):
            reason = errors[0].get("reason")
        reason = reason or error_obj.get("status")
    return RemoteAPIError(f"{method} {path}: {message}", status=status, reason=reason)


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None
