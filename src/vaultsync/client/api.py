"""HTTP client for the vault sync API.

This module provides:
- RemoteClient: Async HTTP client for communicating with the server
- Typed errors mirroring the server's JSON error payload
- Response dataclasses for status, batch sync, delete, exclusions, schedule

Every request passes through a client-side rate limiter and an exponential
backoff retry. Transport failures, 5xx and 429 responses are retried; other
4xx responses are raised immediately.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

import httpx

from vaultsync.client.ratelimit import SlidingWindowRateLimiter
from vaultsync.client.retry import (
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_BACKOFF,
    DEFAULT_MAX_RETRIES,
    retry_with_backoff,
)
from vaultsync.core.config import ServerConfig
from vaultsync.core.types import ExclusionRules

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_PATH = "/api/vault/status"
SYNC_PATH = "/api/vault/sync"
DELETE_PATH = "/api/vault/delete"
EXCLUSIONS_PATH = "/api/vault/exclusions"
SCHEDULE_PATH = "/api/digest/schedule"

# Server accepts up to this many notes per sync request
MAX_SERVER_BATCH = 100


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: dict[str, list[str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code or "unknown_error"
        self.details = details


class TransportError(APIError):
    """No response received (connection failure, timeout)."""


class ServerError(APIError):
    """Server returned a 5xx response."""


class RateLimitedError(APIError):
    """Server throttled the request (429)."""


class ClientError(APIError):
    """Server rejected the request (4xx other than 429)."""


class AuthenticationError(ClientError):
    """Invalid or expired API token."""


class ValidationError(ClientError):
    """Malformed request payload."""


class InvalidResponseError(APIError):
    """Successful status with a body that is not the expected JSON object."""


def is_retryable(error: Exception) -> bool:
    """Check whether an error may resolve by waiting."""
    return isinstance(error, TransportError | ServerError | RateLimitedError)


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _parse(factory: Callable[[dict[str, Any]], T], data: dict[str, Any]) -> T:
    """Build a response dataclass, reporting shape errors as APIError."""
    try:
        return factory(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise InvalidResponseError(f"Malformed response: {e}", code="invalid_response") from e


@dataclass
class VaultStatus:
    """Sync counters reported by the server."""

    last_sync: datetime | None
    vault_name: str | None
    total_notes: int
    indexed_notes: int
    pending_notes: int
    exclusions: ExclusionRules

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VaultStatus:
        """Create from API response dictionary."""
        return cls(
            last_sync=_parse_datetime(data.get("last_sync")),
            vault_name=data.get("vault_name"),
            total_notes=data.get("total_notes", 0),
            indexed_notes=data.get("indexed_notes", 0),
            pending_notes=data.get("pending_notes", 0),
            exclusions=ExclusionRules.from_dict(data.get("exclusions")),
        )


@dataclass
class BatchItemError:
    """Per-note error reported inside a successful batch response."""

    path: str
    error: str


@dataclass
class SyncBatchResult:
    """Result of uploading one batch of notes."""

    batch_id: str
    processed: int
    indexed: int
    errors: list[BatchItemError] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncBatchResult:
        """Create from API response dictionary."""
        return cls(
            batch_id=data.get("batch_id", ""),
            processed=data.get("processed", 0),
            indexed=data.get("indexed", 0),
            errors=[
                BatchItemError(path=e["path"], error=e.get("error", ""))
                for e in data.get("errors") or []
            ],
        )

    @property
    def failed_paths(self) -> set[str]:
        return {e.path for e in self.errors}


@dataclass
class DeleteResult:
    """Result of a delete call."""

    deleted: int
    paths: list[str]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeleteResult:
        """Create from API response dictionary."""
        return cls(deleted=data.get("deleted", 0), paths=list(data.get("paths") or []))


@dataclass
class ExclusionsUpdateResult:
    """Result of replacing the exclusion rules."""

    updated: bool
    deleted_count: int
    deleted_paths: list[str]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExclusionsUpdateResult:
        """Create from API response dictionary."""
        return cls(
            updated=bool(data.get("updated", False)),
            deleted_count=data.get("deleted_count", 0),
            deleted_paths=list(data.get("deleted_paths") or []),
        )


@dataclass
class DigestSchedule:
    """Server-owned digest delivery schedule."""

    is_enabled: bool
    hour: int
    minute: int
    timezone: str
    next_digest_utc: datetime | None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DigestSchedule:
        """Create from API response dictionary."""
        return cls(
            is_enabled=bool(data.get("is_enabled", False)),
            hour=data.get("hour", 0),
            minute=data.get("minute", 0),
            timezone=data.get("timezone", "UTC"),
            next_digest_utc=_parse_datetime(data.get("next_digest_utc")),
        )


@dataclass
class ConnectionCheck:
    """Outcome of a connectivity test."""

    success: bool
    error: str | None = None


class RemoteClient:
    """Async HTTP client for the vault sync API."""

    def __init__(
        self,
        config: ServerConfig,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            config: Server configuration with URL, token, and settings.
            rate_limiter: Limiter shared by all requests (10 calls/s by default).
            max_retries: Retries after the first attempt for transient errors.
            initial_backoff: First retry delay in seconds.
            max_backoff: Cap on the retry delay in seconds.
            sleep: Awaitable sleep used between retries.
        """
        self._config = config
        self._rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self._max_retries = max_retries
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={
                "Authorization": f"Bearer {config.token}",
                "Content-Type": "application/json",
            },
        )

    @property
    def config(self) -> ServerConfig:
        return self._config

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> RemoteClient:
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.aclose()

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Return the decoded body or raise the matching APIError."""
        status = response.status_code
        if 200 <= status < 300:
            if not response.content:
                return {}
            try:
                data = response.json()
            except ValueError as e:
                raise InvalidResponseError(
                    f"Invalid JSON response: {e}", status, "invalid_response"
                ) from e
            if not isinstance(data, dict):
                raise InvalidResponseError(
                    "Expected a JSON object response", status, "invalid_response"
                )
            return data

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        message = payload.get("error") or f"HTTP {status}"
        code = payload.get("code")
        details = payload.get("details")

        if status in (401, 403):
            raise AuthenticationError(message, status, code, details)
        if status == 429:
            raise RateLimitedError(message, status, code, details)
        if status in (400, 422):
            raise ValidationError(message, status, code, details)
        if status >= 500:
            raise ServerError(message, status, code, details)
        raise ClientError(message, status, code, details)

    async def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated, rate-limited request with retry."""
        logger.debug("%s %s", method, path)

        async def attempt() -> dict[str, Any]:
            await self._rate_limiter.acquire()
            try:
                response = await self._client.request(method, path, json=body)
            except httpx.TransportError as e:
                raise TransportError(f"{method} {path} failed: {e}") from e
            logger.debug("Response %s for %s %s", response.status_code, method, path)
            return self._handle_response(response)

        return await retry_with_backoff(
            attempt,
            max_retries=self._max_retries,
            initial_backoff=self._initial_backoff,
            max_backoff=self._max_backoff,
            should_retry=is_retryable,
            sleep=self._sleep,
        )

    # === Vault operations ===

    async def get_status(self) -> VaultStatus:
        """Get current sync status from server."""
        data = await self._request("GET", STATUS_PATH)
        return _parse(VaultStatus.from_dict, data)

    async def sync_notes(
        self,
        batch_id: str,
        notes: list[dict[str, Any]],
        is_final_batch: bool,
        vault_name: str | None = None,
    ) -> SyncBatchResult:
        """Upload a batch of note payloads.

        Args:
            batch_id: Unique batch identifier.
            notes: Note payloads (at most 100).
            is_final_batch: Whether this is the last batch of the run.
            vault_name: Vault name, used by the server for deep links.

        Raises:
            ValueError: If the batch exceeds the server limit.
        """
        if len(notes) > MAX_SERVER_BATCH:
            raise ValueError(f"Batch of {len(notes)} notes exceeds {MAX_SERVER_BATCH}")
        body: dict[str, Any] = {
            "batch_id": batch_id,
            "notes": notes,
            "is_final_batch": is_final_batch,
        }
        if vault_name:
            body["vault_name"] = vault_name
        data = await self._request("POST", SYNC_PATH, body)
        return _parse(SyncBatchResult.from_dict, data)

    async def delete_notes(self, paths: list[str]) -> DeleteResult:
        """Delete notes from the server by path."""
        data = await self._request("POST", DELETE_PATH, {"paths": paths})
        return _parse(DeleteResult.from_dict, data)

    async def get_exclusions(self) -> ExclusionRules:
        """Get current exclusion rules."""
        data = await self._request("GET", EXCLUSIONS_PATH)
        return _parse(ExclusionRules.from_dict, data)

    async def update_exclusions(self, rules: ExclusionRules) -> ExclusionsUpdateResult:
        """Replace the exclusion rules on the server."""
        data = await self._request("PUT", EXCLUSIONS_PATH, rules.to_dict())
        return _parse(ExclusionsUpdateResult.from_dict, data)

    async def get_digest_schedule(self) -> DigestSchedule:
        """Get the digest delivery schedule."""
        data = await self._request("GET", SCHEDULE_PATH)
        return _parse(DigestSchedule.from_dict, data)

    # === Health check ===

    async def test_connection(self) -> ConnectionCheck:
        """Check connectivity and credentials without raising."""
        try:
            await self.get_status()
        except APIError as e:
            return ConnectionCheck(success=False, error=str(e))
        return ConnectionCheck(success=True)
