"""AT Protocol repository async client with retry and rate-limit handling."""

import asyncio
import logging
import time
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from teal_shared.atproto.constants import (
    APPLY_WRITES_PATH,
    CREATE_SESSION_PATH,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PDS_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_BASE_DELAY,
    DELETE_RECORD_PATH,
    LIST_RECORDS_PATH,
    MAX_LIST_RECORDS_LIMIT,
)
from teal_shared.atproto.exceptions import (
    AtprotoAuthError,
    AtprotoRateLimitError,
    AtprotoRequestError,
    AtprotoServerError,
)
from teal_shared.atproto.models import ApplyWritesResponse, AtprotoSession, ListRecordsResponse

logger = logging.getLogger(__name__)


class AtprotoClient:
    """Async client for the com.atproto.repo endpoints of a PDS.

    Holds the session obtained from ``create_session``; repo calls act on the
    session's DID. Handles 429 backoff and 5xx retries internally.
    """

    def __init__(
        self,
        pds_url: str = DEFAULT_PDS_URL,
        *,
        session: AtprotoSession | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._pds_url = pds_url.rstrip("/")
        self._session = session
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._request_timeout = request_timeout

    @property
    def did(self) -> str | None:
        """DID of the authenticated account, or None before login."""
        return self._session.did if self._session else None

    @staticmethod
    def _parse_retry_after(value: str) -> float | None:
        """Retry-After is either delay seconds or an HTTP-date."""
        try:
            return max(0.0, float(value))
        except ValueError:
            pass
        try:
            retry_at = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=UTC)
        return max(0.0, (retry_at - datetime.now(UTC)).total_seconds())

    @classmethod
    def _retry_delay_from_headers(cls, response: httpx.Response) -> float | None:
        """Seconds to wait before retrying a 429, or None to use exponential backoff."""
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            delay = cls._parse_retry_after(retry_after.strip())
            if delay is not None:
                return delay
            logger.debug("Ignoring unparseable Retry-After header: %r", retry_after)
        reset = response.headers.get("ratelimit-reset")
        if reset:
            try:
                return max(0.0, float(reset) - time.time())
            except ValueError:
                logger.debug("Ignoring unparseable ratelimit-reset header: %r", reset)
        return None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str | int] | None = None,
        json_body: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        """Send an XRPC request with retry logic for 429/5xx.

        Retry loop:
        1. Send request with the session's Bearer token
        2. If 2xx: return response
        3. If 401: raise AtprotoAuthError
        4. If 429: sleep(Retry-After / ratelimit-reset or exponential backoff), continue
        5. If 5xx: sleep(exponential backoff), continue
        6. If other 4xx: raise AtprotoRequestError immediately
        """
        headers: dict[str, str] = {}
        if authenticated:
            if self._session is None:
                raise AtprotoAuthError("No authenticated session")
            headers["Authorization"] = f"Bearer {self._session.access_jwt}"

        last_status = 0
        last_retry_after: float | None = None

        for attempt in range(self._max_retries + 1):
            async with httpx.AsyncClient(timeout=self._request_timeout) as client:
                response = await client.request(
                    method,
                    f"{self._pds_url}{path}",
                    params=params,
                    json=json_body,
                    headers=headers,
                )

            last_status = response.status_code

            if 200 <= response.status_code < 300:
                return response

            if response.status_code == 401:
                raise AtprotoAuthError(f"PDS returned 401 Unauthorized: {self._error_detail(response)}")

            # 429 Rate Limited
            if response.status_code == 429:
                delay = self._retry_delay_from_headers(response)
                if delay is None:
                    delay = self._retry_base_delay * (2**attempt)
                last_retry_after = delay
                if attempt < self._max_retries:
                    logger.warning(
                        "PDS rate limited (429), sleeping %.1fs (attempt %d/%d)",
                        delay,
                        attempt + 1,
                        self._max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue

            # 5xx Server Error
            elif response.status_code >= 500:
                if attempt < self._max_retries:
                    delay = self._retry_base_delay * (2**attempt)
                    logger.warning(
                        "PDS server error %d, sleeping %.1fs (attempt %d/%d)",
                        response.status_code,
                        delay,
                        attempt + 1,
                        self._max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue

            # Other 4xx, non-retryable
            else:
                raise AtprotoRequestError(status_code=response.status_code, detail=self._error_detail(response))

        if last_status == 429:
            raise AtprotoRateLimitError(retry_after=last_retry_after)
        raise AtprotoServerError(status_code=last_status, detail="Max retries exhausted")

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        detail = f"HTTP {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] if response.text else detail
        if isinstance(body, dict):
            error = body.get("error")
            message = body.get("message")
            if error and message:
                return f"{error}: {message}"
            return str(message or error or detail)
        return detail

    # -------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------

    async def create_session(self, identifier: str, password: str) -> AtprotoSession:
        """POST com.atproto.server.createSession and keep the session."""
        response = await self._request(
            "POST",
            CREATE_SESSION_PATH,
            json_body={"identifier": identifier, "password": password},
            authenticated=False,
        )
        self._session = AtprotoSession.model_validate(response.json())
        logger.info("Logged in as %s (%s)", self._session.handle, self._session.did)
        return self._session

    # -------------------------------------------------------------------
    # Repository
    # -------------------------------------------------------------------

    async def list_records(
        self,
        collection: str,
        *,
        limit: int = MAX_LIST_RECORDS_LIMIT,
        cursor: str | None = None,
    ) -> ListRecordsResponse:
        """GET com.atproto.repo.listRecords for the session's repo."""
        params: dict[str, str | int] = {
            "repo": self.did or "",
            "collection": collection,
            "limit": min(limit, MAX_LIST_RECORDS_LIMIT),
        }
        if cursor is not None:
            params["cursor"] = cursor
        response = await self._request("GET", LIST_RECORDS_PATH, params=params)
        return ListRecordsResponse.model_validate(response.json())

    async def apply_writes(self, writes: list[dict[str, Any]]) -> ApplyWritesResponse:
        """POST com.atproto.repo.applyWrites. All writes succeed or fail together."""
        response = await self._request(
            "POST",
            APPLY_WRITES_PATH,
            json_body={"repo": self.did or "", "writes": writes},
        )
        if not response.content:
            return ApplyWritesResponse()
        return ApplyWritesResponse.model_validate(response.json())

    async def delete_record(self, collection: str, rkey: str) -> None:
        """POST com.atproto.repo.deleteRecord."""
        await self._request(
            "POST",
            DELETE_RECORD_PATH,
            json_body={"repo": self.did or "", "collection": collection, "rkey": rkey},
        )
