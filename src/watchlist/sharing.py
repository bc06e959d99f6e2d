"""Watchlist Sharing.

Creates and retrieves share links through the share server. The server
owns tokens, expiry, and access counts; this module only sends a
watchlist snapshot, normalizes the response into a ``WatchlistShare``,
and lets callers abandon a request through a ``CancellationToken``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from src.logging_config import RequestContext, generate_request_id, log_performance
from src.watchlist.exceptions import ShareApiError, ShareCancelledError
from src.watchlist.models import Watchlist, WatchlistShare
from src.watchlist.schemas import (
    ApiErrorBody,
    ShareCreatedResponse,
    ShareRetrievedResponse,
    watchlist_to_json,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

REQUEST_ID_HEADER = "X-Request-ID"
NETWORK_ERROR_MESSAGE = "No response from server. Please check your connection."


# =====================================================================
# Configuration
# =====================================================================


@dataclass
class ShareApiConfig:
    """Connection settings for the share server."""
    base_url: str = "http://localhost:8080/api/v1"
    request_timeout: float = 30.0


# =====================================================================
# Cancellation
# =====================================================================


class CancellationToken:
    """Lets a caller give up on an in-flight share request.

    Once ``cancel()`` is called, the request it was passed to raises
    ``ShareCancelledError`` instead of returning, even if the server's
    response has already arrived.

    Example:
        token = CancellationToken()
        task = asyncio.create_task(service.retrieve_share("swift-golden-dragon", token))
        ...
        token.cancel()  # dialog closed
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ShareCancelledError()

    async def wait(self) -> None:
        await self._event.wait()


# =====================================================================
# HTTP Client
# =====================================================================


class ShareApiClient:
    """Async HTTP client for the share endpoints.

    Every failure is raised as ``ShareApiError``: HTTP errors carry the
    response status, transport failures carry status 0.

    Example:
        async with ShareApiClient(ShareApiConfig(base_url="https://ge.example/api/v1")) as client:
            service = ShareService(client)
            share = await service.create_share(watchlist)
    """

    def __init__(
        self,
        config: Optional[ShareApiConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config or ShareApiConfig()
        self._http = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.request_timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "ShareApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def create_share(self, payload: dict[str, Any]) -> ShareCreatedResponse:
        """POST /watchlists/share"""
        return await self._request("POST", "/watchlists/share", ShareCreatedResponse, json=payload)

    async def get_share(self, token: str) -> ShareRetrievedResponse:
        """GET /watchlists/share/{token}"""
        path = f"/watchlists/share/{quote(token, safe='')}"
        return await self._request("GET", path, ShareRetrievedResponse)

    async def _request(
        self,
        method: str,
        path: str,
        response_model: type[M],
        json: Optional[dict[str, Any]] = None,
    ) -> M:
        request_id = generate_request_id()
        with RequestContext(request_id=request_id):
            logger.debug("%s %s", method, path)
            try:
                resp = await self._http.request(
                    method, path, json=json, headers={REQUEST_ID_HEADER: request_id}
                )
            except httpx.RequestError as exc:
                logger.error("Share API network error: %s", exc)
                raise ShareApiError(NETWORK_ERROR_MESSAGE, status=0, request_id=request_id) from exc

            if resp.is_error:
                raise self._error_from_response(resp, request_id)

            try:
                return response_model.model_validate(resp.json())
            except (ValueError, ValidationError) as exc:
                logger.error("Share API returned an invalid %s body", response_model.__name__)
                raise ShareApiError(
                    "Invalid response from server",
                    status=resp.status_code,
                    request_id=request_id,
                ) from exc

    @staticmethod
    def _error_from_response(resp: httpx.Response, request_id: str) -> ShareApiError:
        try:
            raw = resp.json()
        except ValueError:
            raw = None
        body = ApiErrorBody.model_validate(raw) if isinstance(raw, dict) else ApiErrorBody()

        error = ShareApiError(
            body.error or body.message or f"Request failed with status {resp.status_code}",
            status=resp.status_code,
            request_id=body.request_id or resp.headers.get(REQUEST_ID_HEADER) or request_id,
            details=body.details,
        )
        logger.error(
            "Share API error %d: %s",
            error.status, error.message,
        )
        return error


# =====================================================================
# Service
# =====================================================================


class ShareService:
    """Creates and retrieves watchlist shares.

    Remote errors propagate unchanged; nothing is retried or cached.
    Callers should check user input with ``is_valid_share_token`` before
    ``retrieve_share`` to avoid a pointless round trip.
    """

    def __init__(self, client: ShareApiClient):
        self._client = client

    @log_performance(threshold_ms=2000)
    async def create_share(
        self,
        watchlist: Watchlist,
        cancel_token: Optional[CancellationToken] = None,
    ) -> WatchlistShare:
        """Publish a snapshot of ``watchlist`` and return the share.

        ``expires_at`` is whatever the server reports; ``access_count``
        starts at 0.
        """
        snapshot = watchlist.snapshot()
        try:
            payload = {"watchlist": watchlist_to_json(snapshot)}
        except ValidationError as exc:
            raise ShareApiError(
                "Watchlist cannot be shared: it contains invalid data",
                status=400,
                details={"errors": exc.error_count()},
            ) from exc

        response = await self._run(lambda: self._client.create_share(payload), cancel_token)

        logger.info(
            "Shared watchlist %s as %s (expires %s)",
            snapshot.watchlist_id, response.token, response.expires_at.isoformat(),
        )
        return WatchlistShare(
            token=response.token,
            watchlist=snapshot,
            expires_at=response.expires_at,
            access_count=0,
        )

    @log_performance(threshold_ms=2000)
    async def retrieve_share(
        self,
        token: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> WatchlistShare:
        """Fetch the watchlist snapshot behind ``token``."""
        response = await self._run(lambda: self._client.get_share(token), cancel_token)

        logger.info("Retrieved share %s (accessed %d times)", token, response.access_count)
        return WatchlistShare(
            token=token,
            watchlist=response.watchlist.to_model(),
            expires_at=response.expires_at,
            access_count=response.access_count,
        )

    async def _run(
        self,
        call: Callable[[], Awaitable[T]],
        cancel_token: Optional[CancellationToken],
    ) -> T:
        """Await ``call()``, racing it against ``cancel_token``."""
        if cancel_token is None:
            return await call()

        cancel_token.raise_if_cancelled()
        request = asyncio.ensure_future(call())
        waiter = asyncio.ensure_future(cancel_token.wait())
        try:
            await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            request.cancel()
            raise
        finally:
            waiter.cancel()

        if not request.done():
            request.cancel()
            await asyncio.wait({request})

        if cancel_token.cancelled:
            if not request.cancelled():
                # Mark any late exception as retrieved; the result is discarded.
                request.exception()
            logger.info("Share request cancelled by caller")
            raise ShareCancelledError()

        return request.result()
