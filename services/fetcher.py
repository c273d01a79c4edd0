"""Single-request retrieval of the upstream status page."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Base class for anything that prevents a page from being fetched."""


class FetchFailure(FetchError):
    """Transport error or non-success response from the upstream site."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FetchCancelled(FetchError):
    """The fetch was abandoned because shutdown was requested."""


class SourceFetcher:
    """Owns the HTTP session used to read the status page.

    The session is opened once and reused for every fetch until the fetcher
    is closed; use it as an async context manager to pair the two.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 20.0,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def open(self) -> None:
        if self._client is not None:
            return
        headers = {"User-Agent": self.user_agent} if self.user_agent else None
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=headers,
            follow_redirects=True,
            transport=self._transport,
        )

    async def aclose(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def __aenter__(self) -> "SourceFetcher":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def fetch(self, cancel: Optional[asyncio.Event] = None) -> str:
        """Perform one GET and return the page body.

        When ``cancel`` is set while the request is in flight the request is
        abandoned and :class:`FetchCancelled` is raised instead of waiting for
        the transport timeout.
        """
        if self._client is None:
            raise RuntimeError("SourceFetcher must be opened before fetching.")
        if cancel is not None and cancel.is_set():
            raise FetchCancelled("Shutdown requested before fetch started.")

        request = asyncio.ensure_future(self._get(self._client))
        if cancel is None:
            return await request

        waiter = asyncio.ensure_future(cancel.wait())
        try:
            done, _pending = await asyncio.wait(
                {request, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not request.done():
                request.cancel()

        if request in done:
            return request.result()

        await asyncio.wait({request})
        raise FetchCancelled("Shutdown requested during fetch.")

    async def _get(self, client: httpx.AsyncClient) -> str:
        try:
            response = await client.get(self.url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise FetchFailure(
                f"Upstream responded with status {status_code}.",
                status_code=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchFailure(f"Request to {self.url} failed: {exc!r}") from exc
        logger.debug(
            "Fetched status page",
            extra={"url": self.url, "status_code": response.status_code},
        )
        return response.text
