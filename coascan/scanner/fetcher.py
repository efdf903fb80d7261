"""Async document fetcher routed through a retrieval proxy."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from coascan.config import settings
from coascan.errors import FetchError

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; COAScan/1.0)",
    "Accept": "application/pdf,*/*;q=0.8",
}


def build_retrieval_url(url: str, proxy_url: str) -> str:
    """Return the URL actually requested for *url*.

    *proxy_url* receives the target URL-encoded, either substituted for a
    ``{url}`` placeholder or appended to the end.  An empty *proxy_url*
    means the document is fetched directly.
    """
    if not proxy_url:
        return url
    encoded = quote(url, safe="")
    if "{url}" in proxy_url:
        return proxy_url.replace("{url}", encoded)
    return f"{proxy_url}{encoded}"


class DocumentFetcher:
    """Retrieve raw document bytes for a scanned URL.

    A single attempt is made per call; any failure raises
    :class:`~coascan.errors.FetchError`.

    Args:
        proxy_url: Indirection endpoint.  Defaults to
            ``settings.document_proxy_url``.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport, used by tests.
    """

    def __init__(
        self,
        proxy_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.proxy_url = settings.document_proxy_url if proxy_url is None else proxy_url
        self.timeout = settings.request_timeout if timeout is None else timeout
        self._transport = transport

    async def fetch(self, url: str) -> bytes:
        """Fetch *url* through the proxy and return the full payload.

        Raises:
            FetchError: On a transport failure or a non-2xx response.
        """
        target = build_retrieval_url(url, self.proxy_url)
        logger.info("Fetching %s via %s", url, target)

        try:
            async with httpx.AsyncClient(
                headers=_DEFAULT_HEADERS,
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(target)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(url, str(exc) or exc.__class__.__name__) from exc

        if not response.is_success:
            raise FetchError(
                url,
                response.reason_phrase or "unexpected status",
                status_code=response.status_code,
            )

        logger.debug("Fetched %d bytes from %s", len(response.content), url)
        return response.content
