"""
Timeout-bounded HTTP GET over a shared httpx.AsyncClient.
"""
import asyncio
import time
from typing import Dict, Optional

import httpx
import structlog

from .errors import FetchTimeoutError, TrackerError, TransportError

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 10.0


class HTTPFetcher:
    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = 'SatelliteTracker/1.0',
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the fetcher.

        Args:
            timeout: Default bound in seconds for a single request.
            user_agent: User-Agent header sent with every request.
            client: Pre-built client, e.g. one mounted on an httpx.MockTransport.
        """
        self.timeout = timeout
        self.user_agent = user_agent

        headers = {
            'User-Agent': self.user_agent,
            'Accept': 'application/json',
        }
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            max_redirects=5,
            headers=headers,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )

    async def __aenter__(self) -> "HTTPFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, url: str, timeout: float = None,
                    headers: Dict[str, str] = None) -> httpx.Response:
        """GET ``url`` and return the raw response.

        The request is cancelled if no response arrives within ``timeout``
        seconds; FetchTimeoutError is raised in that case and TransportError for
        any other network failure. A malformed URL raises TrackerError, which
        is not retried. Status codes are not checked here.
        """
        timeout = self.timeout if timeout is None else timeout
        start_time = time.monotonic()

        try:
            response = await asyncio.wait_for(
                self._client.get(url, headers=headers, timeout=httpx.Timeout(timeout)),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning("fetch_timeout", url=url, timeout=timeout)
            raise FetchTimeoutError(f"Timeout after {timeout}s: {url}") from e
        except httpx.HTTPError as e:
            logger.warning("fetch_transport_error", url=url, error=str(e))
            raise TransportError(f"Connection error: {e}") from e
        except httpx.InvalidURL as e:
            logger.error("fetch_invalid_url", url=url, error=str(e))
            raise TrackerError(f"Invalid URL {url!r}: {e}") from e

        logger.debug("fetch_completed",
                     url=url,
                     status_code=response.status_code,
                     fetch_time=round(time.monotonic() - start_time, 3))
        return response


def raise_for_status(response: httpx.Response) -> None:
    """Map a non-2xx response to TransportError."""
    if not response.is_success:
        raise TransportError(f"HTTP error! status: {response.status_code}",
                             status_code=response.status_code)
