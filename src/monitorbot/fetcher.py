"""HTTP fetcher.

All network I/O goes through a single Fetcher instance. The Fetcher receives
an httpx.AsyncClient via constructor injection; the CLI owns the client
lifecycle. Redirects are followed hop by hop so the final URL is known
exactly; only the first request URL and the final URL are recorded.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urljoin

import httpx
import structlog

from monitorbot.cache_key import canonical_url
from monitorbot.errors import ErrorCode, MonitorbotError
from monitorbot.models.response import ResponseRecord

if TYPE_CHECKING:
    from monitorbot.config import FetcherSettings

log = structlog.get_logger()


def build_http_client(settings: FetcherSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
    )


def record_from_response(response: httpx.Response, url: str) -> ResponseRecord:
    """Snapshot a fully read httpx response."""
    return ResponseRecord(
        url=url,
        version=response.http_version,
        status=response.status_code,
        headers=tuple(response.headers.multi_items()),
        body=response.content,
    )


class Fetcher:
    """HTTP fetcher with manual redirect handling."""

    def __init__(self, client: httpx.AsyncClient, max_redirects: int = 10) -> None:
        self._client = client
        self._max_redirects = max_redirects

    async def fetch(self, url: str) -> ResponseRecord:
        """Fetch ``url``, following redirects, and return the final response.

        Non-2xx responses are returned like any other; only transport
        failures and redirect loops raise MonitorbotError.
        """
        current_url = url

        try:
            for hop in range(self._max_redirects + 1):
                response = await self._client.get(current_url)

                if response.is_redirect and "location" in response.headers:
                    if hop == self._max_redirects:
                        raise MonitorbotError(
                            code=ErrorCode.FETCH_FAILED,
                            message=f"Too many redirects fetching {url}",
                            suggestion="The page has an unusually long redirect chain.",
                        )
                    location = response.headers["location"]
                    current_url = urljoin(current_url, location)
                    log.debug(
                        "redirect_followed",
                        url=url,
                        status_code=response.status_code,
                        location=current_url,
                    )
                    continue

                if not response.is_success:
                    log.warning(
                        "fetch_unsuccessful_status",
                        url=url,
                        status_code=response.status_code,
                    )

                try:
                    final_url = canonical_url(current_url)
                except MonitorbotError as exc:
                    raise MonitorbotError(
                        code=ErrorCode.FETCH_FAILED,
                        message=f"Redirected to an unusable URL fetching {url}: {current_url}",
                        suggestion="The server redirected to a URL that cannot be monitored.",
                    ) from exc
                log.info(
                    "fetch_complete",
                    url=url,
                    final_url=final_url,
                    status_code=response.status_code,
                    content_length=len(response.content),
                )
                return record_from_response(response, final_url)

        except MonitorbotError:
            raise
        except httpx.HTTPError as exc:
            raise MonitorbotError(
                code=ErrorCode.FETCH_FAILED,
                message=f"Network error fetching {url}: {exc}",
                suggestion="The site may be temporarily unavailable.",
            ) from exc

        # Unreachable but satisfies the type checker
        raise MonitorbotError(
            code=ErrorCode.FETCH_FAILED,
            message="Redirect loop",
        )
