"""
ImageFetcher - single-attempt HTTP GET for image resources.

Responsibilities:
    - One plain GET per call (no byte ranges, no conditional requests)
    - ~30s timeout; retries and backoff belong to the caller
    - Map timeouts, transport failures and non-2xx statuses to NetworkError
    - Return the raw bytes plus response metadata
"""
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from core.constants.timing import FETCH_TIMEOUT_SECONDS
from core.errors import NetworkError
from core.logging.logger import get_logger
from core.logging.tags import TAG_NET
from versioning import APP_NAME, APP_VERSION

logger = get_logger(__name__)


def default_user_agent() -> str:
    return f"{APP_NAME}/{APP_VERSION} (+httpx)"


@dataclass(frozen=True)
class FetchResult:
    """Raw bytes plus the response metadata the pipeline may want to log."""
    data: bytes
    url: str
    status: int
    content_type: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.data)


class ImageFetcher:
    """Async image downloader.

    Owns its ``httpx.AsyncClient`` unless one is injected; injected clients
    are left open on aclose().
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = FETCH_TIMEOUT_SECONDS,
        user_agent: Optional[str] = None,
    ):
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )
        self._user_agent = user_agent or default_user_agent()

    async def fetch(self, url: str) -> FetchResult:
        """Download url and return its bytes.

        Raises:
            NetworkError: on timeout, transport failure or non-2xx status.
        """
        headers = {"User-Agent": self._user_agent, "Accept": "image/*"}
        try:
            resp = await self._client.get(url, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as e:
            logger.warning(f"{TAG_NET} Timed out fetching {url}: {e}")
            raise NetworkError("The request timed out.", url=url) from e
        except httpx.HTTPError as e:
            logger.warning(f"{TAG_NET} Fetch failed for {url}: {e}")
            raise NetworkError(f"The network request failed: {e}", url=url) from e

        if not 200 <= resp.status_code < 300:
            logger.warning(f"{TAG_NET} HTTP {resp.status_code} for {url}")
            raise NetworkError(
                f"Server returned HTTP {resp.status_code}.",
                url=url,
                status=resp.status_code,
            )

        data = resp.content
        logger.debug(f"{TAG_NET} Fetched {url} ({len(data)} bytes)")
        return FetchResult(
            data=data,
            url=str(resp.url),
            status=resp.status_code,
            content_type=resp.headers.get("Content-Type", ""),
            headers=dict(resp.headers),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
