"""
Cataas discovery source.

Asks https://cataas.com for one random cat per call and turns the JSON answer
into a Candidate. One attempt per call; the lookahead buffer owns the retry
budget.
"""
from typing import Any, Optional
from urllib.parse import urljoin

import httpx

from core.constants.timing import DISCOVERY_TIMEOUT_SECONDS
from core.errors import DiscoveryError
from core.logging.logger import get_logger
from core.logging.tags import TAG_DISCOVERY
from sources.base_provider import Candidate, CandidateProvider
from utils.image_fetcher import default_user_agent

logger = get_logger(__name__)

API_BASE = "https://cataas.com"
DEFAULT_ENDPOINT = f"{API_BASE}/cat?json=true"
SOURCE_NAME = "cataas"


def parse_candidate(payload: Any, source: str = SOURCE_NAME, base_url: str = API_BASE) -> Candidate:
    """Build a Candidate from a decoded Cataas JSON object.

    Accepts either ``id`` or ``_id`` (``id`` wins when both are present) and
    requires ``url``. Relative URLs are resolved against ``base_url``.
    """
    if not isinstance(payload, dict):
        raise DiscoveryError()

    cat_id = payload.get("id")
    if not isinstance(cat_id, str) or not cat_id:
        cat_id = payload.get("_id")
    if not isinstance(cat_id, str) or not cat_id:
        raise DiscoveryError()

    url = payload.get("url")
    if not isinstance(url, str) or not url:
        raise DiscoveryError()

    if not url.lower().startswith(("http://", "https://")):
        url = urljoin(base_url.rstrip('/') + '/', url.lstrip('/'))

    return Candidate(id=cat_id, url=url, source=source)


class CataasSource(CandidateProvider):
    """Discovery client for the Cataas random-cat endpoint."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = DISCOVERY_TIMEOUT_SECONDS,
    ):
        super().__init__(SOURCE_NAME)
        self.endpoint = endpoint
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def fetch_next_candidate(self) -> Candidate:
        headers = {"Accept": "application/json", "User-Agent": default_user_agent()}
        try:
            resp = await self._client.get(self.endpoint, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.warning(f"{TAG_DISCOVERY} Request to {self.endpoint} failed: {e}")
            raise DiscoveryError(f"The network request failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            logger.warning(f"{TAG_DISCOVERY} HTTP {resp.status_code} from {self.endpoint}")
            raise DiscoveryError(f"Server returned HTTP {resp.status_code}.")

        try:
            payload = resp.json()
        except ValueError as e:
            logger.warning(f"{TAG_DISCOVERY} Non-JSON response from {self.endpoint}")
            raise DiscoveryError() from e

        candidate = parse_candidate(payload, base_url=self._base_url())
        logger.debug(f"{TAG_DISCOVERY} Discovered {candidate.id}")
        return candidate

    def _base_url(self) -> str:
        url = httpx.URL(self.endpoint)
        return f"{url.scheme}://{url.netloc.decode('ascii')}"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def get_source_info(self) -> dict:
        info = super().get_source_info()
        info['endpoint'] = self.endpoint
        return info
