"""Shared fakes and image factories for the test suite."""
import asyncio
import io
from typing import Callable, Dict, Iterable, List, Optional

import httpx
from PIL import Image

from core.errors import DiscoveryError, NetworkError
from sources.base_provider import Candidate, CandidateProvider
from utils.image_fetcher import FetchResult


def make_image_bytes(size=(64, 48), fmt="JPEG", color=(200, 80, 40), mode="RGB") -> bytes:
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def candidate(cid: str) -> Candidate:
    return Candidate(id=cid, url=f"https://img.test/{cid}.jpg", source="test")


class ScriptedProvider(CandidateProvider):
    """Returns candidates for a fixed id script, then raises DiscoveryError.

    ``before_call`` runs before each call with the 1-based call number; it can
    flip connectivity or raise to simulate failures.
    """

    def __init__(self, ids: Iterable[str], before_call: Optional[Callable[[int], None]] = None):
        super().__init__("scripted")
        self.ids: List[str] = list(ids)
        self.calls = 0
        self.served = 0
        self.before_call = before_call
        self.closed = False

    async def fetch_next_candidate(self) -> Candidate:
        self.calls += 1
        if self.before_call is not None:
            self.before_call(self.calls)
        await asyncio.sleep(0)
        if self.served >= len(self.ids):
            raise DiscoveryError("script exhausted")
        self.served += 1
        return candidate(self.ids[self.served - 1])

    async def aclose(self) -> None:
        self.closed = True


class RepeatingProvider(CandidateProvider):
    """Always returns the same candidate."""

    def __init__(self, cid: str = "same"):
        super().__init__("repeating")
        self.cid = cid
        self.calls = 0

    async def fetch_next_candidate(self) -> Candidate:
        self.calls += 1
        await asyncio.sleep(0)
        return candidate(self.cid)


class CountingFetcher:
    """Stand-in for ImageFetcher that serves canned bytes per URL.

    When ``gate`` is set, every fetch waits on it, so tests can pile up
    concurrent callers before letting the first fetch finish.
    """

    def __init__(self, payloads: Optional[Dict[str, bytes]] = None, default: Optional[bytes] = None):
        self.payloads = payloads or {}
        self.default = default if default is not None else make_image_bytes()
        self.calls: List[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.fail_with: Optional[Exception] = None
        self.closed = False

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        data = self.payloads.get(url, self.default)
        return FetchResult(data=data, url=url, status=200, content_type="image/jpeg")

    async def aclose(self) -> None:
        self.closed = True


class FakeSeenStore:
    def __init__(self, seen: Iterable[str] = ()):
        self.seen = set(seen)

    def is_seen(self, candidate_id: str) -> bool:
        return candidate_id in self.seen


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def image_response(data: bytes, status: int = 200, content_type: str = "image/jpeg") -> httpx.Response:
    return httpx.Response(status, content=data, headers={"Content-Type": content_type})


def network_error(url: str = "https://img.test/x.jpg") -> NetworkError:
    return NetworkError("boom", url=url)
