"""
Base candidate provider interface.

Defines the abstract interface every discovery source implements, plus the
Candidate record the deck buffers and decides on.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from core.errors import DiscoveryError
from core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Candidate:
    """
    A single media item offered to the user.

    Equality and hashing are by value; deduplication in the deck uses ``id``
    only, since two discovery calls can return the same item.
    """
    id: str
    url: str
    source: str = "remote"

    def __post_init__(self):
        if not self.id:
            raise ValueError("Candidate must have an id")
        if not self.url:
            raise ValueError("Candidate must have a url")

    def get_display_name(self) -> str:
        tail = self.url.rstrip('/').split('/')[-1]
        return tail or self.id

    def __str__(self) -> str:
        return f"{self.id} [{self.source}]"


class CandidateProvider(ABC):
    """
    Abstract base class for discovery sources.

    Each call to fetch_next_candidate() returns one (possibly repeated)
    candidate. Providers do not retry; the lookahead buffer decides how many
    calls to make.
    """

    def __init__(self, source_id: str):
        self.source_id = source_id
        self._logger = logger.getChild(source_id)

    @abstractmethod
    async def fetch_next_candidate(self) -> Candidate:
        """
        Fetch one candidate.

        Raises:
            DiscoveryError: if the source answered with something unusable
            NetworkError: if the source could not be reached
        """

    async def aclose(self) -> None:
        """Release any network resources. Default: nothing to release."""

    def get_source_info(self) -> dict:
        return {'source_id': self.source_id, 'provider': self.__class__.__name__}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} source_id={self.source_id}>"


class StaticProvider(CandidateProvider):
    """
    Provider that replays a fixed sequence of candidates.

    Used for offline demos and for exercising the deck without a network.
    Once the sequence is exhausted it wraps around, or raises when
    ``cycle`` is False.
    """

    def __init__(self, candidates, source_id: str = "static", cycle: bool = True):
        super().__init__(source_id)
        self._candidates = list(candidates)
        self._index = 0
        self._cycle = cycle

    async def fetch_next_candidate(self) -> Candidate:
        if not self._candidates:
            raise DiscoveryError("No candidates available.")
        if self._index >= len(self._candidates):
            if not self._cycle:
                raise DiscoveryError("No more candidates.")
            self._index = 0
        candidate = self._candidates[self._index]
        self._index += 1
        return candidate

    @property
    def remaining(self) -> Optional[int]:
        if self._cycle:
            return None
        return len(self._candidates) - self._index
