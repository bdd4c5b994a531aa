"""
DecisionStore - persistent record of seen and favorited candidates.

Backed by a single JSON file::

    {"seen": [{"id": ..., "url": ..., "created_at": ...}, ...],
     "favorites": [...]}

The seen-id set is loaded lazily on first use and kept in step with every
write, so ``is_seen`` is a set lookup. Persistence is best-effort: load and
save failures are logged, never raised. A store created without a path lives
purely in memory. With ``autosave`` off, mutations only touch memory and the
owner decides when to call save(), typically from a worker thread.
"""
import json
import os
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set

from core.logging.logger import get_logger
from core.logging.tags import TAG_STORE
from sources.base_provider import Candidate

logger = get_logger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class DecisionRecord:
    id: str
    url: str
    created_at: str

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "DecisionRecord":
        return cls(id=candidate.id, url=candidate.url, created_at=_utc_now_iso())

    @classmethod
    def from_dict(cls, data: dict) -> Optional["DecisionRecord"]:
        try:
            return cls(id=str(data["id"]), url=str(data["url"]), created_at=str(data.get("created_at") or ""))
        except (KeyError, TypeError):
            return None


class DecisionStore:
    """JSON-backed seen/favorite store."""

    def __init__(self, path: Optional[Path] = None, autosave: bool = True):
        self.path = Path(path) if path else None
        self.autosave = autosave
        self._lock = threading.RLock()
        self._seen: Dict[str, DecisionRecord] = {}
        self._favorites: Dict[str, DecisionRecord] = {}
        self._seen_ids: Set[str] = set()
        self._loaded = False

    # ------------------------------------------------------------------
    # Seen
    # ------------------------------------------------------------------

    def preload(self) -> None:
        """Load records from disk once. Safe to call repeatedly."""
        with self._lock:
            if self._loaded:
                return
            self._loaded = True
            self._load()

    def is_seen(self, candidate_id: str) -> bool:
        self.preload()
        with self._lock:
            return candidate_id in self._seen_ids

    def mark_seen(self, candidate: Candidate) -> None:
        self.preload()
        with self._lock:
            if candidate.id in self._seen_ids:
                return
            self._seen[candidate.id] = DecisionRecord.from_candidate(candidate)
            self._seen_ids.add(candidate.id)
            self._autosave()
        logger.debug(f"{TAG_STORE} Marked seen: {candidate.id}")

    def unmark_seen(self, candidate_id: str) -> None:
        self.preload()
        with self._lock:
            self._seen.pop(candidate_id, None)
            self._seen_ids.discard(candidate_id)
            self._autosave()

    def seen_ids(self) -> Set[str]:
        self.preload()
        with self._lock:
            return set(self._seen_ids)

    # ------------------------------------------------------------------
    # Favorites
    # ------------------------------------------------------------------

    def is_favorite(self, candidate_id: str) -> bool:
        self.preload()
        with self._lock:
            return candidate_id in self._favorites

    def add_favorite(self, candidate: Candidate) -> None:
        self.preload()
        with self._lock:
            if candidate.id in self._favorites:
                return
            self._favorites[candidate.id] = DecisionRecord.from_candidate(candidate)
            self._autosave()
        logger.info(f"{TAG_STORE} Favorited: {candidate.id}")

    def remove_favorite(self, candidate_id: str) -> None:
        self.preload()
        with self._lock:
            if self._favorites.pop(candidate_id, None) is not None:
                self._autosave()

    def favorites(self) -> List[DecisionRecord]:
        """Favorite records, newest first."""
        self.preload()
        with self._lock:
            records = list(enumerate(self._favorites.values()))
        # Insertion order breaks timestamp ties.
        records.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        return [record for _, record in records]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear_all(self) -> None:
        with self._lock:
            self._seen.clear()
            self._favorites.clear()
            self._seen_ids.clear()
            self._loaded = True
            self._autosave()
        logger.info(f"{TAG_STORE} Cleared all decisions")

    def get_stats(self) -> dict:
        self.preload()
        with self._lock:
            return {
                'seen': len(self._seen_ids),
                'favorites': len(self._favorites),
                'path': str(self.path) if self.path else None,
            }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"{TAG_STORE} Failed to load {self.path}: {e}")
            return
        if not isinstance(data, dict):
            logger.warning(f"{TAG_STORE} Ignoring malformed store file {self.path}")
            return

        for raw in data.get("seen") or []:
            record = DecisionRecord.from_dict(raw) if isinstance(raw, dict) else None
            if record is not None:
                self._seen[record.id] = record
        for raw in data.get("favorites") or []:
            record = DecisionRecord.from_dict(raw) if isinstance(raw, dict) else None
            if record is not None:
                self._favorites[record.id] = record
        self._seen_ids = set(self._seen)
        logger.info(
            f"{TAG_STORE} Loaded {len(self._seen)} seen, {len(self._favorites)} favorites from {self.path}"
        )

    def save(self) -> None:
        """Write the current records to disk. Best-effort; never raises."""
        with self._lock:
            self._save()

    def _autosave(self) -> None:
        if self.autosave:
            self._save()

    def _save(self) -> None:
        if self.path is None:
            return
        payload = {
            "seen": [asdict(r) for r in self._seen.values()],
            "favorites": [asdict(r) for r in self._favorites.values()],
        }
        temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2)
            os.replace(temp_file, self.path)
        except OSError as e:
            logger.warning(f"{TAG_STORE} Failed to save {self.path}: {e}")
            try:
                temp_file.unlink(missing_ok=True)
            except OSError:
                pass
