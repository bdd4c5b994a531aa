"""Favorites export for companion readers (widgets, scripts).

Writes ``favorites.json``: a JSON array of ``{"id", "imageURLString",
"createdAt"}`` objects, newest first, with ISO-8601 timestamps.
"""
import json
import os
from pathlib import Path
from typing import List

from core.logging.logger import get_logger
from core.logging.tags import TAG_STORE
from sources.decision_store import DecisionStore

logger = get_logger(__name__)

EXPORT_FILE_NAME = "favorites.json"


def build_export_payload(store: DecisionStore) -> List[dict]:
    return [
        {"id": r.id, "imageURLString": r.url, "createdAt": r.created_at}
        for r in store.favorites()
    ]


def export_favorites(store: DecisionStore, path: Path) -> bool:
    """Atomically write the favorites export. Best-effort; never raises."""
    path = Path(path)
    if path.is_dir():
        path = path / EXPORT_FILE_NAME
    temp_file = path.with_name(path.name + ".tmp")
    try:
        payload = build_export_payload(store)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2)
        os.replace(temp_file, path)
    except (OSError, TypeError, ValueError) as e:
        logger.warning(f"{TAG_STORE} Favorites export to {path} failed: {e}")
        try:
            temp_file.unlink(missing_ok=True)
        except OSError:
            pass
        return False
    logger.debug(f"{TAG_STORE} Exported {len(payload)} favorites to {path}")
    return True


def load_exported_favorites(path: Path) -> List[dict]:
    """Read an export file back; returns [] when missing or unreadable."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError):
        return []
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]
