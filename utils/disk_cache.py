"""
DiskImageCache - persistent cache of encoded image bytes.

Responsibilities:
    - One file per cache key, named by the SHA-256 of the key
    - Atomic writes (temp -> rename)
    - Touch mtime on load so mtime approximates recency
    - After every store, scan the directory and evict oldest-mtime files until
      the total is back under the size ceiling
    - Swallow every disk error: the disk tier is best-effort persistence,
      never authoritative state

The eviction scan is O(number of files) per store.
Concurrent writers racing the scan can lose entries but never corrupt one.
"""
import asyncio
import hashlib
import os
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

from core.constants.sizes import DISK_CACHE_DIR_NAME, DISK_CACHE_FILE_SUFFIX, DISK_CACHE_MAX_MB
from core.errors import DiskError
from core.logging.logger import get_logger
from core.logging.tags import TAG_DISK

logger = get_logger(__name__)

_TMP_PREFIX = ".tmp."


def default_cache_dir() -> Path:
    return Path(tempfile.gettempdir()) / DISK_CACHE_DIR_NAME


class DiskImageCache:
    """Flat directory of encoded image blobs with approximate LRU eviction."""

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        max_size_mb: float = DISK_CACHE_MAX_MB,
        max_size_bytes: Optional[int] = None,
    ):
        self.cache_dir = Path(cache_dir) if cache_dir else default_cache_dir()
        if max_size_bytes is not None:
            self.max_size_bytes = int(max_size_bytes)
        else:
            self.max_size_bytes = int(max_size_mb * 1024 * 1024)

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"{TAG_DISK} Could not create cache dir {self.cache_dir}: {e}")

        logger.info(
            f"{TAG_DISK} DiskImageCache initialized: dir={self.cache_dir}, "
            f"max={self.max_size_bytes / (1024 * 1024):.0f}MB"
        )

    # ------------------------------------------------------------------
    # Public API (async)
    # ------------------------------------------------------------------

    async def load(self, key: str) -> Optional[bytes]:
        return await asyncio.to_thread(self.load_sync, key)

    async def store(self, key: str, data: bytes) -> None:
        await asyncio.to_thread(self.store_sync, key, data)

    async def clear(self) -> None:
        await asyncio.to_thread(self.clear_sync)

    # ------------------------------------------------------------------
    # Public API (sync, run on a worker thread)
    # ------------------------------------------------------------------

    def path_for(self, key: str) -> Path:
        """Return the file path for a cache key."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}{DISK_CACHE_FILE_SUFFIX}"

    def load_sync(self, key: str) -> Optional[bytes]:
        """Return the stored bytes for key, or None on miss or any disk error."""
        path = self.path_for(key)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.debug(f"{TAG_DISK} Read failed for {path.name}: {e}")
            return None

        try:
            os.utime(path, None)
        except OSError as e:
            logger.debug(f"{TAG_DISK} Touch failed for {path.name}: {e}")
        return data

    def store_sync(self, key: str, data: bytes) -> None:
        """Write bytes for key, then enforce the size ceiling. Never raises."""
        try:
            self._write_atomic(self.path_for(key), data)
        except DiskError as e:
            logger.warning(f"{TAG_DISK} Store failed for {key}: {e.message}")
            return
        self._enforce_limit()

    def clear_sync(self) -> None:
        """Remove and recreate the backing directory."""
        try:
            shutil.rmtree(self.cache_dir, ignore_errors=True)
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"{TAG_DISK} Cache directory cleared: {self.cache_dir}")
        except OSError as e:
            logger.warning(f"{TAG_DISK} Clear failed: {e}")

    def total_size(self) -> int:
        """Approximate on-disk size in bytes."""
        return sum(size for _, size, _ in self._scan())

    def file_count(self) -> int:
        return len(self._scan())

    def get_stats(self) -> dict:
        entries = self._scan()
        total = sum(size for _, size, _ in entries)
        return {
            'file_count': len(entries),
            'size_mb': total / (1024 * 1024),
            'max_size_mb': self.max_size_bytes / (1024 * 1024),
            'cache_dir': str(self.cache_dir),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write_atomic(self, path: Path, data: bytes) -> None:
        temp_file = path.with_name(f"{_TMP_PREFIX}{uuid.uuid4().hex}.{path.name}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "wb") as f:
                f.write(data)
            os.replace(temp_file, path)
        except OSError as e:
            self._safe_unlink(temp_file)
            raise DiskError(f"Could not write {path.name}: {e}") from e

    def _scan(self) -> List[Tuple[Path, int, float]]:
        """Return (path, size, mtime) for every cache file."""
        entries: List[Tuple[Path, int, float]] = []
        try:
            candidates = list(self.cache_dir.iterdir())
        except OSError:
            return entries
        for f in candidates:
            if f.name.startswith(_TMP_PREFIX):
                continue
            try:
                st = f.stat()
            except OSError:
                # Evicted or cleared underneath us.
                continue
            if not f.is_file():
                continue
            entries.append((f, st.st_size, st.st_mtime))
        return entries

    def _enforce_limit(self) -> None:
        """Evict oldest-mtime files until under the size ceiling."""
        entries = self._scan()
        total_size = sum(size for _, size, _ in entries)
        if total_size <= self.max_size_bytes:
            return

        entries.sort(key=lambda x: x[2])  # oldest first
        removed_count = 0
        removed_size = 0
        for path, size, _ in entries:
            if total_size - removed_size <= self.max_size_bytes:
                break
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.debug(f"{TAG_DISK} Failed to remove {path.name}: {e}")
                continue
            removed_count += 1
            removed_size += size

        if removed_count:
            logger.info(
                f"{TAG_DISK} Evicted {removed_count} files "
                f"({removed_size / 1024 / 1024:.1f}MB), kept {len(entries) - removed_count}"
            )

    @staticmethod
    def _safe_unlink(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            pass
