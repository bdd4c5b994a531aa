"""Tests for DiskImageCache."""
import os
import time

import pytest

from utils.disk_cache import DiskImageCache


def _age(path, seconds_ago):
    t = time.time() - seconds_ago
    os.utime(path, (t, t))


class TestDiskImageCache:
    def test_store_and_load(self, tmp_path):
        cache = DiskImageCache(cache_dir=tmp_path / "c")
        cache.store_sync("k", b"hello")
        assert cache.load_sync("k") == b"hello"

    def test_miss_returns_none(self, tmp_path):
        cache = DiskImageCache(cache_dir=tmp_path / "c")
        assert cache.load_sync("nope") is None

    def test_filename_is_deterministic_hash(self, tmp_path):
        cache = DiskImageCache(cache_dir=tmp_path / "c")
        p1 = cache.path_for("https://a/x.jpg|max:256")
        p2 = cache.path_for("https://a/x.jpg|max:256")
        p3 = cache.path_for("https://a/x.jpg")
        assert p1 == p2
        assert p1 != p3
        assert len(p1.stem) == 64
        assert p1.parent == tmp_path / "c"

    def test_overwrite_replaces_file(self, tmp_path):
        cache = DiskImageCache(cache_dir=tmp_path / "c")
        cache.store_sync("k", b"one")
        cache.store_sync("k", b"two")
        assert cache.load_sync("k") == b"two"
        assert cache.file_count() == 1

    def test_load_touches_mtime(self, tmp_path):
        cache = DiskImageCache(cache_dir=tmp_path / "c")
        cache.store_sync("k", b"data")
        path = cache.path_for("k")
        _age(path, 3600)
        before = path.stat().st_mtime
        cache.load_sync("k")
        assert path.stat().st_mtime > before

    def test_eviction_keeps_recent_entries(self, tmp_path):
        cache = DiskImageCache(cache_dir=tmp_path / "c", max_size_bytes=1300)
        for i in range(4):
            cache.store_sync(f"k{i}", b"x" * 300)
            _age(cache.path_for(f"k{i}"), 1000 - i * 100)
        # k0 is the oldest but gets touched, so k1 becomes the oldest.
        cache.load_sync("k0")

        cache.store_sync("k4", b"x" * 300)

        assert cache.total_size() <= 1300
        assert cache.load_sync("k4") is not None
        assert cache.load_sync("k0") is not None
        assert cache.load_sync("k1") is None

    def test_clear_recreates_directory(self, tmp_path):
        cache = DiskImageCache(cache_dir=tmp_path / "c")
        cache.store_sync("k", b"data")
        cache.clear_sync()
        assert (tmp_path / "c").is_dir()
        assert cache.file_count() == 0

    def test_clear_missing_directory_does_not_raise(self, tmp_path):
        cache = DiskImageCache(cache_dir=tmp_path / "c")
        (tmp_path / "c").rmdir()
        cache.clear_sync()
        assert (tmp_path / "c").is_dir()

    def test_store_failure_is_swallowed(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"not a dir")
        cache = DiskImageCache(cache_dir=blocker / "c")
        cache.store_sync("k", b"data")
        assert cache.load_sync("k") is None

    def test_temp_files_ignored_by_scan(self, tmp_path):
        cache = DiskImageCache(cache_dir=tmp_path / "c")
        (tmp_path / "c" / ".tmp.abc.partial").write_bytes(b"x" * 50)
        assert cache.total_size() == 0

    def test_stats(self, tmp_path):
        cache = DiskImageCache(cache_dir=tmp_path / "c", max_size_mb=1)
        cache.store_sync("k", b"abc")
        stats = cache.get_stats()
        assert stats['file_count'] == 1
        assert stats['max_size_mb'] == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_async_wrappers(tmp_path):
    cache = DiskImageCache(cache_dir=tmp_path / "c")
    await cache.store("k", b"async")
    assert await cache.load("k") == b"async"
    await cache.clear()
    assert await cache.load("k") is None
