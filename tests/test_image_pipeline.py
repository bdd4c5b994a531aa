"""Tests for ImagePipeline tier ordering and in-flight coalescing."""
import asyncio

import pytest

from core.errors import InvalidMediaError, NetworkError, OfflineError
from engine.image_pipeline import ImagePipeline
from tests._fakes import CountingFetcher, make_image_bytes
from utils.image_cache import make_cache_key

URL = "https://img.test/cat.jpg"


@pytest.mark.asyncio
async def test_fetch_then_memory_hit(pipeline, fetcher):
    first = await pipeline.image(URL)
    second = await pipeline.image(URL)
    assert first is second
    assert fetcher.calls == [URL]


@pytest.mark.asyncio
async def test_concurrent_requests_coalesce(pipeline, fetcher):
    fetcher.gate = asyncio.Event()
    tasks = [asyncio.create_task(pipeline.image(URL, 256)) for _ in range(10)]
    await asyncio.sleep(0.01)
    assert pipeline.get_stats()['inflight'] == 1
    fetcher.gate.set()
    results = await asyncio.gather(*tasks)

    assert len(fetcher.calls) == 1
    assert all(r is results[0] for r in results)
    assert pipeline.get_stats()['inflight'] == 0


@pytest.mark.asyncio
async def test_size_variants_are_separate_entries(pipeline, fetcher, memory_cache):
    fetcher.default = make_image_bytes(size=(800, 400))
    native = await pipeline.image(URL)
    small = await pipeline.image(URL, 200)
    assert native.size == (800, 400)
    assert small.size == (200, 100)
    assert len(fetcher.calls) == 2
    assert memory_cache.contains(make_cache_key(URL))
    assert memory_cache.contains(make_cache_key(URL, 200))


@pytest.mark.asyncio
async def test_disk_hit_skips_network(memory_cache, disk_cache, fetcher):
    pipeline = ImagePipeline(memory=memory_cache, disk=disk_cache, fetcher=fetcher)
    await pipeline.image(URL, 128)
    await pipeline.flush()
    assert disk_cache.load_sync(make_cache_key(URL, 128)) is not None

    pipeline.clear_memory()
    img = await pipeline.image(URL, 128)
    assert img is not None
    assert len(fetcher.calls) == 1
    assert pipeline.get_stats()['disk_hits'] == 1


@pytest.mark.asyncio
async def test_corrupt_disk_entry_is_refetched(pipeline, fetcher, disk_cache):
    disk_cache.store_sync(make_cache_key(URL), b"garbage")
    img = await pipeline.image(URL)
    assert img.size == (64, 48)
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_decode_failure_raises_invalid_media(pipeline, fetcher, memory_cache):
    fetcher.default = b"<html>not an image</html>"
    with pytest.raises(InvalidMediaError) as exc:
        await pipeline.image(URL)
    assert exc.value.message == "The downloaded data wasn't a valid image."
    assert not memory_cache.contains(URL)
    assert pipeline.get_stats()['inflight'] == 0


@pytest.mark.asyncio
async def test_network_error_propagates_and_clears_inflight(pipeline, fetcher):
    fetcher.fail_with = NetworkError("Server returned HTTP 500.", url=URL, status=500)
    with pytest.raises(NetworkError):
        await pipeline.image(URL)
    assert pipeline.get_stats()['inflight'] == 0

    fetcher.fail_with = None
    assert await pipeline.image(URL) is not None
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio
async def test_offline_fails_fast_without_fetch(memory_cache, disk_cache):
    fetcher = CountingFetcher()
    pipeline = ImagePipeline(memory=memory_cache, disk=disk_cache, fetcher=fetcher, is_online=lambda: False)
    with pytest.raises(OfflineError):
        await pipeline.image(URL)
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_offline_still_serves_cached(memory_cache, disk_cache, fetcher):
    online = {'value': True}
    pipeline = ImagePipeline(memory=memory_cache, disk=disk_cache, fetcher=fetcher, is_online=lambda: online['value'])
    cached = await pipeline.image(URL)
    online['value'] = False
    assert await pipeline.image(URL) is cached


@pytest.mark.asyncio
async def test_prefetch_swallows_errors(pipeline, fetcher):
    fetcher.default = b"junk"
    await pipeline.prefetch(URL)
    fetcher.fail_with = NetworkError()
    await pipeline.prefetch("https://img.test/other.jpg")


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_load(pipeline, fetcher):
    fetcher.gate = asyncio.Event()
    waiter = asyncio.create_task(pipeline.image(URL))
    other = asyncio.create_task(pipeline.image(URL))
    await asyncio.sleep(0.01)
    waiter.cancel()
    fetcher.gate.set()
    img = await other
    assert img is not None
    assert waiter.cancelled()
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_disk_write_failure_is_swallowed(pipeline, monkeypatch):
    async def broken_store(key, data):
        raise OSError("disk full")

    monkeypatch.setattr(pipeline.disk, "store", broken_store)
    img = await pipeline.image(URL)
    await pipeline.flush()
    assert img is not None


@pytest.mark.asyncio
async def test_clear_all(pipeline, fetcher, disk_cache):
    await pipeline.image(URL)
    await pipeline.clear_all()
    assert len(pipeline.memory) == 0
    assert disk_cache.file_count() == 0
    await pipeline.image(URL)
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio
async def test_aclose_closes_fetcher(pipeline, fetcher):
    await pipeline.aclose()
    assert fetcher.closed
