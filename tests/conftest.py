"""
Shared pytest fixtures for CatFinder tests.
"""
import pytest

from tests._fakes import CountingFetcher, make_image_bytes


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.catfinder and log directory."""
    monkeypatch.setenv("CATFINDER_SETTINGS", str(tmp_path / "settings.ini"))
    monkeypatch.setenv("CATFINDER_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes(size=(64, 48), fmt="JPEG")


@pytest.fixture
def large_jpeg_bytes():
    return make_image_bytes(size=(2000, 1000), fmt="JPEG")


@pytest.fixture
def png_bytes():
    return make_image_bytes(size=(40, 40), fmt="PNG")


@pytest.fixture
def disk_cache(tmp_path):
    """DiskImageCache rooted in a temp directory."""
    from utils.disk_cache import DiskImageCache
    return DiskImageCache(cache_dir=tmp_path / "disk", max_size_mb=10)


@pytest.fixture
def memory_cache():
    from utils.image_cache import ImageCache
    return ImageCache(max_items=20, max_memory_mb=16)


@pytest.fixture
def fetcher():
    return CountingFetcher()


@pytest.fixture
def pipeline(memory_cache, disk_cache, fetcher):
    from engine.image_pipeline import ImagePipeline
    return ImagePipeline(memory=memory_cache, disk=disk_cache, fetcher=fetcher)


@pytest.fixture
def event_system():
    """Create EventSystem instance for testing."""
    from core.events import EventSystem
    system = EventSystem()
    yield system
    system.clear()
