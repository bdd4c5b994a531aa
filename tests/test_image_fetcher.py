"""Tests for ImageFetcher over httpx.MockTransport."""
import httpx
import pytest

from core.errors import NetworkError
from tests._fakes import image_response, mock_client
from utils.image_fetcher import ImageFetcher


@pytest.mark.asyncio
async def test_fetch_returns_bytes_and_metadata(jpeg_bytes):
    seen = {}

    def handler(request):
        seen['accept'] = request.headers.get("Accept")
        seen['ua'] = request.headers.get("User-Agent")
        return image_response(jpeg_bytes)

    async with mock_client(handler) as client:
        result = await ImageFetcher(client=client).fetch("https://img.test/a.jpg")

    assert result.data == jpeg_bytes
    assert result.status == 200
    assert result.content_type == "image/jpeg"
    assert result.size == len(jpeg_bytes)
    assert seen['accept'] == "image/*"
    assert seen['ua'].startswith("CatFinder/")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 500, 304])
async def test_non_2xx_raises_network_error(status):
    async with mock_client(lambda r: httpx.Response(status)) as client:
        with pytest.raises(NetworkError) as exc:
            await ImageFetcher(client=client).fetch("https://img.test/a.jpg")
    assert exc.value.status == status
    assert exc.value.message == f"Server returned HTTP {status}."


@pytest.mark.asyncio
async def test_timeout_raises_network_error():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    async with mock_client(handler) as client:
        with pytest.raises(NetworkError) as exc:
            await ImageFetcher(client=client).fetch("https://img.test/a.jpg")
    assert "timed out" in exc.value.message


@pytest.mark.asyncio
async def test_transport_error_raises_network_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with mock_client(handler) as client:
        with pytest.raises(NetworkError):
            await ImageFetcher(client=client).fetch("https://img.test/a.jpg")


@pytest.mark.asyncio
async def test_single_attempt_per_call():
    calls = []

    def handler(request):
        calls.append(request.url)
        return httpx.Response(503)

    async with mock_client(handler) as client:
        with pytest.raises(NetworkError):
            await ImageFetcher(client=client).fetch("https://img.test/a.jpg")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_injected_client_left_open(jpeg_bytes):
    client = mock_client(lambda r: image_response(jpeg_bytes))
    fetcher = ImageFetcher(client=client)
    await fetcher.aclose()
    assert not client.is_closed
    await client.aclose()
