"""
Tests for blob URL allow-listing and the blob store backends.
"""

import asyncio
import json
import httpx
import pytest
import respx
from src.core.errors import BlobFetchError, InvalidBlobUrl
from src.services.blob_storage import InMemoryBlobStore, VercelBlobStore, validate_blob_url

SUFFIX = ".public.blob.vercel-storage.com"
RECEIPT_URL = f"https://abc123{SUFFIX}/acme/receipts/lunch.jpg"


@pytest.mark.parametrize(
    "url",
    [
        f"http://abc123{SUFFIX}/r.jpg",                         # Not https
        "https://evil.example.com/r.jpg",                       # Wrong host
        f"https://evil.example.com/{SUFFIX}/r.jpg",             # Suffix only in path
        f"https://abc123{SUFFIX}.evil.com/r.jpg",               # Suffix not at end of host
        "not a url",
        "",
    ],
)
def test_rejects_urls_outside_allow_list(url):
    with pytest.raises(InvalidBlobUrl):
        validate_blob_url(url, SUFFIX)


def test_accepts_allow_listed_url():
    validate_blob_url(RECEIPT_URL, SUFFIX)


@respx.mock
def test_vercel_fetch_returns_content_and_media_type():
    respx.get(RECEIPT_URL).mock(
        return_value=httpx.Response(200, content=b"jpeg", headers={"content-type": "image/jpeg; charset=binary"})
    )

    blob = asyncio.run(VercelBlobStore(token=None).fetch(RECEIPT_URL))

    assert blob.content == b"jpeg"
    assert blob.content_type == "image/jpeg"


@respx.mock
def test_vercel_fetch_error_status():
    respx.get(RECEIPT_URL).mock(return_value=httpx.Response(404))

    with pytest.raises(BlobFetchError):
        asyncio.run(VercelBlobStore(token=None).fetch(RECEIPT_URL))


@respx.mock
def test_vercel_fetch_never_downloads_disallowed_url():
    route = respx.get("https://evil.example.com/r.jpg").mock(return_value=httpx.Response(200))

    with pytest.raises(InvalidBlobUrl):
        asyncio.run(VercelBlobStore(token=None).fetch("https://evil.example.com/r.jpg"))
    assert not route.called


@respx.mock
def test_vercel_put_and_delete():
    store = VercelBlobStore(token="tok", api_url="https://blob.test")
    put_route = respx.put("https://blob.test/acme/temp-scan/page1.jpg").mock(
        return_value=httpx.Response(200, json={"url": f"https://abc123{SUFFIX}/acme/temp-scan/page1-x.jpg"})
    )
    delete_route = respx.post("https://blob.test/delete").mock(return_value=httpx.Response(200, json={}))

    async def scenario():
        url = await store.put("acme/temp-scan/page1.jpg", b"jpeg", "image/jpeg")
        await store.delete([url])
        return url

    url = asyncio.run(scenario())

    assert url.endswith("page1-x.jpg")
    assert put_route.calls.last.request.headers["authorization"] == "Bearer tok"
    assert put_route.calls.last.request.headers["x-content-type"] == "image/jpeg"
    assert json.loads(delete_route.calls.last.request.content) == {"urls": [url]}


def test_vercel_put_requires_token():
    with pytest.raises(RuntimeError):
        asyncio.run(VercelBlobStore(token=None).put("a.jpg", b"x", "image/jpeg"))


def test_in_memory_store_round_trip():
    store = InMemoryBlobStore()

    async def scenario():
        url = await store.put("acme/temp-scan/page1.jpg", b"jpeg", "image/jpeg")
        fetched = await store.fetch(url)
        await store.delete([url])
        return url, fetched

    url, fetched = asyncio.run(scenario())

    assert url.startswith("https://") and SUFFIX in url
    assert fetched.content == b"jpeg"
    assert store.blobs == {}


def test_in_memory_store_missing_blob():
    with pytest.raises(BlobFetchError):
        asyncio.run(InMemoryBlobStore().fetch(f"https://local{SUFFIX}/nope.jpg"))
