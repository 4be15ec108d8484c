"""
Blob storage access for receipt scanning.

Receipts are uploaded by the browser straight to blob storage; the scan
endpoint only ever receives a URL. URLs are checked against an allow-listed
host suffix before anything is downloaded.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import uuid
import httpx
from loguru import logger
from ..core.config import settings
from ..core.errors import BlobFetchError, InvalidBlobUrl


@dataclass(frozen=True)
class FetchedBlob:
    content: bytes
    content_type: str  # Media type only, parameters stripped


def normalise_content_type(value: str | None) -> str:
    return (value or "").split(";")[0].strip().lower()


def validate_blob_url(url: str, allowed_host_suffix: str) -> None:
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidBlobUrl() from e

    host = parsed.host or ""
    if parsed.scheme != "https" or not host.endswith(allowed_host_suffix):
        logger.warning("Rejected blob URL outside allow-list", host=host, scheme=parsed.scheme)
        raise InvalidBlobUrl()


class BlobStoreBase(ABC):
    """
    Storage backend for receipts and temporary rendered pages.

    fetch() enforces the host allow-list for every backend.
    """

    def __init__(self, allowed_host_suffix: str | None = None):
        self.allowed_host_suffix = allowed_host_suffix or settings.blob_allowed_host_suffix

    async def fetch(self, url: str) -> FetchedBlob:
        validate_blob_url(url, self.allowed_host_suffix)
        return await self._fetch(url)

    @abstractmethod
    async def _fetch(self, url: str) -> FetchedBlob:
        pass

    @abstractmethod
    async def put(self, pathname: str, data: bytes, content_type: str) -> str:
        """Upload bytes and return the public URL"""
        pass

    @abstractmethod
    async def delete(self, urls: list[str]) -> None:
        pass


class VercelBlobStore(BlobStoreBase):
    """Vercel Blob over its HTTP API"""

    def __init__(
        self,
        token: str | None,
        api_url: str | None = None,
        allowed_host_suffix: str | None = None,
        timeout: float = 30,
    ):
        super().__init__(allowed_host_suffix)
        self.token = token
        self.api_url = (api_url or settings.blob_api_url).rstrip("/")
        self.timeout = timeout

    def _headers(self) -> dict:
        return {"authorization": f"Bearer {self.token}", "x-api-version": "7"}

    async def _fetch(self, url: str) -> FetchedBlob:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                r = await client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"Blob download failed: {e}")
            raise BlobFetchError() from e

        if r.is_error:
            logger.error("Blob download returned error status", status=r.status_code)
            raise BlobFetchError()

        return FetchedBlob(content=r.content, content_type=normalise_content_type(r.headers.get("content-type")))

    async def put(self, pathname: str, data: bytes, content_type: str) -> str:
        if not self.token:
            raise RuntimeError("BLOB_READ_WRITE_TOKEN not set")

        headers = {**self._headers(), "x-content-type": content_type, "x-add-random-suffix": "1"}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.put(f"{self.api_url}/{pathname}", content=data, headers=headers)
            r.raise_for_status()
            return r.json()["url"]

    async def delete(self, urls: list[str]) -> None:
        if not urls:
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.post(f"{self.api_url}/delete", json={"urls": urls}, headers=self._headers())
            r.raise_for_status()


class InMemoryBlobStore(BlobStoreBase):
    """Dict-backed store for local development and tests"""

    def __init__(self, allowed_host_suffix: str | None = None, base_url: str | None = None):
        super().__init__(allowed_host_suffix)
        host_suffix = self.allowed_host_suffix.lstrip(".")
        self.base_url = (base_url or f"https://local{'.' if host_suffix else ''}{host_suffix}").rstrip("/")
        self.blobs: dict[str, FetchedBlob] = {}

    def add(self, pathname: str, data: bytes, content_type: str) -> str:
        url = f"{self.base_url}/{pathname}"
        self.blobs[url] = FetchedBlob(content=data, content_type=normalise_content_type(content_type))
        return url

    async def _fetch(self, url: str) -> FetchedBlob:
        if url not in self.blobs:
            raise BlobFetchError()
        return self.blobs[url]

    async def put(self, pathname: str, data: bytes, content_type: str) -> str:
        stem, dot, ext = pathname.rpartition(".")
        unique = f"{stem}-{uuid.uuid4().hex[:8]}{dot}{ext}" if dot else f"{pathname}-{uuid.uuid4().hex[:8]}"
        return self.add(unique, data, content_type)

    async def delete(self, urls: list[str]) -> None:
        for url in urls:
            self.blobs.pop(url, None)


def create_blob_store() -> BlobStoreBase:
    # Public blobs can be fetched without a token; uploads and deletes need one
    return VercelBlobStore(settings.blob_read_write_token)
