
from fastapi import Cookie, Depends, Query
from ..core.config import settings
from ..core.errors import Unauthorized
from ..services.auth import AuthContext, SessionResolverBase, session_resolver
from ..services.blob_storage import BlobStoreBase, create_blob_store
from ..services.rasterizer import PageRasterizer
from ..services.rate_limit import RateLimiter
from ..services.scan_pipeline import ReceiptScanPipeline
from ..services.storage import usage_tracker
from ..services.vision_extractor import VisionExtractor

_blob_store: BlobStoreBase | None = None


def get_session_resolver() -> SessionResolverBase:
    return session_resolver


def get_auth_context(
    tenant: str | None = Query(default=None),
    session: str | None = Cookie(default=None),
    resolver: SessionResolverBase = Depends(get_session_resolver),
) -> AuthContext:
    auth = resolver.resolve(session, tenant)
    if auth is None:
        raise Unauthorized()
    return auth


def get_rate_limiter() -> RateLimiter:
    return RateLimiter(usage_tracker)


def get_blob_store() -> BlobStoreBase:
    global _blob_store
    if _blob_store is None:
        _blob_store = create_blob_store()
    return _blob_store


def get_scan_pipeline(
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    blob_store: BlobStoreBase = Depends(get_blob_store),
) -> ReceiptScanPipeline:
    # Raises ExtractorNotConfigured (503) before any auth or quota work
    extractor = VisionExtractor.from_settings()
    return ReceiptScanPipeline(
        extractor=extractor,
        rasterizer=PageRasterizer(),
        rate_limiter=rate_limiter,
        blob_store=blob_store,
        stage_pages=settings.stage_page_renders and bool(settings.blob_read_write_token),
    )
