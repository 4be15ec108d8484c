"""
Receipt extraction pipeline.

Turns an uploaded receipt (image or PDF) into a confidence-scored
ExtractionResult. PDFs are rendered page by page; when page 1 does not yield
a usable total, pages 1+2 are sent together in one more extractor call.

The control flow is an explicit state machine:

    START -> RENDERED_1 -> EXTRACTED_1 -> DONE
                                       -> RENDERED_2 -> EXTRACTED_2 -> DONE
    (any state) -> FAILED

transition() is a pure function of the facts gathered in ScanContext, so the
escalation rules can be tested without any I/O. The driver loop in
ReceiptScanPipeline performs the work owned by each state and then asks
transition() where to go next.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable
import httpx
from loguru import logger
from .blob_storage import BlobStoreBase
from .confidence import is_total_usable
from .prompts import PromptVariant
from .rasterizer import PageRasterizer
from .rate_limit import RateLimiter, RateLimitPolicy, receipt_scan_limits
from .vision_extractor import ReceiptImage, VisionExtractor
from ..core.errors import (
    ExtractorUnavailable,
    MalformedResponse,
    RateLimited,
    RenderError,
    ScanError,
    UnsupportedFileType,
)
from ..core.tasks import fire_and_forget
from ..models.receipt import ExtractionResult

PDF_CONTENT_TYPE = "application/pdf"
SUPPORTED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp", "image/heic")


class ScanState(str, Enum):
    START = "start"
    RENDERED_1 = "rendered_1"
    EXTRACTED_1 = "extracted_1"
    RENDERED_2 = "rendered_2"
    EXTRACTED_2 = "extracted_2"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({ScanState.DONE, ScanState.FAILED})


def is_pdf_content_type(content_type: str) -> bool:
    """Classify a media type as PDF (True) or supported image (False)"""
    media_type = (content_type or "").split(";")[0].strip().lower()
    if media_type == PDF_CONTENT_TYPE:
        return True
    if media_type in SUPPORTED_IMAGE_TYPES:
        return False
    raise UnsupportedFileType(fileType=content_type)


@dataclass
class ScanContext:
    document: bytes
    media_type: str
    is_pdf: bool
    tenant_id: str | None = None
    page1: ReceiptImage | None = None
    page2: ReceiptImage | None = None
    page_count: int | None = None
    attempt1: ExtractionResult | None = None
    attempt2: ExtractionResult | None = None
    attempts: int = 0  # Extractor calls made
    error: ScanError | None = None
    staged_urls: list[str] = field(default_factory=list)

    @property
    def needs_escalation(self) -> bool:
        return self.is_pdf and self.attempt1 is not None and not is_total_usable(self.attempt1)

    @property
    def result(self) -> ExtractionResult | None:
        return self.attempt2 if self.attempt2 is not None else self.attempt1


@dataclass
class ScanOutcome:
    result: ExtractionResult
    attempts: int
    states: list[ScanState]
    staged_urls: list[str] = field(default_factory=list)


def transition(state: ScanState, ctx: ScanContext) -> ScanState:
    if state in TERMINAL_STATES:
        return state
    if ctx.error is not None:
        return ScanState.FAILED

    if state is ScanState.START:
        return ScanState.RENDERED_1 if ctx.page1 is not None else ScanState.FAILED

    if state is ScanState.RENDERED_1:
        return ScanState.EXTRACTED_1 if ctx.attempt1 is not None else ScanState.FAILED

    if state is ScanState.EXTRACTED_1:
        # Images are always single-attempt; so is any PDF with a usable total
        if not ctx.needs_escalation:
            return ScanState.DONE
        if (ctx.page_count or 0) < 2 or ctx.page2 is None:
            return ScanState.DONE
        return ScanState.RENDERED_2

    if state is ScanState.RENDERED_2:
        # A failed combined attempt degrades to attempt 1
        return ScanState.EXTRACTED_2 if ctx.attempt2 is not None else ScanState.DONE

    # EXTRACTED_2: never escalate past two attempts
    return ScanState.DONE


class ReceiptScanPipeline:
    """
    Orchestrates rasterization, extraction and quota accounting for one scan.

    Instances hold only collaborators; all per-scan state lives in a
    ScanContext, so one pipeline can serve concurrent scans.
    """

    def __init__(
        self,
        extractor: VisionExtractor,
        rasterizer: PageRasterizer | None = None,
        rate_limiter: RateLimiter | None = None,
        policy: RateLimitPolicy | None = None,
        blob_store: BlobStoreBase | None = None,
        stage_pages: bool = False,
    ):
        self.extractor = extractor
        self.rasterizer = rasterizer or PageRasterizer()
        self.rate_limiter = rate_limiter
        self.policy = policy or receipt_scan_limits()
        self.blob_store = blob_store
        self.stage_pages = stage_pages

    # ---------- public entry points ----------

    async def scan(
        self,
        document: bytes,
        content_type: str,
        tenant_id: str | None = None,
        defer: Callable | None = None,
    ) -> ScanOutcome:
        """
        Scan receipt bytes.

        Args:
            document: Raw image or PDF bytes
            content_type: Media type of document
            tenant_id: Tenant to check and charge quota for (None = unmetered)
            defer: Scheduler for background cleanup, called as defer(func, *args);
                defaults to a fire-and-forget task on the running loop

        Raises:
            RateLimited, UnsupportedFileType, RenderError,
            ExtractorUnavailable, MalformedResponse
        """
        self._check_quota(tenant_id)
        is_pdf = is_pdf_content_type(content_type)

        ctx = ScanContext(
            document=document,
            media_type=content_type.split(";")[0].strip().lower(),
            is_pdf=is_pdf,
            tenant_id=tenant_id,
        )
        outcome = await self._run(ctx, defer)
        self._record_usage(tenant_id)
        return outcome

    async def scan_blob(
        self,
        blob_url: str,
        tenant_id: str | None = None,
        blob_url2: str | None = None,
        defer: Callable | None = None,
    ) -> ScanOutcome:
        """
        Scan a receipt stored in blob storage.

        With blob_url2 both blobs are treated as pre-rendered page images and
        sent together with the multi-page prompt in a single attempt.
        """
        if self.blob_store is None:
            raise RuntimeError("scan_blob requires a blob store")

        self._check_quota(tenant_id)
        blob = await self.blob_store.fetch(blob_url)

        if blob_url2 is None:
            ctx = ScanContext(
                document=blob.content,
                media_type=blob.content_type,
                is_pdf=is_pdf_content_type(blob.content_type),
                tenant_id=tenant_id,
            )
            outcome = await self._run(ctx, defer)
        else:
            outcome = await self._scan_prerendered(blob, await self.blob_store.fetch(blob_url2))

        self._record_usage(tenant_id)
        return outcome

    # ---------- state machine driver ----------

    async def _run(self, ctx: ScanContext, defer: Callable | None) -> ScanOutcome:
        state = ScanState.START
        states = [state]

        try:
            while state not in TERMINAL_STATES:
                try:
                    await self._step(state, ctx)
                except ScanError as e:
                    ctx.error = e

                next_state = transition(state, ctx)
                logger.debug("Scan state transition", from_state=state.value, to_state=next_state.value)
                state = next_state
                states.append(state)
        finally:
            if ctx.staged_urls:
                self._schedule_cleanup(list(ctx.staged_urls), defer)

        if state is ScanState.FAILED:
            # A collaborator that returns None instead of raising still fails the scan
            error = ctx.error or ScanError()
            logger.error(
                "Receipt scan failed: {}",
                error.message,
                tenant_id=ctx.tenant_id,
                error_type=type(error).__name__,
                attempts=ctx.attempts,
            )
            raise error

        logger.info(
            "Receipt scan complete",
            tenant_id=ctx.tenant_id,
            is_pdf=ctx.is_pdf,
            attempts=ctx.attempts,
            escalated=ctx.attempt2 is not None,
            total=ctx.result.total.value,
            total_confidence=ctx.result.total.confidence,
        )
        return ScanOutcome(
            result=ctx.result,
            attempts=ctx.attempts,
            states=states,
            staged_urls=list(ctx.staged_urls),
        )

    async def _step(self, state: ScanState, ctx: ScanContext) -> None:
        """Perform the work owned by `state`, recording facts on ctx"""
        if state is ScanState.START:
            if not ctx.is_pdf:
                ctx.page1 = ReceiptImage(ctx.document, ctx.media_type)
                return
            jpeg = await asyncio.to_thread(self.rasterizer.rasterize, ctx.document, 1)
            if jpeg is None:
                raise RenderError()
            ctx.page1 = ReceiptImage(jpeg)
            await self._stage_page(ctx, 1, jpeg)

        elif state is ScanState.RENDERED_1:
            ctx.attempts += 1
            ctx.attempt1 = await self.extractor.extract([ctx.page1], PromptVariant.SINGLE_PAGE)

        elif state is ScanState.EXTRACTED_1:
            if not ctx.needs_escalation:
                return

            ctx.page_count = await asyncio.to_thread(self.rasterizer.page_count, ctx.document)
            if ctx.page_count < 2:
                logger.info("Page 1 total unusable but PDF has no page 2; keeping page 1 result",
                            page_count=ctx.page_count)
                return

            jpeg = await asyncio.to_thread(self.rasterizer.rasterize, ctx.document, 2)
            if jpeg is None:
                logger.warning("Page 2 failed to render; keeping page 1 result")
                return
            ctx.page2 = ReceiptImage(jpeg)
            await self._stage_page(ctx, 2, jpeg)

            logger.info(
                "PDF scan fallback: retrying with pages 1+2",
                page1_total=ctx.attempt1.total.value,
                page1_confidence=ctx.attempt1.total.confidence,
                page_count=ctx.page_count,
            )

        elif state is ScanState.RENDERED_2:
            ctx.attempts += 1
            try:
                ctx.attempt2 = await self.extractor.extract([ctx.page1, ctx.page2], PromptVariant.MULTI_PAGE)
            except (ExtractorUnavailable, MalformedResponse) as e:
                logger.warning(f"Multi-page extraction failed; returning page 1 result: {e.message}")

    async def _scan_prerendered(self, first, second) -> ScanOutcome:
        pages = []
        for blob in (first, second):
            if is_pdf_content_type(blob.content_type):
                raise UnsupportedFileType(
                    "Pre-rendered pages must be images. Upload the PDF on its own to scan it.",
                    fileType=blob.content_type,
                )
            pages.append(ReceiptImage(blob.content, blob.content_type))

        result = await self.extractor.extract(pages, PromptVariant.MULTI_PAGE)
        return ScanOutcome(
            result=result,
            attempts=1,
            states=[ScanState.START, ScanState.RENDERED_2, ScanState.EXTRACTED_2, ScanState.DONE],
        )

    # ---------- quota ----------

    def _check_quota(self, tenant_id: str | None) -> None:
        if tenant_id is None or self.rate_limiter is None:
            return
        check = self.rate_limiter.check(tenant_id, self.policy)
        if not check.allowed:
            raise RateLimited(check.limit_hit, check.retry_after_seconds)

    def _record_usage(self, tenant_id: str | None) -> None:
        # One unit per user scan, however many extractor calls it took
        if tenant_id is None or self.rate_limiter is None:
            return
        self.rate_limiter.record_usage(tenant_id, self.policy.action_type)

    # ---------- temporary page blobs ----------

    async def _stage_page(self, ctx: ScanContext, page_number: int, jpeg: bytes) -> None:
        if not self.stage_pages or self.blob_store is None:
            return

        pathname = f"{ctx.tenant_id or 'anonymous'}/temp-scan/page{page_number}.jpg"
        try:
            url = await self.blob_store.put(pathname, jpeg, "image/jpeg")
        except (httpx.HTTPError, RuntimeError, KeyError, ValueError) as e:
            logger.warning(f"Could not stage rendered page {page_number}: {e}")
            return
        ctx.staged_urls.append(url)

    def _schedule_cleanup(self, urls: list[str], defer: Callable | None) -> None:
        if defer is not None:
            defer(self._delete_staged, urls)
        else:
            fire_and_forget(self._delete_staged(urls), description="temp scan page cleanup")

    async def _delete_staged(self, urls: list[str]) -> None:
        try:
            await self.blob_store.delete(urls)
        except Exception as e:
            logger.warning("Failed to clean up temp scan blobs: {}", e, urls=urls)
            return
        logger.debug("Deleted temp scan blobs", count=len(urls))
