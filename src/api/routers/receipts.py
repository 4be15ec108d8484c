
from fastapi import APIRouter, BackgroundTasks, Depends, Response
from loguru import logger
from ..deps import get_auth_context, get_scan_pipeline
from ..errors import scan_error_response
from ...core.errors import ScanError
from ...models.receipt import ScanRequest, ScanResponse
from ...services.auth import AuthContext
from ...services.scan_pipeline import ReceiptScanPipeline

router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.post("/scan", response_model=ScanResponse)
async def scan_receipt(
    req: ScanRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    pipeline: ReceiptScanPipeline = Depends(get_scan_pipeline),
    auth: AuthContext = Depends(get_auth_context),
):
    """
    Scan an uploaded receipt and return pre-fill suggestions for the expense form.

    Request:
    {
        "blobUrl": "https://<store>.public.blob.vercel-storage.com/acme/receipts/lunch.pdf",
        "blobUrl2": null
    }

    PDFs are rendered server-side: page 1 first, then pages 1+2 together if
    page 1 has no usable total. A scan consumes one unit of the tenant's
    receipt_scan quota however many model calls it took.

    Errors are returned as {"error": "..."} with 400 (bad input, unreadable
    PDF), 401, 429 (with limitHit / retryAfterSeconds), 503 (not configured)
    or 500.
    """
    response.headers["Cache-Control"] = "no-store"

    logger.info(
        "Receipt scan requested",
        tenant_id=auth.tenant_id,
        user_id=auth.user_id,
        pre_rendered=req.blob_url2 is not None,
    )

    try:
        outcome = await pipeline.scan_blob(
            req.blob_url,
            tenant_id=auth.tenant_id,
            blob_url2=req.blob_url2,
            defer=background_tasks.add_task,
        )
    except ScanError as e:
        # Staged page cleanup was queued on background_tasks; it must run on failures too
        return scan_error_response(e, background=background_tasks)
    return ScanResponse(success=True, data=outcome.result)
