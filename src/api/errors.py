from fastapi.responses import JSONResponse
from starlette.background import BackgroundTasks
from ..core.errors import ScanError


def scan_error_response(exc: ScanError, background: BackgroundTasks | None = None) -> JSONResponse:
    """Render a ScanError as {"error": ..., **extra}, running any pending background work after sending"""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body(),
        headers={"Cache-Control": "no-store"},
        background=background,
    )
