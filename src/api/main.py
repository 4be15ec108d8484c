from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from ..core.logging import setup_logging
from ..core.config import settings
from ..core.errors import ScanError
from ..core.tasks import drain_background_tasks
from .errors import scan_error_response
from .routers import health, receipts

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let alerts and temp blob cleanup finish before the worker exits
    await drain_background_tasks()


app = FastAPI(title="Receipt Scan Service", lifespan=lifespan)


@app.exception_handler(ScanError)
async def scan_error_handler(request: Request, exc: ScanError):
    return scan_error_response(exc)


# Bad request bodies are client errors (400), not 422, for the expense form
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc.errors()}")
    missing = [
        ".".join(str(p) for p in e["loc"][1:]) or "request body"
        for e in exc.errors() if e.get("type") == "missing"
    ]
    message = f"{missing[0]} is required" if missing else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message, "detail": jsonable_errors(exc)},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc) or "Internal server error"},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]


# Configure CORS to allow frontend access
# CORS_ORIGINS can be set in .env as comma-separated list
# Example: CORS_ORIGINS=http://localhost:5173,https://books.example.com
allowed_origins = [origin.strip() for origin in settings.cors_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(receipts.router)
