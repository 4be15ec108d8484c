"""
Error taxonomy for receipt scanning.

Every error carries the HTTP status and the user-facing message the scan
endpoint returns, so routers never need to translate exceptions by hand.
"""

from typing import Any


class ScanError(Exception):
    status_code: int = 500
    default_message: str = "Receipt scan failed"

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"error": self.message, **self.extra}


class RenderError(ScanError):
    """PDF could not be opened or rendered"""
    status_code = 400
    default_message = "Failed to render PDF. The file may be corrupted or password-protected."


class PageNotFound(ScanError):
    """Requested page is beyond the end of the document"""
    status_code = 400
    default_message = "The requested page does not exist in this PDF."


class UnsupportedFileType(ScanError):
    status_code = 400
    default_message = "Unsupported file type for scanning. Please use JPEG, PNG, WebP images, or PDF documents."


class InvalidBlobUrl(ScanError):
    status_code = 400
    default_message = "Invalid blob URL"


class BlobFetchError(ScanError):
    status_code = 400
    default_message = "Failed to fetch file from storage. Please re-upload the receipt and try again."


class Unauthorized(ScanError):
    status_code = 401
    default_message = "Unauthorized"


class RateLimited(ScanError):
    status_code = 429
    default_message = "Rate limit exceeded"

    def __init__(self, limit_hit: str | None, retry_after_seconds: int, message: str | None = None):
        self.limit_hit = limit_hit
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message, limitHit=limit_hit, retryAfterSeconds=retry_after_seconds)
        # The "error" key stays machine-stable; "message" is what the form shows
        self.extra["message"] = f"Scanning limit reached. Try again in {human_wait(retry_after_seconds)}."


def human_wait(retry_after_seconds: int | None) -> str:
    """Render a retry delay as whole minutes, e.g. '1 minute' or '2 minutes'"""
    seconds = retry_after_seconds or 60
    minutes = max(1, -(-seconds // 60))
    return f"{minutes} minute{'s' if minutes > 1 else ''}"


class ExtractorNotConfigured(ScanError):
    status_code = 503
    default_message = "Receipt scanning not configured"


class ExtractorUnavailable(ScanError):
    """Upstream vision API failed, timed out, or returned a non-success status"""
    status_code = 500
    default_message = "Receipt scanning service unavailable"


class MalformedResponse(ScanError):
    """Upstream reply could not be parsed into an extraction result"""
    status_code = 500
    default_message = "Receipt scanning service returned an unreadable response"
