"""
Rejects request bodies above MAX_REQUEST_SIZE_MB by Content-Length.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from timekeeper.config import settings
import logging

logger = logging.getLogger(__name__)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_size_bytes: int = None):
        super().__init__(app)
        if max_size_bytes is None:
            max_size_bytes = int(settings.MAX_REQUEST_SIZE_MB * 1024 * 1024)
        self.max_size_bytes = max_size_bytes

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_size_bytes:
            logger.warning(
                f"Request rejected: body of {content_length} bytes exceeds {self.max_size_bytes}",
                extra={"path": request.url.path},
            )
            return JSONResponse(
                status_code=413,
                content={
                    "ok": False,
                    "data": None,
                    "error": {
                        "code": "payload_too_large",
                        "message": f"Request body too large. Maximum size is {self.max_size_bytes / (1024 * 1024):.1f}MB",
                        "details": None,
                    },
                    "requestId": getattr(request.state, "request_id", ""),
                },
            )

        return await call_next(request)
