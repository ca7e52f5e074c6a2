from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from dotenv import load_dotenv
import time
import logging
from timekeeper.utils.logging import configure_logging
from timekeeper.utils.ids import request_id as get_request_id
from timekeeper.config import settings
from timekeeper import deps
from timekeeper import scheduler as sched
from timekeeper.errors import TimekeeperError
from timekeeper.routes import timesheets as timesheet_routes
from timekeeper.routes import webhooks_appwrite
from timekeeper.models import ApiResponse
from timekeeper.middleware.cors import setup_cors
from timekeeper.middleware.ratelimit import RateLimitMiddleware
from timekeeper.middleware.request_size import RequestSizeLimitMiddleware
from timekeeper.observability.metrics import setup_metrics

load_dotenv()
configure_logging()

logger = logging.getLogger(__name__)

app = FastAPI(title="Timekeeper", version="0.1")

setup_metrics(app)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request id, log start and finish, echo X-Request-ID."""

    async def dispatch(self, request: Request, call_next):
        req_id = get_request_id(request.headers.get("x-request-id"))
        request.state.request_id = req_id

        start_time = time.time()
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={"request_id": req_id, "path": request.url.path},
        )

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Request completed: {request.method} {request.url.path} status={response.status_code}",
            extra={
                "request_id": req_id,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response


# Applied in reverse: the request id is set before rate and size checks run
app.add_middleware(
    RateLimitMiddleware,
    capacity=settings.RATE_LIMIT_PER_MINUTE,
    burst=settings.RATE_LIMIT_BURST,
)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(RequestIDMiddleware)
setup_cors(app)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id(request.headers.get("x-request-id"))


@app.exception_handler(TimekeeperError)
async def timekeeper_error_handler(request: Request, exc: TimekeeperError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}", extra={"request_id": _request_id(request), "path": request.url.path})
    body = ApiResponse.failure(
        code=exc.code,
        message=exc.message,
        details=exc.details,
        request_id=_request_id(request),
    )
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in exc.errors()
    ]
    body = ApiResponse.failure(
        code="validation_error",
        message="Invalid request",
        details={"errors": errors},
        request_id=_request_id(request),
    )
    return JSONResponse(status_code=400, content=body.model_dump(mode="json"))


@app.on_event("startup")
async def _startup():
    sched.start_scheduler()
    logger.info(f"Timekeeper started with backend={settings.BACKEND}")


@app.on_event("shutdown")
async def _shutdown():
    sched.stop_scheduler()
    await deps.shutdown()


@app.get("/healthz")
async def health(request: Request):
    return ApiResponse.success(data={"status": "healthy"}, request_id=_request_id(request))


@app.get("/readyz")
async def readiness(request: Request):
    """Ready when the configured backend can be built and answers ping()."""
    checks = {}
    try:
        checks["backend"] = await deps.get_backend_instance().ping()
        ready = True
    except (ValueError, TimekeeperError) as e:
        checks["backend"] = {"error": str(e)}
        ready = False

    index = deps.get_index()
    checks["managerIndex"] = "enabled" if index is not None else "disabled"

    body = ApiResponse.success(data={"ready": ready, "checks": checks}, request_id=_request_id(request))
    return JSONResponse(status_code=200 if ready else 503, content=body.model_dump(mode="json"))


app.include_router(timesheet_routes.router)
app.include_router(webhooks_appwrite.router)
