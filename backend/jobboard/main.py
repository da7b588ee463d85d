import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobboard.celery_app import BROKER_CONFIGURED
from jobboard.core.config import require_jwt_secret, settings
from jobboard.core.errors import DomainError
from jobboard.routes.applications import router as applications_router
from jobboard.routes.hr_assignments import router as hr_router
from jobboard.routes.jobs import router as jobs_router
from jobboard.routes.notifications import router as notifications_router
from jobboard.routes.subscriptions import router as subscriptions_router

logger = logging.getLogger(__name__)

require_jwt_secret()

app = FastAPI(title="Job Board")
logger.info(
    "Startup config: ENV=%s NOTIFICATIONS_ENABLED=%s broker=%s FREE_PLAN_MAX_JOBS=%s",
    settings.ENV,
    settings.NOTIFICATIONS_ENABLED,
    "celery" if BROKER_CONFIGURED else "inline",
    settings.FREE_PLAN_MAX_JOBS,
)

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
}


def _error_code(status_code: int) -> str:
    return _ERROR_CODE_BY_STATUS.get(int(status_code), "HTTP_ERROR")


@app.exception_handler(DomainError)
def domain_error_handler(request: Request, exc: DomainError):  # noqa: ARG001
    payload: dict = {"error": exc.code, "message": exc.message}
    if exc.details:
        payload["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException):  # noqa: ARG001
    detail = exc.detail
    message: str
    details: dict | None = None

    if isinstance(detail, str):
        message = detail
    elif isinstance(detail, dict):
        msg = detail.get("message")
        message = msg if isinstance(msg, str) and msg else "Request failed"
        det = detail.get("details")
        details = det if isinstance(det, dict) else None
    else:
        message = str(detail) if detail is not None else "Request failed"

    payload: dict = {"error": _error_code(exc.status_code), "message": message}
    if details:
        payload["details"] = details
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Invalid request payload",
            "details": {"errors": jsonable_errors(exc)},
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # `ctx` may carry exception instances that JSONResponse cannot encode.
    out = []
    for err in exc.errors():
        item = dict(err)
        if "ctx" in item:
            item["ctx"] = {k: str(v) for k, v in item["ctx"].items()}
        out.append(item)
    return out


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(applications_router)
app.include_router(jobs_router)
app.include_router(subscriptions_router)
app.include_router(hr_router)
app.include_router(notifications_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
