from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

import control_tower.models  # noqa: F401  (registers tables on Base.metadata)
from control_tower.config import settings
from control_tower.database import close_db, get_db, init_db
from control_tower.exceptions import FinanceError
from control_tower.logging_config import setup_logging
from control_tower.middleware.correlation import CorrelationIdMiddleware
from control_tower.routes.audit_logs import router as audit_logs_router
from control_tower.routes.budgets import router as budgets_router
from control_tower.routes.disbursements import router as disbursements_router
from control_tower.routes.fund_requests import router as fund_requests_router

logger = structlog.get_logger()

FINANCIALS_PREFIX = "/api/v1/projects/{project_id}/financials"


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("control_tower_starting", env=settings.ENVIRONMENT, version=settings.APP_VERSION)
    await init_db()
    yield
    await close_db()
    logger.info("control_tower_stopped")


def _error_body(code: str, message: str, **extra) -> dict:
    return {"error": {"code": code, "message": message, **extra}}


async def finance_error_handler(request: Request, exc: FinanceError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log("finance_error", code=exc.code, message=exc.message, path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    # Dependencies raise with a ready envelope; plain string details get wrapped.
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        content = detail
    elif isinstance(detail, dict):
        content = {"error": detail}
    else:
        content = _error_body("HTTP_ERROR", str(detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body("VALIDATION_ERROR", "Request body or query is invalid", details=details),
    )


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_exception_handler(FinanceError, finance_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)

app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)

for router, suffix, tag in (
    (budgets_router, "", "Budget"),
    (fund_requests_router, "/requests", "Fund Requests"),
    (disbursements_router, "/disbursements", "Disbursements"),
    (audit_logs_router, "/audit", "Audit"),
):
    app.include_router(router, prefix=f"{FINANCIALS_PREFIX}{suffix}", tags=[tag])


@app.get("/health", tags=["System"])
async def health(response: Response, db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error("health_database_unreachable", error=str(e))
        database = "unreachable"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if database == "ok" else "unhealthy",
        "version": settings.APP_VERSION,
        "database": database,
    }
