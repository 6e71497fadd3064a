from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.logging import configure_logging
from app.models import audit_log, company_expense, expense, time_entry  # noqa: F401
from app.routers.approvals import router as approvals_router
from app.routers.audit_log import router as audit_log_router
from app.routers.auth import router as auth_router
from app.routers.company_expenses import router as company_expenses_router
from app.routers.expense_approvals import router as expense_approvals_router
from app.routers.expenses import router as expenses_router
from app.routers.time_entries import router as time_entries_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    yield


app = FastAPI(
    title="Timeledger Approvals",
    lifespan=lifespan,
)


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception", extra={"path": request.url.path})
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(auth_router)
app.include_router(time_entries_router)
app.include_router(approvals_router)
app.include_router(expenses_router)
app.include_router(expense_approvals_router)
app.include_router(company_expenses_router)
app.include_router(audit_log_router)


@app.get("/")
def root():
    return {"status": "Timeledger Approvals running"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
    }
