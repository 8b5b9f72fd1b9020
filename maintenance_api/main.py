import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from maintenance_api.api.catalog import router as catalog_router
from maintenance_api.api.comments import router as comments_router
from maintenance_api.api.history import router as history_router
from maintenance_api.api.lifecycle import router as lifecycle_router
from maintenance_api.api.resolve import router as resolve_router
from maintenance_api.api.statistics import router as statistics_router
from maintenance_api.api.tickets import router as tickets_router
from maintenance_api.core.config import settings
from maintenance_api.core.db import get_db, init_db
from maintenance_api.core.exceptions import MaintenanceError
from maintenance_api.core.logging_config import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.CREATE_TABLES_ON_STARTUP:
        logger.info("Creating database tables from model metadata")
        init_db()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Ticket lifecycle, status history and statistics for building maintenance requests.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(MaintenanceError)
async def maintenance_exception_handler(request: Request, exc: MaintenanceError):
    content = {"detail": exc.detail, "request_id": getattr(request.state, "request_id", None)}
    if exc.field is not None:
        content["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Service Unavailable: Database connection or operational failure", "request_id": getattr(request.state, "request_id", None)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error", "request_id": getattr(request.state, "request_id", None)},
    )


@app.get("/health", tags=["system"])
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        db_status = "error"
    return {"status": "ok", "database": db_status}


app.include_router(tickets_router)
app.include_router(lifecycle_router)
app.include_router(resolve_router)
app.include_router(comments_router)
app.include_router(history_router)
app.include_router(statistics_router)
app.include_router(catalog_router)
