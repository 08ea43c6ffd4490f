# equiploan/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status as fastapi_status, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from equiploan.core.config import setup_logging, CORS_ORIGINS, SCHEDULER_TIMEZONE, OVERDUE_CHECK_INTERVAL_MINUTES
from equiploan.core.errors import LendingError, lending_error_handler
from equiploan.core.rate_limiter import get_rate_limiter, rate_limit_exception_handler
from equiploan.core.websocket_manager import ConnectionRegistry
from equiploan.middleware.logging import RequestLoggingMiddleware
from equiploan.middleware.authentication import AuthMiddleware
from equiploan.db.database import init_db
from equiploan.api.v1.api import api_router_v1, ws_router
from equiploan.scheduler.jobs import notify_overdue_borrowings
from equiploan.services.container import build_mongo_services

setup_logging()

scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup...")
    client = await init_db()
    app.state.mongo_client = client
    app.state.services = build_mongo_services(client, ConnectionRegistry())
    logger.info("Database initialized.")

    scheduler.add_job(
        notify_overdue_borrowings,
        trigger=IntervalTrigger(minutes=OVERDUE_CHECK_INTERVAL_MINUTES),
        args=[app.state.services],
        id="notify_overdue_borrowings_job",
        name="Notify Overdue Borrowings",
        replace_existing=True,
        misfire_grace_time=60 * 15,
    )
    scheduler.start()
    logger.info(f"Scheduler started with timezone: {scheduler.timezone}")
    yield
    logger.info("Application shutdown...")
    if scheduler.running:
        scheduler.shutdown()
    client.close()


app = FastAPI(
    title="Office Equipment Lending API",
    description="Borrowing workflow, inventory and notifications for office equipment.",
    version="1.0.0",
    lifespan=lifespan,
)

# --- Error Handling ---
app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
app.add_exception_handler(LendingError, lending_error_handler)


@app.exception_handler(RequestValidationError)
@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    logger.error(f"Validation Error: {exc.errors()}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation Error", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: Status={exc.status_code}, Detail={exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled Exception: {exc}")
    return JSONResponse(status_code=fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "An internal server error occurred."})

# --- Middleware (last added runs first) ---
app.add_middleware(AuthMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = get_rate_limiter()

app.include_router(api_router_v1)
app.include_router(ws_router)


@app.get("/")
async def read_root():
    return {"message": "Office Equipment Lending API"}


@app.get("/health/db")
async def ping_mongodb(request: Request):
    try:
        await request.app.state.mongo_client.admin.command("ping")
        return {"status": "success", "message": "MongoDB connection is healthy."}
    except PyMongoError:
        raise HTTPException(status_code=503, detail="MongoDB connection failed.")
