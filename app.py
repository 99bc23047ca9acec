import asyncio
import logging
import traceback
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

import config
from bot_instance import close_bot
from db import create_db_and_tables
from jobs.delivery_sync_job import delivery_sync_scheduler
from services.notification import NotificationService
from web.api_router import api_router

# Background tasks
sync_task = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    global sync_task

    # Startup
    await create_db_and_tables()

    if config.SYNC_ENABLED:
        sync_task = asyncio.create_task(delivery_sync_scheduler())
        logging.info("[Startup] Delivery sync scheduler started")
    else:
        logging.info("[Startup] Delivery sync scheduler disabled")

    yield

    # Shutdown
    logging.warning('Shutting down..')

    if sync_task is not None:
        sync_task.cancel()
        try:
            await sync_task
        except asyncio.CancelledError:
            logging.info("[Shutdown] Delivery sync scheduler stopped")
        sync_task = None

    await close_bot()
    logging.warning('Bye!')


app = FastAPI(lifespan=lifespan)
app.include_router(api_router)


# Health check endpoint (for Docker container monitoring)
@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.exception_handler(Exception)
async def exception_handler(request: Request, exc: Exception):
    correlation_id = uuid.uuid4().hex[:8]
    logging.error(f"[{correlation_id}] Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
    await NotificationService.notify_admins_api_error(
        correlation_id,
        request.url.path,
        exc,
        traceback.format_exc()
    )
    return JSONResponse(
        status_code=500,
        content={"message": "An internal error occurred", "correlation_id": correlation_id},
    )
