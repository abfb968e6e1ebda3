import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

from metro_ops.core.config import settings
from metro_ops.core.database import engine, Base
from metro_ops.core.events import redis_client, relay_incident_events
from metro_ops.core.exceptions import WorkflowError
from metro_ops.core.storage import LocalBlobStore, MinioBlobStore, get_blob_store
from metro_ops.core.websocket import manager
from metro_ops.models import incident, leave, performance, route, schedule, user  # noqa: F401  register tables
from metro_ops.routers import incidents, leaves, notifications, performance as performance_routes, schedules, users

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Metro Ops API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(incidents.router)
app.include_router(leaves.router)
app.include_router(notifications.router)
app.include_router(schedules.router)
app.include_router(performance_routes.router)
app.include_router(users.router)

if settings.STORAGE_BACKEND == "local":
    app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

@app.on_event("startup")
async def startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    store = get_blob_store()
    if isinstance(store, LocalBlobStore):
        store.ensure_root()
    elif isinstance(store, MinioBlobStore):
        await run_in_threadpool(store.ensure_bucket)

    if redis_client is not None:
        app.state.relay_task = asyncio.create_task(relay_incident_events(redis_client, manager))
    else:
        logger.info("REDIS_URL not set, reviewer notifications disabled")

@app.on_event("shutdown")
async def shutdown():
    task = getattr(app.state, "relay_task", None)
    if task is not None:
        task.cancel()

@app.get("/")
async def root():
    return {"message": "Metro Ops API is running"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.API_PORT)
