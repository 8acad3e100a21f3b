"""
FastAPI Application Entry Point
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leadpipeline.api.v1.routes import api_router
from leadpipeline.core.config import get_settings, setup_logging

logger = logging.getLogger(__name__)

settings = get_settings()
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup:
    - Builds the pipeline service for the configured storage backend
    - Starts the pipeline monitor worker in the background

    Shutdown:
    - Stops the monitor worker
    """
    logger.info("Starting Lead Pipeline service...")

    from leadpipeline.api.v1.dependencies import get_pipeline_service
    from leadpipeline.workers.pipeline_monitor_worker import PipelineMonitorWorker

    service = get_pipeline_service()
    worker = PipelineMonitorWorker(service)
    worker_task = asyncio.create_task(worker.run())
    app.state.monitor_worker = worker

    logger.info("Lead Pipeline service started successfully")

    yield  # Application is running

    logger.info("Shutting down Lead Pipeline service...")
    worker.running = False
    worker_task.cancel()
    try:
        await worker_task
    except asyncio.CancelledError:
        pass
    logger.info("Lead Pipeline service shutdown complete")


app = FastAPI(
    title="Lead Pipeline",
    description="Lead qualification workflow engine and contact analytics",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {"message": "Lead Pipeline API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns basic health status and monitor worker statistics.
    """
    health = {"status": "healthy", "environment": settings.environment}

    worker = getattr(app.state, "monitor_worker", None)
    if worker is not None:
        health["monitor"] = worker.get_stats()

    return health


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
