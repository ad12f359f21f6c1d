#!/usr/bin/env python3
"""
Kubetask - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules
3. Runs the API server

All business logic is in the modules, following black box principles.
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import redis.asyncio as redis
import uvicorn
from fastapi import FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kubetask import __version__
from kubetask.logging_config import configure_logging, get_logging_config

# Import modules through their black box interfaces
from kubetask.modules.api import ErrorResponse, HealthResponse, Task, TaskExecution, TaskRequest
from kubetask.modules.config import get_config
from kubetask.modules.executor.errors import TaskExecutionError
from kubetask.modules.executor.orchestrator import TaskExecutionOrchestrator
from kubetask.modules.executor.pod_driver import EnvironmentDriver, KubernetesPodDriver
from kubetask.modules.storage import RedisTaskStore, get_redis_client

# Get configuration
config = get_config()

configure_logging(config.get("log_level"))
logger = logging.getLogger("kubetask.api")

# Module instances (initialized at startup)
redis_client: Optional[redis.Redis] = None
task_store: Optional[RedisTaskStore] = None
pod_driver: Optional[EnvironmentDriver] = None
orchestrator: Optional[TaskExecutionOrchestrator] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle - initialize and cleanup resources.
    """
    global redis_client, task_store, pod_driver, orchestrator

    # Startup
    logger.info("Starting Kubetask API...")

    redis_client = await get_redis_client(config)
    task_store = RedisTaskStore(redis_client)

    # One driver for the whole process, shared by every run
    pod_driver = KubernetesPodDriver.from_environment(
        namespace=config.get("namespace"),
        image=config.get("executor_image"),
        poll_interval=config.get("poll_interval"),
        max_output_bytes=config.get("max_output_bytes"),
    )
    orchestrator = TaskExecutionOrchestrator(
        task_store, pod_driver, wait_timeout=config.get("wait_timeout")
    )

    logger.info(
        f"Kubetask API started (namespace: {config.get('namespace')}, "
        f"image: {config.get('executor_image')}, wait timeout: {config.get('wait_timeout'):g}s)"
    )

    yield

    # Shutdown
    logger.info("Shutting down Kubetask API...")
    if redis_client:
        await redis_client.close()
    logger.info("Kubetask API shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Kubetask API",
    description="Kubetask - Run registered shell commands in single-use Kubernetes pods",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.get("cors_origins"),
    allow_methods=["*"],
    allow_headers=["*"],
)


def require_store() -> RedisTaskStore:
    if not task_store:
        raise HTTPException(503, "Service not initialized")
    return task_store


# Task Endpoints


@app.get("/tasks", response_model=List[Task])
async def list_tasks():
    """
    List all tasks.

    Returns:
        200: All tasks with their execution history
    """
    return await require_store().find_all()


@app.get("/tasks/search", response_model=List[Task])
async def search_tasks(
    name: str = Query(..., description="Name fragment; empty matches every task"),
):
    """
    Search tasks by name (case-insensitive substring match).

    Returns:
        200: Matching tasks
        404: No task matches (empty list body)
    """
    tasks = await require_store().search_by_name(name)
    if not tasks:
        return JSONResponse(status_code=404, content=[])
    return tasks


@app.get("/tasks/{task_id}", response_model=Task)
async def get_task(task_id: str):
    """
    Get one task.

    Returns:
        200: Task details
        404: Task not found
    """
    task = await require_store().find_by_id(task_id)
    if not task:
        raise HTTPException(404, "Task not found")
    return task


@app.post("/tasks", response_model=Task, status_code=201)
async def create_task(request: TaskRequest):
    """
    Create a task with an empty execution history.

    Returns:
        201: Task created, with its generated id
        422: Command not allowed
    """
    task = await require_store().save(request.to_task())
    logger.info(f"Created task {task.id} ({task.name!r})")
    return task


@app.put("/tasks/{task_id}", response_model=Task)
async def update_task(task_id: str, request: TaskRequest):
    """
    Replace a task's name, command, owner and server name.

    Returns:
        200: Updated task, execution history untouched
        404: Task not found
        422: Command not allowed
    """
    store = require_store()
    if not await store.find_by_id(task_id):
        raise HTTPException(404, "Task not found")
    return await store.save(request.to_task(task_id))


@app.delete("/tasks/{task_id}", status_code=204)
async def delete_task(task_id: str):
    """
    Delete a task and its history.

    Returns:
        204: Deleted
        404: Task not found
    """
    if not await require_store().delete(task_id):
        raise HTTPException(404, "Task not found")
    return Response(status_code=204)


@app.put(
    "/tasks/{task_id}/run",
    response_model=TaskExecution,
    responses={code: {"model": ErrorResponse} for code in (400, 404, 500, 502, 504)},
)
async def run_task(task_id: str):
    """
    Run the task's command in a new pod and record the execution.

    A command that exits non-zero still answers 200 with its output.

    Returns:
        200: The recorded execution
        400: Stored command not allowed
        404: Task not found
        502: Pod could not be created
        504: Pod did not finish in time
        500: Pod could not be observed, or the execution could not be saved
    """
    if not orchestrator:
        raise HTTPException(503, "Service not initialized")
    return await orchestrator.run(task_id)


# Health Endpoints


@app.get("/healthz")
async def healthz():
    """
    Minimal health check endpoint for Kubernetes readiness/liveness probes.

    Returns:
        200: Service is running
    """
    return {"status": "ok"}


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check including Redis connectivity and module readiness.

    Returns:
        200: Service healthy
        503: Service unhealthy
    """
    modules_ready = all([task_store, pod_driver, orchestrator])
    try:
        if redis_client:
            await redis_client.ping()
            redis_status = "connected"
        else:
            redis_status = "disconnected"
    except redis.RedisError as e:
        logger.error(f"Health check failed: {e}")
        redis_status = "disconnected"

    body = {
        "status": "healthy" if redis_status == "connected" and modules_ready else "unhealthy",
        "redis": redis_status,
        "modules": "initialized" if modules_ready else "not initialized",
        "version": __version__,
    }
    if body["status"] == "healthy":
        return body
    return JSONResponse(status_code=503, content=body)


# Error handlers


@app.exception_handler(TaskExecutionError)
async def task_execution_error_handler(request, exc: TaskExecutionError):
    """Turn run failures into structured error responses."""
    if exc.status_code >= 500:
        logger.error(f"Task run failed [{exc.kind}]: {exc.message}")
    else:
        logger.info(f"Task run rejected [{exc.kind}]: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(redis.ConnectionError)
async def redis_error_handler(request, exc):
    """Handle Redis connection errors."""
    logger.error(f"Redis connection error: {exc}")
    return JSONResponse(status_code=503, content={"error": "Database connection failed"})


@app.exception_handler(ValueError)
async def validation_error_handler(request, exc):
    """Handle validation errors."""
    logger.error(f"Validation error: {exc}")
    return JSONResponse(status_code=400, content={"error": str(exc)})


if __name__ == "__main__":
    uvicorn.run(
        "kubetask.main:app",
        host=config.get("host"),
        port=config.get("port"),
        log_level=config.get("log_level").lower(),
        reload=config.get("debug"),
        log_config=get_logging_config(config.get("log_level")),
    )
