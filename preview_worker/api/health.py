"""
Health check endpoints for the document preview worker.

This module provides health check endpoints for monitoring
and container orchestration.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

import psutil
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger

router = APIRouter()


@dataclass
class HealthContext:
    """What the health endpoints report on."""

    worker: str
    started_at: float = field(default_factory=time.time)
    job_stats: Callable[[], dict[str, int]] = dict
    checks: dict[str, Callable[[], bool]] = field(default_factory=dict)

    @property
    def uptime(self) -> int:
        return int(time.time() - self.started_at)


def create_health_app(context: HealthContext) -> FastAPI:
    """
    Create the health FastAPI application.

    Args:
        context: Worker state exposed by the endpoints

    Returns:
        FastAPI: Application serving ``/health`` and ``/ready``
    """
    app = FastAPI(
        title="Document Preview Worker",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.health = context
    app.include_router(router)
    return app


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """
    Basic health check endpoint.

    Returns:
        JSONResponse: Worker status, uptime and job counters
    """
    context: HealthContext = request.app.state.health
    try:
        return JSONResponse(
            status_code=200,
            content={
                "status": "ok",
                "worker": context.worker,
                "uptime": context.uptime,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "jobs": context.job_stats(),
                "metrics": {
                    "cpu_percent": psutil.cpu_percent(interval=None),
                    "memory_percent": psutil.virtual_memory().percent,
                },
            },
        )
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Worker unhealthy")


def check_dependencies(context: HealthContext) -> dict[str, bool]:
    """
    Check the status of external dependencies.

    Returns:
        dict: Status of each registered dependency
    """
    status = {}
    for name, check in context.checks.items():
        try:
            status[name] = bool(check())
        except Exception as exc:
            logger.warning(f"Dependency check {name} raised: {exc}")
            status[name] = False
    return status


@router.get("/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """
    Readiness check endpoint for container health checks.

    Returns:
        JSONResponse: 200 when every dependency answers, 503 otherwise
    """
    context: HealthContext = request.app.state.health
    dependencies = check_dependencies(context)
    timestamp = datetime.now(timezone.utc).isoformat()

    if all(dependencies.values()):
        return JSONResponse(
            status_code=200,
            content={
                "status": "ready",
                "worker": context.worker,
                "dependencies": dependencies,
                "timestamp": timestamp,
            },
        )
    return JSONResponse(
        status_code=503,
        content={
            "status": "not_ready",
            "worker": context.worker,
            "missing": [name for name, ok in dependencies.items() if not ok],
            "timestamp": timestamp,
        },
    )
