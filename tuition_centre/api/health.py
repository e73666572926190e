"""Health, liveness and readiness endpoints.

/health/liveness answers "is the process alive?"; a failure there gets the
container restarted, so it checks nothing external.  /health/readiness
answers "can this instance take traffic?" and returns 503 while the
database is unreachable, which only takes the instance out of rotation.
/health reports dependency status and stays 200 even when degraded.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse

from tuition_centre.api.dependencies import ContainerDep

router = APIRouter(prefix="/health", tags=["health"])


async def _database_status(container: ContainerDep) -> str:
    if container.database is None:
        return "not_configured"
    return "ok" if await container.database.ping() else "degraded"


@router.get("")
async def health(container: ContainerDep) -> dict:
    database = await _database_status(container)
    return {
        "status": "degraded" if database == "degraded" else "ok",
        "checks": {"database": database},
    }


@router.get("/liveness")
async def liveness() -> dict:
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/readiness")
async def readiness(container: ContainerDep) -> Response:
    database = await _database_status(container)
    if database == "degraded":
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "checks": {"database": database}},
        )
    return JSONResponse(content={"status": "ok", "checks": {"database": database}})
