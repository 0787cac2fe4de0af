"""Liveness, readiness and version probes."""

from fastapi import APIRouter, Depends

from academy.config import get_settings
from academy.dependencies import get_store
from academy.redis_client import redis_status
from academy.rewards.store import RewardStore

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(store: RewardStore = Depends(get_store)) -> dict[str, object]:  # noqa: B008
    """Readiness probe.

    The store must answer a config read. Redis is only checked when it is
    configured, since pub/sub is optional.
    """
    checks: dict[str, str] = {}

    try:
        await store.get_xp_config()
        checks["store"] = "ok"
    except Exception as exc:
        checks["store"] = f"error: {exc}"

    redis = await redis_status()
    if redis is not None:
        checks["redis"] = redis

    ready = all(v == "ok" for v in checks.values())
    return {"status": "ready" if ready else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {"version": settings.app_version, "environment": settings.environment}
