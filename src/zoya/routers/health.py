from fastapi import APIRouter

from ..metrics import registry

router = APIRouter(tags=["health"])


@router.get("/healthz")
def health_check() -> dict[str, str]:
    """Liveness/readiness check."""
    return {"status": "ok"}


@router.get("/metrics")
def metrics_snapshot() -> dict[str, dict[str, object]]:
    """Per-route request counts, errors and p95 latency since startup."""
    return registry.snapshot()
