from fastapi import APIRouter

from streamgate.core.metrics import prom_response

router = APIRouter()


@router.get(
    "/health",
    tags=["General"],
    summary="Health Check",
    description="Returns the health status of the application.",
)
async def health():
    return {"status": "ok"}


@router.get("/metrics", tags=["General"], summary="Prometheus Metrics")
async def metrics_endpoint():
    return prom_response()
