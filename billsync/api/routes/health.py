"""Health check route."""

from fastapi import APIRouter

from billsync import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """Liveness check for the container platform."""
    return {"status": "ok", "version": __version__}
