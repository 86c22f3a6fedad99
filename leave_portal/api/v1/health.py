"""
Health check endpoint
"""
from fastapi import APIRouter
from leave_portal.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness check"""
    return {
        "status": "ok",
        "service": "leave-portal-backend",
        "version": settings.VERSION or "dev",
    }
