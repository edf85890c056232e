"""Version 1 API routes for the MSSP client management backend."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from mssp.api.v1.admin_fields import router as admin_fields_router
from mssp.api.v1.clients import router as clients_router
from mssp.api.v1.fields import router as fields_router
from mssp.core.config import Settings, get_settings

router = APIRouter()
router.include_router(admin_fields_router)
router.include_router(fields_router)
router.include_router(clients_router)


@router.get("/health", tags=["health"])
async def health_check(settings: Settings = Depends(get_settings)) -> dict[str, dict[str, str]]:
    """Report the service health information."""
    return {"data": {"status": "ok", "version": settings.version}}
