from fastapi import APIRouter, Depends

from expense_manager.core.config import Settings
from expense_manager.routers.expenses import get_app_settings

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness probe")
async def health(settings: Settings = Depends(get_app_settings)):
    return {
        "status": "ok",
        "version": settings.version,
        "chat_configured": settings.chat_configured,
    }
