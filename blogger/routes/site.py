# blogger/routes/site.py

"""
Настройки сайта, рекламные блоки и статистика.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from blogger.dependencies import get_current_admin, get_storage
from blogger.schemas import AdUnit, BlogStats
from blogger.storage import BlogStorage

router = APIRouter(prefix="/api", tags=["site"])

admin_router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("/settings", response_model=dict[str, Any])
async def get_settings(
    group: Optional[str] = None,
    storage: BlogStorage = Depends(get_storage),
):
    """
    Настройки как плоский словарь key -> value.
    group ограничивает выборку одной группой.
    """
    return storage.get_settings(group)


@router.get("/ads", response_model=list[AdUnit])
async def get_ads(storage: BlogStorage = Depends(get_storage)):
    """Только активные блоки"""
    return storage.get_active_ad_units()


@admin_router.put("/settings", response_model=dict[str, Any])
async def update_settings(
    patch: dict[str, Any],
    storage: BlogStorage = Depends(get_storage),
):
    """
    Upsert настроек. Возвращает все настройки после записи.
    """
    if not patch:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nothing to update",
        )
    return storage.update_settings(patch)


@admin_router.get("/stats", response_model=BlogStats)
async def get_stats(storage: BlogStorage = Depends(get_storage)):
    return storage.get_blog_stats()
