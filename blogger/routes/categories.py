# blogger/routes/categories.py

"""
API endpoints для категорий.

Чтение открыто всем, запись - /api/admin/categories.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from blogger.dependencies import get_current_admin, get_storage
from blogger.schemas import Category, CategoryCreate, CategoryUpdate
from blogger.services.post_services import invalidate_feed
from blogger.storage import BlogStorage

router = APIRouter(prefix="/api/categories", tags=["categories"])

admin_router = APIRouter(
    prefix="/api/admin/categories",
    tags=["admin"],
    dependencies=[Depends(get_current_admin)],
)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")


@router.get("", response_model=list[Category])
async def list_categories(storage: BlogStorage = Depends(get_storage)):
    """Все категории в порядке создания"""
    return storage.get_categories()


@router.get("/{slug}", response_model=Category)
async def get_category(slug: str, storage: BlogStorage = Depends(get_storage)):
    category = storage.get_category_by_slug(slug)
    if category is None:
        raise _not_found()
    return category


@admin_router.post("", response_model=Category, status_code=status.HTTP_201_CREATED)
async def create_category(
    category: CategoryCreate,
    storage: BlogStorage = Depends(get_storage),
):
    """Занятый slug - 409"""
    created = storage.create_category(category)
    await invalidate_feed()
    return created


@admin_router.put("/{category_id}", response_model=Category)
async def update_category(
    category_id: int,
    category_update: CategoryUpdate,
    storage: BlogStorage = Depends(get_storage),
):
    category = storage.update_category(category_id, category_update.model_dump(exclude_unset=True))
    if category is None:
        raise _not_found()
    await invalidate_feed()
    return category


@admin_router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: int,
    storage: BlogStorage = Depends(get_storage),
):
    """
    Удалить категорию. Посты остаются, пропадают только связи с ней.
    """
    storage.delete_category(category_id)
    await invalidate_feed()
    return None
