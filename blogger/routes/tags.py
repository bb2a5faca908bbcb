# blogger/routes/tags.py

"""
API endpoints для тегов.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from blogger.dependencies import get_current_admin, get_storage
from blogger.schemas import Tag, TagCreate, TagUpdate
from blogger.services.post_services import invalidate_feed
from blogger.storage import BlogStorage

router = APIRouter(prefix="/api/tags", tags=["tags"])

admin_router = APIRouter(
    prefix="/api/admin/tags",
    tags=["admin"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("", response_model=list[Tag])
async def list_tags(storage: BlogStorage = Depends(get_storage)):
    return storage.get_tags()


@router.get("/{slug}", response_model=Tag)
async def get_tag(slug: str, storage: BlogStorage = Depends(get_storage)):
    tag = storage.get_tag_by_slug(slug)
    if tag is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tag not found")
    return tag


@admin_router.post("", response_model=Tag, status_code=status.HTTP_201_CREATED)
async def create_tag(
    tag: TagCreate,
    storage: BlogStorage = Depends(get_storage),
):
    """Имя и slug тега уникальны - повтор дает 409"""
    created = storage.create_tag(tag)
    await invalidate_feed()
    return created


@admin_router.put("/{tag_id}", response_model=Tag)
async def update_tag(
    tag_id: int,
    tag_update: TagUpdate,
    storage: BlogStorage = Depends(get_storage),
):
    tag = storage.update_tag(tag_id, tag_update.model_dump(exclude_unset=True))
    if tag is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tag not found")
    await invalidate_feed()
    return tag


@admin_router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: int,
    storage: BlogStorage = Depends(get_storage),
):
    storage.delete_tag(tag_id)
    await invalidate_feed()
    return None
