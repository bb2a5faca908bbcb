# blogger/routes/comments.py

"""
API endpoints для комментариев.

Оставить комментарий может кто угодно (аноним - с именем и email),
на публичной странице видны только одобренные.
Модерация - /api/admin/comments, только для администраторов.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from blogger.config import settings
from blogger.dependencies import get_current_admin, get_current_user_optional, get_storage
from blogger.schemas import (
    Comment,
    CommentCreate,
    CommentFilters,
    CommentStatus,
    CommentStatusUpdate,
    Page,
    User,
)
from blogger.services.comment_service import (
    create_comment,
    list_approved_comments,
    moderate_comment,
)
from blogger.storage import BlogStorage
from blogger.utils.limiter import limiter

router = APIRouter(prefix="/api", tags=["comments"])

admin_router = APIRouter(
    prefix="/api/admin/comments",
    tags=["admin"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("/posts/{post_id}/comments", response_model=list[Comment])
async def list_comments(
    post_id: int,
    storage: BlogStorage = Depends(get_storage),
):
    """
    Одобренные комментарии поста.

    Не требует авторизации.
    """
    comments = list_approved_comments(storage, post_id)
    if comments is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return comments


@router.post("/comments", response_model=Comment, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.COMMENT_RATE_LIMIT)
async def post_comment(
    comment: CommentCreate,
    request: Request,
    current_user: Optional[User] = Depends(get_current_user_optional),
    storage: BlogStorage = Depends(get_storage),
):
    """
    Оставить комментарий. Он появится на сайте после модерации.
    """
    return create_comment(storage, comment, current_user)


# ======================
# АДМИНКА: МОДЕРАЦИЯ
# ======================

@admin_router.get("", response_model=Page[Comment])
async def admin_list_comments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    comment_status: Optional[CommentStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    sort: Literal["asc", "desc"] = "desc",
    post: Optional[int] = None,
    storage: BlogStorage = Depends(get_storage),
):
    filters = CommentFilters(
        page=page,
        limit=limit,
        status=comment_status,
        search=search,
        sort=sort,
        post_id=post,
    )
    return storage.get_comments(filters)


@admin_router.get("/{comment_id}", response_model=Comment)
async def admin_get_comment(
    comment_id: int,
    storage: BlogStorage = Depends(get_storage),
):
    comment = storage.get_comment(comment_id)
    if comment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Comment not found"
        )
    return comment


@admin_router.put("/{comment_id}", response_model=Comment)
async def admin_update_comment(
    comment_id: int,
    body: CommentStatusUpdate,
    storage: BlogStorage = Depends(get_storage),
):
    """Сменить статус модерации"""
    comment = moderate_comment(storage, comment_id, body.status)
    if comment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Comment not found",
        )
    return comment


@admin_router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_comment(
    comment_id: int,
    storage: BlogStorage = Depends(get_storage),
):
    """
    Удалить комментарий вместе со всей веткой ответов.
    """
    storage.delete_comment(comment_id)
    return None
