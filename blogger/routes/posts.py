"""
API endpoints для публикаций

Публичная часть видит только опубликованные посты,
админская (/api/admin/posts) - все статусы.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from blogger.dependencies import get_current_admin, get_storage
from blogger.schemas import (
    Page,
    Post,
    PostCreate,
    PostDetail,
    PostFilters,
    PostStatus,
    PostUpdate,
    User,
)
from blogger.services import post_services
from blogger.storage import BlogStorage

router = APIRouter(prefix="/api", tags=["posts"])

admin_router = APIRouter(
    prefix="/api/admin/posts",
    tags=["admin"],
    dependencies=[Depends(get_current_admin)],
)


# ===============================
# ПУБЛИЧНАЯ ЛЕНТА ОПУБЛИКОВАННЫХ
# ===============================

@router.get("/posts", response_model=Page[Post])
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    storage: BlogStorage = Depends(get_storage),
):
    """
    Опубликованные посты, новые сверху.

    Не требует авторизации. Фильтры: slug категории, slug тега, поиск по
    заголовку/тексту/анонсу.
    """
    filters = PostFilters(
        page=page,
        limit=limit,
        category_slug=category,
        tag_slug=tag,
        search=search,
    )
    return await post_services.list_public_posts(storage, filters)


@router.get("/popular-posts", response_model=list[Post])
async def popular_posts(
    limit: int = Query(5, ge=1, le=50),
    storage: BlogStorage = Depends(get_storage),
):
    """Самые просматриваемые опубликованные посты"""
    return storage.get_popular_posts(limit)


# ==========================================
# ПОЛУЧИТЬ ПУБЛИКАЦИЮ ПО SLUG
# ==========================================

@router.get("/posts/{slug}", response_model=PostDetail)
async def get_post(
    slug: str,
    storage: BlogStorage = Depends(get_storage),
):
    """
    Пост с категориями и тегами. Каждый успешный запрос - один просмотр.
    """
    post = post_services.view_published_post(storage, slug)
    if post is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found",
        )
    return post


@router.get("/posts/{slug}/related", response_model=list[Post])
async def related_posts(
    slug: str,
    limit: int = Query(3, ge=1, le=20),
    storage: BlogStorage = Depends(get_storage),
):
    """Опубликованные посты из тех же категорий"""
    post = storage.get_post_by_slug(slug)
    if post is None or post.status != "published":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found",
        )
    return storage.get_related_posts(post.id, limit)


# ==========================
# АДМИНКА: СПИСОК ВСЕХ ПОСТОВ
# ==========================

@admin_router.get("", response_model=Page[Post])
async def admin_list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    post_status: Optional[PostStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    author: Optional[int] = None,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    storage: BlogStorage = Depends(get_storage),
):
    """
    Все посты, включая черновики. Без status - любые статусы.
    """
    filters = PostFilters(
        page=page,
        limit=limit,
        status=post_status,
        search=search,
        author_id=author,
        category_slug=category,
        tag_slug=tag,
    )
    return post_services.list_admin_posts(storage, filters)


@admin_router.get("/{post_id}", response_model=PostDetail)
async def admin_get_post(
    post_id: int,
    storage: BlogStorage = Depends(get_storage),
):
    """Пост для редактирования, просмотр не засчитывается"""
    post = storage.get_post(post_id)
    if post is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found",
        )
    return post_services.get_post_detail(storage, post)


# =========================
# СОЗДАНИЕ НОВОЙ ПУБЛИКАЦИИ
# =========================

@admin_router.post("", response_model=PostDetail, status_code=status.HTTP_201_CREATED)
async def create_post(
    post: PostCreate,
    current_user: User = Depends(get_current_admin),
    storage: BlogStorage = Depends(get_storage),
):
    """
    Создание публикации с привязкой к текущему пользователю.
    """
    return await post_services.create_post_for_user(storage, current_user, post)


# =====================================
# ОБНОВЛЕНИЕ(РЕДАКТИРОВАНИЕ) ПУБЛИКАЦИИ
# =====================================

@admin_router.put("/{post_id}", response_model=PostDetail)
async def update_post(
    post_id: int,
    post_update: PostUpdate,
    storage: BlogStorage = Depends(get_storage),
):
    """
    Частичное обновление поста. Статус можно менять на любой.
    """
    post = await post_services.update_post(storage, post_id, post_update)
    if post is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found",
        )
    return post


# ==================
# УДАЛИТЬ ПУБЛИКАЦИЮ
# ==================

@admin_router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: int,
    storage: BlogStorage = Depends(get_storage),
):
    """
    Удаление поста вместе с комментариями и связями.
    """
    await post_services.delete_post(storage, post_id)
    return None
