# blogger/services/post_services.py

"""
Сервисный слой для постов.

Знает про хранилище и кэш, но не про HTTP-статусы/исключения.
"""

import logging
from typing import Optional, Sequence

from blogger.config import settings
from blogger.schemas import (
    Page,
    Post,
    PostCreate,
    PostDetail,
    PostFilters,
    PostUpdate,
    User,
    utcnow,
)
from blogger.services.cache import cache
from blogger.storage import BlogStorage
from blogger.utils.exceptions import ValidationFailed

logger = logging.getLogger(__name__)

# Префикс ключей кэша публичной ленты: posts:list:page=1:limit=10
FEED_CACHE_PREFIX = "posts:list"


def feed_cache_key(page: int, limit: int) -> str:
    return f"{FEED_CACHE_PREFIX}:page={page}:limit={limit}"


async def invalidate_feed() -> None:
    """Сбросить все закэшированные страницы ленты после записи постов/категорий/тегов"""
    dropped = await cache.delete_prefix(FEED_CACHE_PREFIX)
    if dropped:
        logger.debug("Dropped %s cached feed pages", dropped)


async def list_public_posts(storage: BlogStorage, filters: PostFilters) -> Page[Post] | dict:
    """
    Публичная лента: только опубликованные.

    Страницы без фильтров берутся из кэша, если Redis подключен.
    """
    cache_key = feed_cache_key(filters.page, filters.limit)
    use_cache = (
        not filters.category_slug
        and not filters.tag_slug
        and not filters.search
    )

    if use_cache:
        cached = await cache.get(cache_key)
        if cached is not None:
            return cached

    page = storage.get_posts(filters, mode="public")

    if use_cache:
        await cache.set(
            cache_key,
            page.model_dump(mode="json", by_alias=True),
            ttl=settings.FEED_CACHE_TTL,
        )

    return page


def list_admin_posts(storage: BlogStorage, filters: PostFilters) -> Page[Post]:
    """Админская лента: любой статус, без статуса - все посты"""
    return storage.get_posts(filters, mode="admin")


def get_post_detail(storage: BlogStorage, post: Post) -> PostDetail:
    """Пост вместе с категориями и тегами"""
    return PostDetail(
        **post.model_dump(),
        categories=storage.get_categories_for_post(post.id),
        tags=storage.get_tags_for_post(post.id),
    )


def view_published_post(storage: BlogStorage, slug: str) -> Optional[PostDetail]:
    """
    Открыть пост на публичной странице.

    None - поста нет или он не опубликован. Иначе засчитываем ровно
    один просмотр и возвращаем пост уже с новым счетчиком.
    """
    post = storage.get_post_by_slug(slug)
    if post is None or post.status != "published":
        return None

    storage.increment_post_view_count(post.id)

    return get_post_detail(storage, storage.get_post(post.id) or post)


def _check_links(
    storage: BlogStorage,
    category_ids: Optional[Sequence[int]],
    tag_ids: Optional[Sequence[int]],
) -> None:
    # Ссылки на несуществующие категории/теги не сохраняем
    for category_id in category_ids or ():
        if storage.get_category(category_id) is None:
            raise ValidationFailed(f"Category {category_id} does not exist")
    for tag_id in tag_ids or ():
        if storage.get_tag(tag_id) is None:
            raise ValidationFailed(f"Tag {tag_id} does not exist")


async def create_post_for_user(
    storage: BlogStorage,
    author: User,
    post_in: PostCreate,
) -> PostDetail:
    """
    Создать пост от имени пользователя, привязать категории/теги и сбросить кэш ленты.
    """
    _check_links(storage, post_in.category_ids, post_in.tag_ids)

    updates = {"author_id": author.id}
    # Опубликованный без даты - публикуем "сейчас"
    if post_in.status == "published" and post_in.published_at is None:
        updates["published_at"] = utcnow()

    post = storage.create_post(post_in.model_copy(update=updates))

    if post_in.category_ids:
        storage.set_post_categories(post.id, post_in.category_ids)
    if post_in.tag_ids:
        storage.set_post_tags(post.id, post_in.tag_ids)

    # Инвалидация кэша главной ленты
    await invalidate_feed()

    return get_post_detail(storage, post)


async def update_post(
    storage: BlogStorage,
    post_id: int,
    post_update: PostUpdate,
) -> Optional[PostDetail]:
    """
    Обновить пост:
    - None       -> пост не найден;
    - PostDetail -> успешное обновление.

    category_ids / tag_ids, если переданы, полностью заменяют связи.
    """
    current = storage.get_post(post_id)
    if current is None:
        return None

    update_data = post_update.model_dump(exclude_unset=True)
    category_ids = update_data.pop("category_ids", None)
    tag_ids = update_data.pop("tag_ids", None)
    _check_links(storage, category_ids, tag_ids)

    publishing = update_data.get("status") == "published"
    if publishing and current.published_at is None and update_data.get("published_at") is None:
        update_data["published_at"] = utcnow()

    post = storage.update_post(post_id, update_data)
    if post is None:
        return None

    if category_ids is not None:
        storage.set_post_categories(post_id, category_ids)
    if tag_ids is not None:
        storage.set_post_tags(post_id, tag_ids)

    await invalidate_feed()

    return get_post_detail(storage, post)


async def delete_post(storage: BlogStorage, post_id: int) -> None:
    """
    Удалить пост вместе со связями и комментариями.
    Удаление несуществующего поста - не ошибка.
    """
    storage.delete_post(post_id)
    await invalidate_feed()
