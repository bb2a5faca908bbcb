# blogger/storage/base.py

"""
Интерфейс хранилища блога.

Хранилище не знает про HTTP: чтение/обновление несуществующей записи
возвращает None, удаление несуществующей записи ничего не делает.
Нарушение уникальности - ConflictError, неверный статус - ValidationFailed.
"""

import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Literal, Optional, Sequence, TypeVar

from pydantic import ValidationError

from blogger.schemas import (
    COMMENT_STATUSES,
    AdUnit,
    AdUnitCreate,
    BlogStats,
    Category,
    CategoryCreate,
    Comment,
    CommentCreate,
    CommentFilters,
    Page,
    PageMeta,
    Post,
    PostCreate,
    PostFilters,
    Setting,
    Tag,
    TagCreate,
    User,
    UserCreate,
)
from blogger.utils.exceptions import ConflictError, ValidationFailed

QueryMode = Literal["public", "admin"]

# Посты без даты публикации сортируются как опубликованные в начале эпохи
EPOCH = datetime(1970, 1, 1)

DEFAULT_SETTINGS = {
    "site_title": "Blogger",
    "site_description": "A place to share knowledge, ideas, and experiences with the world.",
}

# Поля поста, которые не хранятся в самой записи
POST_LINK_FIELDS = {"category_ids", "tag_ids"}

T = TypeVar("T")


def build_page(data: Sequence[T], total: int, page: int, limit: int) -> Page[T]:
    """Собрать { data, meta } с согласованными total/totalPages"""
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    return Page[Any](
        data=list(data),
        meta=PageMeta(total=total, page=page, limit=limit, total_pages=total_pages),
    )


def build_entity(model, data: dict[str, Any]):
    """
    Собрать сущность из данных записи.

    Ошибка схемы (например null в обязательном поле) - ValidationFailed
    с именем поля, а не сырой ValidationError pydantic.
    """
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or model.__name__
        raise ValidationFailed(f"{field}: {error['msg']}") from exc


def merge_entity(entity, data: dict[str, Any]):
    """
    Поверхностное слияние для update: не упомянутые поля остаются,
    id и неизвестные ключи игнорируются, результат заново валидируется.
    """
    fields = type(entity).model_fields
    changes = {key: value for key, value in data.items() if key in fields and key != "id"}
    return build_entity(type(entity), {**entity.model_dump(), **changes})


def paginate(items: Sequence[T], page: int, limit: int) -> Page[T]:
    """Срез [(page-1)*limit, page*limit) из уже отфильтрованного списка"""
    start = max((page - 1) * limit, 0)
    return build_page(items[start:start + max(limit, 0)], len(items), page, limit)


class BlogStorage(ABC):
    """
    Общий контракт для памяти и БД.

    Сущности возвращаются pydantic-схемами из blogger.schemas,
    поэтому роутам всё равно, какое хранилище под ними.
    """

    # =====
    # USERS
    # =====

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def get_users(self) -> list[User]: ...

    @abstractmethod
    def create_user(self, user_in: UserCreate) -> User: ...

    @abstractmethod
    def update_user(self, user_id: int, data: dict[str, Any]) -> Optional[User]: ...

    @abstractmethod
    def delete_user(self, user_id: int) -> None: ...

    # =====
    # POSTS
    # =====

    @abstractmethod
    def get_post(self, post_id: int) -> Optional[Post]: ...

    @abstractmethod
    def get_post_by_slug(self, slug: str) -> Optional[Post]: ...

    def get_posts(self, filters: PostFilters, mode: QueryMode = "public") -> Page[Post]:
        """
        Лента постов.

        public - всегда только опубликованные, что бы ни пришло в filters.status;
        admin  - filters.status как есть, без статуса - все посты.
        """
        if mode == "public":
            filters = filters.model_copy(update={"status": "published"})
        return self._find_posts(filters)

    @abstractmethod
    def _find_posts(self, filters: PostFilters) -> Page[Post]:
        """Фильтрация без подстановки статуса по умолчанию (status=None - все)"""

    @abstractmethod
    def create_post(self, post_in: PostCreate) -> Post: ...

    @abstractmethod
    def update_post(self, post_id: int, data: dict[str, Any]) -> Optional[Post]: ...

    @abstractmethod
    def delete_post(self, post_id: int) -> None: ...

    @abstractmethod
    def increment_post_view_count(self, post_id: int) -> None: ...

    @abstractmethod
    def get_popular_posts(self, limit: int = 5) -> list[Post]: ...

    @abstractmethod
    def get_related_posts(self, post_id: int, limit: int = 3) -> list[Post]: ...

    # ==========
    # CATEGORIES
    # ==========

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]: ...

    @abstractmethod
    def get_category_by_slug(self, slug: str) -> Optional[Category]: ...

    @abstractmethod
    def get_categories(self) -> list[Category]: ...

    @abstractmethod
    def create_category(self, category_in: CategoryCreate) -> Category: ...

    @abstractmethod
    def update_category(self, category_id: int, data: dict[str, Any]) -> Optional[Category]: ...

    @abstractmethod
    def delete_category(self, category_id: int) -> None: ...

    @abstractmethod
    def get_categories_for_post(self, post_id: int) -> list[Category]: ...

    @abstractmethod
    def add_post_category(self, post_id: int, category_id: int) -> None: ...

    @abstractmethod
    def set_post_categories(self, post_id: int, category_ids: Sequence[int]) -> None: ...

    # ====
    # TAGS
    # ====

    @abstractmethod
    def get_tag(self, tag_id: int) -> Optional[Tag]: ...

    @abstractmethod
    def get_tag_by_slug(self, slug: str) -> Optional[Tag]: ...

    @abstractmethod
    def get_tag_by_name(self, name: str) -> Optional[Tag]: ...

    @abstractmethod
    def get_tags(self) -> list[Tag]: ...

    @abstractmethod
    def create_tag(self, tag_in: TagCreate) -> Tag: ...

    @abstractmethod
    def update_tag(self, tag_id: int, data: dict[str, Any]) -> Optional[Tag]: ...

    @abstractmethod
    def delete_tag(self, tag_id: int) -> None: ...

    @abstractmethod
    def get_tags_for_post(self, post_id: int) -> list[Tag]: ...

    @abstractmethod
    def add_post_tag(self, post_id: int, tag_id: int) -> None: ...

    @abstractmethod
    def set_post_tags(self, post_id: int, tag_ids: Sequence[int]) -> None: ...

    # ========
    # COMMENTS
    # ========

    @abstractmethod
    def get_comment(self, comment_id: int) -> Optional[Comment]: ...

    @abstractmethod
    def get_comments_by_post_id(self, post_id: int) -> list[Comment]:
        """Только одобренные, новые сверху"""

    @abstractmethod
    def get_comments(self, filters: CommentFilters) -> Page[Comment]:
        """Админский список: любые статусы, фильтры, сортировка, пагинация"""

    @abstractmethod
    def create_comment(self, comment_in: CommentCreate) -> Comment: ...

    @abstractmethod
    def update_comment_status(self, comment_id: int, status: str) -> Optional[Comment]: ...

    @abstractmethod
    def delete_comment(self, comment_id: int) -> None:
        """Удаляет комментарий вместе со всей веткой ответов"""

    @abstractmethod
    def get_recent_comments(self, limit: int = 5) -> list[Comment]: ...

    # ========
    # AD UNITS
    # ========

    @abstractmethod
    def get_ad_unit(self, ad_unit_id: int) -> Optional[AdUnit]: ...

    @abstractmethod
    def get_active_ad_units(self) -> list[AdUnit]: ...

    @abstractmethod
    def create_ad_unit(self, ad_unit_in: AdUnitCreate) -> AdUnit: ...

    # ========
    # SETTINGS
    # ========

    @abstractmethod
    def get_setting(self, key: str) -> Optional[Setting]: ...

    @abstractmethod
    def get_settings(self, group: Optional[str] = None) -> dict[str, Any]: ...

    @abstractmethod
    def update_settings(self, patch: dict[str, Any]) -> dict[str, Any]:
        """Upsert: значения существующих ключей заменяются, новые ключи попадают в general"""

    # =====
    # STATS
    # =====

    @abstractmethod
    def get_blog_stats(self) -> BlogStats: ...

    # ===================
    # ПРОВЕРКИ ПРИ ЗАПИСИ
    # ===================

    def _ensure_post_slug_free(self, slug: str, own_id: Optional[int] = None) -> None:
        existing = self.get_post_by_slug(slug)
        if existing is not None and existing.id != own_id:
            raise ConflictError(f"Post with slug '{slug}' already exists")

    def _ensure_category_slug_free(self, slug: str, own_id: Optional[int] = None) -> None:
        existing = self.get_category_by_slug(slug)
        if existing is not None and existing.id != own_id:
            raise ConflictError(f"Category with slug '{slug}' already exists")

    def _ensure_tag_free(self, name: Optional[str], slug: Optional[str], own_id: Optional[int] = None) -> None:
        if name is not None:
            existing = self.get_tag_by_name(name)
            if existing is not None and existing.id != own_id:
                raise ConflictError(f"Tag '{name}' already exists")
        if slug is not None:
            existing = self.get_tag_by_slug(slug)
            if existing is not None and existing.id != own_id:
                raise ConflictError(f"Tag with slug '{slug}' already exists")

    def _ensure_user_free(self, username: Optional[str], email: Optional[str], own_id: Optional[int] = None) -> None:
        if username is not None:
            existing = self.get_user_by_username(username)
            if existing is not None and existing.id != own_id:
                raise ConflictError("Username already registered")
        if email is not None:
            existing = self.get_user_by_email(email)
            if existing is not None and existing.id != own_id:
                raise ConflictError("Email already registered")

    @staticmethod
    def _check_comment_status(status: str) -> None:
        if status not in COMMENT_STATUSES:
            raise ValidationFailed(
                f"Invalid comment status '{status}', expected one of: {', '.join(COMMENT_STATUSES)}"
            )
