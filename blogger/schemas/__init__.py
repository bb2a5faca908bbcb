# blogger/schemas/__init__.py

from datetime import datetime, timezone
from typing import Annotated, Any, Generic, List, Literal, Optional, TypeVar

from pydantic import (
    AfterValidator,
    BeforeValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    PlainSerializer,
)
from pydantic.alias_generators import to_camel

# Формат дат "на проводе": YYYY-MM-DD HH:MM:SS
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

SLUG_PATTERN = r"^[a-z0-9-]+$"

UserRole = Literal["admin", "editor", "author", "user"]
PostStatus = Literal["draft", "published", "scheduled"]
CommentStatus = Literal["pending", "approved", "rejected", "spam"]

COMMENT_STATUSES = ("pending", "approved", "rejected", "spam")


def utcnow() -> datetime:
    """Текущее время в UTC без tzinfo - так даты и хранятся"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


Timestamp = Annotated[
    datetime,
    AfterValidator(_to_naive_utc),
    PlainSerializer(
        lambda value: value.strftime(DATETIME_FORMAT),
        return_type=str,
        when_used="json",
    ),
]


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# Пустая строка из формы = даты нет
OptionalTimestamp = Annotated[Optional[Timestamp], BeforeValidator(_blank_to_none)]


class CamelModel(BaseModel):
    """
    Базовая схема: snake_case в Python, camelCase в JSON.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =======================
# СХЕМЫ ДЛЯ ПОЛЬЗОВАТЕЛЕЙ
# =======================

class User(CamelModel):
    """
    Пользователь в хранилище. password - то, что передал слой авторизации (хэш).
    """
    id: int
    username: str
    password: str
    email: str
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    role: UserRole = "user"
    is_active: bool = True


class UserCreate(CamelModel):
    """
    Схема для создания пользователя (регистрация)
    """
    username: str = Field(min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = None


class AdminUserCreate(UserCreate):
    """Создание пользователя из админки: можно сразу задать роль"""
    bio: Optional[str] = None
    avatar: Optional[str] = None
    role: UserRole = "user"
    is_active: bool = True


class UserUpdate(CamelModel):
    """Частичное обновление пользователя администратором"""
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class ProfileUpdate(CamelModel):
    """Самостоятельное редактирование профиля (без роли и статуса)"""
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None


class UserLogin(BaseModel):
    """
    Схема для логина. Авторизация либо по e-mail, либо по username
    """
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password: str


class UserResponse(CamelModel):
    """
    Схема ответа с инфо о пользователе (без пароля)
    """
    id: int
    username: str
    email: str
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    role: UserRole
    is_active: bool


class PromoteToAdminRequest(CamelModel):
    username: str
    secret_key: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"


class TokenRefreshRequest(BaseModel):
    refresh_token: str


class TokenLogoutRequest(BaseModel):
    refresh_token: str


# ====================
# СХЕМЫ ДЛЯ ПУБЛИКАЦИЙ
# ====================

class Post(CamelModel):
    """Пост в том виде, в котором он лежит в хранилище"""
    id: int
    title: str
    slug: str
    excerpt: Optional[str] = None
    content: str
    featured_image: Optional[str] = None
    author_id: int
    status: PostStatus = "draft"
    published_at: Optional[Timestamp] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    is_comments_enabled: bool = True
    view_count: int = 0


class PostCreate(CamelModel):
    """Создание поста. author_id проставляет API из текущего пользователя"""
    title: str = Field(min_length=1, max_length=200)
    slug: str = Field(min_length=1, max_length=200, pattern=SLUG_PATTERN)
    excerpt: Optional[str] = None
    content: str = Field(min_length=1)
    featured_image: Optional[str] = None
    author_id: Optional[int] = None
    status: PostStatus = "draft"
    published_at: OptionalTimestamp = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    is_comments_enabled: bool = True

    # Связи, не хранятся в самом посте
    category_ids: Optional[List[int]] = None
    tag_ids: Optional[List[int]] = None


class PostUpdate(CamelModel):
    """Обновление поста: передаются только изменяемые поля"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=200, pattern=SLUG_PATTERN)
    excerpt: Optional[str] = None
    content: Optional[str] = Field(default=None, min_length=1)
    featured_image: Optional[str] = None
    status: Optional[PostStatus] = None
    published_at: OptionalTimestamp = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    is_comments_enabled: Optional[bool] = None

    category_ids: Optional[List[int]] = None
    tag_ids: Optional[List[int]] = None


class PostFilters(BaseModel):
    """Фильтры ленты постов"""
    page: int = 1
    limit: int = 10
    category_slug: Optional[str] = None
    tag_slug: Optional[str] = None
    search: Optional[str] = None
    status: Optional[PostStatus] = None
    author_id: Optional[int] = None


# ======================
# КАТЕГОРИИ И ТЕГИ
# ======================

class Category(CamelModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    featured_image: Optional[str] = None
    parent_id: Optional[int] = None


class CategoryCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    slug: str = Field(min_length=1, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = None
    featured_image: Optional[str] = None
    parent_id: Optional[int] = None


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = None
    featured_image: Optional[str] = None
    parent_id: Optional[int] = None


class Tag(CamelModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None


class TagCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    slug: str = Field(min_length=1, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = None


class TagUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = None


class PostDetail(Post):
    """Пост вместе с категориями и тегами"""
    categories: List[Category] = []
    tags: List[Tag] = []


# ======================
# СХЕМЫ ДЛЯ КОММЕНТАРИЕВ
# ======================

class Comment(CamelModel):
    id: int
    content: str
    post_id: int
    author_id: Optional[int] = None
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    parent_id: Optional[int] = None
    status: CommentStatus = "pending"
    created_at: Timestamp


class CommentCreate(CamelModel):
    """Создание комментария. Статус не задается - всегда pending"""
    content: str = Field(min_length=1, max_length=5000)
    post_id: int
    author_id: Optional[int] = None
    author_name: Optional[str] = Field(default=None, max_length=100)
    author_email: Optional[EmailStr] = None
    parent_id: Optional[int] = None


class CommentStatusUpdate(CamelModel):
    status: CommentStatus


class CommentFilters(BaseModel):
    """Фильтры админского списка комментариев"""
    page: int = 1
    limit: int = 10
    status: Optional[CommentStatus] = None
    search: Optional[str] = None
    post_id: Optional[int] = None
    sort: Literal["asc", "desc"] = "desc"


# ======================
# РЕКЛАМА И НАСТРОЙКИ
# ======================

class AdUnit(CamelModel):
    id: int
    name: str
    code: str
    placement: str
    is_active: bool = True


class AdUnitCreate(CamelModel):
    name: str
    code: str
    placement: str
    is_active: bool = True


class Setting(CamelModel):
    id: int
    key: str
    value: Any = None
    group: str = "general"


# ======================
# ПАГИНАЦИЯ И СТАТИСТИКА
# ======================

T = TypeVar("T")


class PageMeta(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class Page(BaseModel, Generic[T]):
    """Ответ любого списка: { data, meta }"""
    data: List[T]
    meta: PageMeta


class BlogStats(CamelModel):
    posts_count: int
    comments_count: int
    users_count: int
    views_count: int
    popular_posts: List[Post]
    recent_comments: List[Comment]
