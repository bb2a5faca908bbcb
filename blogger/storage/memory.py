# blogger/storage/memory.py

"""
Хранилище в памяти процесса.

Словари по id, счетчики id на каждый тип сущности (с 1), линейные проходы
для фильтров. Все публичные методы выполняются под одной RLock, так что
хранилище ведёт себя как однопоточное даже под пулом потоков uvicorn.
После перезапуска всё теряется.
"""

import functools
import logging
import threading
from itertools import count
from typing import Any, Optional, Sequence

from blogger.schemas import (
    AdUnit,
    AdUnitCreate,
    BlogStats,
    Category,
    CategoryCreate,
    Comment,
    CommentCreate,
    CommentFilters,
    Page,
    Post,
    PostCreate,
    PostFilters,
    Setting,
    Tag,
    TagCreate,
    User,
    UserCreate,
    utcnow,
)
from blogger.storage.base import (
    DEFAULT_SETTINGS,
    EPOCH,
    POST_LINK_FIELDS,
    BlogStorage,
    build_entity,
    merge_entity,
    paginate,
)

logger = logging.getLogger(__name__)


def synchronized(method):
    """Выполнить метод под блокировкой хранилища"""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class MemStorage(BlogStorage):
    def __init__(self, seed_settings: bool = True):
        self._lock = threading.RLock()

        self._users: dict[int, User] = {}
        self._posts: dict[int, Post] = {}
        self._categories: dict[int, Category] = {}
        self._tags: dict[int, Tag] = {}
        self._comments: dict[int, Comment] = {}
        self._ad_units: dict[int, AdUnit] = {}
        self._settings: dict[str, Setting] = {}
        # Связи many-to-many, ключ (post_id, category_id) / (post_id, tag_id)
        self._post_categories: dict[tuple[int, int], None] = {}
        self._post_tags: dict[tuple[int, int], None] = {}

        self._ids = {
            "user": count(1),
            "post": count(1),
            "category": count(1),
            "tag": count(1),
            "comment": count(1),
            "ad_unit": count(1),
            "setting": count(1),
        }

        if seed_settings:
            for key, value in DEFAULT_SETTINGS.items():
                self._settings[key] = Setting(id=self._next_id("setting"), key=key, value=value)

    def _next_id(self, entity: str) -> int:
        return next(self._ids[entity])

    # =====
    # USERS
    # =====

    @synchronized
    def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    @synchronized
    def get_user_by_username(self, username: str) -> Optional[User]:
        username = username.lower()
        return next((u for u in self._users.values() if u.username.lower() == username), None)

    @synchronized
    def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        return next((u for u in self._users.values() if u.email.lower() == email), None)

    @synchronized
    def get_users(self) -> list[User]:
        return list(self._users.values())

    @synchronized
    def create_user(self, user_in: UserCreate) -> User:
        self._ensure_user_free(user_in.username, user_in.email)
        user = User(id=self._next_id("user"), **user_in.model_dump())
        self._users[user.id] = user
        logger.info("Created user %s (%s)", user.id, user.username)
        return user

    @synchronized
    def update_user(self, user_id: int, data: dict[str, Any]) -> Optional[User]:
        user = self._users.get(user_id)
        if user is None:
            return None
        self._ensure_user_free(data.get("username"), data.get("email"), own_id=user_id)
        user = merge_entity(user, data)
        self._users[user_id] = user
        return user

    @synchronized
    def delete_user(self, user_id: int) -> None:
        # Посты пользователя остаются со "висячим" author_id
        if self._users.pop(user_id, None) is not None:
            logger.info("Deleted user %s", user_id)

    # =====
    # POSTS
    # =====

    @synchronized
    def get_post(self, post_id: int) -> Optional[Post]:
        return self._posts.get(post_id)

    @synchronized
    def get_post_by_slug(self, slug: str) -> Optional[Post]:
        return next((p for p in self._posts.values() if p.slug == slug), None)

    @synchronized
    def _find_posts(self, filters: PostFilters) -> Page[Post]:
        posts = list(self._posts.values())

        if filters.status:
            posts = [p for p in posts if p.status == filters.status]

        if filters.author_id is not None:
            posts = [p for p in posts if p.author_id == filters.author_id]

        if filters.search:
            needle = filters.search.lower()
            posts = [
                p for p in posts
                if needle in p.title.lower()
                or needle in p.content.lower()
                or (p.excerpt and needle in p.excerpt.lower())
            ]

        # Несуществующая категория/тег - пустой результат, а не ошибка
        if filters.category_slug:
            category = self.get_category_by_slug(filters.category_slug)
            if category is None:
                posts = []
            else:
                post_ids = {pid for pid, cid in self._post_categories if cid == category.id}
                posts = [p for p in posts if p.id in post_ids]

        if filters.tag_slug:
            tag = self.get_tag_by_slug(filters.tag_slug)
            if tag is None:
                posts = []
            else:
                post_ids = {pid for pid, tid in self._post_tags if tid == tag.id}
                posts = [p for p in posts if p.id in post_ids]

        # sort() стабилен: при равных датах остается порядок создания
        posts.sort(key=lambda p: p.published_at or EPOCH, reverse=True)

        return paginate(posts, filters.page, filters.limit)

    @synchronized
    def create_post(self, post_in: PostCreate) -> Post:
        self._ensure_post_slug_free(post_in.slug)
        # Сначала проверяем данные, чтобы неудачная запись не тратила id
        post = build_entity(Post, {**post_in.model_dump(exclude=POST_LINK_FIELDS), "id": 0, "view_count": 0})
        post = post.model_copy(update={"id": self._next_id("post")})
        self._posts[post.id] = post
        logger.info("Created post %s (%s)", post.id, post.slug)
        return post

    @synchronized
    def update_post(self, post_id: int, data: dict[str, Any]) -> Optional[Post]:
        post = self._posts.get(post_id)
        if post is None:
            return None
        if data.get("slug") is not None:
            self._ensure_post_slug_free(data["slug"], own_id=post_id)
        changes = {key: value for key, value in data.items() if key not in POST_LINK_FIELDS | {"view_count"}}
        post = merge_entity(post, changes)
        self._posts[post_id] = post
        return post

    @synchronized
    def delete_post(self, post_id: int) -> None:
        if self._posts.pop(post_id, None) is None:
            return

        for key in [key for key in self._post_categories if key[0] == post_id]:
            del self._post_categories[key]
        for key in [key for key in self._post_tags if key[0] == post_id]:
            del self._post_tags[key]
        for comment_id in [c.id for c in self._comments.values() if c.post_id == post_id]:
            del self._comments[comment_id]

        logger.info("Deleted post %s", post_id)

    @synchronized
    def increment_post_view_count(self, post_id: int) -> None:
        post = self._posts.get(post_id)
        if post is not None:
            self._posts[post_id] = post.model_copy(update={"view_count": post.view_count + 1})

    @synchronized
    def get_popular_posts(self, limit: int = 5) -> list[Post]:
        posts = [p for p in self._posts.values() if p.status == "published"]
        posts.sort(key=lambda p: p.view_count, reverse=True)
        return posts[:limit]

    @synchronized
    def get_related_posts(self, post_id: int, limit: int = 3) -> list[Post]:
        category_ids = {cid for pid, cid in self._post_categories if pid == post_id}
        related_ids = {pid for pid, cid in self._post_categories if cid in category_ids and pid != post_id}
        posts = [
            p for p in self._posts.values()
            if p.id in related_ids and p.status == "published"
        ]
        posts.sort(key=lambda p: p.published_at or EPOCH, reverse=True)
        return posts[:limit]

    # ==========
    # CATEGORIES
    # ==========

    @synchronized
    def get_category(self, category_id: int) -> Optional[Category]:
        return self._categories.get(category_id)

    @synchronized
    def get_category_by_slug(self, slug: str) -> Optional[Category]:
        return next((c for c in self._categories.values() if c.slug == slug), None)

    @synchronized
    def get_categories(self) -> list[Category]:
        return list(self._categories.values())

    @synchronized
    def create_category(self, category_in: CategoryCreate) -> Category:
        self._ensure_category_slug_free(category_in.slug)
        category = Category(id=self._next_id("category"), **category_in.model_dump())
        self._categories[category.id] = category
        logger.info("Created category %s (%s)", category.id, category.slug)
        return category

    @synchronized
    def update_category(self, category_id: int, data: dict[str, Any]) -> Optional[Category]:
        category = self._categories.get(category_id)
        if category is None:
            return None
        if data.get("slug") is not None:
            self._ensure_category_slug_free(data["slug"], own_id=category_id)
        category = merge_entity(category, data)
        self._categories[category_id] = category
        return category

    @synchronized
    def delete_category(self, category_id: int) -> None:
        # Посты остаются, пропадают только связи
        if self._categories.pop(category_id, None) is None:
            return
        for key in [key for key in self._post_categories if key[1] == category_id]:
            del self._post_categories[key]
        logger.info("Deleted category %s", category_id)

    @synchronized
    def get_categories_for_post(self, post_id: int) -> list[Category]:
        return [
            self._categories[cid]
            for pid, cid in self._post_categories
            if pid == post_id and cid in self._categories
        ]

    @synchronized
    def add_post_category(self, post_id: int, category_id: int) -> None:
        self._post_categories[(post_id, category_id)] = None

    @synchronized
    def set_post_categories(self, post_id: int, category_ids: Sequence[int]) -> None:
        for key in [key for key in self._post_categories if key[0] == post_id]:
            del self._post_categories[key]
        for category_id in category_ids:
            self._post_categories[(post_id, category_id)] = None

    # ====
    # TAGS
    # ====

    @synchronized
    def get_tag(self, tag_id: int) -> Optional[Tag]:
        return self._tags.get(tag_id)

    @synchronized
    def get_tag_by_slug(self, slug: str) -> Optional[Tag]:
        return next((t for t in self._tags.values() if t.slug == slug), None)

    @synchronized
    def get_tag_by_name(self, name: str) -> Optional[Tag]:
        return next((t for t in self._tags.values() if t.name == name), None)

    @synchronized
    def get_tags(self) -> list[Tag]:
        return list(self._tags.values())

    @synchronized
    def create_tag(self, tag_in: TagCreate) -> Tag:
        self._ensure_tag_free(tag_in.name, tag_in.slug)
        tag = Tag(id=self._next_id("tag"), **tag_in.model_dump())
        self._tags[tag.id] = tag
        logger.info("Created tag %s (%s)", tag.id, tag.slug)
        return tag

    @synchronized
    def update_tag(self, tag_id: int, data: dict[str, Any]) -> Optional[Tag]:
        tag = self._tags.get(tag_id)
        if tag is None:
            return None
        self._ensure_tag_free(data.get("name"), data.get("slug"), own_id=tag_id)
        tag = merge_entity(tag, data)
        self._tags[tag_id] = tag
        return tag

    @synchronized
    def delete_tag(self, tag_id: int) -> None:
        if self._tags.pop(tag_id, None) is None:
            return
        for key in [key for key in self._post_tags if key[1] == tag_id]:
            del self._post_tags[key]
        logger.info("Deleted tag %s", tag_id)

    @synchronized
    def get_tags_for_post(self, post_id: int) -> list[Tag]:
        return [
            self._tags[tid]
            for pid, tid in self._post_tags
            if pid == post_id and tid in self._tags
        ]

    @synchronized
    def add_post_tag(self, post_id: int, tag_id: int) -> None:
        self._post_tags[(post_id, tag_id)] = None

    @synchronized
    def set_post_tags(self, post_id: int, tag_ids: Sequence[int]) -> None:
        for key in [key for key in self._post_tags if key[0] == post_id]:
            del self._post_tags[key]
        for tag_id in tag_ids:
            self._post_tags[(post_id, tag_id)] = None

    # ========
    # COMMENTS
    # ========

    @synchronized
    def get_comment(self, comment_id: int) -> Optional[Comment]:
        return self._comments.get(comment_id)

    @synchronized
    def get_comments_by_post_id(self, post_id: int) -> list[Comment]:
        comments = [
            c for c in self._comments.values()
            if c.post_id == post_id and c.status == "approved"
        ]
        comments.sort(key=lambda c: (c.created_at, c.id), reverse=True)
        return comments

    @synchronized
    def get_comments(self, filters: CommentFilters) -> Page[Comment]:
        comments = list(self._comments.values())

        if filters.status:
            comments = [c for c in comments if c.status == filters.status]

        if filters.post_id is not None:
            comments = [c for c in comments if c.post_id == filters.post_id]

        if filters.search:
            needle = filters.search.lower()
            comments = [c for c in comments if needle in c.content.lower()]

        comments.sort(key=lambda c: (c.created_at, c.id), reverse=filters.sort == "desc")

        return paginate(comments, filters.page, filters.limit)

    @synchronized
    def create_comment(self, comment_in: CommentCreate) -> Comment:
        comment = Comment(
            id=self._next_id("comment"),
            status="pending",
            created_at=utcnow(),
            **comment_in.model_dump(),
        )
        self._comments[comment.id] = comment
        logger.info("Created comment %s on post %s", comment.id, comment.post_id)
        return comment

    @synchronized
    def update_comment_status(self, comment_id: int, status: str) -> Optional[Comment]:
        self._check_comment_status(status)
        comment = self._comments.get(comment_id)
        if comment is None:
            return None
        comment = comment.model_copy(update={"status": status})
        self._comments[comment_id] = comment
        return comment

    @synchronized
    def delete_comment(self, comment_id: int) -> None:
        if comment_id not in self._comments:
            return

        # Вся ветка ответов, а не только прямые дети
        doomed = {comment_id}
        frontier = [comment_id]
        while frontier:
            parent_id = frontier.pop()
            for comment in self._comments.values():
                if comment.parent_id == parent_id and comment.id not in doomed:
                    doomed.add(comment.id)
                    frontier.append(comment.id)

        for doomed_id in doomed:
            del self._comments[doomed_id]
        logger.info("Deleted comment %s with %s replies", comment_id, len(doomed) - 1)

    @synchronized
    def get_recent_comments(self, limit: int = 5) -> list[Comment]:
        comments = sorted(self._comments.values(), key=lambda c: (c.created_at, c.id), reverse=True)
        return comments[:limit]

    # ========
    # AD UNITS
    # ========

    @synchronized
    def get_ad_unit(self, ad_unit_id: int) -> Optional[AdUnit]:
        return self._ad_units.get(ad_unit_id)

    @synchronized
    def get_active_ad_units(self) -> list[AdUnit]:
        return [ad for ad in self._ad_units.values() if ad.is_active]

    @synchronized
    def create_ad_unit(self, ad_unit_in: AdUnitCreate) -> AdUnit:
        ad_unit = AdUnit(id=self._next_id("ad_unit"), **ad_unit_in.model_dump())
        self._ad_units[ad_unit.id] = ad_unit
        return ad_unit

    # ========
    # SETTINGS
    # ========

    @synchronized
    def get_setting(self, key: str) -> Optional[Setting]:
        return self._settings.get(key)

    @synchronized
    def get_settings(self, group: Optional[str] = None) -> dict[str, Any]:
        return {
            setting.key: setting.value
            for setting in self._settings.values()
            if group is None or setting.group == group
        }

    @synchronized
    def update_settings(self, patch: dict[str, Any]) -> dict[str, Any]:
        for key, value in patch.items():
            existing = self._settings.get(key)
            if existing is not None:
                self._settings[key] = existing.model_copy(update={"value": value})
            else:
                self._settings[key] = Setting(id=self._next_id("setting"), key=key, value=value)
        return self.get_settings()

    # =====
    # STATS
    # =====

    @synchronized
    def get_blog_stats(self) -> BlogStats:
        published = [p for p in self._posts.values() if p.status == "published"]
        return BlogStats(
            posts_count=len(published),
            comments_count=len(self._comments),
            users_count=len(self._users),
            views_count=sum(p.view_count for p in published),
            popular_posts=self.get_popular_posts(4),
            recent_comments=self.get_recent_comments(5),
        )
