# blogger/storage/database.py

"""
Хранилище на SQLAlchemy (STORAGE_BACKEND=database).

Та же семантика, что у MemStorage: сортировка постов без даты как эпохи,
каскады при удалении, проверки уникальности перед записью.
Одна сессия на операцию, сессии никогда не вкладываются друг в друга.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session, sessionmaker

from blogger import models
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
    build_page,
    merge_entity,
)

logger = logging.getLogger(__name__)


def _like(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _apply(row, entity) -> None:
    # Переносим поля провалидированной схемы в ORM-объект
    for key, value in entity.model_dump().items():
        if key != "id":
            setattr(row, key, value)


class DatabaseStorage(BlogStorage):
    def __init__(self, session_factory: sessionmaker, seed_settings: bool = True):
        self._session_factory = session_factory
        if seed_settings:
            self._seed_settings()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _seed_settings(self) -> None:
        with self._session() as db:
            existing = set(db.scalars(select(models.Setting.key)))
            for key, value in DEFAULT_SETTINGS.items():
                if key not in existing:
                    db.add(models.Setting(key=key, value=value, group="general"))

    # =====
    # USERS
    # =====

    def get_user(self, user_id: int) -> Optional[User]:
        with self._session() as db:
            row = db.get(models.User, user_id)
            return User.model_validate(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._session() as db:
            row = db.scalars(
                select(models.User)
                .where(func.lower(models.User.username) == username.lower())
                .order_by(models.User.id)
            ).first()
            return User.model_validate(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._session() as db:
            row = db.scalars(
                select(models.User)
                .where(func.lower(models.User.email) == email.lower())
                .order_by(models.User.id)
            ).first()
            return User.model_validate(row) if row else None

    def get_users(self) -> list[User]:
        with self._session() as db:
            rows = db.scalars(select(models.User).order_by(models.User.id))
            return [User.model_validate(row) for row in rows]

    def create_user(self, user_in: UserCreate) -> User:
        self._ensure_user_free(user_in.username, user_in.email)
        with self._session() as db:
            row = models.User(**User(id=0, **user_in.model_dump()).model_dump(exclude={"id"}))
            db.add(row)
            db.flush()
            user = User.model_validate(row)
        logger.info("Created user %s (%s)", user.id, user.username)
        return user

    def update_user(self, user_id: int, data: dict[str, Any]) -> Optional[User]:
        current = self.get_user(user_id)
        if current is None:
            return None
        self._ensure_user_free(data.get("username"), data.get("email"), own_id=user_id)
        merged = merge_entity(current, data)
        with self._session() as db:
            row = db.get(models.User, user_id)
            if row is None:
                return None
            _apply(row, merged)
        return merged

    def delete_user(self, user_id: int) -> None:
        with self._session() as db:
            deleted = db.execute(delete(models.User).where(models.User.id == user_id)).rowcount
        if deleted:
            logger.info("Deleted user %s", user_id)

    # =====
    # POSTS
    # =====

    def get_post(self, post_id: int) -> Optional[Post]:
        with self._session() as db:
            row = db.get(models.Post, post_id)
            return Post.model_validate(row) if row else None

    def get_post_by_slug(self, slug: str) -> Optional[Post]:
        with self._session() as db:
            row = db.scalars(
                select(models.Post).where(models.Post.slug == slug).order_by(models.Post.id)
            ).first()
            return Post.model_validate(row) if row else None

    def _find_posts(self, filters: PostFilters) -> Page[Post]:
        query = select(models.Post)

        if filters.status:
            query = query.where(models.Post.status == filters.status)

        if filters.author_id is not None:
            query = query.where(models.Post.author_id == filters.author_id)

        if filters.search:
            pattern = _like(filters.search)
            query = query.where(
                or_(
                    models.Post.title.ilike(pattern, escape="\\"),
                    models.Post.content.ilike(pattern, escape="\\"),
                    models.Post.excerpt.ilike(pattern, escape="\\"),
                )
            )

        with self._session() as db:
            # Несуществующая категория/тег - пустой результат, а не ошибка
            if filters.category_slug:
                category_id = db.scalars(
                    select(models.Category.id).where(models.Category.slug == filters.category_slug)
                ).first()
                if category_id is None:
                    return build_page([], 0, filters.page, filters.limit)
                query = query.where(
                    models.Post.id.in_(
                        select(models.PostCategory.post_id).where(models.PostCategory.category_id == category_id)
                    )
                )

            if filters.tag_slug:
                tag_id = db.scalars(
                    select(models.Tag.id).where(models.Tag.slug == filters.tag_slug)
                ).first()
                if tag_id is None:
                    return build_page([], 0, filters.page, filters.limit)
                query = query.where(
                    models.Post.id.in_(
                        select(models.PostTag.post_id).where(models.PostTag.tag_id == tag_id)
                    )
                )

            total = db.scalar(select(func.count()).select_from(query.subquery()))

            start = max((filters.page - 1) * filters.limit, 0)
            rows = db.scalars(
                query.order_by(
                    func.coalesce(models.Post.published_at, EPOCH).desc(),
                    models.Post.id,
                )
                .offset(start)
                .limit(max(filters.limit, 0))
            )
            posts = [Post.model_validate(row) for row in rows]

        return build_page(posts, total, filters.page, filters.limit)

    def create_post(self, post_in: PostCreate) -> Post:
        self._ensure_post_slug_free(post_in.slug)
        post = build_entity(Post, {**post_in.model_dump(exclude=POST_LINK_FIELDS), "id": 0, "view_count": 0})
        with self._session() as db:
            row = models.Post(**post.model_dump(exclude={"id"}))
            db.add(row)
            db.flush()
            post = Post.model_validate(row)
        logger.info("Created post %s (%s)", post.id, post.slug)
        return post

    def update_post(self, post_id: int, data: dict[str, Any]) -> Optional[Post]:
        current = self.get_post(post_id)
        if current is None:
            return None
        if data.get("slug") is not None:
            self._ensure_post_slug_free(data["slug"], own_id=post_id)
        changes = {key: value for key, value in data.items() if key not in POST_LINK_FIELDS | {"view_count"}}
        merged = merge_entity(current, changes)
        with self._session() as db:
            row = db.get(models.Post, post_id)
            if row is None:
                return None
            # view_count мог измениться параллельно - его не трогаем
            merged = merged.model_copy(update={"view_count": row.view_count})
            _apply(row, merged)
        return merged

    def delete_post(self, post_id: int) -> None:
        with self._session() as db:
            deleted = db.execute(delete(models.Post).where(models.Post.id == post_id)).rowcount
            if not deleted:
                return
            db.execute(delete(models.PostCategory).where(models.PostCategory.post_id == post_id))
            db.execute(delete(models.PostTag).where(models.PostTag.post_id == post_id))
            db.execute(delete(models.Comment).where(models.Comment.post_id == post_id))
        logger.info("Deleted post %s", post_id)

    def increment_post_view_count(self, post_id: int) -> None:
        with self._session() as db:
            db.execute(
                update(models.Post)
                .where(models.Post.id == post_id)
                .values(view_count=models.Post.view_count + 1)
            )

    def get_popular_posts(self, limit: int = 5) -> list[Post]:
        with self._session() as db:
            rows = db.scalars(
                select(models.Post)
                .where(models.Post.status == "published")
                .order_by(models.Post.view_count.desc(), models.Post.id)
                .limit(limit)
            )
            return [Post.model_validate(row) for row in rows]

    def get_related_posts(self, post_id: int, limit: int = 3) -> list[Post]:
        own_categories = select(models.PostCategory.category_id).where(models.PostCategory.post_id == post_id)
        related_ids = select(models.PostCategory.post_id).where(models.PostCategory.category_id.in_(own_categories))
        with self._session() as db:
            rows = db.scalars(
                select(models.Post)
                .where(
                    models.Post.id.in_(related_ids),
                    models.Post.id != post_id,
                    models.Post.status == "published",
                )
                .order_by(func.coalesce(models.Post.published_at, EPOCH).desc(), models.Post.id)
                .limit(limit)
            )
            return [Post.model_validate(row) for row in rows]

    # ==========
    # CATEGORIES
    # ==========

    def get_category(self, category_id: int) -> Optional[Category]:
        with self._session() as db:
            row = db.get(models.Category, category_id)
            return Category.model_validate(row) if row else None

    def get_category_by_slug(self, slug: str) -> Optional[Category]:
        with self._session() as db:
            row = db.scalars(
                select(models.Category).where(models.Category.slug == slug).order_by(models.Category.id)
            ).first()
            return Category.model_validate(row) if row else None

    def get_categories(self) -> list[Category]:
        with self._session() as db:
            rows = db.scalars(select(models.Category).order_by(models.Category.id))
            return [Category.model_validate(row) for row in rows]

    def create_category(self, category_in: CategoryCreate) -> Category:
        self._ensure_category_slug_free(category_in.slug)
        with self._session() as db:
            row = models.Category(**category_in.model_dump())
            db.add(row)
            db.flush()
            category = Category.model_validate(row)
        logger.info("Created category %s (%s)", category.id, category.slug)
        return category

    def update_category(self, category_id: int, data: dict[str, Any]) -> Optional[Category]:
        current = self.get_category(category_id)
        if current is None:
            return None
        if data.get("slug") is not None:
            self._ensure_category_slug_free(data["slug"], own_id=category_id)
        merged = merge_entity(current, data)
        with self._session() as db:
            row = db.get(models.Category, category_id)
            if row is None:
                return None
            _apply(row, merged)
        return merged

    def delete_category(self, category_id: int) -> None:
        with self._session() as db:
            deleted = db.execute(delete(models.Category).where(models.Category.id == category_id)).rowcount
            if not deleted:
                return
            db.execute(delete(models.PostCategory).where(models.PostCategory.category_id == category_id))
        logger.info("Deleted category %s", category_id)

    def get_categories_for_post(self, post_id: int) -> list[Category]:
        with self._session() as db:
            rows = db.scalars(
                select(models.Category)
                .join(models.PostCategory, models.PostCategory.category_id == models.Category.id)
                .where(models.PostCategory.post_id == post_id)
                .order_by(models.Category.id)
            )
            return [Category.model_validate(row) for row in rows]

    def add_post_category(self, post_id: int, category_id: int) -> None:
        with self._session() as db:
            if db.get(models.PostCategory, (post_id, category_id)) is None:
                db.add(models.PostCategory(post_id=post_id, category_id=category_id))

    def set_post_categories(self, post_id: int, category_ids: Sequence[int]) -> None:
        with self._session() as db:
            db.execute(delete(models.PostCategory).where(models.PostCategory.post_id == post_id))
            for category_id in dict.fromkeys(category_ids):
                db.add(models.PostCategory(post_id=post_id, category_id=category_id))

    # ====
    # TAGS
    # ====

    def get_tag(self, tag_id: int) -> Optional[Tag]:
        with self._session() as db:
            row = db.get(models.Tag, tag_id)
            return Tag.model_validate(row) if row else None

    def get_tag_by_slug(self, slug: str) -> Optional[Tag]:
        with self._session() as db:
            row = db.scalars(
                select(models.Tag).where(models.Tag.slug == slug).order_by(models.Tag.id)
            ).first()
            return Tag.model_validate(row) if row else None

    def get_tag_by_name(self, name: str) -> Optional[Tag]:
        with self._session() as db:
            row = db.scalars(
                select(models.Tag).where(models.Tag.name == name).order_by(models.Tag.id)
            ).first()
            return Tag.model_validate(row) if row else None

    def get_tags(self) -> list[Tag]:
        with self._session() as db:
            rows = db.scalars(select(models.Tag).order_by(models.Tag.id))
            return [Tag.model_validate(row) for row in rows]

    def create_tag(self, tag_in: TagCreate) -> Tag:
        self._ensure_tag_free(tag_in.name, tag_in.slug)
        with self._session() as db:
            row = models.Tag(**tag_in.model_dump())
            db.add(row)
            db.flush()
            tag = Tag.model_validate(row)
        logger.info("Created tag %s (%s)", tag.id, tag.slug)
        return tag

    def update_tag(self, tag_id: int, data: dict[str, Any]) -> Optional[Tag]:
        current = self.get_tag(tag_id)
        if current is None:
            return None
        self._ensure_tag_free(data.get("name"), data.get("slug"), own_id=tag_id)
        merged = merge_entity(current, data)
        with self._session() as db:
            row = db.get(models.Tag, tag_id)
            if row is None:
                return None
            _apply(row, merged)
        return merged

    def delete_tag(self, tag_id: int) -> None:
        with self._session() as db:
            deleted = db.execute(delete(models.Tag).where(models.Tag.id == tag_id)).rowcount
            if not deleted:
                return
            db.execute(delete(models.PostTag).where(models.PostTag.tag_id == tag_id))
        logger.info("Deleted tag %s", tag_id)

    def get_tags_for_post(self, post_id: int) -> list[Tag]:
        with self._session() as db:
            rows = db.scalars(
                select(models.Tag)
                .join(models.PostTag, models.PostTag.tag_id == models.Tag.id)
                .where(models.PostTag.post_id == post_id)
                .order_by(models.Tag.id)
            )
            return [Tag.model_validate(row) for row in rows]

    def add_post_tag(self, post_id: int, tag_id: int) -> None:
        with self._session() as db:
            if db.get(models.PostTag, (post_id, tag_id)) is None:
                db.add(models.PostTag(post_id=post_id, tag_id=tag_id))

    def set_post_tags(self, post_id: int, tag_ids: Sequence[int]) -> None:
        with self._session() as db:
            db.execute(delete(models.PostTag).where(models.PostTag.post_id == post_id))
            for tag_id in dict.fromkeys(tag_ids):
                db.add(models.PostTag(post_id=post_id, tag_id=tag_id))

    # ========
    # COMMENTS
    # ========

    def get_comment(self, comment_id: int) -> Optional[Comment]:
        with self._session() as db:
            row = db.get(models.Comment, comment_id)
            return Comment.model_validate(row) if row else None

    def get_comments_by_post_id(self, post_id: int) -> list[Comment]:
        with self._session() as db:
            rows = db.scalars(
                select(models.Comment)
                .where(models.Comment.post_id == post_id, models.Comment.status == "approved")
                .order_by(models.Comment.created_at.desc(), models.Comment.id.desc())
            )
            return [Comment.model_validate(row) for row in rows]

    def get_comments(self, filters: CommentFilters) -> Page[Comment]:
        query = select(models.Comment)

        if filters.status:
            query = query.where(models.Comment.status == filters.status)

        if filters.post_id is not None:
            query = query.where(models.Comment.post_id == filters.post_id)

        if filters.search:
            query = query.where(models.Comment.content.ilike(_like(filters.search), escape="\\"))

        if filters.sort == "asc":
            query = query.order_by(models.Comment.created_at, models.Comment.id)
        else:
            query = query.order_by(models.Comment.created_at.desc(), models.Comment.id.desc())

        with self._session() as db:
            total = db.scalar(select(func.count()).select_from(query.order_by(None).subquery()))
            start = max((filters.page - 1) * filters.limit, 0)
            rows = db.scalars(query.offset(start).limit(max(filters.limit, 0)))
            comments = [Comment.model_validate(row) for row in rows]

        return build_page(comments, total, filters.page, filters.limit)

    def create_comment(self, comment_in: CommentCreate) -> Comment:
        with self._session() as db:
            row = models.Comment(
                **comment_in.model_dump(),
                status="pending",
                created_at=utcnow(),
            )
            db.add(row)
            db.flush()
            comment = Comment.model_validate(row)
        logger.info("Created comment %s on post %s", comment.id, comment.post_id)
        return comment

    def update_comment_status(self, comment_id: int, status: str) -> Optional[Comment]:
        self._check_comment_status(status)
        with self._session() as db:
            row = db.get(models.Comment, comment_id)
            if row is None:
                return None
            row.status = status
            db.flush()
            return Comment.model_validate(row)

    def delete_comment(self, comment_id: int) -> None:
        with self._session() as db:
            if db.get(models.Comment, comment_id) is None:
                return

            # Вся ветка ответов, а не только прямые дети
            doomed = {comment_id}
            frontier = [comment_id]
            while frontier:
                children = set(db.scalars(
                    select(models.Comment.id).where(models.Comment.parent_id.in_(frontier))
                )) - doomed
                doomed |= children
                frontier = list(children)

            db.execute(delete(models.Comment).where(models.Comment.id.in_(doomed)))
        logger.info("Deleted comment %s with %s replies", comment_id, len(doomed) - 1)

    def get_recent_comments(self, limit: int = 5) -> list[Comment]:
        with self._session() as db:
            rows = db.scalars(
                select(models.Comment)
                .order_by(models.Comment.created_at.desc(), models.Comment.id.desc())
                .limit(limit)
            )
            return [Comment.model_validate(row) for row in rows]

    # ========
    # AD UNITS
    # ========

    def get_ad_unit(self, ad_unit_id: int) -> Optional[AdUnit]:
        with self._session() as db:
            row = db.get(models.AdUnit, ad_unit_id)
            return AdUnit.model_validate(row) if row else None

    def get_active_ad_units(self) -> list[AdUnit]:
        with self._session() as db:
            rows = db.scalars(
                select(models.AdUnit).where(models.AdUnit.is_active.is_(True)).order_by(models.AdUnit.id)
            )
            return [AdUnit.model_validate(row) for row in rows]

    def create_ad_unit(self, ad_unit_in: AdUnitCreate) -> AdUnit:
        with self._session() as db:
            row = models.AdUnit(**ad_unit_in.model_dump())
            db.add(row)
            db.flush()
            return AdUnit.model_validate(row)

    # ========
    # SETTINGS
    # ========

    def get_setting(self, key: str) -> Optional[Setting]:
        with self._session() as db:
            row = db.scalars(select(models.Setting).where(models.Setting.key == key)).first()
            return Setting.model_validate(row) if row else None

    def get_settings(self, group: Optional[str] = None) -> dict[str, Any]:
        query = select(models.Setting).order_by(models.Setting.id)
        if group is not None:
            query = query.where(models.Setting.group == group)
        with self._session() as db:
            return {row.key: row.value for row in db.scalars(query)}

    def update_settings(self, patch: dict[str, Any]) -> dict[str, Any]:
        with self._session() as db:
            for key, value in patch.items():
                row = db.scalars(select(models.Setting).where(models.Setting.key == key)).first()
                if row is not None:
                    row.value = value
                else:
                    db.add(models.Setting(key=key, value=value, group="general"))
                    # Следующий ключ в том же patch должен видеть этот
                    db.flush()
        return self.get_settings()

    # =====
    # STATS
    # =====

    def get_blog_stats(self) -> BlogStats:
        with self._session() as db:
            posts_count, views_count = db.execute(
                select(func.count(models.Post.id), func.coalesce(func.sum(models.Post.view_count), 0))
                .where(models.Post.status == "published")
            ).one()
            comments_count = db.scalar(select(func.count(models.Comment.id)))
            users_count = db.scalar(select(func.count(models.User.id)))

        return BlogStats(
            posts_count=posts_count,
            comments_count=comments_count,
            users_count=users_count,
            views_count=views_count,
            popular_posts=self.get_popular_posts(4),
            recent_comments=self.get_recent_comments(5),
        )
