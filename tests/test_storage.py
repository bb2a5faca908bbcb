import math
from datetime import datetime, timedelta

import pytest

from blogger.schemas import (
    AdUnitCreate,
    CategoryCreate,
    CommentCreate,
    CommentFilters,
    PostCreate,
    PostFilters,
    TagCreate,
    UserCreate,
)
from blogger.utils.exceptions import ConflictError, ValidationFailed


def _comment(storage, post_id, text="Nice post", parent_id=None, status=None):
    comment = storage.create_comment(CommentCreate(
        content=text,
        post_id=post_id,
        author_name="Guest",
        author_email="guest@example.com",
        parent_id=parent_id,
    ))
    if status:
        comment = storage.update_comment_status(comment.id, status)
    return comment


# ==========
# ПАГИНАЦИЯ
# ==========

@pytest.mark.parametrize("page,limit", [(1, 1), (1, 10), (2, 3), (3, 4), (5, 2), (9, 10)])
def test_pagination_meta_is_consistent(storage, make_post, page, limit):
    """data не длиннее limit, totalPages = ceil(total / limit)"""
    for i in range(7):
        make_post(storage, f"post-{i}")

    result = storage.get_posts(PostFilters(page=page, limit=limit), mode="admin")

    assert len(result.data) <= limit
    assert result.meta.total == 7
    assert result.meta.total_pages == math.ceil(7 / limit)
    assert result.meta.page == page
    assert result.meta.limit == limit


def test_pagination_of_empty_result(storage):
    result = storage.get_posts(PostFilters(page=1, limit=10))
    assert result.data == []
    assert result.meta.total == 0
    assert result.meta.total_pages == 0


def test_third_page_of_twenty_five_posts(storage, make_post):
    start = datetime(2024, 1, 1)
    for i in range(25):
        make_post(storage, f"post-{i}", published_at=start + timedelta(days=i))

    result = storage.get_posts(PostFilters(page=3, limit=10))

    assert len(result.data) == 5
    assert result.meta.total == 25
    assert result.meta.total_pages == 3
    # Новые сверху: на последней странице самые старые
    assert [p.slug for p in result.data] == [f"post-{i}" for i in range(4, -1, -1)]


# ==============
# РЕЖИМЫ ВЫБОРКИ
# ==============

def test_public_mode_only_sees_published(storage, make_post):
    category = storage.create_category(CategoryCreate(name="Tech", slug="tech"))
    published = make_post(storage, "live", content="python rocks")
    draft = make_post(storage, "draft", status="draft", content="python draft")
    scheduled = make_post(storage, "later", status="scheduled", content="python later")
    for post in (published, draft, scheduled):
        storage.add_post_category(post.id, category.id)

    for filters in (
        PostFilters(),
        PostFilters(search="python"),
        PostFilters(category_slug="tech"),
        PostFilters(status="draft"),
        PostFilters(author_id=1, search="python", category_slug="tech"),
    ):
        result = storage.get_posts(filters, mode="public")
        assert [p.slug for p in result.data] == ["live"]


def test_draft_is_hidden_publicly_but_listed_for_admin(storage, make_post):
    make_post(storage, "wip", status="draft")

    assert storage.get_posts(PostFilters()).meta.total == 0

    admin = storage.get_posts(PostFilters(status="draft"), mode="admin")
    assert admin.meta.total == 1
    assert admin.data[0].slug == "wip"


def test_filter_by_category_slug(storage):
    category = storage.create_category(CategoryCreate(name="Tech", slug="tech"))
    post = storage.create_post(_post_in("hi"))
    storage.add_post_category(post.id, category.id)

    result = storage.get_posts(PostFilters(category_slug="tech"))

    assert result.meta.total == 1
    assert result.data[0].id == post.id
    assert result.data[0].title == "Hi"


def _post_in(slug):
    return PostCreate(
        title="Hi",
        slug=slug,
        content="hello world",
        status="published",
        published_at="2024-01-01 00:00:00",
        author_id=1,
    )


def test_unknown_category_or_tag_gives_empty_page(storage, make_post):
    make_post(storage, "one")
    assert storage.get_posts(PostFilters(category_slug="nope")).meta.total == 0
    assert storage.get_posts(PostFilters(tag_slug="nope")).meta.total == 0


def test_filter_by_tag_and_search(storage, make_post):
    tag = storage.create_tag(TagCreate(name="Python", slug="python"))
    first = make_post(storage, "first", excerpt="About FastAPI")
    make_post(storage, "second")
    storage.add_post_tag(first.id, tag.id)

    assert [p.slug for p in storage.get_posts(PostFilters(tag_slug="python")).data] == ["first"]
    assert [p.slug for p in storage.get_posts(PostFilters(search="fastapi")).data] == ["first"]
    assert storage.get_posts(PostFilters(search="100%")).meta.total == 0


def test_posts_without_date_sort_last(storage, make_post):
    make_post(storage, "undated", status="draft")
    make_post(storage, "old", published_at=datetime(2020, 1, 1))
    make_post(storage, "new", published_at=datetime(2023, 1, 1))

    result = storage.get_posts(PostFilters(), mode="admin")

    assert [p.slug for p in result.data] == ["new", "old", "undated"]


def test_equal_dates_keep_creation_order(storage, make_post):
    for slug in ("a", "b", "c"):
        make_post(storage, slug, published_at=datetime(2024, 5, 1))

    assert [p.slug for p in storage.get_posts(PostFilters()).data] == ["a", "b", "c"]


# =========
# ПРОСМОТРЫ
# =========

def test_view_count_grows_by_one_per_view(storage, make_post):
    post = make_post(storage, "viewed")

    for _ in range(4):
        storage.increment_post_view_count(post.id)

    assert storage.get_post(post.id).view_count == 4


def test_update_post_does_not_touch_view_count(storage, make_post):
    post = make_post(storage, "viewed")
    storage.increment_post_view_count(post.id)

    updated = storage.update_post(post.id, {"title": "Renamed", "view_count": 100})

    assert updated.title == "Renamed"
    assert updated.view_count == 1
    assert storage.get_post(post.id).view_count == 1


def test_popular_and_related_posts(storage, make_post):
    category = storage.create_category(CategoryCreate(name="Tech", slug="tech"))
    main = make_post(storage, "main")
    sibling = make_post(storage, "sibling", published_at=datetime(2024, 2, 1))
    hidden = make_post(storage, "hidden", status="draft")
    make_post(storage, "other")
    for post in (main, sibling, hidden):
        storage.add_post_category(post.id, category.id)

    storage.increment_post_view_count(sibling.id)
    storage.increment_post_view_count(sibling.id)
    storage.increment_post_view_count(main.id)

    assert [p.slug for p in storage.get_popular_posts(2)] == ["sibling", "main"]
    assert [p.slug for p in storage.get_related_posts(main.id)] == ["sibling"]


# =======
# КАСКАДЫ
# =======

def test_delete_post_removes_comments_and_links(storage, make_post):
    category = storage.create_category(CategoryCreate(name="Tech", slug="tech"))
    tag = storage.create_tag(TagCreate(name="Python", slug="python"))
    post = make_post(storage, "doomed")
    other = make_post(storage, "survivor")
    storage.add_post_category(post.id, category.id)
    storage.add_post_tag(post.id, tag.id)
    storage.add_post_category(other.id, category.id)
    doomed_comment = _comment(storage, post.id)
    kept_comment = _comment(storage, other.id)

    storage.delete_post(post.id)

    assert storage.get_post(post.id) is None
    assert storage.get_comment(doomed_comment.id) is None
    assert storage.get_comment(kept_comment.id) is not None
    assert storage.get_categories_for_post(post.id) == []
    assert storage.get_tags_for_post(post.id) == []
    assert storage.get_comments(CommentFilters(post_id=post.id)).meta.total == 0
    # Категория и чужие связи на месте
    assert storage.get_posts(PostFilters(category_slug="tech")).meta.total == 1


def test_delete_category_keeps_posts(storage, make_post):
    category = storage.create_category(CategoryCreate(name="Tech", slug="tech"))
    post = make_post(storage, "post")
    storage.add_post_category(post.id, category.id)

    storage.delete_category(category.id)

    assert storage.get_post(post.id) is not None
    assert storage.get_categories_for_post(post.id) == []


def test_set_post_tags_replaces_links(storage, make_post):
    python = storage.create_tag(TagCreate(name="Python", slug="python"))
    rust = storage.create_tag(TagCreate(name="Rust", slug="rust"))
    post = make_post(storage, "post")

    storage.set_post_tags(post.id, [python.id])
    storage.add_post_tag(post.id, python.id)
    assert [t.slug for t in storage.get_tags_for_post(post.id)] == ["python"]

    storage.set_post_tags(post.id, [rust.id])
    assert [t.slug for t in storage.get_tags_for_post(post.id)] == ["rust"]


def test_delete_of_missing_ids_changes_nothing(storage, make_post):
    user = storage.create_user(UserCreate(username="writer", email="w@example.com", password="secret1"))
    category = storage.create_category(CategoryCreate(name="Tech", slug="tech"))
    tag = storage.create_tag(TagCreate(name="Python", slug="python"))
    post = make_post(storage, "post")
    comment = _comment(storage, post.id)

    for _ in range(2):
        storage.delete_user(999)
        storage.delete_post(999)
        storage.delete_category(999)
        storage.delete_tag(999)
        storage.delete_comment(999)

    assert storage.get_user(user.id) == user
    assert storage.get_category(category.id) == category
    assert storage.get_tag(tag.id) == tag
    assert storage.get_post(post.id) == post
    assert storage.get_comment(comment.id) == comment

    # Повторное удаление уже удаленного - тоже не ошибка
    storage.delete_comment(comment.id)
    storage.delete_comment(comment.id)
    storage.delete_post(post.id)
    storage.delete_post(post.id)
    assert storage.get_post(post.id) is None


# ===========
# КОММЕНТАРИИ
# ===========

def test_new_comment_is_pending(storage, make_post):
    post = make_post(storage, "post")
    comment = _comment(storage, post.id)
    assert comment.status == "pending"
    assert comment.created_at is not None


def test_public_comments_are_only_approved(storage, make_post):
    post = make_post(storage, "post")
    approved = _comment(storage, post.id, "ok", status="approved")
    _comment(storage, post.id, "waiting")
    _comment(storage, post.id, "bad", status="rejected")
    _comment(storage, post.id, "buy now", status="spam")

    visible = storage.get_comments_by_post_id(post.id)

    assert [c.id for c in visible] == [approved.id]
    assert all(c.status == "approved" for c in visible)


def test_deleting_parent_removes_whole_thread(storage, make_post):
    post = make_post(storage, "post")
    parent = _comment(storage, post.id, "parent")
    reply = _comment(storage, post.id, "reply", parent_id=parent.id)
    nested = _comment(storage, post.id, "nested", parent_id=reply.id)
    sibling = _comment(storage, post.id, "sibling")

    storage.delete_comment(parent.id)

    assert storage.get_comment(parent.id) is None
    assert storage.get_comment(reply.id) is None
    assert storage.get_comment(nested.id) is None
    assert storage.get_comment(sibling.id) is not None


def test_admin_comment_list_filters_and_sorts(storage, make_post):
    post = make_post(storage, "post")
    other = make_post(storage, "other")
    first = _comment(storage, post.id, "First thought")
    second = _comment(storage, post.id, "Second thought", status="approved")
    _comment(storage, other.id, "Elsewhere")

    newest_first = storage.get_comments(CommentFilters(post_id=post.id))
    assert [c.id for c in newest_first.data] == [second.id, first.id]

    oldest_first = storage.get_comments(CommentFilters(post_id=post.id, sort="asc"))
    assert [c.id for c in oldest_first.data] == [first.id, second.id]

    assert storage.get_comments(CommentFilters(status="approved")).meta.total == 1
    assert storage.get_comments(CommentFilters(search="thought")).meta.total == 2
    assert storage.get_comments(CommentFilters(limit=2)).meta.total_pages == 2


def test_comment_status_must_be_known(storage, make_post):
    post = make_post(storage, "post")
    comment = _comment(storage, post.id)

    with pytest.raises(ValidationFailed):
        storage.update_comment_status(comment.id, "deleted")

    assert storage.update_comment_status(999, "approved") is None
    assert storage.update_comment_status(comment.id, "spam").status == "spam"


# ============
# УНИКАЛЬНОСТЬ
# ============

def test_duplicate_slugs_are_rejected(storage, make_post):
    make_post(storage, "taken")
    with pytest.raises(ConflictError):
        make_post(storage, "taken")

    storage.create_category(CategoryCreate(name="Tech", slug="tech"))
    with pytest.raises(ConflictError):
        storage.create_category(CategoryCreate(name="Tech 2", slug="tech"))

    storage.create_tag(TagCreate(name="Python", slug="python"))
    with pytest.raises(ConflictError):
        storage.create_tag(TagCreate(name="Python", slug="python-2"))


def test_duplicate_username_or_email_is_rejected(storage):
    storage.create_user(UserCreate(username="alice", email="alice@example.com", password="secret1"))

    with pytest.raises(ConflictError):
        storage.create_user(UserCreate(username="ALICE", email="other@example.com", password="secret1"))
    with pytest.raises(ConflictError):
        storage.create_user(UserCreate(username="bob", email="Alice@Example.com", password="secret1"))


def test_update_can_keep_own_slug(storage, make_post):
    post = make_post(storage, "mine")
    make_post(storage, "theirs")

    assert storage.update_post(post.id, {"slug": "mine", "title": "Same slug"}).title == "Same slug"
    with pytest.raises(ConflictError):
        storage.update_post(post.id, {"slug": "theirs"})


def test_update_missing_entities_returns_none(storage):
    assert storage.update_post(999, {"title": "x"}) is None
    assert storage.update_category(999, {"name": "x"}) is None
    assert storage.update_tag(999, {"name": "x"}) is None
    assert storage.update_user(999, {"name": "x"}) is None


def test_post_without_author_is_rejected(storage):
    with pytest.raises(ValidationFailed) as exc_info:
        storage.create_post(PostCreate(title="Hi", slug="hi", content="hello world"))

    assert "author" in str(exc_info.value.detail)
    assert storage.get_post_by_slug("hi") is None
    # Отклоненная запись не занимает id
    assert storage.create_post(_post_in("hi")).id == 1


def test_null_in_required_field_is_rejected(storage, make_post):
    post = make_post(storage, "kept")

    with pytest.raises(ValidationFailed):
        storage.update_post(post.id, {"title": None})
    with pytest.raises(ValidationFailed):
        storage.update_post(post.id, {"status": None})

    assert storage.get_post(post.id).title == post.title
    assert storage.get_post(post.id).status == "published"


# =========
# НАСТРОЙКИ
# =========

def test_update_settings_on_empty_store_overwrites(empty_storage):
    assert empty_storage.get_settings() == {}

    empty_storage.update_settings({"site_title": "NewName"})
    assert empty_storage.get_settings() == {"site_title": "NewName"}

    empty_storage.update_settings({"site_title": "Other"})
    assert empty_storage.get_settings() == {"site_title": "Other"}


def test_default_settings_and_groups(storage):
    assert storage.get_settings()["site_title"] == "Blogger"

    storage.update_settings({"posts_per_page": 12, "social": {"twitter": "@blogger"}})

    assert storage.get_settings("general")["posts_per_page"] == 12
    assert storage.get_settings("social") == {}
    assert storage.get_setting("social").value == {"twitter": "@blogger"}
    assert storage.get_setting("missing") is None


# =============
# РЕКЛАМА, STATS
# =============

def test_only_active_ad_units_are_served(storage):
    active = storage.create_ad_unit(AdUnitCreate(name="Top", code="<div/>", placement="header"))
    storage.create_ad_unit(AdUnitCreate(name="Old", code="<div/>", placement="sidebar", is_active=False))

    assert storage.get_active_ad_units() == [active]
    assert storage.get_ad_unit(active.id) == active


def test_blog_stats(storage, make_post):
    storage.create_user(UserCreate(username="writer", email="w@example.com", password="secret1"))
    live = make_post(storage, "live")
    draft = make_post(storage, "draft", status="draft")
    storage.increment_post_view_count(live.id)
    storage.increment_post_view_count(live.id)
    storage.increment_post_view_count(draft.id)
    _comment(storage, live.id)
    _comment(storage, live.id, status="approved")

    stats = storage.get_blog_stats()

    assert stats.posts_count == 1
    assert stats.comments_count == 2
    assert stats.users_count == 1
    assert stats.views_count == 2
    assert [p.slug for p in stats.popular_posts] == ["live"]
    assert len(stats.recent_comments) == 2
