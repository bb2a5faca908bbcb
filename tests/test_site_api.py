from datetime import datetime

from blogger.schemas import AdUnitCreate, CommentCreate, PostCreate


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_error_shape(client):
    response = client.get("/api/posts/missing")

    assert response.status_code == 404
    body = response.json()
    assert body["detail"] == "Post not found"
    assert body["code"] == "http_error"
    assert body["path"] == "/api/posts/missing"
    assert body["timestamp"].endswith("Z")


# =========
# НАСТРОЙКИ
# =========

def test_public_settings(client):
    body = client.get("/api/settings").json()
    assert body["site_title"] == "Blogger"
    assert "site_description" in body


def test_admin_updates_settings(client, admin_headers):
    response = client.put("/api/admin/settings", headers=admin_headers, json={"site_title": "NewName"})
    assert response.status_code == 200
    assert response.json()["site_title"] == "NewName"

    client.put("/api/admin/settings", headers=admin_headers, json={"site_title": "Other"})
    body = client.get("/api/settings?group=general").json()
    assert body["site_title"] == "Other"
    assert list(body).count("site_title") == 1


def test_settings_update_requires_admin(client, user_headers):
    response = client.put("/api/admin/settings", headers=user_headers, json={"site_title": "Hacked"})
    assert response.status_code == 403
    assert client.get("/api/settings").json()["site_title"] == "Blogger"


def test_empty_settings_patch(client, admin_headers):
    assert client.put("/api/admin/settings", headers=admin_headers, json={}).status_code == 400


def test_active_ads(client, app_storage):
    app_storage.create_ad_unit(AdUnitCreate(name="Top", code="<div>ad</div>", placement="header"))
    app_storage.create_ad_unit(AdUnitCreate(name="Off", code="<div/>", placement="footer", is_active=False))

    ads = client.get("/api/ads").json()

    assert [ad["name"] for ad in ads] == ["Top"]
    assert ads[0]["isActive"] is True


# =================
# КАТЕГОРИИ И ТЕГИ
# =================

def test_category_crud(client, admin_headers):
    created = client.post("/api/admin/categories", headers=admin_headers, json={
        "name": "Tech",
        "slug": "tech",
        "description": "Gadgets",
    })
    assert created.status_code == 201
    category_id = created.json()["id"]

    assert client.get("/api/categories/tech").json()["name"] == "Tech"

    updated = client.put(f"/api/admin/categories/{category_id}", headers=admin_headers, json={"name": "Technology"})
    assert updated.json()["name"] == "Technology"
    assert updated.json()["description"] == "Gadgets"

    duplicate = client.post("/api/admin/categories", headers=admin_headers, json={"name": "Other", "slug": "tech"})
    assert duplicate.status_code == 409

    assert client.delete(f"/api/admin/categories/{category_id}", headers=admin_headers).status_code == 204
    assert client.get("/api/categories/tech").status_code == 404
    assert client.get("/api/categories").json() == []


def test_category_update_rejects_null_name(client, admin_headers):
    category_id = client.post("/api/admin/categories", headers=admin_headers, json={"name": "Tech", "slug": "tech"}).json()["id"]

    response = client.put(f"/api/admin/categories/{category_id}", headers=admin_headers, json={"name": None})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_failed"
    assert client.get("/api/categories/tech").json()["name"] == "Tech"


def test_category_writes_require_admin(client, user_headers):
    response = client.post("/api/admin/categories", headers=user_headers, json={"name": "Tech", "slug": "tech"})
    assert response.status_code == 403


def test_tag_crud(client, admin_headers):
    created = client.post("/api/admin/tags", headers=admin_headers, json={"name": "Python", "slug": "python"})
    assert created.status_code == 201
    tag_id = created.json()["id"]

    assert [t["slug"] for t in client.get("/api/tags").json()] == ["python"]
    assert client.get("/api/tags/python").status_code == 200

    same_name = client.post("/api/admin/tags", headers=admin_headers, json={"name": "Python", "slug": "py"})
    assert same_name.status_code == 409

    renamed = client.put(f"/api/admin/tags/{tag_id}", headers=admin_headers, json={"slug": "python3"})
    assert renamed.json()["slug"] == "python3"
    assert client.put("/api/admin/tags/999", headers=admin_headers, json={"name": "x"}).status_code == 404

    assert client.delete(f"/api/admin/tags/{tag_id}", headers=admin_headers).status_code == 204
    assert client.get("/api/tags").json() == []


# ============
# ПОЛЬЗОВАТЕЛИ
# ============

def test_admin_manages_users(client, app_storage, admin_headers):
    created = client.post("/api/admin/users", headers=admin_headers, json={
        "username": "editor",
        "email": "editor@example.com",
        "password": "editor123",
        "role": "editor",
    })
    assert created.status_code == 201
    body = created.json()
    assert body["role"] == "editor"
    assert "password" not in body
    user_id = body["id"]
    assert app_storage.get_user(user_id).password != "editor123"

    updated = client.put(f"/api/admin/users/{user_id}", headers=admin_headers, json={"isActive": False})
    assert updated.json()["isActive"] is False

    usernames = [u["username"] for u in client.get("/api/admin/users", headers=admin_headers).json()]
    assert usernames == ["admin", "editor"]

    assert client.delete(f"/api/admin/users/{user_id}", headers=admin_headers).status_code == 204
    assert app_storage.get_user(user_id) is None


def test_admin_user_duplicate_email(client, admin_headers):
    response = client.post("/api/admin/users", headers=admin_headers, json={
        "username": "another",
        "email": "ADMIN@example.com",
        "password": "secret12",
    })
    assert response.status_code == 409


# =====
# STATS
# =====

def test_stats(client, app_storage, admin_headers):
    post = app_storage.create_post(PostCreate(
        title="Live",
        slug="live",
        content="x",
        status="published",
        published_at=datetime(2024, 1, 1),
        author_id=1,
    ))
    app_storage.create_comment(CommentCreate(
        content="Hi",
        post_id=post.id,
        author_name="Guest",
        author_email="guest@example.com",
    ))
    client.get("/api/posts/live")

    response = client.get("/api/admin/stats", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["postsCount"] == 1
    assert body["commentsCount"] == 1
    assert body["usersCount"] == 1
    assert body["viewsCount"] == 1
    assert [p["slug"] for p in body["popularPosts"]] == ["live"]
    assert len(body["recentComments"]) == 1


def test_stats_require_admin(client, user_headers):
    assert client.get("/api/admin/stats", headers=user_headers).status_code == 403
