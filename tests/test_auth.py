from blogger.utils.security import create_refresh_token


def _register(client, username="testuser", email="test@example.com", password="password123"):
    return client.post("/api/auth/register", json={
        "username": username,
        "email": email,
        "password": password,
    })


def test_register_user(client):
    """Регистрация выдает пару токенов"""
    response = _register(client)
    assert response.status_code == 201
    data = response.json()
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"


def test_register_duplicate_username(client):
    _register(client)
    response = _register(client, email="other@example.com")
    assert response.status_code == 409
    assert response.json()["code"] == "conflict"


def test_register_short_password(client):
    response = _register(client, password="123")
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["detail"].startswith("password")


def test_login_by_username_and_email(client):
    _register(client)

    by_username = client.post("/api/auth/login", json={
        "username": "testuser",
        "password": "password123",
    })
    by_email = client.post("/api/auth/login", json={
        "email": "test@example.com",
        "password": "password123",
    })

    assert by_username.status_code == 200
    assert by_email.status_code == 200
    assert "access_token" in by_email.json()


def test_login_invalid_credentials(client):
    _register(client)
    response = client.post("/api/auth/login", json={
        "username": "testuser",
        "password": "wrong-password",
    })
    assert response.status_code == 401
    assert response.json()["detail"] == "Incorrect username or password"


def test_login_disabled_account(client, app_storage, reader):
    app_storage.update_user(reader.id, {"is_active": False})
    response = client.post("/api/auth/login", json={
        "username": "reader",
        "password": "reader123",
    })
    assert response.status_code == 401


def test_current_user(client):
    token = _register(client).json()["access_token"]

    response = client.get("/api/user", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    data = response.json()
    assert data["username"] == "testuser"
    assert data["role"] == "user"
    assert data["isActive"] is True
    assert "password" not in data


def test_current_user_requires_token(client):
    response = client.get("/api/user")
    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"


def test_refresh_token_is_not_an_access_token(client, reader):
    token = create_refresh_token(data={"sub": str(reader.id)})
    response = client.get("/api/user", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_refresh_with_garbage_token(client):
    response = client.post("/api/auth/refresh", json={"refresh_token": "not-a-token"})
    assert response.status_code == 401


def test_refresh_without_redis_record_is_refused(client, reader):
    # Кэш выключен: jti нигде не записан, значит токен считается отозванным
    token = create_refresh_token(data={"sub": str(reader.id)})
    response = client.post("/api/auth/refresh", json={"refresh_token": token})
    assert response.status_code == 401


def test_logout(client):
    refresh_token = _register(client).json()["refresh_token"]
    response = client.post("/api/auth/logout", json={"refresh_token": refresh_token})
    assert response.status_code == 204

    response = client.post("/api/auth/logout", json={"refresh_token": "broken"})
    assert response.status_code == 401


def test_update_profile(client, user_headers):
    response = client.put("/api/profile", headers=user_headers, json={
        "name": "New Name",
        "bio": "Writes about Python",
    })
    assert response.status_code == 200
    assert response.json()["name"] == "New Name"
    assert response.json()["bio"] == "Writes about Python"

    profile = client.get("/api/profile", headers=user_headers).json()
    assert profile["bio"] == "Writes about Python"


def test_profile_password_change(client, user_headers):
    client.put("/api/profile", headers=user_headers, json={"password": "brand-new-pass"})

    old = client.post("/api/auth/login", json={"username": "reader", "password": "reader123"})
    new = client.post("/api/auth/login", json={"username": "reader", "password": "brand-new-pass"})
    assert old.status_code == 401
    assert new.status_code == 200


def test_profile_rejects_null_email(client, app_storage, reader, user_headers):
    response = client.put("/api/profile", headers=user_headers, json={"email": None})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_failed"
    assert response.json()["detail"].startswith("email")
    assert app_storage.get_user(reader.id).email == "reader@example.com"


def test_profile_cannot_change_role(client, app_storage, reader, user_headers):
    client.put("/api/profile", headers=user_headers, json={"role": "admin"})
    assert app_storage.get_user(reader.id).role == "user"


def test_promote_to_admin(client, app_storage, reader):
    wrong = client.post("/api/promote-to-admin", json={"username": "reader", "secretKey": "nope"})
    assert wrong.status_code == 403

    response = client.post("/api/promote-to-admin", json={"username": "reader", "secretKey": "setup-key"})
    assert response.status_code == 200
    assert response.json()["role"] == "admin"
    assert app_storage.get_user(reader.id).role == "admin"


def test_promote_unknown_user(client):
    response = client.post("/api/promote-to-admin", json={"username": "ghost", "secretKey": "setup-key"})
    assert response.status_code == 404
