# blogger/services/auth_service.py

"""
Сервисный слой для регистрации, логина и учеток.

Знает про хранилище, хэширование и JWT, но не про HTTP-исключения:
неудача - None, конфликт уникальности - ConflictError из хранилища.
"""

import logging
from typing import Any, Optional

from blogger.config import settings
from blogger.schemas import User, UserCreate, UserLogin
from blogger.services.cache import cache
from blogger.storage import BlogStorage
from blogger.utils.security import (
    hash_password,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
)

logger = logging.getLogger(__name__)

REFRESH_PREFIX = "refresh"


# ==========================
# REFRESH-ТОКЕНЫ В REDIS
# ==========================

async def store_refresh_token(jti: str, user_id: int) -> None:
    ttl_seconds = settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60
    await cache.set(f"{REFRESH_PREFIX}:{jti}", {"user_id": user_id}, ttl=ttl_seconds)


async def is_refresh_token_active(jti: str) -> bool:
    return await cache.get(f"{REFRESH_PREFIX}:{jti}") is not None


async def revoke_refresh_token(jti: str) -> None:
    await cache.delete(f"{REFRESH_PREFIX}:{jti}")


async def issue_tokens(user: User) -> Optional[dict]:
    """
    Выдать пару access/refresh и запомнить jti refresh-токена.
    """
    access_token = create_access_token(data={"sub": str(user.id)})
    refresh_token = create_refresh_token(data={"sub": str(user.id)})

    # Извлекаем jti из refresh-токена и сохраняем в Redis
    payload = decode_token(refresh_token)
    if payload is None or payload.get("token_type") != "refresh":
        return None

    await store_refresh_token(payload["jti"], user.id)

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
    }


# ====================
# УЧЕТНЫЕ ЗАПИСИ
# ====================

def create_account(storage: BlogStorage, user_in: UserCreate) -> User:
    """
    Создать пользователя с захэшированным паролем.

    Хранилище сохраняет пароль как есть, поэтому хэшируем здесь.
    """
    hashed = user_in.model_copy(update={"password": hash_password(user_in.password)})
    user = storage.create_user(hashed)
    logger.info("Registered account %s with role %s", user.username, user.role)
    return user


def update_account(storage: BlogStorage, user_id: int, data: dict[str, Any]) -> Optional[User]:
    """
    Частичное обновление. Новый пароль (если есть) хэшируется.
    """
    data = dict(data)
    if data.get("password"):
        data["password"] = hash_password(data["password"])
    else:
        data.pop("password", None)
    return storage.update_user(user_id, data)


async def register_user(storage: BlogStorage, user_in: UserCreate) -> Optional[dict]:
    """
    Зарегистрировать нового пользователя.

    Возвращает словарь с токенами или None, если произошла ошибка с токенами.
    Занятые email/username - ConflictError.
    """
    user = create_account(storage, user_in)
    return await issue_tokens(user)


def find_user_for_login(storage: BlogStorage, creds: UserLogin) -> Optional[User]:
    """
    Найти пользователя по username или email и проверить пароль.
    """
    user: Optional[User] = None
    if creds.username:
        user = storage.get_user_by_username(creds.username)
    elif creds.email:
        user = storage.get_user_by_email(creds.email)

    if user is None or not verify_password(creds.password, user.password):
        return None

    return user


async def refresh_access_token(storage: BlogStorage, refresh_token: str) -> Optional[dict]:
    """
    Новый access-токен по живому refresh-токену.
    None - токен невалиден, отозван или пользователь пропал/отключен.
    """
    payload = decode_token(refresh_token)
    if payload is None or payload.get("token_type") != "refresh":
        return None

    jti = payload.get("jti")
    user_id = payload.get("sub")
    if not jti or not user_id:
        return None

    # Проверяем, не отозван ли токен
    if not await is_refresh_token_active(jti):
        return None

    user = storage.get_user(int(user_id))
    if user is None or not user.is_active:
        return None

    return {
        "access_token": create_access_token(data={"sub": str(user.id)}),
        "refresh_token": refresh_token,
        "token_type": "bearer",
    }


def promote_to_admin(storage: BlogStorage, username: str) -> Optional[User]:
    user = storage.get_user_by_username(username)
    if user is None:
        return None
    logger.warning("Promoting %s to admin", user.username)
    return storage.update_user(user.id, {"role": "admin"})
