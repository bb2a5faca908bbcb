# blogger/dependencies.py

"""
Зависимости для использования в endpoints
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from blogger.schemas import User
from blogger.storage import BlogStorage
from blogger.utils.security import decode_token

security = HTTPBearer(auto_error=False)


def get_storage(request: Request) -> BlogStorage:
    """
    Хранилище текущего приложения.

    Создается в create_app() и живет в app.state - у каждого приложения
    (и у каждого теста) свое.
    """
    return request.app.state.storage


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _user_from_token(token: str, storage: BlogStorage) -> Optional[User]:
    payload = decode_token(token)

    # Если токен невалиден, истек или это refresh-токен
    if payload is None or payload.get("token_type") != "access":
        return None

    user_id = payload.get("sub")
    if user_id is None:
        return None

    try:
        return storage.get_user(int(user_id))
    except ValueError:
        return None


async def get_current_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        storage: BlogStorage = Depends(get_storage),
) -> User:
    """
    Получаем текущего авторизованного пользователя

    Извлекаем Bearer токен из заголовка Authorization, декодируем токен,
    из токена берем user_id, ищем пользователя в хранилище и возвращаем User
    """
    if credentials is None:
        raise _credentials_error("Not authenticated")

    user = _user_from_token(credentials.credentials, storage)

    if user is None:
        raise _credentials_error()

    # Отключенный аккаунт не может работать даже с живым токеном
    if not user.is_active:
        raise _credentials_error("Account is disabled")

    return user


async def get_current_user_optional(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        storage: BlogStorage = Depends(get_storage),
) -> Optional[User]:
    """
    Необязательный текущий пользователь.

    Если токена нет или он невалиден - возвращаем None,
    иначе - объект User.
    """
    if credentials is None:
        return None

    user = _user_from_token(credentials.credentials, storage)
    if user is None or not user.is_active:
        return None
    return user


async def get_current_admin(
        current_user: User = Depends(get_current_user),
) -> User:
    """
    Только для администраторов: нет токена - 401, не admin - 403.
    """
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user
