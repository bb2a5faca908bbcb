# blogger/routes/auth.py

"""
API endpoints для регистрации и авторизации.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Request

from blogger.schemas import (
    UserCreate,
    UserLogin,
    TokenResponse,
    TokenRefreshRequest,
    TokenLogoutRequest,
)
from blogger.dependencies import get_storage
from blogger.services.auth_service import (
    issue_tokens,
    register_user,
    find_user_for_login,
    refresh_access_token,
    revoke_refresh_token,
)
from blogger.storage import BlogStorage
from blogger.utils.limiter import limiter
from blogger.utils.security import decode_token
from blogger.config import settings

# Router для всех auth-эндпоинтов
router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
    responses={400: {"description": "Bad Request"}},
)


def _token_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Invalid refresh token payload",
    )


# ===============================
# РЕГИСТРАЦИЯ НОВОГО ПОЛЬЗОВАТЕЛЯ
# ===============================

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.REGISTER_RATE_LIMIT)
async def register(
        user: UserCreate,
        request: Request,
        storage: BlogStorage = Depends(get_storage),
):
    """
    Регистрация. Занятые username/email - 409 из хранилища.
    """
    tokens = await register_user(storage, user)
    if tokens is None:
        raise _token_error()
    return tokens


# ==============================
# Авторизация созданного профиля
# ==============================

@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login_user(
        user: UserLogin,
        request: Request,
        storage: BlogStorage = Depends(get_storage),
):
    """Логин по username или email"""

    if not user.username and not user.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email is required",
        )

    db_user = find_user_for_login(storage, user)

    # Если пользователь не найден или неверный пароль
    if db_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not db_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is disabled",
            headers={"WWW-Authenticate": "Bearer"},
        )

    tokens = await issue_tokens(db_user)
    if tokens is None:
        raise _token_error()
    return tokens


# ================
# REFRESH ENDPOINT
# ================

@router.post("/refresh", response_model=TokenResponse, status_code=status.HTTP_200_OK)
async def refresh_token_endpoint(
        body: TokenRefreshRequest,
        storage: BlogStorage = Depends(get_storage),
):
    tokens = await refresh_access_token(storage, body.refresh_token)
    if tokens is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )
    return tokens


# ===============
# LOGOUT ENDPOINT
# ===============

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(body: TokenLogoutRequest):
    payload = decode_token(body.refresh_token)
    if payload is None or payload.get("token_type") != "refresh" or not payload.get("jti"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    # Отзываем refresh-токен: удаляем запись из Redis
    await revoke_refresh_token(payload["jti"])
    return None
