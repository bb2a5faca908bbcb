# blogger/routes/users.py

"""
API enpoints для работы с пользователями:
текущий пользователь, его профиль и управление учетками из админки.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from blogger.config import settings
from blogger.dependencies import get_current_admin, get_current_user, get_storage
from blogger.schemas import (
    AdminUserCreate,
    ProfileUpdate,
    PromoteToAdminRequest,
    User,
    UserResponse,
    UserUpdate,
)
from blogger.services.auth_service import create_account, promote_to_admin, update_account
from blogger.storage import BlogStorage

router = APIRouter(
    prefix="/api",
    tags=["users"],
)

admin_router = APIRouter(
    prefix="/api/admin/users",
    tags=["admin"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("/user", response_model=UserResponse, status_code=status.HTTP_200_OK)
async def get_me(
        current_user: User = Depends(get_current_user),
):
    """
    Возвращает данные текущего пользователя (без пароля)
    """
    return current_user


@router.get("/profile", response_model=UserResponse)
async def get_profile(
        current_user: User = Depends(get_current_user),
):
    return current_user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
        profile: ProfileUpdate,
        current_user: User = Depends(get_current_user),
        storage: BlogStorage = Depends(get_storage),
):
    """
    Редактирование своего профиля. Роль и активность тут не меняются.
    """
    user = update_account(storage, current_user.id, profile.model_dump(exclude_unset=True))
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# ==============================
# ПЕРВИЧНАЯ НАСТРОЙКА АДМИНА
# ==============================

@router.post("/promote-to-admin", response_model=UserResponse)
async def promote_user(
        body: PromoteToAdminRequest,
        storage: BlogStorage = Depends(get_storage),
):
    """
    Выдать роль admin по ключу ADMIN_SETUP_KEY.
    Без настроенного ключа эндпоинт всегда отвечает 403.
    """
    if not settings.ADMIN_SETUP_KEY or body.secret_key != settings.ADMIN_SETUP_KEY:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid secret key")

    user = promote_to_admin(storage, body.username)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# ======================
# АДМИНКА: ПОЛЬЗОВАТЕЛИ
# ======================

@admin_router.get("", response_model=list[UserResponse])
async def list_users(storage: BlogStorage = Depends(get_storage)):
    return storage.get_users()


@admin_router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
        user: AdminUserCreate,
        storage: BlogStorage = Depends(get_storage),
):
    """Создать пользователя с произвольной ролью"""
    return create_account(storage, user)


@admin_router.put("/{user_id}", response_model=UserResponse)
async def update_user(
        user_id: int,
        user_update: UserUpdate,
        storage: BlogStorage = Depends(get_storage),
):
    user = update_account(storage, user_id, user_update.model_dump(exclude_unset=True))
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@admin_router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
        user_id: int,
        storage: BlogStorage = Depends(get_storage),
):
    storage.delete_user(user_id)
    return None
