"""
Главный файл приложения
Здесь инициализируется FastAPI и подключаются маршруты
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from dotenv import load_dotenv
load_dotenv()

from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from blogger.config import settings
from blogger.routes import auth, categories, comments, posts, site, tags, users
from blogger.services.cache import cache
from blogger.storage import BlogStorage, create_storage
from blogger.utils.exceptions import (
    app_error_handler,
    http_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
    AppError,
    rate_limit_exceeded_handler,
)
from blogger.utils.limiter import limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Redis нужен для кэша ленты и refresh-токенов, без него все работает как no-op
    if settings.CACHE_ENABLED:
        await cache.connect()
        if not await cache.ping():
            logger.warning("Redis at %s is not reachable, cache calls will miss", settings.REDIS_URL)
    yield
    await cache.close()


def create_app(storage: Optional[BlogStorage] = None) -> FastAPI:
    """
    Собрать приложение. Хранилище можно передать явно (тесты),
    иначе оно выбирается по STORAGE_BACKEND.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Blogger API",
        description="Blog with posts, categories, tags, moderated comments and an admin area",
        version="1.0.0",
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url=f"{settings.API_PREFIX}/docs",
        redoc_url=f"{settings.API_PREFIX}/redoc",
        lifespan=lifespan, # Redis
    )

    app.state.storage = storage if storage is not None else create_storage(settings)

    # Глобальные обработчики ошибок
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # =============================
    # Ограничитель частоты запросов
    # =============================
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # CORS (чтобы фронтенд мог обращаться к API)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.DEBUG else settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==============
    # HEALTH-CHECKING
    # ==============

    @app.get("/health")
    async def health_check():
        """Проверка, что приложение живо"""
        return {"status": "ok", "cache": "connected" if cache.connected else "disabled"}

    # =====================
    # Подключаем все ROUTES
    # =====================

    app.include_router(auth.router) # Регистрация и авторизация
    app.include_router(users.router) # Текущий пользователь и профиль
    app.include_router(posts.router) # Публичные посты
    app.include_router(comments.router) # Комментарии
    app.include_router(categories.router)
    app.include_router(tags.router)
    app.include_router(site.router) # Настройки и реклама

    # Админка
    app.include_router(posts.admin_router)
    app.include_router(comments.admin_router)
    app.include_router(categories.admin_router)
    app.include_router(tags.admin_router)
    app.include_router(users.admin_router)
    app.include_router(site.admin_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
