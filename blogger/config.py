"""
Docstring for blogger.config

Конфигурация приложения.
Всё берется из переменных окружения и .env файла.
"""
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Pydantic Settings конфиг
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Storage
    STORAGE_BACKEND: Literal["memory", "database"] = "memory"
    DATABASE_URL: str = "sqlite:///./blogger.db"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True
    FEED_CACHE_TTL: int = 300

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12

    # Server
    DEBUG: bool = False
    API_PREFIX: str = "/api"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # Первичная настройка: ключ для выдачи роли admin
    ADMIN_SETUP_KEY: Optional[str] = None

    # RATE-LIMITS
    RATELIMIT_ENABLED: bool = True
    REGISTER_RATE_LIMIT: str = "5/minute" # Значения по-умолчанию, на случай
    LOGIN_RATE_LIMIT: str = "10/minute"   # если в .env не указаны иные значения
    COMMENT_RATE_LIMIT: str = "10/minute"

# Создаем глобальный объект settings
settings = Settings()
