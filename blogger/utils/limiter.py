# blogger/utils/limiter.py

from slowapi import Limiter
from slowapi.util import get_remote_address

from blogger.config import settings

# Лимиты считаются по IP клиента, хранилище счетчиков - память процесса
limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.RATELIMIT_ENABLED,
)
