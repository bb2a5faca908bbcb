# blogger/storage/__init__.py

import logging

from blogger.config import Settings
from blogger.storage.base import BlogStorage, QueryMode, build_page, paginate
from blogger.storage.database import DatabaseStorage
from blogger.storage.memory import MemStorage
from blogger.utils.database import init_db, make_engine, make_session_factory

logger = logging.getLogger(__name__)


def create_storage(config: Settings) -> BlogStorage:
    """Выбрать хранилище по STORAGE_BACKEND"""
    if config.STORAGE_BACKEND == "database":
        engine = make_engine(config.DATABASE_URL)
        init_db(engine)
        logger.info("Using database storage at %s", engine.url.render_as_string(hide_password=True))
        return DatabaseStorage(make_session_factory(engine))

    logger.info("Using in-memory storage, data is lost on restart")
    return MemStorage()


__all__ = [
    "BlogStorage",
    "DatabaseStorage",
    "MemStorage",
    "QueryMode",
    "build_page",
    "create_storage",
    "paginate",
]
