"""Store selection from configuration."""

import logging
from typing import TYPE_CHECKING

from session.file_store import FileSessionStore
from session.memory_store import InMemorySessionStore
from session.redis_store import RedisSessionStore
from session.store import SessionStore

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)


def create_session_store(settings: "Settings") -> SessionStore:
    """
    Build the session store named by ``settings.session_store_type``.

    The backend is fixed here, at construction; a Redis store still needs
    ``await store.connect()`` during application startup.
    """
    store_type = settings.session_store_type
    if store_type == "memory":
        store: SessionStore = InMemorySessionStore()
    elif store_type == "file":
        store = FileSessionStore(settings.session_save_path)
    elif store_type == "redis":
        store = RedisSessionStore(settings.redis_url)
    else:
        raise ValueError(f"Unknown session store type: {store_type}")

    logger.info(
        "Session store created",
        extra={"extra_data": {"store_type": store_type}}
    )
    return store
