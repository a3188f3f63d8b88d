"""Shared singletons handed to route handlers through ``Depends``."""
import logging
from typing import Optional

from . import config
from .ai import AiAssistant
from .storage import MemStorage, Storage

logger = logging.getLogger(__name__)

_storage: Optional[Storage] = None
_assistant: Optional[AiAssistant] = None


def build_storage() -> Storage:
    if config.MONGO_URL:
        from .mongo_storage import MongoStorage
        return MongoStorage(config.MONGO_URL, config.DB_NAME)
    logger.info("MONGO_URL is not set, using in-memory storage")
    return MemStorage()


def get_storage() -> Storage:
    global _storage
    if _storage is None:
        _storage = build_storage()
    return _storage


def get_assistant() -> AiAssistant:
    global _assistant
    if _assistant is None:
        _assistant = AiAssistant(api_key=config.GEMINI_API_KEY, model=config.GEMINI_MODEL)
    return _assistant


async def close_storage() -> None:
    global _storage
    if _storage is not None:
        await _storage.close()
        _storage = None
