"""Huddle Persistent Store Package"""

from huddle.store.base import Store, conversation_id_for, CONVERSATION_ID_SEPARATOR
from huddle.store.json_file import JsonFileStore
from huddle.store.mongo import MongoStore


def create_store(settings) -> Store:
    """Build the backend selected by STORE_BACKEND."""
    if settings.store_backend == "mongo":
        return MongoStore()
    return JsonFileStore(settings.data_file)


__all__ = [
    "Store",
    "JsonFileStore",
    "MongoStore",
    "conversation_id_for",
    "CONVERSATION_ID_SEPARATOR",
    "create_store",
]
