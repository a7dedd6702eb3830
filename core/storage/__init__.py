"""Storage backends and the persistence gateway."""

from core.storage.base import (
    ITEMSET_KEY,
    SETTINGS_KEY,
    LocalItemSet,
    LocalStore,
    RemoteStore,
)
from core.storage.gateway import PersistenceGateway, build_gateway
from core.storage.local_store import MemoryLocalStore, SqlLocalStore
from core.storage.mongo_store import MongoRemoteStore

__all__ = [
    "ITEMSET_KEY",
    "SETTINGS_KEY",
    "LocalItemSet",
    "LocalStore",
    "RemoteStore",
    "PersistenceGateway",
    "build_gateway",
    "MemoryLocalStore",
    "SqlLocalStore",
    "MongoRemoteStore",
]
