"""
Local document store.

Each document is a JSON blob stored under a fixed key ("settings",
"itemset") in a single SQLAlchemy table, SQLite by default. Writes always
replace the whole document.

Unreadable documents (bad JSON, database errors) are reported as missing so
callers fall back to defaults.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from core import config
from core.errors import StorageError
from core.storage.base import LocalStore

logger = logging.getLogger(__name__)

Base = declarative_base()


class LocalDocument(Base):
    """One whole JSON document per fixed key."""
    __tablename__ = "local_documents"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<LocalDocument({self.key})>"


def _decode(key: str, raw: str) -> Optional[dict[str, Any]]:
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Local document %r is not valid JSON, ignoring it", key)
        return None
    if not isinstance(value, dict):
        logger.warning("Local document %r is not an object, ignoring it", key)
        return None
    return value


class SqlLocalStore(LocalStore):
    """
    LocalStore backed by a SQLAlchemy database.

    Args:
        url: SQLAlchemy URL (defaults to config.get_local_store_url())
    """

    def __init__(self, url: Optional[str] = None):
        self.url = url or config.get_local_store_url()
        self._ensure_sqlite_dir()
        self.engine = create_engine(self.url, echo=False)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    def _ensure_sqlite_dir(self) -> None:
        url = make_url(self.url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    def get_session(self) -> Session:
        return self._session_factory()

    def get(self, key: str) -> Optional[dict[str, Any]]:
        session = self.get_session()
        try:
            document = session.get(LocalDocument, key)
            if document is None:
                return None
            return _decode(key, document.value)
        except SQLAlchemyError:
            logger.warning("Failed to read local document %r", key, exc_info=True)
            return None
        finally:
            session.close()

    def set(self, key: str, value: dict[str, Any]) -> None:
        try:
            raw = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Local document {key!r} is not JSON-serializable") from exc

        session = self.get_session()
        try:
            session.merge(LocalDocument(
                key=key,
                value=raw,
                updated_at=datetime.now(timezone.utc)
            ))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(f"Failed to write local document {key!r}") from exc
        finally:
            session.close()

    def delete(self, key: str) -> None:
        session = self.get_session()
        try:
            document = session.get(LocalDocument, key)
            if document is not None:
                session.delete(document)
                session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(f"Failed to delete local document {key!r}") from exc
        finally:
            session.close()

    def clear(self) -> None:
        session = self.get_session()
        try:
            session.query(LocalDocument).delete()
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError("Failed to clear local store") from exc
        finally:
            session.close()


class MemoryLocalStore(LocalStore):
    """
    In-process LocalStore.

    Documents are kept serialized so callers never share mutable state
    with the store.
    """

    def __init__(self):
        self._documents: dict[str, str] = {}

    def get(self, key: str) -> Optional[dict[str, Any]]:
        raw = self._documents.get(key)
        if raw is None:
            return None
        return _decode(key, raw)

    def set(self, key: str, value: dict[str, Any]) -> None:
        try:
            self._documents[key] = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Local document {key!r} is not JSON-serializable") from exc

    def delete(self, key: str) -> None:
        self._documents.pop(key, None)

    def clear(self) -> None:
        self._documents.clear()
