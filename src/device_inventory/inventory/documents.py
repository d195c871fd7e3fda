"""
Document store backends.

A document store keeps JSON-like documents keyed by ``_id`` in named
collections and offers point lookups, construction-only inserts and
field-path upserts. Every single-document operation is atomic.

Backends:
- MemoryDocumentStore: in-process, for tests and throwaway use
- SqliteDocumentStore: one JSON document per row in a SQLite file
"""

import copy
import json
import logging
import re
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from ..core.errors import (
    DuplicateKeyError,
    InvalidInputError,
    StoreConnectionError,
    StoreUnavailableError,
)
from .models import values_equal

logger = logging.getLogger(__name__)

ID_FIELD = "_id"
OPEN_FAILED = "failed to open document store session"

FieldPath = Tuple[str, ...]

_COLLECTION_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def set_path(document: Dict[str, Any], path: FieldPath, value: Any) -> None:
    """Set a nested field, creating (or replacing non-object) intermediates."""
    target = document
    for key in path[:-1]:
        child = target.get(key)
        if not isinstance(child, dict):
            child = {}
            target[key] = child
        target = child
    target[path[-1]] = value


def matches(document: Mapping[str, Any], query: Optional[Mapping[str, Any]]) -> bool:
    """Equality match on dotted field paths; an empty filter matches anything."""
    for dotted, expected in (query or {}).items():
        node: Any = document
        for key in dotted.split("."):
            if not isinstance(node, dict) or key not in node:
                return False
            node = node[key]
        if not values_equal(node, expected):
            return False
    return True


def _document_id(document: Any) -> str:
    if not isinstance(document, Mapping):
        raise InvalidInputError(
            f"document must be a mapping, got {type(document).__name__}"
        )
    doc_id = document.get(ID_FIELD)
    if not isinstance(doc_id, str):
        raise InvalidInputError(f"document {ID_FIELD} must be a string")
    return doc_id


class DocumentStore(ABC):
    """Contract shared by all document store backends."""

    @abstractmethod
    def find_one(
        self, collection: str, query: Optional[Mapping[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Return one document matching ``query``, or None."""

    @abstractmethod
    def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document with the given ``_id``, or None."""

    @abstractmethod
    def insert(self, collection: str, document: Mapping[str, Any]) -> None:
        """
        Insert a new document.

        Raises:
            DuplicateKeyError: If a document with the same ``_id`` exists
        """

    @abstractmethod
    def upsert(
        self, collection: str, doc_id: str, fields: Mapping[FieldPath, Any]
    ) -> None:
        """
        Set the given field paths on one document in a single atomic step.

        The document ``{"_id": doc_id}`` is created first when it does not
        exist, so an empty ``fields`` mapping still creates the document.
        """

    @abstractmethod
    def ping(self) -> None:
        """Raise StoreUnavailableError if the store cannot be used."""

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self) -> "DocumentStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class MemoryDocumentStore(DocumentStore):
    """
    Document store held in process memory.

    A single lock serialises all operations. Documents are copied on the
    way in and out, so callers never share state with the store.
    """

    def __init__(self, name: str = "default"):
        self.name = name
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self._closed = False

    def _collection(self, collection: str) -> Dict[str, Dict[str, Any]]:
        if self._closed:
            raise StoreUnavailableError(f"memory document store {self.name!r} is closed")
        return self._collections.setdefault(collection, {})

    def find_one(self, collection, query=None):
        with self._lock:
            for document in self._collection(collection).values():
                if matches(document, query):
                    return copy.deepcopy(document)
        return None

    def find_by_id(self, collection, doc_id):
        with self._lock:
            document = self._collection(collection).get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    def insert(self, collection, document):
        doc_id = _document_id(document)
        with self._lock:
            documents = self._collection(collection)
            if doc_id in documents:
                raise DuplicateKeyError(
                    f"duplicate key error: {collection} {ID_FIELD} {doc_id!r} already exists",
                    collection=collection,
                    doc_id=doc_id,
                )
            documents[doc_id] = copy.deepcopy(dict(document))

    def upsert(self, collection, doc_id, fields):
        with self._lock:
            documents = self._collection(collection)
            document = documents.get(doc_id)
            if document is None:
                document = {ID_FIELD: doc_id}
                documents[doc_id] = document
            for path, value in fields.items():
                set_path(document, path, copy.deepcopy(value))

    def ping(self):
        if self._closed:
            raise StoreUnavailableError(f"memory document store {self.name!r} is closed")

    def close(self):
        self._closed = True


class SqliteDocumentStore(DocumentStore):
    """
    Document store persisted in a SQLite database file.

    Each collection is a table of ``(id, document)`` rows with the document
    stored as JSON. Every call opens its own connection; upserts run in a
    ``BEGIN IMMEDIATE`` transaction so concurrent writers to the same
    document are serialised.
    """

    def __init__(self, db_path: str, timeout: float = 5.0):
        """
        Initialize the store and check the database can be opened.

        Args:
            db_path: Path to SQLite database file
            timeout: Seconds to wait on a locked database
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._closed = False
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ping()

        logger.info(f"Opened document store at {self.db_path}")

    def _connect(self) -> sqlite3.Connection:
        if self._closed:
            raise StoreUnavailableError(f"SQLite document store {self.db_path} is closed")
        return sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)

    @staticmethod
    def _table(collection: str) -> str:
        if not _COLLECTION_NAME.match(collection):
            raise InvalidInputError(f"invalid collection name: {collection!r}")
        return f'"{collection}"'

    def _ensure_table(self, conn: sqlite3.Connection, table: str) -> None:
        conn.execute(
            f"CREATE TABLE IF NOT EXISTS {table} (id TEXT PRIMARY KEY, document TEXT NOT NULL)"
        )

    @contextmanager
    def _driver_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            logger.error(f"SQLite {action} failed on {self.db_path}: {e}")
            raise StoreUnavailableError(f"failed to {action}: {e}") from e

    def find_one(self, collection, query=None):
        table = self._table(collection)
        if query and set(query) == {ID_FIELD}:
            doc_id = query[ID_FIELD]
            return self.find_by_id(collection, doc_id) if isinstance(doc_id, str) else None

        with self._driver_errors("find document"), closing(self._connect()) as conn:
            self._ensure_table(conn, table)
            for (payload,) in conn.execute(f"SELECT document FROM {table} ORDER BY rowid"):
                document = json.loads(payload)
                if matches(document, query):
                    return document
        return None

    def find_by_id(self, collection, doc_id):
        table = self._table(collection)
        with self._driver_errors("find document"), closing(self._connect()) as conn:
            self._ensure_table(conn, table)
            row = conn.execute(
                f"SELECT document FROM {table} WHERE id = ?", (doc_id,)
            ).fetchone()
        return json.loads(row[0]) if row else None

    def insert(self, collection, document):
        table = self._table(collection)
        doc_id = _document_id(document)
        payload = json.dumps(dict(document))

        with self._driver_errors("insert document"), closing(self._connect()) as conn:
            self._ensure_table(conn, table)
            try:
                conn.execute(
                    f"INSERT INTO {table} (id, document) VALUES (?, ?)", (doc_id, payload)
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateKeyError(
                    f"duplicate key error: {collection} {ID_FIELD} {doc_id!r} already exists",
                    collection=collection,
                    doc_id=doc_id,
                ) from e

    def upsert(self, collection, doc_id, fields):
        table = self._table(collection)
        with self._driver_errors("upsert document"), closing(self._connect()) as conn:
            self._ensure_table(conn, table)
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    f"SELECT document FROM {table} WHERE id = ?", (doc_id,)
                ).fetchone()
                document = json.loads(row[0]) if row else {ID_FIELD: doc_id}
                for path, value in fields.items():
                    set_path(document, path, copy.deepcopy(value))
                payload = json.dumps(document)

                if row is None:
                    conn.execute(
                        f"INSERT INTO {table} (id, document) VALUES (?, ?)", (doc_id, payload)
                    )
                else:
                    conn.execute(
                        f"UPDATE {table} SET document = ? WHERE id = ?", (payload, doc_id)
                    )
                conn.execute("COMMIT")
            except Exception:
                if conn.in_transaction:
                    conn.rollback()
                raise

    def ping(self):
        with self._driver_errors("ping document store"), closing(self._connect()) as conn:
            conn.execute("PRAGMA schema_version").fetchone()

    def close(self):
        self._closed = True


def _sqlite_path(target: str) -> Optional[str]:
    """
    Database path of a ``sqlite://`` target, or None if it has none.

    ``sqlite:///inventory.db`` is relative, ``sqlite:////var/lib/x.db`` absolute.
    """
    parts = urlsplit(target)
    if parts.netloc or not parts.path.startswith("/"):
        return None
    path = parts.path[1:]
    if not path or path == ":memory:":
        return None
    return path


def open_document_store(target: str, *, timeout: float = 5.0) -> DocumentStore:
    """
    Open a document store from a connection target.

    Supported targets:
        memory://[name]       in-process store
        sqlite:///<path>      SQLite database file

    Raises:
        StoreConnectionError: If the target cannot be parsed or opened
    """
    if not isinstance(target, str) or not target:
        raise StoreConnectionError(OPEN_FAILED, target=str(target))

    scheme = urlsplit(target).scheme
    if scheme == "memory":
        return MemoryDocumentStore(name=urlsplit(target).netloc or "default")

    if scheme == "sqlite":
        path = _sqlite_path(target)
        if path is None:
            logger.error(f"Unusable SQLite target: {target}")
            raise StoreConnectionError(OPEN_FAILED, target=target)
        try:
            return SqliteDocumentStore(path, timeout=timeout)
        except (OSError, StoreUnavailableError) as e:
            logger.error(f"Could not open SQLite document store {path}: {e}")
            raise StoreConnectionError(OPEN_FAILED, target=target) from e

    logger.error(f"Unsupported document store target: {target!r}")
    raise StoreConnectionError(OPEN_FAILED, target=target)
