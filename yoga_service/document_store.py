# yoga_service/document_store.py
"""
Document storage used by every service.

Two implementations share one async contract:

- MemoryDocumentStore keeps collections in process memory (demo data,
  local development, tests).
- FirestoreDocumentStore talks to Cloud Firestore through firebase_admin.

Documents are plain dicts. Reads return a copy of the stored fields plus an
"id" key holding the document identifier.
"""

import contextlib
import copy
import logging
import operator
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import firebase_admin
from firebase_admin import credentials, firestore_async
from firebase_admin import exceptions as firebase_exceptions
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from . import config

logger = logging.getLogger(__name__)

# Upper bound used for prefix ("starts with") string range queries
PREFIX_SENTINEL = "\uf8ff"


class DocumentStoreError(Exception):
    """The backend failed to complete a read or write."""


class DocumentNotFoundError(DocumentStoreError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document {collection}/{doc_id} does not exist")
        self.collection = collection
        self.doc_id = doc_id


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any


def prefix_filters(field: str, prefix: str) -> List[Filter]:
    return [Filter(field, ">=", prefix), Filter(field, "<=", prefix + PREFIX_SENTINEL)]


class WriteBatch:
    """Collects writes that are committed atomically."""

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]):
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str):
        raise NotImplementedError

    async def commit(self):
        raise NotImplementedError


class DocumentStore:
    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        raise NotImplementedError

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]):
        raise NotImplementedError

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]):
        raise NotImplementedError

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def delete(self, collection: str, doc_id: str):
        raise NotImplementedError

    async def query(
        self, collection: str, filters: Sequence[Filter] = (), limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def batch(self) -> WriteBatch:
        raise NotImplementedError


# ─────────────────────────────────────────────
# In-memory store
# ─────────────────────────────────────────────
_OPERATORS = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _matches(doc: Dict[str, Any], flt: Filter) -> bool:
    if flt.field not in doc:
        return False
    value = doc[flt.field]
    if flt.op == "array_contains":
        return isinstance(value, list) and flt.value in value
    if flt.op not in _OPERATORS:
        raise ValueError(f"Unsupported filter operator: {flt.op}")
    try:
        return _OPERATORS[flt.op](value, flt.value)
    except TypeError:
        # values of different types never match a range filter
        return False


class MemoryWriteBatch(WriteBatch):
    def __init__(self, store: "MemoryDocumentStore"):
        self._store = store
        self._ops = []

    def set(self, collection, doc_id, data):
        self._ops.append(("set", collection, doc_id, copy.deepcopy(data)))

    def delete(self, collection, doc_id):
        self._ops.append(("delete", collection, doc_id, None))

    async def commit(self):
        for op, collection, doc_id, data in self._ops:
            docs = self._store.collections.setdefault(collection, {})
            if op == "set":
                docs[doc_id] = data
            else:
                docs.pop(doc_id, None)
        self._ops = []


class MemoryDocumentStore(DocumentStore):
    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _docs(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(collection, {})

    @staticmethod
    def _snapshot(doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(data)
        doc["id"] = doc_id
        return doc

    async def add(self, collection, data):
        doc_id = uuid.uuid4().hex
        self._docs(collection)[doc_id] = copy.deepcopy(data)
        return doc_id

    async def set(self, collection, doc_id, data):
        self._docs(collection)[doc_id] = copy.deepcopy(data)

    async def update(self, collection, doc_id, data):
        docs = self._docs(collection)
        if doc_id not in docs:
            raise DocumentNotFoundError(collection, doc_id)
        docs[doc_id].update(copy.deepcopy(data))

    async def get(self, collection, doc_id):
        data = self._docs(collection).get(doc_id)
        if data is None:
            return None
        return self._snapshot(doc_id, data)

    async def delete(self, collection, doc_id):
        self._docs(collection).pop(doc_id, None)

    async def query(self, collection, filters=(), limit=None):
        results = []
        for doc_id, data in self._docs(collection).items():
            if all(_matches(data, f) for f in filters):
                results.append(self._snapshot(doc_id, data))
                if limit is not None and len(results) >= limit:
                    break
        return results

    def batch(self):
        return MemoryWriteBatch(self)


# ─────────────────────────────────────────────
# Firestore store
# ─────────────────────────────────────────────
@contextlib.contextmanager
def _backend_errors(action: str):
    try:
        yield
    except (google_exceptions.GoogleAPIError, firebase_exceptions.FirebaseError) as e:
        raise DocumentStoreError(f"{action}: {e}") from e


def get_firebase_app():
    # Initialize Firebase Admin SDK (only once)
    try:
        return firebase_admin.get_app()
    except ValueError:
        options = {"projectId": config.FIREBASE_PROJECT_ID} if config.FIREBASE_PROJECT_ID else None
        app = firebase_admin.initialize_app(credentials.ApplicationDefault(), options)
        logger.info(f"Firebase Admin initialized for project: {config.FIREBASE_PROJECT_ID}")
        return app


class FirestoreWriteBatch(WriteBatch):
    def __init__(self, db):
        self._db = db
        self._batch = db.batch()

    def set(self, collection, doc_id, data):
        self._batch.set(self._db.collection(collection).document(doc_id), data)

    def delete(self, collection, doc_id):
        self._batch.delete(self._db.collection(collection).document(doc_id))

    async def commit(self):
        with _backend_errors("Batch commit failed"):
            await self._batch.commit()


class FirestoreDocumentStore(DocumentStore):
    def __init__(self, client=None):
        self.db = client if client is not None else firestore_async.client(get_firebase_app())

    async def add(self, collection, data):
        with _backend_errors(f"Error adding document to {collection}"):
            _, ref = await self.db.collection(collection).add(data)
        return ref.id

    async def set(self, collection, doc_id, data):
        with _backend_errors(f"Error writing {collection}/{doc_id}"):
            await self.db.collection(collection).document(doc_id).set(data)

    async def update(self, collection, doc_id, data):
        try:
            await self.db.collection(collection).document(doc_id).update(data)
        except google_exceptions.NotFound as e:
            raise DocumentNotFoundError(collection, doc_id) from e
        except google_exceptions.GoogleAPIError as e:
            raise DocumentStoreError(f"Error updating {collection}/{doc_id}: {e}") from e

    async def get(self, collection, doc_id):
        with _backend_errors(f"Error reading {collection}/{doc_id}"):
            snapshot = await self.db.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        doc = snapshot.to_dict() or {}
        doc["id"] = snapshot.id
        return doc

    async def delete(self, collection, doc_id):
        with _backend_errors(f"Error deleting {collection}/{doc_id}"):
            await self.db.collection(collection).document(doc_id).delete()

    async def query(self, collection, filters=(), limit=None):
        query = self.db.collection(collection)
        for flt in filters:
            query = query.where(filter=FieldFilter(flt.field, flt.op, flt.value))
        if limit is not None:
            query = query.limit(limit)
        results = []
        with _backend_errors(f"Error querying {collection}"):
            async for snapshot in query.stream():
                doc = snapshot.to_dict() or {}
                doc["id"] = snapshot.id
                results.append(doc)
        return results

    def batch(self):
        return FirestoreWriteBatch(self.db)


def create_store(backend: Optional[str] = None) -> DocumentStore:
    backend = (backend or config.STORE_BACKEND).lower()
    if backend == "memory":
        return MemoryDocumentStore()
    if backend == "firestore":
        return FirestoreDocumentStore()
    raise ValueError(f"Unknown store backend: {backend}")
