from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from yoga_service.data_service import StudioDataService
from yoga_service.document_store import DocumentStore, DocumentStoreError, MemoryDocumentStore, WriteBatch
from yoga_service.models import CourseCreate

# 2026-10-19 is a Monday
MONDAY = datetime(2026, 10, 19, 7, 0, tzinfo=timezone.utc)
TUESDAY = MONDAY + timedelta(days=1)
WEDNESDAY = MONDAY + timedelta(days=2)


def make_course(day_of_week="Monday", **overrides) -> CourseCreate:
    fields = {
        "name": "Morning Flow",
        "type": "Flow Yoga",
        "day_of_week": day_of_week,
        "time": "7:00 AM",
        "capacity": 10,
        "duration": 60,
        "price": 15.0,
    }
    fields.update(overrides)
    return CourseCreate(**fields)


class FailingStore(DocumentStore):
    """Wraps a store and fails every call touching the given collections or course ids."""

    def __init__(self, inner=None, collections=(), course_ids=()):
        self.inner = inner if inner is not None else MemoryDocumentStore()
        self.fail_collections = set(collections)
        self.fail_course_ids = set(course_ids)

    def check(self, collection, filters=()):
        if collection in self.fail_collections:
            raise DocumentStoreError(f"{collection} unavailable")
        for flt in filters:
            if flt.field == "courseId" and flt.value in self.fail_course_ids:
                raise DocumentStoreError(f"query for course {flt.value} failed")

    async def add(self, collection, data):
        self.check(collection)
        return await self.inner.add(collection, data)

    async def set(self, collection, doc_id, data):
        self.check(collection)
        await self.inner.set(collection, doc_id, data)

    async def update(self, collection, doc_id, data):
        self.check(collection)
        await self.inner.update(collection, doc_id, data)

    async def get(self, collection, doc_id):
        self.check(collection)
        return await self.inner.get(collection, doc_id)

    async def delete(self, collection, doc_id):
        self.check(collection)
        await self.inner.delete(collection, doc_id)

    async def query(self, collection, filters=(), limit=None):
        self.check(collection, filters)
        return await self.inner.query(collection, filters, limit)

    def batch(self):
        return FailingBatch(self)


class FailingBatch(WriteBatch):
    def __init__(self, store: FailingStore):
        self.store = store
        self.inner = store.inner.batch()
        self.collections = set()

    def set(self, collection, doc_id, data):
        self.collections.add(collection)
        self.inner.set(collection, doc_id, data)

    def delete(self, collection, doc_id):
        self.collections.add(collection)
        self.inner.delete(collection, doc_id)

    async def commit(self):
        for collection in self.collections:
            self.store.check(collection)
        await self.inner.commit()


class FakePublisher:
    def __init__(self):
        self.published = []

    async def publish(self, course_id, title, message):
        self.published.append((course_id, title, message))
        return f"message-{len(self.published)}"


class FakeMessaging:
    """Stands in for firebase_admin.messaging in topic and publish tests."""

    def __init__(self, failure_count=0, error=None):
        self.failure_count = failure_count
        self.error = error
        self.calls = []

    def _respond(self, action, tokens, topic):
        self.calls.append((action, tokens, topic))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(success_count=len(tokens) - self.failure_count, failure_count=self.failure_count)

    def subscribe_to_topic(self, tokens, topic, app=None):
        return self._respond("subscribe", tokens, topic)

    def unsubscribe_from_topic(self, tokens, topic, app=None):
        return self._respond("unsubscribe", tokens, topic)

    def send(self, message, app=None):
        self.calls.append(("send", message, message.topic))
        if self.error is not None:
            raise self.error
        return "projects/yoga/messages/1"


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def data_service(store):
    return StudioDataService(store)
