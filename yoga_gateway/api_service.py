# yoga_gateway/api_service.py
"""
Call-shape facade for the member app.

Method names and results match what the member app expects from its API
client. Every failure is raised as an ApiException carrying an HTTP-style
status code.
"""

import logging
from typing import List

from yoga_service import config
from yoga_service.data_service import parse_documents
from yoga_service.document_store import DocumentStore, DocumentStoreError, Filter
from yoga_service.models import Booking, ClassInstance, Course, Enrollment

logger = logging.getLogger(__name__)


class ApiException(Exception):
    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self):
        suffix = f" (Status code: {self.status_code})" if self.status_code else ""
        return f"ApiException: {self.message}{suffix}"


class ApiService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def _query(self, collection, filters, failure: str):
        try:
            return await self.store.query(collection, filters)
        except DocumentStoreError as e:
            logger.error(f"{failure}: {e}")
            raise ApiException(failure, 503) from e

    async def _get(self, collection, doc_id, model, label: str):
        try:
            doc = await self.store.get(collection, doc_id)
        except DocumentStoreError as e:
            logger.error(f"Error fetching {label.lower()} {doc_id}: {e}")
            raise ApiException(f"Failed to fetch {label.lower()}", 503) from e
        items = parse_documents(model, [doc]) if doc else []
        if not items:
            raise ApiException(f"{label} not found", 404)
        return items[0]

    async def get_courses(self) -> List[Course]:
        docs = await self._query(config.COURSES_COLLECTION, [], "Failed to fetch courses")
        return parse_documents(Course, docs)

    async def get_course_by_id(self, course_id: str) -> Course:
        return await self._get(config.COURSES_COLLECTION, course_id, Course, "Course")

    async def get_class_instances_by_course(self, course_id: str) -> List[ClassInstance]:
        docs = await self._query(
            config.CLASS_INSTANCES_COLLECTION,
            [Filter("courseId", "==", course_id)],
            "Failed to fetch class instances",
        )
        return parse_documents(ClassInstance, docs)

    async def get_class_instance_by_id(self, class_instance_id: str) -> ClassInstance:
        return await self._get(config.CLASS_INSTANCES_COLLECTION, class_instance_id, ClassInstance, "Class instance")

    async def create_booking(self, email: str, class_instance_ids: List[str]) -> Enrollment:
        """Record a booking and return it as an enrollment for its first class."""
        if not class_instance_ids:
            raise ApiException("No class instances provided", 400)
        booking = Booking(user_email=email, class_ids=list(class_instance_ids))
        try:
            booking.id = await self.store.add(config.BOOKINGS_COLLECTION, booking.to_document())
        except DocumentStoreError as e:
            logger.error(f"Error creating booking: {e}")
            raise ApiException("Failed to create booking", 503) from e
        logger.info(f"Booking {booking.id} created for {email}")
        return booking.to_enrollments()[0]

    async def get_bookings_by_email(self, email: str) -> List[Enrollment]:
        docs = await self._query(
            config.BOOKINGS_COLLECTION,
            [Filter("userEmail", "==", email)],
            "Failed to fetch bookings",
        )
        enrollments = []
        for booking in parse_documents(Booking, docs):
            enrollments.extend(booking.to_enrollments())
        return enrollments
