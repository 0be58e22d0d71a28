# yoga_service/member_service.py
import logging
from datetime import datetime
from typing import List, Optional

from . import config
from .data_service import StudioDataService, parse_documents
from .document_store import DocumentStore, DocumentStoreError, Filter
from .models import ClassInstance, ClassNotification, Course, Enrollment, utcnow
from .notifications import NotificationPublisher
from .schedule import as_studio_datetime

logger = logging.getLogger(__name__)

COURSES = config.COURSES_COLLECTION
CLASS_INSTANCES = config.CLASS_INSTANCES_COLLECTION
ENROLLMENTS = config.ENROLLMENTS_COLLECTION
NOTIFICATIONS = config.NOTIFICATIONS_COLLECTION


class MemberService:
    """Enrollment and class updates as seen by studio members."""

    def __init__(
        self,
        store: DocumentStore,
        data_service: StudioDataService,
        publisher: Optional[NotificationPublisher] = None,
    ):
        self.store = store
        self.data_service = data_service
        self.publisher = publisher

    async def enroll_in_class(self, user_id: str, class_instance_id: str) -> bool:
        try:
            instance_doc = await self.store.get(CLASS_INSTANCES, class_instance_id)
            instance = parse_documents(ClassInstance, [instance_doc]) if instance_doc else []
            if not instance or instance[0].cancelled:
                logger.info(f"Class {class_instance_id} is cancelled or not found")
                return False

            course_doc = await self.store.get(COURSES, instance[0].course_id)
            course = parse_documents(Course, [course_doc]) if course_doc else []
            if not course:
                logger.error(f"Course not found for class {class_instance_id}")
                return False

            enrolled = await self.store.query(ENROLLMENTS, [Filter("classInstanceId", "==", class_instance_id)])
            if len(enrolled) >= course[0].capacity:
                logger.info(f"Class {class_instance_id} is full ({len(enrolled)}/{course[0].capacity})")
                return False

            enrollment = Enrollment(user_id=user_id, class_instance_id=class_instance_id)
            enrollment_id = await self.store.add(ENROLLMENTS, enrollment.to_document())
        except DocumentStoreError as e:
            logger.error(f"Error enrolling {user_id} in class {class_instance_id}: {e}")
            return False
        logger.info(f"Enrollment added with ID: {enrollment_id}")
        return True

    async def cancel_enrollment(self, user_id: str, class_instance_id: str) -> bool:
        filters = [Filter("userId", "==", user_id), Filter("classInstanceId", "==", class_instance_id)]
        try:
            matches = await self.store.query(ENROLLMENTS, filters, limit=1)
            if not matches:
                logger.info(f"No matching enrollment found for {user_id} in class {class_instance_id}")
                return False
            await self.store.delete(ENROLLMENTS, matches[0]["id"])
        except DocumentStoreError as e:
            logger.error(f"Error cancelling enrollment: {e}")
            return False
        logger.info(f"Enrollment {matches[0]['id']} deleted")
        return True

    async def get_user_enrollments(self, user_id: str) -> List[Enrollment]:
        try:
            docs = await self.store.query(ENROLLMENTS, [Filter("userId", "==", user_id)])
        except DocumentStoreError as e:
            logger.error(f"Error getting enrollments for user {user_id}: {e}")
            return []
        enrollments = parse_documents(Enrollment, docs)
        logger.info(f"Retrieved {len(enrollments)} enrollments for user {user_id}")
        return enrollments

    async def get_available_courses(self) -> List[Course]:
        try:
            docs = await self.store.query(COURSES)
        except DocumentStoreError as e:
            logger.error(f"Error getting courses: {e}")
            return []
        return parse_documents(Course, docs)

    async def get_upcoming_class_instances(self, course_id: str, now: Optional[datetime] = None) -> List[ClassInstance]:
        now = as_studio_datetime(now) if now is not None else utcnow()
        filters = [Filter("courseId", "==", course_id), Filter("date", ">=", now)]
        try:
            docs = await self.store.query(CLASS_INSTANCES, filters)
        except DocumentStoreError as e:
            logger.error(f"Error getting upcoming class instances for course {course_id}: {e}")
            return []
        instances = parse_documents(ClassInstance, docs)
        logger.info(f"Retrieved {len(instances)} upcoming class instances for course {course_id}")
        return sorted(instances, key=lambda i: i.date)

    async def get_class_instances_by_course(self, course_id: str) -> List[ClassInstance]:
        return await self.data_service.get_class_instances_for_course(course_id)

    async def get_class_instance_by_id(self, class_instance_id: str) -> Optional[ClassInstance]:
        return await self.data_service.get_class_instance_by_id(class_instance_id)

    async def send_class_notification(self, class_instance_id: str, title: str, message: str) -> bool:
        instance = await self.data_service.get_class_instance_by_id(class_instance_id)
        if instance is None:
            logger.error(f"Class instance not found: {class_instance_id}")
            return False

        notification = ClassNotification(
            title=title,
            message=message,
            course_id=instance.course_id,
            class_instance_id=class_instance_id,
        )
        try:
            notification_id = await self.store.add(NOTIFICATIONS, notification.to_document())
        except DocumentStoreError as e:
            logger.error(f"Error adding notification: {e}")
            return False
        logger.info(f"Notification added with ID: {notification_id}")

        if self.publisher is not None:
            await self.publisher.publish(instance.course_id, title, message)
        return True

    async def cancel_class_instance(self, class_instance_id: str) -> bool:
        instance = await self.data_service.get_class_instance_by_id(class_instance_id)
        if instance is None:
            logger.error(f"Class instance not found: {class_instance_id}")
            return False
        # flag only; the weekday is not re-checked
        try:
            await self.store.update(CLASS_INSTANCES, class_instance_id, {"isCancelled": True})
        except DocumentStoreError as e:
            logger.error(f"Error cancelling class instance {class_instance_id}: {e}")
            return False
        logger.info(f"Class instance cancelled: {class_instance_id}")
        await self.send_class_notification(
            class_instance_id,
            "Class Cancelled",
            f"The class scheduled for {instance.date:%a, %b %d, %Y} has been cancelled.",
        )
        return True
