# yoga_service/data_service.py
import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import ValidationError

from . import config
from .cache import DocumentCache
from .document_store import DocumentStore, DocumentStoreError, Filter, prefix_filters
from .models import ClassInstance, ClassInstanceCreate, Course, CourseCreate, CourseUpdate
from .schedule import day_bounds, matches_course_day, normalize_day

logger = logging.getLogger(__name__)

COURSES = config.COURSES_COLLECTION
CLASS_INSTANCES = config.CLASS_INSTANCES_COLLECTION


def parse_documents(model, docs) -> list:
    items = []
    for doc in docs:
        try:
            items.append(model.from_document(doc))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {model.__name__} document {doc.get('id')}: {e.error_count()} errors")
    return items


class StudioDataService:
    def __init__(self, store: DocumentStore, cache: Optional[DocumentCache] = None):
        self.store = store
        self.cache = cache if cache is not None else DocumentCache(config.COURSE_CACHE_TTL_SECONDS)

    # ─────────────────────────────────────────────
    # Courses
    # ─────────────────────────────────────────────
    async def get_all_courses(self) -> List[Course]:
        cached = self.cache.all()
        if cached:
            logger.debug(f"Retrieved {len(cached)} courses from cache")
            return [c.model_copy(deep=True) for c in cached]
        return await self.refresh_courses() or []

    async def refresh_courses(self) -> Optional[List[Course]]:
        """Read every course from the store and replace the cached listing; None on failure."""
        try:
            docs = await self.store.query(COURSES)
        except DocumentStoreError as e:
            logger.error(f"Error getting courses from server: {e}")
            return None
        courses = parse_documents(Course, docs)
        self.cache.put_all({c.id: c.model_copy(deep=True) for c in courses})
        logger.info(f"Retrieved {len(courses)} courses from server")
        return courses

    async def get_course_by_id(self, course_id: str) -> Optional[Course]:
        cached = self.cache.get(course_id)
        if cached is not None:
            logger.debug(f"Retrieved course from cache: {cached.name}")
            return cached.model_copy(deep=True)

        try:
            doc = await self.store.get(COURSES, course_id)
        except DocumentStoreError as e:
            logger.error(f"Error getting course {course_id} from server: {e}")
            return None
        if doc is None:
            logger.info(f"No course found with ID: {course_id}")
            return None
        courses = parse_documents(Course, [doc])
        if not courses:
            return None
        self.cache.put(course_id, courses[0].model_copy(deep=True))
        return courses[0]

    async def add_course(self, course_data: CourseCreate) -> Optional[Course]:
        new_course = Course(**course_data.model_dump())
        try:
            new_course.id = await self.store.add(COURSES, new_course.to_document())
        except DocumentStoreError as e:
            logger.error(f"Error adding course: {e}")
            return None
        self.cache.put(new_course.id, new_course.model_copy(deep=True))
        logger.info(f"Course added with ID: {new_course.id}")
        return new_course

    async def save_course(self, course: Course) -> bool:
        # cache first so readers see the change immediately; rolled back on failure
        self.cache.put(course.id, course.model_copy(deep=True))
        try:
            await self.store.set(COURSES, course.id, course.to_document())
        except DocumentStoreError as e:
            self.cache.invalidate(course.id)
            logger.error(f"Error updating course {course.id}: {e}")
            return False
        logger.info(f"Course updated: {course.id}")
        return True

    async def update_course(self, course_id: str, course_data: CourseUpdate) -> Optional[Course]:
        course = await self.get_course_by_id(course_id)
        if course is None:
            return None
        update_data = course_data.model_dump(exclude_unset=True)
        updated = Course.model_validate({**course.model_dump(), **update_data})
        if not await self.save_course(updated):
            return None
        return updated

    async def delete_course(self, course_id: str) -> bool:
        try:
            instances = await self.store.query(CLASS_INSTANCES, [Filter("courseId", "==", course_id)])
            batch = self.store.batch()
            for doc in instances:
                batch.delete(CLASS_INSTANCES, doc["id"])
            batch.delete(COURSES, course_id)
            await batch.commit()
        except DocumentStoreError as e:
            logger.error(f"Error deleting course {course_id} and its class instances: {e}")
            return False
        self.cache.discard(course_id)
        logger.info(f"Course {course_id} and {len(instances)} class instances deleted")
        return True

    # ─────────────────────────────────────────────
    # Class instances
    # ─────────────────────────────────────────────
    async def _fetch_instances(self, course_id: str) -> List[ClassInstance]:
        docs = await self.store.query(CLASS_INSTANCES, [Filter("courseId", "==", course_id)])
        return parse_documents(ClassInstance, docs)

    async def get_class_instances_for_course(self, course_id: str) -> List[ClassInstance]:
        try:
            instances = await self._fetch_instances(course_id)
        except DocumentStoreError as e:
            logger.error(f"Error getting class instances for course {course_id}: {e}")
            return []
        logger.info(f"Retrieved {len(instances)} class instances for course: {course_id}")
        return instances

    async def get_class_instance_by_id(self, class_instance_id: str) -> Optional[ClassInstance]:
        try:
            doc = await self.store.get(CLASS_INSTANCES, class_instance_id)
        except DocumentStoreError as e:
            logger.error(f"Error getting class instance {class_instance_id}: {e}")
            return None
        if doc is None:
            return None
        instances = parse_documents(ClassInstance, [doc])
        return instances[0] if instances else None

    async def check_class_instance(self, course_id: str, date: datetime) -> Tuple[Optional[Course], Optional[str]]:
        """Return the parent course and, when a class on `date` cannot be saved, the reason."""
        course = await self.get_course_by_id(course_id)
        if course is None:
            return None, f"Course not found with ID: {course_id}"
        if not matches_course_day(date, course.day_of_week):
            return course, f"Selected date must be a {course.day_of_week}"
        return course, None

    async def add_class_instance(self, instance_data: ClassInstanceCreate) -> Optional[ClassInstance]:
        course, problem = await self.check_class_instance(instance_data.course_id, instance_data.date)
        if problem:
            logger.error(f"Class instance rejected: {problem}")
            return None

        instance = ClassInstance(**instance_data.model_dump())
        try:
            instance.id = await self.store.add(CLASS_INSTANCES, instance.to_document())
        except DocumentStoreError as e:
            logger.error(f"Error adding class instance: {e}")
            return None

        course.add_class_instance_id(instance.id)
        if not await self.save_course(course):
            logger.error(f"Error updating course {course.id} with new class instance ID")
            return None
        logger.info(f"Class instance added with ID: {instance.id}")
        return instance

    async def update_class_instance(self, instance: ClassInstance) -> bool:
        _, problem = await self.check_class_instance(instance.course_id, instance.date)
        if problem:
            logger.error(f"Class instance update rejected: {problem}")
            return False
        try:
            await self.store.set(CLASS_INSTANCES, instance.id, instance.to_document())
        except DocumentStoreError as e:
            logger.error(f"Error updating class instance {instance.id}: {e}")
            return False
        logger.info(f"Class instance updated: {instance.id}")
        return True

    async def delete_class_instance(self, class_instance_id: str) -> bool:
        instance = await self.get_class_instance_by_id(class_instance_id)
        if instance is None:
            logger.error(f"Class instance not found with ID: {class_instance_id}")
            return False

        course = await self.get_course_by_id(instance.course_id)
        try:
            if course is not None:
                course.remove_class_instance_id(class_instance_id)
                batch = self.store.batch()
                batch.set(COURSES, course.id, course.to_document())
                batch.delete(CLASS_INSTANCES, class_instance_id)
                await batch.commit()
                self.cache.put(course.id, course)
            else:
                await self.store.delete(CLASS_INSTANCES, class_instance_id)
        except DocumentStoreError as e:
            logger.error(f"Error deleting class instance {class_instance_id}: {e}")
            return False
        logger.info(f"Class instance deleted: {class_instance_id}")
        return True

    # ─────────────────────────────────────────────
    # Search
    # ─────────────────────────────────────────────
    async def _search_instances(self, filters, label: str) -> List[ClassInstance]:
        try:
            docs = await self.store.query(CLASS_INSTANCES, filters)
        except DocumentStoreError as e:
            logger.error(f"Error searching class instances by {label}: {e}")
            return []
        instances = parse_documents(ClassInstance, docs)
        logger.info(f"Found {len(instances)} class instances for {label}")
        return instances

    async def search_class_instances_by_teacher(self, teacher_name: str) -> List[ClassInstance]:
        return await self._search_instances(prefix_filters("teacherName", teacher_name), f"teacher {teacher_name!r}")

    async def search_class_instances_by_date(self, date) -> List[ClassInstance]:
        start, end = day_bounds(date)
        filters = [Filter("date", ">=", start), Filter("date", "<=", end)]
        return await self._search_instances(filters, f"date {start.date()}")

    async def search_courses_by_day(self, day_of_week: str) -> List[Course]:
        day = normalize_day(day_of_week)
        try:
            docs = await self.store.query(COURSES, [Filter("dayOfWeek", "==", day)])
        except DocumentStoreError as e:
            logger.error(f"Error searching courses by day: {e}")
            return []
        courses = parse_documents(Course, docs)
        logger.info(f"Found {len(courses)} courses for day: {day}")
        return courses

    async def join_class_instances(self, courses: List[Course]) -> List[ClassInstance]:
        """
        Fetch every course's class instances concurrently and join them.

        The join completes once every sub-query has finished. A failed
        sub-query is logged and its course's instances are left out of the
        result; the caller is not told about the gap.
        """
        if not courses:
            return []
        outcomes = await asyncio.gather(
            *(self._fetch_instances(course.id) for course in courses), return_exceptions=True
        )
        joined = []
        failed = 0
        for course, outcome in zip(courses, outcomes):
            if isinstance(outcome, DocumentStoreError):
                failed += 1
                logger.warning(f"Class instances for course {course.id} missing from result: {outcome}")
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            joined.extend(outcome)
        logger.debug(f"Joined {len(joined)} class instances from {len(courses) - failed}/{len(courses)} course queries")
        return joined

    async def search_class_instances_by_day(self, day_of_week: str) -> List[ClassInstance]:
        courses = await self.search_courses_by_day(day_of_week)
        return await self.join_class_instances(courses)

    # ─────────────────────────────────────────────
    # Maintenance
    # ─────────────────────────────────────────────
    async def reset_all_data(self) -> bool:
        try:
            instances = await self.store.query(CLASS_INSTANCES)
            courses = await self.store.query(COURSES)
            batch = self.store.batch()
            for doc in instances:
                batch.delete(CLASS_INSTANCES, doc["id"])
            for doc in courses:
                batch.delete(COURSES, doc["id"])
            await batch.commit()
        except DocumentStoreError as e:
            logger.error(f"Error resetting data: {e}")
            return False
        finally:
            self.cache.clear()
        logger.info(f"All data reset: {len(courses)} courses, {len(instances)} class instances")
        return True
