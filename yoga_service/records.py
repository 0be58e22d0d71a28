# yoga_service/records.py
import logging
from typing import List, Optional

from . import config
from .data_service import parse_documents
from .document_store import DocumentNotFoundError, DocumentStore, DocumentStoreError, Filter
from .models import Booking, Course, CourseCreate, Instructor, InstructorUpdate

logger = logging.getLogger(__name__)

BOOKINGS = config.BOOKINGS_COLLECTION
INSTRUCTORS = config.INSTRUCTORS_COLLECTION
COURSES = config.COURSES_COLLECTION


class BookingService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def _find(self, filters, label: str) -> List[Booking]:
        try:
            docs = await self.store.query(BOOKINGS, filters)
        except DocumentStoreError as e:
            logger.error(f"Error fetching bookings{label}: {e}")
            return []
        bookings = parse_documents(Booking, docs)
        logger.info(f"Fetched {len(bookings)} bookings{label}")
        return bookings

    async def get_all_bookings(self) -> List[Booking]:
        return await self._find([], "")

    async def get_bookings_by_user(self, email: str) -> List[Booking]:
        return await self._find([Filter("userEmail", "==", email)], f" for user: {email}")

    async def get_bookings_by_class(self, class_id: str) -> List[Booking]:
        return await self._find([Filter("classIds", "array_contains", class_id)], f" for class: {class_id}")

    async def add_booking(self, booking: Booking) -> Optional[Booking]:
        try:
            booking_id = await self.store.add(BOOKINGS, booking.to_document())
        except DocumentStoreError as e:
            logger.error(f"Error adding booking: {e}")
            return None
        logger.info(f"Booking added with ID: {booking_id}")
        return booking.model_copy(update={"id": booking_id})


class InstructorService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def get_all_instructors(self) -> List[Instructor]:
        try:
            docs = await self.store.query(INSTRUCTORS)
        except DocumentStoreError as e:
            logger.error(f"Error fetching instructors: {e}")
            return []
        instructors = parse_documents(Instructor, docs)
        logger.info(f"Fetched {len(instructors)} instructors")
        return instructors

    async def get_instructor_by_id(self, instructor_id: str) -> Optional[Instructor]:
        try:
            doc = await self.store.get(INSTRUCTORS, instructor_id)
        except DocumentStoreError as e:
            logger.error(f"Error fetching instructor {instructor_id}: {e}")
            return None
        if doc is None:
            logger.info(f"No instructor found with ID: {instructor_id}")
            return None
        instructors = parse_documents(Instructor, [doc])
        return instructors[0] if instructors else None

    async def add_instructor(self, instructor: Instructor) -> Optional[Instructor]:
        try:
            instructor_id = await self.store.add(INSTRUCTORS, instructor.to_document())
        except DocumentStoreError as e:
            logger.error(f"Error adding instructor: {e}")
            return None
        logger.info(f"Instructor added with ID: {instructor_id}")
        return instructor.model_copy(update={"id": instructor_id})

    async def update_instructor(self, instructor_id: str, instructor_data: InstructorUpdate) -> bool:
        changes = instructor_data.model_dump(by_alias=True, exclude_unset=True)
        try:
            await self.store.update(INSTRUCTORS, instructor_id, changes)
        except DocumentNotFoundError:
            logger.warning(f"Instructor not found: {instructor_id}")
            return False
        except DocumentStoreError as e:
            logger.error(f"Error updating instructor {instructor_id}: {e}")
            return False
        logger.info(f"Instructor updated: {instructor_id}")
        return True

    async def delete_instructor(self, instructor_id: str) -> bool:
        try:
            await self.store.delete(INSTRUCTORS, instructor_id)
        except DocumentStoreError as e:
            logger.error(f"Error deleting instructor {instructor_id}: {e}")
            return False
        logger.info(f"Instructor deleted: {instructor_id}")
        return True


# ─────────────────────────────────────────────
# Sample data
# ─────────────────────────────────────────────
SAMPLE_COURSES = [
    CourseCreate(name="Morning Vinyasa Flow", type="Flow Yoga", description="Start your day with an energizing flow linking breath with movement.", day_of_week="Monday", time="7:00 AM", capacity=15, duration=60, price=20.0),
    CourseCreate(name="Gentle Hatha Yoga", type="Hatha", description="Slow-paced class focusing on basic postures and alignment.", day_of_week="Wednesday", time="6:00 PM", capacity=20, duration=75, price=18.0),
    CourseCreate(name="Power Yoga", type="Power Yoga", description="A vigorous, fitness-based approach to vinyasa-style yoga.", day_of_week="Saturday", time="9:00 AM", capacity=15, duration=60, price=22.0),
]

SAMPLE_INSTRUCTORS = [
    Instructor(name="Sarah Johnson", email="sarah.johnson@yogastudio.com", bio="Teaches Vinyasa and Hatha yoga.", certifications="RYT-200, Yoga Alliance"),
    Instructor(name="Michael Chen", email="michael.chen@yogastudio.com", bio="Teaches gentle and restorative yoga.", certifications="RYT-500, Yin Yoga Certification"),
    Instructor(name="Jessica Miller", email="jessica.miller@yogastudio.com", bio="Brings energy and strength to power yoga classes.", certifications="RYT-200, Power Yoga Certification"),
]


async def seed_sample_data(store: DocumentStore) -> bool:
    """Add sample courses and instructors when the course collection is empty."""
    try:
        existing = await store.query(COURSES, limit=1)
        if existing:
            return False
        for course_data in SAMPLE_COURSES:
            await store.add(COURSES, Course(**course_data.model_dump()).to_document())
        for instructor in SAMPLE_INSTRUCTORS:
            await store.add(INSTRUCTORS, instructor.to_document())
    except DocumentStoreError as e:
        logger.error(f"Error adding sample data: {e}")
        return False
    logger.info(f"Sample data added: {len(SAMPLE_COURSES)} courses, {len(SAMPLE_INSTRUCTORS)} instructors")
    return True
