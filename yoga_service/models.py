# yoga_service/models.py
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .schedule import as_studio_datetime, normalize_day


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentModel(BaseModel):
    """Base for stored entities: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id"})

    @classmethod
    def from_document(cls, doc: Dict[str, Any]):
        return cls.model_validate(doc)


# ─────────────────────────────────────────────
# Courses
# ─────────────────────────────────────────────
class Course(DocumentModel):
    id: Optional[str] = None
    name: str
    type: Optional[str] = None
    description: Optional[str] = None
    day_of_week: str
    time: Optional[str] = None
    capacity: int = 0
    duration: int = 0
    price: float = 0.0
    class_instance_ids: List[str] = Field(default_factory=list)
    additional_fields: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("class_instance_ids", "additional_fields", mode="before")
    @classmethod
    def _none_to_empty(cls, value, info):
        if value is None:
            return [] if info.field_name == "class_instance_ids" else {}
        return value

    def add_class_instance_id(self, class_instance_id: str):
        self.class_instance_ids.append(class_instance_id)

    def remove_class_instance_id(self, class_instance_id: str):
        self.class_instance_ids = [i for i in self.class_instance_ids if i != class_instance_id]


class CourseCreate(DocumentModel):
    name: str = Field(..., min_length=1)
    type: Optional[str] = None
    description: Optional[str] = None
    day_of_week: str
    time: Optional[str] = None
    capacity: int = Field(..., gt=0)
    duration: int = Field(..., gt=0)
    price: float = Field(..., ge=0)
    additional_fields: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("day_of_week")
    @classmethod
    def _check_day(cls, value):
        return normalize_day(value)


class CourseUpdate(DocumentModel):
    name: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = None
    description: Optional[str] = None
    day_of_week: Optional[str] = None
    time: Optional[str] = None
    capacity: Optional[int] = Field(None, gt=0)
    duration: Optional[int] = Field(None, gt=0)
    price: Optional[float] = Field(None, ge=0)
    additional_fields: Optional[Dict[str, Any]] = None

    @field_validator("day_of_week")
    @classmethod
    def _check_day(cls, value):
        return None if value is None else normalize_day(value)


# ─────────────────────────────────────────────
# Class instances
# ─────────────────────────────────────────────
class ClassInstance(DocumentModel):
    id: Optional[str] = None
    course_id: str
    date: datetime
    teacher_name: str
    comments: Optional[str] = None
    cancelled: bool = Field(False, alias="isCancelled")

    @field_validator("date")
    @classmethod
    def _localize_date(cls, value):
        return as_studio_datetime(value)


class ClassInstanceCreate(DocumentModel):
    course_id: str
    date: datetime
    teacher_name: str = Field(..., min_length=1)
    comments: Optional[str] = None

    @field_validator("date")
    @classmethod
    def _localize_date(cls, value):
        return as_studio_datetime(value)


class ClassInstanceUpdate(DocumentModel):
    date: Optional[datetime] = None
    teacher_name: Optional[str] = Field(None, min_length=1)
    comments: Optional[str] = None
    cancelled: Optional[bool] = Field(None, alias="isCancelled")


# ─────────────────────────────────────────────
# Enrollments and bookings
# ─────────────────────────────────────────────
class Enrollment(DocumentModel):
    id: Optional[str] = None
    user_id: str
    class_instance_id: str
    enrollment_date: datetime = Field(default_factory=utcnow)
    attended: bool = False


class Booking(DocumentModel):
    """Legacy booking record; one booking may cover several classes."""

    id: Optional[str] = None
    user_email: str
    class_ids: List[str] = Field(default_factory=list)
    booking_date: datetime = Field(default_factory=utcnow)
    total_amount: float = 0.0

    def to_enrollments(self) -> List[Enrollment]:
        return [
            Enrollment(
                id=self.id,
                user_id=self.user_email,
                class_instance_id=class_id,
                enrollment_date=self.booking_date,
            )
            for class_id in self.class_ids
        ]


# ─────────────────────────────────────────────
# Instructors and notifications
# ─────────────────────────────────────────────
class Instructor(DocumentModel):
    id: Optional[str] = None
    name: str
    email: Optional[str] = None
    bio: Optional[str] = None
    certifications: Optional[str] = None


class InstructorUpdate(DocumentModel):
    name: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None
    certifications: Optional[str] = None


class ClassNotification(DocumentModel):
    id: Optional[str] = None
    title: str
    message: str
    course_id: str
    class_instance_id: str
    timestamp: datetime = Field(default_factory=utcnow)
