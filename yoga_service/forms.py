# yoga_service/forms.py
"""
Form validation and load-state tracking for the course screens.

Form fields arrive as raw text. Validation returns either a request model
ready for the data service, or a mapping of field name to the message shown
next to that field.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

from .models import ClassInstanceCreate, Course, CourseCreate
from .schedule import as_studio_datetime, matches_course_day, normalize_day

DATE_FORMAT = "%a, %b %d, %Y"


def _text(fields: Mapping[str, str], name: str) -> str:
    return (fields.get(name) or "").strip()


def _number(fields, name, label, errors, cast, check, check_message):
    raw = _text(fields, name)
    if not raw:
        errors[name] = f"{label} is required"
        return None
    try:
        value = cast(raw)
    except ValueError:
        errors[name] = f"Invalid {label.lower()}"
        return None
    if not check(value):
        errors[name] = check_message
        return None
    return value


def validate_course_form(fields: Mapping[str, str]) -> Tuple[Optional[CourseCreate], Dict[str, str]]:
    errors = {}
    name = _text(fields, "name")
    if not name:
        errors["name"] = "Name is required"

    day = _text(fields, "dayOfWeek")
    try:
        day = normalize_day(day)
    except ValueError:
        errors["dayOfWeek"] = "Day of week is required"

    capacity = _number(fields, "capacity", "Capacity", errors, int, lambda v: v > 0, "Capacity must be greater than 0")
    duration = _number(fields, "duration", "Duration", errors, int, lambda v: v > 0, "Duration must be greater than 0")
    price = _number(fields, "price", "Price", errors, float, lambda v: v >= 0, "Price cannot be negative")
    if errors:
        return None, errors

    additional_fields = {}
    additional_info = _text(fields, "additionalInfo")
    if additional_info:
        additional_fields["additionalInfo"] = additional_info

    course = CourseCreate(
        name=name,
        type=_text(fields, "type") or None,
        description=_text(fields, "description") or None,
        day_of_week=day,
        time=_text(fields, "time") or None,
        capacity=capacity,
        duration=duration,
        price=price,
        additional_fields=additional_fields,
    )
    return course, {}


def validate_class_instance_form(
    course: Course, date_text: str, teacher_name: str, comments: str = ""
) -> Tuple[Optional[ClassInstanceCreate], Dict[str, str]]:
    errors = {}
    date_text = (date_text or "").strip()
    teacher_name = (teacher_name or "").strip()
    if not date_text:
        errors["date"] = "Date is required"
    if not teacher_name:
        errors["teacherName"] = "Teacher name is required"
    if errors:
        return None, errors

    try:
        date = as_studio_datetime(datetime.strptime(date_text, DATE_FORMAT))
    except ValueError:
        return None, {"date": "Invalid date format"}
    if not matches_course_day(date, course.day_of_week):
        return None, {"date": f"Selected date must be a {course.day_of_week}"}

    instance = ClassInstanceCreate(
        course_id=course.id,
        date=date,
        teacher_name=teacher_name,
        comments=(comments or "").strip() or None,
    )
    return instance, {}


def format_class_date(date: datetime) -> str:
    return date.strftime(DATE_FORMAT)


# ─────────────────────────────────────────────
# Screen load state
# ─────────────────────────────────────────────
class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    EMPTY = "empty"
    FAILED = "failed"


class ScreenLoad:
    """Idle -> Loading -> Loaded | Empty | Failed for one list or detail screen."""

    def __init__(self):
        self.state = LoadState.IDLE

    def start(self):
        self.state = LoadState.LOADING

    def finish(self, result):
        if result is None:
            self.state = LoadState.FAILED
        elif isinstance(result, (list, tuple, dict)) and not result:
            self.state = LoadState.EMPTY
        else:
            self.state = LoadState.LOADED

    def fail(self):
        self.state = LoadState.FAILED

    @property
    def show_spinner(self) -> bool:
        return self.state == LoadState.LOADING

    @property
    def visual_state(self) -> LoadState:
        # failures have no separate error view
        if self.state == LoadState.FAILED:
            return LoadState.EMPTY
        return self.state

    async def run(self, loader):
        """Await `loader()` and record the outcome; returns its result."""
        self.start()
        try:
            result = await loader()
        except Exception:
            self.fail()
            raise
        self.finish(result)
        return result
