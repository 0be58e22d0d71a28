# yoga_gateway/main.py
# Studio gateway:
# Request logging middleware
# JWT authentication
# Course, class instance, search, booking and enrollment routes
# Structured error responses

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from datetime import date as date_type
from datetime import timedelta
from typing import Any, Dict, List, Optional

import jwt
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from yoga_service import config
from yoga_service.data_service import StudioDataService
from yoga_service.document_store import DocumentStore, FirestoreDocumentStore, create_store
from yoga_service.forms import validate_class_instance_form, validate_course_form
from yoga_service.member_service import MemberService
from yoga_service.models import (
    ClassInstance,
    ClassInstanceCreate,
    ClassInstanceUpdate,
    CourseCreate,
    CourseUpdate,
    Instructor,
    InstructorUpdate,
    utcnow,
)
from yoga_service.network import NetworkMonitor
from yoga_service.notifications import NotificationPublisher, TopicSubscriptions
from yoga_service.records import BookingService, InstructorService, seed_sample_data
from yoga_service.sync import DataSyncService

from .api_service import ApiException, ApiService

# ─────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────
_handlers = [logging.StreamHandler()]
if config.GATEWAY_LOG_FILE:
    _handlers.append(logging.FileHandler(config.GATEWAY_LOG_FILE))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(message)s",
    handlers=_handlers,
)
logger = logging.getLogger("yoga_gateway")

security = HTTPBearer()


# ─────────────────────────────────────────────
# Request Models
# ─────────────────────────────────────────────
class LoginRequest(BaseModel):
    username: str
    password: str


class GatewayRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookingRequest(GatewayRequest):
    email: str
    class_instance_ids: List[str] = Field(default_factory=list)


class EnrollRequest(GatewayRequest):
    user_id: str
    class_instance_id: str


class NotifyRequest(GatewayRequest):
    title: str
    message: str


class TopicRequest(GatewayRequest):
    tokens: List[str] = Field(..., min_length=1)


class ClassInstanceForm(GatewayRequest):
    date: str = ""
    teacher_name: str = ""
    comments: str = ""


# ─────────────────────────────────────────────
# Error Helpers
# ─────────────────────────────────────────────
API_ERROR_CODES = {
    400: "BAD_REQUEST",
    404: "RESOURCE_NOT_FOUND",
    503: "SERVICE_UNAVAILABLE",
}


def error_detail(error: str, message: str, **extra) -> dict:
    return {"error": error, "message": message, **extra, "timestamp": utcnow().isoformat()}


def form_text(fields: Dict[str, Any]) -> Dict[str, str]:
    return {name: "" if value is None else str(value) for name, value in fields.items()}


def not_found(message: str) -> HTTPException:
    return HTTPException(status_code=404, detail=error_detail("RESOURCE_NOT_FOUND", message))


def unavailable(message: str) -> HTTPException:
    return HTTPException(status_code=503, detail=error_detail("SERVICE_UNAVAILABLE", message))


def invalid(message: str) -> HTTPException:
    return HTTPException(status_code=422, detail=error_detail("VALIDATION_ERROR", message))


async def call_api(coro):
    """Await an ApiService call and turn its ApiException into an HTTP error"""
    try:
        return await coro
    except ApiException as e:
        code = e.status_code if e.status_code in API_ERROR_CODES else 503
        logger.warning(f"API call failed: {e}")
        raise HTTPException(status_code=code, detail=error_detail(API_ERROR_CODES[code], e.message))


# ─────────────────────────────────────────────
# JWT Helper Functions
# ─────────────────────────────────────────────
def create_access_token(data: dict) -> str:
    """Create a JWT token"""
    to_encode = data.copy()
    expire = utcnow() + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Verify JWT token - use this as a dependency on protected routes"""
    try:
        payload = jwt.decode(credentials.credentials, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_detail("TOKEN_EXPIRED", "Token has expired. Please login again."),
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_detail("INVALID_TOKEN", "Could not validate token"),
        )
    username = payload.get("sub")
    if username is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_detail("INVALID_TOKEN", "Token payload is invalid"),
        )
    return username


# ─────────────────────────────────────────────
# Services
# ─────────────────────────────────────────────
@dataclass
class StudioServices:
    store: DocumentStore
    data: StudioDataService
    members: MemberService
    bookings: BookingService
    instructors: InstructorService
    api: ApiService
    sync: DataSyncService
    topics: TopicSubscriptions

    @classmethod
    def build(cls, store: DocumentStore, network: Optional[NetworkMonitor] = None):
        # push delivery needs a live Firebase app
        publisher = NotificationPublisher() if isinstance(store, FirestoreDocumentStore) else None
        data = StudioDataService(store)
        return cls(
            store=store,
            data=data,
            members=MemberService(store, data, publisher),
            bookings=BookingService(store),
            instructors=InstructorService(store),
            api=ApiService(store),
            sync=DataSyncService(data, network),
            topics=TopicSubscriptions(),
        )


def get_services(request: Request) -> StudioServices:
    return request.app.state.services


def create_app(
    store: Optional[DocumentStore] = None,
    seed: Optional[bool] = None,
    network: Optional[NetworkMonitor] = None,
) -> FastAPI:
    services = StudioServices.build(store if store is not None else create_store(), network)
    seed = config.SEED_SAMPLE_DATA if seed is None else seed

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if seed and await seed_sample_data(services.store):
            logger.info("Loaded sample courses and instructors")
        yield

    app = FastAPI(title="Yoga Studio Gateway", version="1.0.0", lifespan=lifespan)
    app.state.services = services
    register_routes(app)
    return app


def register_routes(app: FastAPI):
    # ─────────────────────────────────────────────
    # Request Logging Middleware
    # ─────────────────────────────────────────────
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        client = request.client.host if request.client else "unknown"
        logger.info(f"REQUEST  | {request.method} {request.url.path} | Client: {client}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = round((time.time() - start_time) * 1000, 2)
            logger.error(f"ERROR    | {request.method} {request.url.path} | Error: {str(e)} | Time: {process_time}ms")
            raise

        process_time = round((time.time() - start_time) * 1000, 2)
        logger.info(
            f"RESPONSE | {request.method} {request.url.path} | Status: {response.status_code} | Time: {process_time}ms"
        )
        response.headers["X-Process-Time"] = f"{process_time}ms"
        return response

    # ─────────────────────────────────────────────
    # Root Route
    # ─────────────────────────────────────────────
    @app.get("/")
    def read_root():
        """Gateway status"""
        return {"message": "Yoga Studio Gateway is running", "backend": config.STORE_BACKEND, "version": "1.0.0"}

    # ─────────────────────────────────────────────
    # Auth Routes
    # ─────────────────────────────────────────────
    @app.post("/auth/login", tags=["Authentication"])
    def login(credentials: LoginRequest):
        """Login to get a JWT token for the protected routes"""
        users = config.GATEWAY_USERS
        if users.get(credentials.username) != credentials.password:
            logger.warning(f"Failed login attempt for user: {credentials.username}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=error_detail("INVALID_CREDENTIALS", "Incorrect username or password"),
            )

        token = create_access_token({"sub": credentials.username})
        logger.info(f"Successful login for user: {credentials.username}")
        return {
            "access_token": token,
            "token_type": "bearer",
            "expires_in": f"{config.ACCESS_TOKEN_EXPIRE_MINUTES} minutes",
        }

    # ─────────────────────────────────────────────
    # Course Routes
    # ─────────────────────────────────────────────
    @app.get("/api/courses", tags=["Courses"])
    async def get_all_courses(services: StudioServices = Depends(get_services), user: str = Depends(verify_token)):
        """Get all courses (requires authentication)"""
        return await services.data.get_all_courses()

    @app.get("/api/courses/{course_id}", tags=["Courses"])
    async def get_course(
        course_id: str, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Get a course by ID (requires authentication)"""
        course = await services.data.get_course_by_id(course_id)
        if course is None:
            raise not_found(f"Course with ID {course_id} not found")
        return course

    @app.post("/api/courses", tags=["Courses"], status_code=201)
    async def create_course(
        course: CourseCreate, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Create a new course (requires authentication)"""
        created = await services.data.add_course(course)
        if created is None:
            raise unavailable("Failed to save course")
        return created

    @app.put("/api/courses/{course_id}", tags=["Courses"])
    async def update_course(
        course_id: str,
        course: CourseUpdate,
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Update a course (requires authentication)"""
        if await services.data.get_course_by_id(course_id) is None:
            raise not_found(f"Course with ID {course_id} not found")
        updated = await services.data.update_course(course_id, course)
        if updated is None:
            raise unavailable("Failed to update course")
        return updated

    @app.delete("/api/courses/{course_id}", tags=["Courses"])
    async def delete_course(
        course_id: str, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Delete a course and all its class instances (requires authentication)"""
        if await services.data.get_course_by_id(course_id) is None:
            raise not_found(f"Course with ID {course_id} not found")
        if not await services.data.delete_course(course_id):
            raise unavailable("Failed to delete course")
        return {"message": f"Course {course_id} deleted"}

    @app.get("/api/courses/{course_id}/instances", tags=["Courses"])
    async def get_course_instances(
        course_id: str, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Get the class instances of a course (requires authentication)"""
        return await services.data.get_class_instances_for_course(course_id)

    @app.get("/api/courses/{course_id}/upcoming", tags=["Courses"])
    async def get_upcoming_instances(
        course_id: str, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Get upcoming class instances of a course (requires authentication)"""
        return await services.members.get_upcoming_class_instances(course_id)

    # ─────────────────────────────────────────────
    # Class Instance Routes
    # ─────────────────────────────────────────────
    @app.post("/api/instances", tags=["Class Instances"], status_code=201)
    async def create_instance(
        instance: ClassInstanceCreate,
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Schedule a class instance on its course's weekday (requires authentication)"""
        course, problem = await services.data.check_class_instance(instance.course_id, instance.date)
        if course is None:
            raise not_found(problem)
        if problem:
            raise invalid(problem)
        created = await services.data.add_class_instance(instance)
        if created is None:
            raise unavailable("Failed to save class instance")
        return created

    @app.get("/api/instances/{instance_id}", tags=["Class Instances"])
    async def get_instance(
        instance_id: str, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Get a class instance by ID (requires authentication)"""
        instance = await services.data.get_class_instance_by_id(instance_id)
        if instance is None:
            raise not_found(f"Class instance with ID {instance_id} not found")
        return instance

    @app.put("/api/instances/{instance_id}", tags=["Class Instances"])
    async def update_instance(
        instance_id: str,
        changes: ClassInstanceUpdate,
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Update a class instance (requires authentication)"""
        instance = await services.data.get_class_instance_by_id(instance_id)
        if instance is None:
            raise not_found(f"Class instance with ID {instance_id} not found")
        updated = ClassInstance.model_validate({**instance.model_dump(), **changes.model_dump(exclude_unset=True)})

        course, problem = await services.data.check_class_instance(updated.course_id, updated.date)
        if course is None:
            raise not_found(problem)
        if problem:
            raise invalid(problem)
        if not await services.data.update_class_instance(updated):
            raise unavailable("Failed to update class instance")
        return updated

    @app.delete("/api/instances/{instance_id}", tags=["Class Instances"])
    async def delete_instance(
        instance_id: str, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Delete a class instance (requires authentication)"""
        if await services.data.get_class_instance_by_id(instance_id) is None:
            raise not_found(f"Class instance with ID {instance_id} not found")
        if not await services.data.delete_class_instance(instance_id):
            raise unavailable("Failed to delete class instance")
        return {"message": f"Class instance {instance_id} deleted"}

    @app.post("/api/instances/{instance_id}/cancel", tags=["Class Instances"])
    async def cancel_instance(
        instance_id: str, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Cancel a class instance and notify its course (requires authentication)"""
        if await services.data.get_class_instance_by_id(instance_id) is None:
            raise not_found(f"Class instance with ID {instance_id} not found")
        if not await services.members.cancel_class_instance(instance_id):
            raise unavailable("Failed to cancel class instance")
        return {"message": f"Class instance {instance_id} cancelled"}

    @app.post("/api/instances/{instance_id}/notify", tags=["Class Instances"])
    async def notify_instance(
        instance_id: str,
        notification: NotifyRequest,
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Send a notification about a class instance (requires authentication)"""
        if await services.data.get_class_instance_by_id(instance_id) is None:
            raise not_found(f"Class instance with ID {instance_id} not found")
        if not await services.members.send_class_notification(instance_id, notification.title, notification.message):
            raise unavailable("Failed to send notification")
        return {"message": "Notification sent"}

    @app.get("/api/instances/{instance_id}/bookings", tags=["Bookings"])
    async def get_instance_bookings(
        instance_id: str, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Get bookings that include a class instance (requires authentication)"""
        return await services.bookings.get_bookings_by_class(instance_id)

    # ─────────────────────────────────────────────
    # Form Routes
    # ─────────────────────────────────────────────
    @app.post("/api/forms/courses", tags=["Forms"], status_code=201)
    async def submit_course_form(
        fields: Dict[str, Any] = Body(...),
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Create a course from raw form fields (requires authentication)"""
        course_data, errors = validate_course_form(form_text(fields))
        if errors:
            raise HTTPException(
                status_code=422, detail=error_detail("VALIDATION_ERROR", "Course form is invalid", fields=errors)
            )
        created = await services.data.add_course(course_data)
        if created is None:
            raise unavailable("Failed to save course")
        return created

    @app.post("/api/forms/courses/{course_id}/instances", tags=["Forms"], status_code=201)
    async def submit_class_form(
        course_id: str,
        form: ClassInstanceForm,
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Schedule a class instance from raw form fields (requires authentication)"""
        course = await services.data.get_course_by_id(course_id)
        if course is None:
            raise not_found(f"Course with ID {course_id} not found")
        instance_data, errors = validate_class_instance_form(course, form.date, form.teacher_name, form.comments)
        if errors:
            raise HTTPException(
                status_code=422, detail=error_detail("VALIDATION_ERROR", "Class form is invalid", fields=errors)
            )
        created = await services.data.add_class_instance(instance_data)
        if created is None:
            raise unavailable("Failed to save class instance")
        return created

    # ─────────────────────────────────────────────
    # Search Route
    # ─────────────────────────────────────────────
    @app.get("/api/search", tags=["Search"])
    async def search(
        teacher: Optional[str] = None,
        date: Optional[date_type] = None,
        day: Optional[str] = None,
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Search class instances by teacher, date or day (requires authentication)"""
        given = [name for name, value in (("teacher", teacher), ("date", date), ("day", day)) if value]
        if len(given) != 1:
            raise HTTPException(
                status_code=400,
                detail=error_detail("BAD_REQUEST", "Provide exactly one of: teacher, date, day", given=given),
            )
        if teacher:
            return await services.data.search_class_instances_by_teacher(teacher)
        if date:
            return await services.data.search_class_instances_by_date(date)
        try:
            return await services.data.search_class_instances_by_day(day)
        except ValueError as e:
            raise invalid(str(e))

    # ─────────────────────────────────────────────
    # Booking Routes
    # ─────────────────────────────────────────────
    @app.post("/api/bookings", tags=["Bookings"], status_code=201)
    async def create_booking(
        booking: BookingRequest, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Book one or more class instances (requires authentication)"""
        return await call_api(services.api.create_booking(booking.email, booking.class_instance_ids))

    @app.get("/api/bookings", tags=["Bookings"])
    async def get_bookings(
        email: Optional[str] = None,
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Get bookings, optionally for one email (requires authentication)"""
        if email:
            return await call_api(services.api.get_bookings_by_email(email))
        return await services.bookings.get_all_bookings()

    # ─────────────────────────────────────────────
    # Enrollment Routes
    # ─────────────────────────────────────────────
    @app.post("/api/enrollments", tags=["Enrollments"], status_code=201)
    async def enroll(
        request: EnrollRequest, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Enroll a user in a class instance (requires authentication)"""
        if not await services.members.enroll_in_class(request.user_id, request.class_instance_id):
            raise HTTPException(
                status_code=409,
                detail=error_detail(
                    "ENROLLMENT_REJECTED",
                    "Class is full, cancelled or does not exist",
                    class_instance_id=request.class_instance_id,
                ),
            )
        return {"message": f"{request.user_id} enrolled in class {request.class_instance_id}"}

    @app.get("/api/users/{user_id}/enrollments", tags=["Enrollments"])
    async def get_user_enrollments(
        user_id: str, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Get a user's enrollments (requires authentication)"""
        return await services.members.get_user_enrollments(user_id)

    @app.delete("/api/users/{user_id}/enrollments/{class_instance_id}", tags=["Enrollments"])
    async def cancel_enrollment(
        user_id: str,
        class_instance_id: str,
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Cancel a user's enrollment (requires authentication)"""
        if not await services.members.cancel_enrollment(user_id, class_instance_id):
            raise not_found(f"No enrollment for {user_id} in class {class_instance_id}")
        return {"message": f"Enrollment for {user_id} in class {class_instance_id} cancelled"}

    # ─────────────────────────────────────────────
    # Course Topic Subscriptions
    # ─────────────────────────────────────────────
    @app.post("/api/courses/{course_id}/subscriptions", tags=["Notifications"])
    async def subscribe(
        course_id: str,
        request: TopicRequest,
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Subscribe devices to a course's notifications (requires authentication)"""
        if not await services.topics.subscribe_to_course(request.tokens, course_id):
            raise unavailable(f"Failed to subscribe to course {course_id}")
        return {"message": f"Subscribed {len(request.tokens)} devices to course {course_id}"}

    @app.delete("/api/courses/{course_id}/subscriptions", tags=["Notifications"])
    async def unsubscribe(
        course_id: str,
        tokens: List[str] = Query(...),
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Unsubscribe devices from a course's notifications (requires authentication)"""
        if not await services.topics.unsubscribe_from_course(tokens, course_id):
            raise unavailable(f"Failed to unsubscribe from course {course_id}")
        return {"message": f"Unsubscribed {len(tokens)} devices from course {course_id}"}

    # ─────────────────────────────────────────────
    # Instructor Routes
    # ─────────────────────────────────────────────
    @app.get("/api/instructors", tags=["Instructors"])
    async def get_instructors(services: StudioServices = Depends(get_services), user: str = Depends(verify_token)):
        """Get all instructors (requires authentication)"""
        return await services.instructors.get_all_instructors()

    @app.post("/api/instructors", tags=["Instructors"], status_code=201)
    async def create_instructor(
        instructor: Instructor, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Create a new instructor (requires authentication)"""
        created = await services.instructors.add_instructor(instructor)
        if created is None:
            raise unavailable("Failed to save instructor")
        return created

    @app.put("/api/instructors/{instructor_id}", tags=["Instructors"])
    async def update_instructor(
        instructor_id: str,
        instructor: InstructorUpdate,
        services: StudioServices = Depends(get_services),
        user: str = Depends(verify_token),
    ):
        """Update an instructor (requires authentication)"""
        if not await services.instructors.update_instructor(instructor_id, instructor):
            raise not_found(f"Instructor with ID {instructor_id} not found")
        return {"message": f"Instructor {instructor_id} updated"}

    @app.delete("/api/instructors/{instructor_id}", tags=["Instructors"])
    async def delete_instructor(
        instructor_id: str, services: StudioServices = Depends(get_services), user: str = Depends(verify_token)
    ):
        """Delete an instructor (requires authentication)"""
        if await services.instructors.get_instructor_by_id(instructor_id) is None:
            raise not_found(f"Instructor with ID {instructor_id} not found")
        if not await services.instructors.delete_instructor(instructor_id):
            raise unavailable("Failed to delete instructor")
        return {"message": f"Instructor {instructor_id} deleted"}

    # ─────────────────────────────────────────────
    # Maintenance Routes
    # ─────────────────────────────────────────────
    @app.post("/api/sync", tags=["Maintenance"])
    async def sync(services: StudioServices = Depends(get_services), user: str = Depends(verify_token)):
        """Refresh courses and class instances from the store (requires authentication)"""
        return asdict(await services.sync.sync_all_data())

    @app.post("/api/reset", tags=["Maintenance"])
    async def reset(services: StudioServices = Depends(get_services), user: str = Depends(verify_token)):
        """Delete all courses and class instances (requires authentication)"""
        if not await services.data.reset_all_data():
            raise unavailable("Failed to reset data")
        return {"message": "All courses and class instances deleted"}


app = create_app()
