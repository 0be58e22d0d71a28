import pytest
from fastapi.testclient import TestClient
from yoga_gateway.main import create_access_token, create_app
from yoga_service.document_store import MemoryDocumentStore
from yoga_service.network import NetworkMonitor
from yoga_service.notifications import TopicSubscriptions

from conftest import FakeMessaging

COURSE = {"name": "Morning Flow", "dayOfWeek": "monday", "capacity": 1, "duration": 60, "price": 15}
MONDAY_ISO = "2026-10-19T07:00:00+00:00"
TUESDAY_ISO = "2026-10-20T07:00:00+00:00"


@pytest.fixture
def app():
    return create_app(store=MemoryDocumentStore(), seed=False, network=NetworkMonitor(probe=lambda: False))


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth(client):
    response = client.post("/auth/login", json={"username": "admin", "password": "password123"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def course(client, auth):
    response = client.post("/api/courses", json=COURSE, headers=auth)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def instance(client, auth, course):
    body = {"courseId": course["id"], "date": MONDAY_ISO, "teacherName": "Sarah Johnson"}
    response = client.post("/api/instances", json=body, headers=auth)
    assert response.status_code == 201
    return response.json()


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "X-Process-Time" in response.headers


def test_login_rejects_bad_password(client):
    response = client.post("/auth/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "INVALID_CREDENTIALS"


def test_routes_require_token(client):
    assert client.get("/api/courses").status_code in (401, 403)

    response = client.get("/api/courses", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "INVALID_TOKEN"


def test_token_without_subject(client):
    token = create_access_token({"role": "admin"})
    response = client.get("/api/courses", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"]["message"] == "Token payload is invalid"


def test_course_crud(client, auth, course):
    assert course["dayOfWeek"] == "Monday"
    assert course["classInstanceIds"] == []

    response = client.put(f"/api/courses/{course['id']}", json={"capacity": 30}, headers=auth)
    assert response.status_code == 200
    assert response.json()["capacity"] == 30

    listed = client.get("/api/courses", headers=auth).json()
    assert [c["id"] for c in listed] == [course["id"]]

    assert client.delete(f"/api/courses/{course['id']}", headers=auth).status_code == 200
    response = client.get(f"/api/courses/{course['id']}", headers=auth)
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "RESOURCE_NOT_FOUND"


def test_course_validation(client, auth):
    response = client.post("/api/courses", json={**COURSE, "dayOfWeek": "Funday"}, headers=auth)
    assert response.status_code == 422
    response = client.put("/api/courses/missing", json={"capacity": 3}, headers=auth)
    assert response.status_code == 404


def test_instance_on_wrong_weekday(client, auth, course):
    body = {"courseId": course["id"], "date": TUESDAY_ISO, "teacherName": "Sarah Johnson"}
    response = client.post("/api/instances", json=body, headers=auth)
    assert response.status_code == 422
    assert response.json()["detail"]["message"] == "Selected date must be a Monday"
    assert client.get(f"/api/courses/{course['id']}/instances", headers=auth).json() == []


def test_instance_for_missing_course(client, auth):
    body = {"courseId": "missing", "date": MONDAY_ISO, "teacherName": "Sarah Johnson"}
    assert client.post("/api/instances", json=body, headers=auth).status_code == 404


def test_instance_lifecycle(client, auth, course, instance):
    assert client.get(f"/api/courses/{course['id']}", headers=auth).json()["classInstanceIds"] == [instance["id"]]

    response = client.put(f"/api/instances/{instance['id']}", json={"date": TUESDAY_ISO}, headers=auth)
    assert response.status_code == 422

    response = client.put(f"/api/instances/{instance['id']}", json={"teacherName": "Sam Lee"}, headers=auth)
    assert response.status_code == 200
    assert response.json()["teacherName"] == "Sam Lee"

    assert client.delete(f"/api/instances/{instance['id']}", headers=auth).status_code == 200
    assert client.get(f"/api/instances/{instance['id']}", headers=auth).status_code == 404
    assert client.get(f"/api/courses/{course['id']}", headers=auth).json()["classInstanceIds"] == []


def test_search(client, auth, instance):
    assert len(client.get("/api/search", params={"day": "Monday"}, headers=auth).json()) == 1
    assert len(client.get("/api/search", params={"teacher": "Sar"}, headers=auth).json()) == 1
    assert len(client.get("/api/search", params={"date": "2026-10-19"}, headers=auth).json()) == 1
    assert client.get("/api/search", params={"date": "2026-10-20"}, headers=auth).json() == []


def test_search_parameter_errors(client, auth):
    assert client.get("/api/search", headers=auth).status_code == 400
    assert client.get("/api/search", params={"day": "Monday", "teacher": "Sa"}, headers=auth).status_code == 400
    assert client.get("/api/search", params={"day": "Funday"}, headers=auth).status_code == 422


def test_enrollment_flow(client, auth, instance):
    body = {"userId": "ana", "classInstanceId": instance["id"]}
    assert client.post("/api/enrollments", json=body, headers=auth).status_code == 201

    # capacity is 1
    response = client.post("/api/enrollments", json={**body, "userId": "ben"}, headers=auth)
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "ENROLLMENT_REJECTED"

    enrollments = client.get("/api/users/ana/enrollments", headers=auth).json()
    assert [e["classInstanceId"] for e in enrollments] == [instance["id"]]

    assert client.delete(f"/api/users/ana/enrollments/{instance['id']}", headers=auth).status_code == 200
    assert client.delete(f"/api/users/ana/enrollments/{instance['id']}", headers=auth).status_code == 404


def test_cancelled_class_rejects_enrollment(client, auth, instance):
    assert client.post(f"/api/instances/{instance['id']}/cancel", headers=auth).status_code == 200
    assert client.get(f"/api/instances/{instance['id']}", headers=auth).json()["isCancelled"] is True

    body = {"userId": "ana", "classInstanceId": instance["id"]}
    assert client.post("/api/enrollments", json=body, headers=auth).status_code == 409


def test_notify(client, auth, instance):
    body = {"title": "Room change", "message": "Studio B"}
    assert client.post(f"/api/instances/{instance['id']}/notify", json=body, headers=auth).status_code == 200
    assert client.post("/api/instances/missing/notify", json=body, headers=auth).status_code == 404


def test_bookings(client, auth, instance):
    body = {"email": "ana@example.com", "classInstanceIds": [instance["id"], "other"]}
    response = client.post("/api/bookings", json=body, headers=auth)
    assert response.status_code == 201
    assert response.json()["classInstanceId"] == instance["id"]

    listed = client.get("/api/bookings", params={"email": "ana@example.com"}, headers=auth).json()
    assert [e["classInstanceId"] for e in listed] == [instance["id"], "other"]
    assert len(client.get("/api/bookings", headers=auth).json()) == 1
    assert len(client.get(f"/api/instances/{instance['id']}/bookings", headers=auth).json()) == 1

    response = client.post("/api/bookings", json={"email": "ana@example.com", "classInstanceIds": []}, headers=auth)
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "BAD_REQUEST"


def test_subscriptions(app, client, auth, course):
    fake = FakeMessaging()
    app.state.services.topics = TopicSubscriptions(fake)

    response = client.post(f"/api/courses/{course['id']}/subscriptions", json={"tokens": ["t1"]}, headers=auth)
    assert response.status_code == 200
    response = client.delete(f"/api/courses/{course['id']}/subscriptions", params={"tokens": ["t1"]}, headers=auth)
    assert response.status_code == 200
    assert [call[2] for call in fake.calls] == [f"course_{course['id']}"] * 2


def test_subscription_failure(app, client, auth, course):
    app.state.services.topics = TopicSubscriptions(FakeMessaging(failure_count=1))
    response = client.post(f"/api/courses/{course['id']}/subscriptions", json={"tokens": ["t1"]}, headers=auth)
    assert response.status_code == 503


def test_instructors(client, auth):
    response = client.post("/api/instructors", json={"name": "Sarah Johnson"}, headers=auth)
    assert response.status_code == 201
    instructor_id = response.json()["id"]

    assert client.put(f"/api/instructors/{instructor_id}", json={"bio": "Vinyasa"}, headers=auth).status_code == 200
    assert client.get("/api/instructors", headers=auth).json()[0]["bio"] == "Vinyasa"
    assert client.put("/api/instructors/missing", json={"bio": "x"}, headers=auth).status_code == 404
    assert client.delete(f"/api/instructors/{instructor_id}", headers=auth).status_code == 200


def test_sync_offline(client, auth):
    response = client.post("/api/sync", headers=auth)
    assert response.json() == {"success": False, "message": "No network connection available"}


def test_reset(client, auth, instance):
    assert client.post("/api/reset", headers=auth).status_code == 200
    assert client.get("/api/courses", headers=auth).json() == []


def test_sample_data_seeded_on_startup():
    app = create_app(store=MemoryDocumentStore(), seed=True)
    with TestClient(app) as client:
        token = create_access_token({"sub": "admin"})
        courses = client.get("/api/courses", headers={"Authorization": f"Bearer {token}"}).json()
    assert {c["dayOfWeek"] for c in courses} == {"Monday", "Wednesday", "Saturday"}


def test_cancel_after_course_moves_to_another_day(client, auth, course, instance):
    response = client.put(f"/api/courses/{course['id']}", json={"dayOfWeek": "Tuesday"}, headers=auth)
    assert response.status_code == 200

    assert client.post(f"/api/instances/{instance['id']}/cancel", headers=auth).status_code == 200
    assert client.get(f"/api/instances/{instance['id']}", headers=auth).json()["isCancelled"] is True


def test_delete_missing_records(client, auth):
    response = client.delete("/api/courses/missing", headers=auth)
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "RESOURCE_NOT_FOUND"
    assert client.delete("/api/instructors/missing", headers=auth).status_code == 404


def test_course_form(client, auth):
    fields = {"name": "Evening Yin", "dayOfWeek": "wed", "capacity": "12", "duration": 75, "price": "18"}
    response = client.post("/api/forms/courses", json=fields, headers=auth)
    assert response.status_code == 201
    assert response.json()["dayOfWeek"] == "Wednesday"
    assert response.json()["duration"] == 75

    response = client.post("/api/forms/courses", json={**fields, "capacity": "0", "name": ""}, headers=auth)
    assert response.status_code == 422
    assert response.json()["detail"]["fields"] == {
        "name": "Name is required",
        "capacity": "Capacity must be greater than 0",
    }


def test_class_form(client, auth, course):
    url = f"/api/forms/courses/{course['id']}/instances"
    response = client.post(url, json={"date": "Mon, Oct 19, 2026", "teacherName": "Sarah Johnson"}, headers=auth)
    assert response.status_code == 201
    assert response.json()["courseId"] == course["id"]

    response = client.post(url, json={"date": "Tue, Oct 20, 2026", "teacherName": "Sarah Johnson"}, headers=auth)
    assert response.status_code == 422
    assert response.json()["detail"]["fields"] == {"date": "Selected date must be a Monday"}

    missing = client.post("/api/forms/courses/missing/instances", json={"date": "Mon, Oct 19, 2026"}, headers=auth)
    assert missing.status_code == 404


def test_routes_describe_themselves(app):
    paths = app.openapi()["paths"]
    assert paths["/api/courses"]["get"]["description"] == "Get all courses (requires authentication)"
    assert all(op.get("description") for methods in paths.values() for op in methods.values())
