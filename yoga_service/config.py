# yoga_service/config.py
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Storage backend: "memory" or "firestore"
STORE_BACKEND = os.getenv("STORE_BACKEND", "memory").lower()
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
SEED_SAMPLE_DATA = os.getenv("SEED_SAMPLE_DATA", "true").lower() in ("1", "true", "yes")

# Collections
COURSES_COLLECTION = "courses"
CLASS_INSTANCES_COLLECTION = "classInstances"
ENROLLMENTS_COLLECTION = "enrollments"
BOOKINGS_COLLECTION = "bookings"
INSTRUCTORS_COLLECTION = "instructors"
NOTIFICATIONS_COLLECTION = "notifications"

# Weekdays and day ranges are derived in this timezone
STUDIO_TIMEZONE = os.getenv("STUDIO_TIMEZONE", "UTC")

COURSE_CACHE_TTL_SECONDS = float(os.getenv("COURSE_CACHE_TTL_SECONDS", "300"))

# Connectivity probe
CONNECTIVITY_PROBE_URL = os.getenv("CONNECTIVITY_PROBE_URL", "https://www.google.com")
CONNECTIVITY_TIMEOUT_SECONDS = float(os.getenv("CONNECTIVITY_TIMEOUT_SECONDS", "5"))

# Push notifications
COURSE_TOPIC_PREFIX = "course_"
NOTIFICATION_CHANNEL_ID = os.getenv("NOTIFICATION_CHANNEL_ID", "yoga_studio_notifications")
NOTIFICATION_CHANNEL_NAME = os.getenv("NOTIFICATION_CHANNEL_NAME", "Yoga Studio Notifications")

# Gateway JWT
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn("SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2)
    SECRET_KEY = "yoga-studio-dev-key-change-in-production"
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))


def _parse_users(raw: str) -> dict:
    users = {}
    for pair in raw.split(","):
        username, _, password = pair.strip().partition(":")
        if username and password:
            users[username] = password
    return users


# "user:password" pairs accepted by /auth/login
GATEWAY_USERS = _parse_users(os.getenv("GATEWAY_USERS", "admin:password123"))
GATEWAY_LOG_FILE = os.getenv("GATEWAY_LOG_FILE")
