# yoga_service/sync.py
import logging
from dataclasses import dataclass
from typing import Optional

from .data_service import StudioDataService
from .models import ClassInstance, ClassInstanceCreate, Course, CourseCreate
from .network import NetworkMonitor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    success: bool
    message: str


class DataSyncService:
    def __init__(self, data_service: StudioDataService, network: Optional[NetworkMonitor] = None):
        self.data_service = data_service
        self.network = network or NetworkMonitor()

    async def sync_all_data(self) -> SyncResult:
        if not await self.network.is_online():
            return SyncResult(False, "No network connection available")

        courses = await self.data_service.refresh_courses()
        if courses is None:
            return SyncResult(False, "Failed to retrieve courses")
        if not courses:
            return SyncResult(True, "No courses to sync")

        instances = await self.data_service.join_class_instances(courses)
        logger.info(f"Synchronized {len(courses)} courses and {len(instances)} class instances")
        return SyncResult(True, "Data synchronized successfully")

    async def upload_course(self, course_data: CourseCreate) -> Optional[Course]:
        return await self.data_service.add_course(course_data)

    async def upload_class_instance(self, instance_data: ClassInstanceCreate) -> Optional[ClassInstance]:
        return await self.data_service.add_class_instance(instance_data)

    async def sync_data(self) -> bool:
        return await self.data_service.refresh_courses() is not None
