import pytest
from yoga_service.data_service import StudioDataService
from yoga_service.models import ClassInstanceCreate
from yoga_service.network import NetworkMonitor
from yoga_service.sync import DataSyncService, SyncResult

from conftest import MONDAY, FailingStore, make_course

ONLINE = NetworkMonitor(probe=lambda: True)
OFFLINE = NetworkMonitor(probe=lambda: False)


@pytest.mark.asyncio
async def test_sync_offline(data_service):
    result = await DataSyncService(data_service, OFFLINE).sync_all_data()
    assert result == SyncResult(False, "No network connection available")


@pytest.mark.asyncio
async def test_sync_without_courses(data_service):
    result = await DataSyncService(data_service, ONLINE).sync_all_data()
    assert result == SyncResult(True, "No courses to sync")


@pytest.mark.asyncio
async def test_sync_with_courses(data_service):
    sync = DataSyncService(data_service, ONLINE)
    course = await sync.upload_course(make_course())
    instance = await sync.upload_class_instance(
        ClassInstanceCreate(course_id=course.id, date=MONDAY, teacher_name="Sarah Johnson")
    )

    assert instance.course_id == course.id
    assert await sync.sync_all_data() == SyncResult(True, "Data synchronized successfully")
    assert await sync.sync_data()


@pytest.mark.asyncio
async def test_sync_store_failure():
    sync = DataSyncService(StudioDataService(FailingStore(collections={"courses"})), ONLINE)
    assert await sync.sync_all_data() == SyncResult(False, "Failed to retrieve courses")
    assert not await sync.sync_data()
