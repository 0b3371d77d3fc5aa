"""
Конфигурация тестов для pytest: общие фикстуры контекстов и репозиториев.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest
from booking.calendar_sync import CalendarSyncService
from booking.infrastructure import (
    BookingUnitOfWork,
    InMemoryBookingRepository,
    InMemoryCalendarClient,
    InMemoryEventBus,
)
from identity.domain import CalendarCredentials, User
from identity.infrastructure import (
    InMemoryTenantContext,
    InMemoryUserContext,
    InMemoryUserRepository,
)
from resources.domain import Resource
from resources.infrastructure import InMemoryResourceRepository
from shared_kernel import TenantId, TimeRange


@pytest.fixture
def base_time() -> datetime:
    """Понедельник, 09:00 UTC."""
    return datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_range(base_time: datetime) -> Callable[..., TimeRange]:
    """Фабрика интервалов: смещение начала и длительность в минутах от base_time."""

    def factory(start_minutes: int = 0, duration_minutes: int = 60) -> TimeRange:
        starts_at = base_time + timedelta(minutes=start_minutes)
        return TimeRange(
            starts_at=starts_at, ends_at=starts_at + timedelta(minutes=duration_minutes)
        )

    return factory


@pytest.fixture
def tenant_id() -> TenantId:
    return TenantId.from_string("tenant-1")


@pytest.fixture
def other_tenant_id() -> TenantId:
    return TenantId.from_string("tenant-2")


@pytest.fixture
def tenant_context(tenant_id: TenantId) -> InMemoryTenantContext:
    return InMemoryTenantContext(tenant_id)


@pytest.fixture
def booking_repo(tenant_context: InMemoryTenantContext) -> InMemoryBookingRepository:
    return InMemoryBookingRepository(tenant_context)


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def uow(tenant_context, booking_repo, event_bus) -> BookingUnitOfWork:
    return BookingUnitOfWork(tenant_context, bookings_repo=booking_repo, event_bus=event_bus)


@pytest.fixture
def credentials() -> CalendarCredentials:
    return CalendarCredentials(access_token="token-abc")


@pytest.fixture
def user(tenant_id: TenantId, credentials: CalendarCredentials) -> User:
    return User(
        tenant_id=tenant_id,
        email="anna@example.com",
        name="Анна",
        calendar_credentials=credentials,
    )


@pytest.fixture
def users(user: User) -> InMemoryUserRepository:
    repo = InMemoryUserRepository()
    repo.save(user)
    return repo


@pytest.fixture
def user_context(user: User) -> InMemoryUserContext:
    return InMemoryUserContext(user)


@pytest.fixture
def resources(tenant_context: InMemoryTenantContext) -> InMemoryResourceRepository:
    return InMemoryResourceRepository(tenant_context)


@pytest.fixture
def resource(resources: InMemoryResourceRepository, tenant_id: TenantId) -> Resource:
    room = Resource(tenant_id=tenant_id, name="Переговорная «Нева»", description="8 мест")
    resources.save(room)
    return room


@pytest.fixture
def calendar_client() -> InMemoryCalendarClient:
    return InMemoryCalendarClient()


@pytest.fixture
def calendar_sync(
    booking_repo, resources, users, calendar_client, user_context
) -> CalendarSyncService:
    return CalendarSyncService(
        booking_repo=booking_repo,
        resource_repo=resources,
        user_repo=users,
        calendar_client=calendar_client,
        user_context=user_context,
    )
