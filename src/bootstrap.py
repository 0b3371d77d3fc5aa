import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from booking.application import BookingApplicationService
from booking.calendar_sync import CalendarSyncService
from booking.domain import (
    BookingCancelled,
    BookingCreated,
    BookingEvent,
    CancellationPolicy,
)
from booking.event_handlers import (
    BookingAuditHandler,
    RemoveBookingFromCalendarHandler,
    SendBookingConfirmationHandler,
    SyncBookingToCalendarHandler,
)
from booking.infrastructure import (
    BookingUnitOfWork,
    InMemoryCalendarClient,
    LoggingMailer,
)
from booking.interfaces import ICalendarClient, IMailer
from identity.infrastructure import (
    InMemoryTenantContext,
    InMemoryUserContext,
    InMemoryUserRepository,
)
from resources.application import ResourceApplicationService
from resources.infrastructure import InMemoryResourceRepository
from settings import BookingSettings, get_settings
from shared_kernel import now


def configure_logging(level: str = "INFO") -> None:
    """Настраивает корневой логгер стандартной библиотеки."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def bootstrap_app(
    settings: Optional[BookingSettings] = None,
    calendar_client: Optional[ICalendarClient] = None,
    mailer: Optional[IMailer] = None,
    clock: Callable[[], datetime] = now,
) -> Dict[str, Any]:
    """Создает и настраивает все компоненты приложения."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    # 1. Контекст запроса и репозитории
    tenant_context = InMemoryTenantContext()
    user_context = InMemoryUserContext()
    users = InMemoryUserRepository()
    resources = InMemoryResourceRepository(tenant_context)
    booking_uow = BookingUnitOfWork(tenant_context)
    calendar_client = calendar_client or InMemoryCalendarClient()
    mailer = mailer or LoggingMailer()
    bus = booking_uow.event_bus

    # 2. Интеграция с внешним календарем
    calendar_sync = None
    if settings.calendar_sync_enabled:
        calendar_sync = CalendarSyncService(
            booking_repo=booking_uow.bookings,
            resource_repo=resources,
            user_repo=users,
            calendar_client=calendar_client,
            user_context=user_context,
            unknown_resource_label=settings.unknown_resource_label,
        )
        bus.subscribe(
            BookingCreated,
            SyncBookingToCalendarHandler(calendar_sync, booking_uow.bookings),
        )
        bus.subscribe(
            BookingCancelled,
            RemoveBookingFromCalendarHandler(calendar_sync, booking_uow.bookings),
        )

    # 3. Уведомления и аудит
    if settings.notifications_enabled:
        bus.subscribe(
            BookingCreated,
            SendBookingConfirmationHandler(
                mailer=mailer,
                resource_repo=resources,
                user_repo=users,
                user_context=user_context,
                fallback_recipient=settings.notification_fallback_recipient,
                unknown_resource_label=settings.unknown_resource_label,
            ),
        )
    bus.subscribe(BookingEvent, BookingAuditHandler())

    # 4. Сервисы приложения
    booking_service = BookingApplicationService(
        uow=booking_uow,
        tenant_context=tenant_context,
        cancellation_policy=CancellationPolicy(settings.cancellation_min_lead_hours),
        calendar_sync=calendar_sync,
        clock=clock,
    )
    resource_service = ResourceApplicationService(resources, tenant_context)

    return {
        "settings": settings,
        "tenant_context": tenant_context,
        "user_context": user_context,
        "users": users,
        "resources": resources,
        "booking_uow": booking_uow,
        "calendar_client": calendar_client,
        "calendar_sync": calendar_sync,
        "mailer": mailer,
        "booking_service": booking_service,
        "resource_service": resource_service,
    }
