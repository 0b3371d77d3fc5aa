"""
Обработчики доменных событий контекста бронирования.

Все обработчики побочных эффектов сами перехватывают и журналируют свои
ошибки: шина не изолирует обработчики, а сбой интеграции не должен
влиять на результат бронирования.
"""

from typing import Optional

from identity.interfaces import IUserContext, IUserRepository
from resources.interfaces import IResourceRepository

from . import interfaces as ports
from .calendar_sync import CalendarSyncService
from .domain import BookingCancelled, BookingCreated, BookingEvent
from .infrastructure import StructuredLogger


class SyncBookingToCalendarHandler:
    """Выгружает новое бронирование во внешний календарь."""

    def __init__(
        self,
        calendar_sync: CalendarSyncService,
        booking_repo: ports.IBookingRepository,
        logger: Optional[ports.ILogger] = None,
    ):
        self._calendar_sync = calendar_sync
        self._bookings = booking_repo
        self._logger = logger or StructuredLogger(__name__)

    def __call__(self, event: BookingCreated) -> None:
        try:
            booking = self._bookings.find_by_id(event.booking_id)
            if booking is None:
                # Бронирование удалено до запуска обработчика
                return
            self._calendar_sync.sync_created(booking)
        except Exception as e:
            self._logger.error(
                "Failed to push booking to external calendar",
                booking_id=event.booking_id,
                error=str(e),
            )


class RemoveBookingFromCalendarHandler:
    """Удаляет отмененное бронирование из внешнего календаря."""

    def __init__(
        self,
        calendar_sync: CalendarSyncService,
        booking_repo: ports.IBookingRepository,
        logger: Optional[ports.ILogger] = None,
    ):
        self._calendar_sync = calendar_sync
        self._bookings = booking_repo
        self._logger = logger or StructuredLogger(__name__)

    def __call__(self, event: BookingCancelled) -> None:
        try:
            booking = self._bookings.find_by_id(event.booking_id)
            if booking is None:
                return
            self._calendar_sync.sync_cancelled(booking)
        except Exception as e:
            self._logger.error(
                "Failed to remove external calendar event",
                booking_id=event.booking_id,
                error=str(e),
            )


class SendBookingConfirmationHandler:
    """Отправляет письмо с подтверждением бронирования."""

    def __init__(
        self,
        mailer: ports.IMailer,
        resource_repo: IResourceRepository,
        user_repo: IUserRepository,
        user_context: IUserContext,
        fallback_recipient: Optional[str] = None,
        unknown_resource_label: str = "Unknown resource",
        logger: Optional[ports.ILogger] = None,
    ):
        self._mailer = mailer
        self._resources = resource_repo
        self._users = user_repo
        self._user_context = user_context
        self._fallback_recipient = fallback_recipient
        self._unknown_resource_label = unknown_resource_label
        self._logger = logger or StructuredLogger(__name__)

    def _recipient(self) -> Optional[tuple]:
        if self._user_context.is_authenticated():
            user = self._users.find_by_id(self._user_context.get_user_id())
            if user is not None:
                return user.email, user.name
        if self._fallback_recipient:
            user = self._users.find_by_email(self._fallback_recipient)
            return self._fallback_recipient, user.name if user else self._fallback_recipient
        return None

    def __call__(self, event: BookingCreated) -> None:
        try:
            recipient = self._recipient()
            if recipient is None:
                return
            email, name = recipient

            resource = self._resources.find_by_id(event.resource_id)
            resource_name = resource.name if resource else self._unknown_resource_label

            subject = f"Бронирование подтверждено: {resource_name}"
            body = (
                f"Здравствуйте, {name}!\n\n"
                f"Ваше бронирование ресурса «{resource_name}» подтверждено.\n"
                f"Начало: {event.starts_at:%Y-%m-%d %H:%M}\n"
                f"Окончание: {event.ends_at:%Y-%m-%d %H:%M}\n"
            )
            self._mailer.send(email, subject, body)
        except Exception as e:
            self._logger.error(
                "Failed to send booking confirmation",
                booking_id=event.booking_id,
                error=str(e),
            )


class BookingAuditHandler:
    """Журналирует все события бронирования (подписан на общую категорию)."""

    def __init__(self, logger: Optional[ports.ILogger] = None):
        self._logger = logger or StructuredLogger("booking.audit")

    def __call__(self, event: BookingEvent) -> None:
        self._logger.info(
            f"Booking event: {event.event_type}",
            booking_id=event.booking_id,
            tenant_id=event.tenant_id,
            event_id=event.event_id,
        )
