"""
Синхронизация бронирований с внешним календарем.

Внешний календарь изменяется независимо: пользователь может перенести или
удалить событие напрямую. CalendarSyncService выполняет best-effort
выгрузку и проверку занятости, а CalendarReconciler пакетно приводит
локальные бронирования в соответствие с внешними событиями.
"""

from enum import Enum
from typing import Callable, Iterable, List, Optional

from identity.domain import CalendarCredentials
from identity.interfaces import IUserContext, IUserRepository
from pydantic import BaseModel, Field
from resources.interfaces import IResourceRepository
from shared_kernel import EntityId, TimeRange

from . import interfaces as ports
from .domain import Booking, BookingStatus
from .infrastructure import StructuredLogger

CredentialsProvider = Callable[[], Optional[CalendarCredentials]]


class ReconciliationOutcome(str, Enum):
    """Результат сверки одного бронирования."""

    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


class ReconciliationReport(BaseModel):
    """Итог прохода сверки."""

    examined: int = 0
    cancelled: int = 0
    rescheduled: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    failed_booking_ids: List[EntityId] = Field(default_factory=list)

    @property
    def corrected(self) -> int:
        return self.cancelled + self.rescheduled

    def record(self, outcome: ReconciliationOutcome) -> None:
        """Учитывает результат сверки одного бронирования."""
        if outcome == ReconciliationOutcome.CANCELLED:
            self.cancelled += 1
        elif outcome == ReconciliationOutcome.RESCHEDULED:
            self.rescheduled += 1
        elif outcome == ReconciliationOutcome.UNCHANGED:
            self.unchanged += 1
        elif outcome == ReconciliationOutcome.SKIPPED:
            self.skipped += 1

    def record_failure(self, booking_id: EntityId) -> None:
        self.failed += 1
        self.failed_booking_ids.append(booking_id)


def _same_instant(left, right) -> bool:
    # Сравнение с точностью до секунды: провайдеры календарей отбрасывают доли.
    return int(left.timestamp()) == int(right.timestamp())


class CalendarReconciler:
    """Сверка локальных бронирований с внешним календарем.

    Внешний календарь главный для связанных бронирований: удаление события
    отменяет бронирование, изменение времени переносит его. Ошибка одной
    связки не прерывает проход.
    """

    def __init__(
        self,
        booking_repo: ports.IBookingRepository,
        calendar_client: ports.ICalendarClient,
        credentials_provider: CredentialsProvider,
        logger: Optional[ports.ILogger] = None,
    ):
        self._bookings = booking_repo
        self._calendar = calendar_client
        self._credentials_provider = credentials_provider
        self._logger = logger or StructuredLogger(__name__)

    def reconcile(
        self, bookings: Iterable[Booking], bus: Optional[ports.IEventBus] = None
    ) -> ReconciliationReport:
        report = ReconciliationReport()

        for booking in bookings:
            report.examined += 1
            if not booking.external_event_id:
                report.record(ReconciliationOutcome.SKIPPED)
                continue

            try:
                outcome = self._reconcile_one(booking, bus)
            except Exception as e:
                self._logger.error(
                    "Booking reconciliation failed",
                    booking_id=booking.id,
                    external_event_id=booking.external_event_id,
                    error=str(e),
                )
                report.record_failure(booking.id)
                continue

            report.record(outcome)

        self._logger.info(
            "Calendar reconciliation finished",
            examined=report.examined,
            corrected=report.corrected,
            skipped=report.skipped,
            failed=report.failed,
        )
        return report

    def _reconcile_one(
        self, booking: Booking, bus: Optional[ports.IEventBus]
    ) -> ReconciliationOutcome:
        """Сверяет одно бронирование с внешним событием."""
        credentials = self._credentials_provider()
        if credentials is None:
            return ReconciliationOutcome.SKIPPED

        external = self._calendar.get_event(booking.external_event_id, credentials)

        if external is None:
            if booking.status == BookingStatus.CANCELLED:
                return ReconciliationOutcome.UNCHANGED
            booking.cancel()
            self._persist(booking, bus)
            self._logger.info(
                "Booking cancelled: external event was removed",
                booking_id=booking.id,
                external_event_id=booking.external_event_id,
            )
            return ReconciliationOutcome.CANCELLED

        if booking.status == BookingStatus.CANCELLED:
            return ReconciliationOutcome.UNCHANGED

        local = booking.time_slot
        if _same_instant(external.starts_at, local.starts_at) and _same_instant(
            external.ends_at, local.ends_at
        ):
            return ReconciliationOutcome.UNCHANGED

        booking.reschedule(
            TimeRange(starts_at=external.starts_at, ends_at=external.ends_at)
        )
        self._persist(booking, bus)
        self._logger.info(
            "Booking rescheduled to match external event",
            booking_id=booking.id,
            starts_at=external.starts_at,
            ends_at=external.ends_at,
        )
        return ReconciliationOutcome.RESCHEDULED

    def _persist(self, booking: Booking, bus: Optional[ports.IEventBus]) -> None:
        self._bookings.save(booking)
        events = booking.release_events()
        if bus is not None:
            bus.publish_all(events)


class CalendarSyncService:
    """Сервис синхронизации бронирований с календарем пользователя."""

    def __init__(
        self,
        booking_repo: ports.IBookingRepository,
        resource_repo: IResourceRepository,
        user_repo: IUserRepository,
        calendar_client: ports.ICalendarClient,
        user_context: IUserContext,
        logger: Optional[ports.ILogger] = None,
        unknown_resource_label: str = "Unknown resource",
    ):
        self._bookings = booking_repo
        self._resources = resource_repo
        self._users = user_repo
        self._calendar = calendar_client
        self._user_context = user_context
        self._logger = logger or StructuredLogger(__name__)
        self._unknown_resource_label = unknown_resource_label
        self._reconciler = CalendarReconciler(
            booking_repo=booking_repo,
            calendar_client=calendar_client,
            credentials_provider=self.resolve_credentials,
            logger=self._logger,
        )

    def resolve_credentials(self) -> Optional[CalendarCredentials]:
        """Учетные данные календаря текущего пользователя или None."""
        if not self._user_context.is_authenticated():
            return None

        user = self._users.find_by_id(self._user_context.get_user_id())
        if user is None or not user.has_calendar_connection:
            return None
        return user.calendar_credentials

    def sync_created(self, booking: Booking) -> None:
        """Выгружает новое бронирование во внешний календарь пользователя."""
        credentials = self.resolve_credentials()
        if credentials is None:
            self._logger.debug("Calendar sync skipped: no credentials", booking_id=booking.id)
            return

        resource = self._resources.find_by_id(booking.resource_id)
        label = resource.name if resource is not None else self._unknown_resource_label

        external_id = self._calendar.create_event(booking, credentials, label)
        if external_id:
            booking.set_external_event_id(external_id)
            self._bookings.save(booking)
            self._logger.info(
                "Booking linked to external event",
                booking_id=booking.id,
                external_event_id=external_id,
            )

    def sync_cancelled(self, booking: Booking) -> None:
        """Удаляет событие отмененного бронирования из внешнего календаря."""
        if not booking.external_event_id:
            return

        credentials = self.resolve_credentials()
        if credentials is None:
            return

        self._calendar.cancel_event(booking.external_event_id, credentials)
        self._logger.info(
            "External event removed",
            booking_id=booking.id,
            external_event_id=booking.external_event_id,
        )

    def check_availability(self, time_slot: TimeRange) -> bool:
        """Свободен ли интервал во внешнем календаре.

        Если интеграция недоступна, интервал считается свободным.
        """
        credentials = self.resolve_credentials()
        if credentials is None:
            return True

        try:
            return self._calendar.is_available(time_slot, credentials)
        except ports.ExternalCalendarUnavailableError as e:
            self._logger.warning(
                "External calendar unavailable, availability check skipped",
                error=str(e),
            )
            return True

    def reconcile(
        self, bookings: Iterable[Booking], bus: Optional[ports.IEventBus] = None
    ) -> ReconciliationReport:
        """Сверяет бронирования с внешним календарем."""
        return self._reconciler.reconcile(bookings, bus)
