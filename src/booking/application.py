"""
Прикладной слой контекста бронирования.

Содержит сервисы приложения, которые координируют
взаимодействие между внешними интерфейсами и доменной моделью.
"""

from datetime import datetime
from typing import Callable, List, Optional

from identity.interfaces import ITenantContext
from pydantic import BaseModel
from shared_kernel import EntityId, TimeRange, generate_id, now

from . import interfaces as ports
from .calendar_sync import CalendarSyncService, ReconciliationReport
from .domain import (
    Booking,
    BookingConflictError,
    BookingNotFoundError,
    BookingService,
    BookingStatus,
    CancellationNotAllowedError,
    CancellationPolicy,
)
from .infrastructure import StructuredLogger

# DTO (Data Transfer Objects) для входящих данных


class CreateBookingRequest(BaseModel):
    """Запрос на создание бронирования."""

    resource_id: EntityId
    starts_at: datetime
    ends_at: datetime


class CancelBookingRequest(BaseModel):
    """Запрос на отмену бронирования."""

    booking_id: EntityId


# DTO для исходящих данных


class BookingDTO(BaseModel):
    """DTO для представления бронирования."""

    id: EntityId
    tenant_id: str
    resource_id: EntityId
    starts_at: datetime
    ends_at: datetime
    duration_minutes: int
    status: BookingStatus
    created_at: str
    external_event_id: Optional[str]

    @classmethod
    def from_domain(cls, booking: Booking) -> "BookingDTO":
        """Создает DTO из доменной модели."""
        return cls(
            id=booking.id,
            tenant_id=str(booking.tenant_id),
            resource_id=booking.resource_id,
            starts_at=booking.time_slot.starts_at,
            ends_at=booking.time_slot.ends_at,
            duration_minutes=booking.time_slot.duration_minutes(),
            status=booking.status,
            created_at=booking.created_at.isoformat(),
            external_event_id=booking.external_event_id,
        )


# Сервисы приложения


class BookingApplicationService:
    """Сервис приложения для работы с бронированиями."""

    def __init__(
        self,
        uow: ports.IBookingUnitOfWork,
        tenant_context: ITenantContext,
        cancellation_policy: CancellationPolicy,
        calendar_sync: Optional[CalendarSyncService] = None,
        clock: Callable[[], datetime] = now,
        logger: Optional[ports.ILogger] = None,
    ):
        """Инициализирует сервис."""
        self._uow = uow
        self._tenant_context = tenant_context
        self._cancellation_policy = cancellation_policy
        self._calendar_sync = calendar_sync
        self._clock = clock
        self._logger = logger or StructuredLogger(__name__)
        self._booking_service = BookingService(self._uow.bookings)

    @property
    def uow(self) -> ports.IBookingUnitOfWork:
        return self._uow

    def create_booking(self, request: CreateBookingRequest) -> BookingDTO:
        """Создает новое бронирование."""
        try:
            tenant_id = self._tenant_context.get_tenant_id()
            time_slot = TimeRange(starts_at=request.starts_at, ends_at=request.ends_at)

            # Внутренние пересечения проверяются первыми и имеют приоритет
            self._booking_service.ensure_available(request.resource_id, time_slot)

            # Внешняя занятость - дополнительное, более мягкое вето
            if self._calendar_sync is not None:
                if not self._calendar_sync.check_availability(time_slot):
                    raise BookingConflictError.busy_externally(time_slot)

            booking = Booking.create(
                id=generate_id(),
                tenant_id=tenant_id,
                resource_id=request.resource_id,
                time_slot=time_slot,
            )

            self._uow.bookings.save(booking)
            self._uow.commit()

        except Exception:
            self._uow.rollback()
            raise

        self._logger.info(
            "Booking created",
            booking_id=booking.id,
            resource_id=booking.resource_id,
            tenant_id=tenant_id,
        )
        self._uow.event_bus.publish_all(booking.release_events())
        # Обработчики событий могли обновить сохраненное бронирование
        return BookingDTO.from_domain(self._load_owned(booking.id))

    def cancel_booking(self, request: CancelBookingRequest) -> BookingDTO:
        """Отменяет бронирование."""
        try:
            booking = self._load_owned(request.booking_id)

            if not self._cancellation_policy.allows_cancellation(
                booking.time_slot.starts_at, self._clock()
            ):
                raise CancellationNotAllowedError(
                    self._cancellation_policy.minimum_lead_hours
                )

            booking.cancel()

            self._uow.bookings.save(booking)
            self._uow.commit()

        except Exception:
            self._uow.rollback()
            raise

        self._logger.info("Booking cancelled", booking_id=booking.id)
        self._uow.event_bus.publish_all(booking.release_events())
        return BookingDTO.from_domain(self._load_owned(booking.id))

    def get_booking(self, booking_id: EntityId) -> BookingDTO:
        """Возвращает информацию о бронировании."""
        return BookingDTO.from_domain(self._load_owned(booking_id))

    def list_bookings(self) -> List[BookingDTO]:
        """Возвращает бронирования текущего арендатора."""
        return [BookingDTO.from_domain(b) for b in self._uow.bookings.find_all()]

    def reconcile_calendar(self) -> ReconciliationReport:
        """Сверяет связанные бронирования арендатора с внешним календарем."""
        if self._calendar_sync is None:
            return ReconciliationReport()
        return self._calendar_sync.reconcile(
            self._uow.bookings.find_all(), self._uow.event_bus
        )

    def _load_owned(self, booking_id: EntityId) -> Booking:
        booking = self._uow.bookings.find_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)

        # Чужое бронирование выглядит так же, как отсутствующее
        if booking.tenant_id != self._tenant_context.get_tenant_id():
            raise BookingNotFoundError(booking_id)
        return booking
