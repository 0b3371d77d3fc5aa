"""
Доменная модель контекста бронирования.

Содержит агрегат бронирования, его доменные события, политику отмены
и доменный сервис проверки конфликтов по времени.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, PrivateAttr
from shared_kernel import (
    DomainEvent,
    DomainException,
    EntityId,
    TenantId,
    TimeRange,
    now,
)

from .interfaces import IBookingRepository


class BookingStatus(str, Enum):
    """Статусы бронирования."""

    CONFIRMED = "confirmed"
    # Зарезервирован под будущий сценарий согласования, переходов нет.
    PENDING = "pending"
    CANCELLED = "cancelled"


# Исключения контекста бронирования
class BookingException(DomainException):
    """Базовое исключение для ошибок бронирования."""

    pass


class InvalidBookingStateError(BookingException):
    """Операция недопустима в текущем статусе бронирования."""

    def __init__(
        self,
        current_status: BookingStatus,
        attempted_operation: str,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message
            or f"Невозможно выполнить '{attempted_operation}' "
            f"для бронирования в статусе {current_status.value}"
        )
        self.current_status = current_status
        self.attempted_operation = attempted_operation

    @classmethod
    def already_cancelled(cls, attempted_operation: str) -> "InvalidBookingStateError":
        return cls(
            BookingStatus.CANCELLED, attempted_operation, "Бронирование уже отменено"
        )


class BookingConflictError(BookingException):
    """Интервал пересекается с другим бронированием или занят во внешнем календаре."""

    def __init__(
        self,
        message: str = "Интервал уже забронирован",
        resource_id: Optional[EntityId] = None,
        starts_at: Optional[datetime] = None,
        ends_at: Optional[datetime] = None,
    ) -> None:
        super().__init__(message)
        self.resource_id = resource_id
        self.starts_at = starts_at
        self.ends_at = ends_at

    @classmethod
    def for_time_slot(
        cls, resource_id: EntityId, time_slot: TimeRange
    ) -> "BookingConflictError":
        return cls(
            f"Ресурс {resource_id} уже забронирован с "
            f"{time_slot.starts_at:%Y-%m-%d %H:%M} до {time_slot.ends_at:%Y-%m-%d %H:%M}",
            resource_id=resource_id,
            starts_at=time_slot.starts_at,
            ends_at=time_slot.ends_at,
        )

    @classmethod
    def busy_externally(cls, time_slot: TimeRange) -> "BookingConflictError":
        return cls(
            "Интервал отмечен как занятый во внешнем календаре",
            starts_at=time_slot.starts_at,
            ends_at=time_slot.ends_at,
        )


class BookingNotFoundError(BookingException):
    """Бронирование не найдено.

    Чужой арендатор неотличим от отсутствия, чтобы не раскрывать существование.
    """

    def __init__(self, booking_id: EntityId) -> None:
        super().__init__(f"Бронирование {booking_id} не найдено")
        self.booking_id = booking_id


class CancellationNotAllowedError(BookingException):
    """Отмена запрещена политикой (слишком близко к началу)."""

    def __init__(self, minimum_lead_hours: int) -> None:
        super().__init__(
            "Отмена невозможна: бронирование нужно отменять не позднее чем за "
            f"{minimum_lead_hours} ч. до начала"
        )
        self.minimum_lead_hours = minimum_lead_hours


# Доменные события
class BookingEvent(DomainEvent):
    """Общая категория событий бронирования."""

    booking_id: EntityId
    tenant_id: TenantId


class BookingCreated(BookingEvent):
    """Событие создания бронирования."""

    resource_id: EntityId
    starts_at: datetime
    ends_at: datetime


class BookingRescheduled(BookingEvent):
    """Событие переноса бронирования."""

    old_starts_at: datetime
    old_ends_at: datetime
    new_starts_at: datetime
    new_ends_at: datetime


class BookingCancelled(BookingEvent):
    """Событие отмены бронирования."""

    pass


class Booking(BaseModel):
    """Бронирование ресурса на интервал времени (корень агрегата).

    Новое бронирование создается только через ``create``; загрузка из
    хранилища идет через ``reconstitute`` и не порождает событий.
    """

    id: EntityId
    tenant_id: TenantId
    resource_id: EntityId
    time_slot: TimeRange
    status: BookingStatus = BookingStatus.CONFIRMED
    created_at: datetime = Field(default_factory=now)
    external_event_id: Optional[str] = None
    _domain_events: List[DomainEvent] = PrivateAttr(default_factory=list)

    @classmethod
    def create(
        cls,
        id: EntityId,
        tenant_id: TenantId,
        resource_id: EntityId,
        time_slot: TimeRange,
    ) -> "Booking":
        """Создает новое подтвержденное бронирование."""
        booking = cls(
            id=id,
            tenant_id=tenant_id,
            resource_id=resource_id,
            time_slot=time_slot,
            status=BookingStatus.CONFIRMED,
        )
        booking._record(
            BookingCreated(
                booking_id=id,
                tenant_id=tenant_id,
                resource_id=resource_id,
                starts_at=time_slot.starts_at,
                ends_at=time_slot.ends_at,
            )
        )
        return booking

    @classmethod
    def reconstitute(
        cls,
        id: EntityId,
        tenant_id: TenantId,
        resource_id: EntityId,
        time_slot: TimeRange,
        status: BookingStatus,
        created_at: datetime,
        external_event_id: Optional[str] = None,
    ) -> "Booking":
        """Восстанавливает бронирование из хранилища без событий."""
        return cls(
            id=id,
            tenant_id=tenant_id,
            resource_id=resource_id,
            time_slot=time_slot,
            status=status,
            created_at=created_at,
            external_event_id=external_event_id,
        )

    @property
    def is_active(self) -> bool:
        return self.status != BookingStatus.CANCELLED

    def reschedule(self, new_time_slot: TimeRange) -> None:
        """Переносит бронирование на новый интервал."""
        if self.status == BookingStatus.CANCELLED:
            raise InvalidBookingStateError.already_cancelled("reschedule")

        old_time_slot = self.time_slot
        self.time_slot = new_time_slot
        self._record(
            BookingRescheduled(
                booking_id=self.id,
                tenant_id=self.tenant_id,
                old_starts_at=old_time_slot.starts_at,
                old_ends_at=old_time_slot.ends_at,
                new_starts_at=new_time_slot.starts_at,
                new_ends_at=new_time_slot.ends_at,
            )
        )

    def cancel(self) -> None:
        """Отменяет бронирование. Повторная отмена запрещена."""
        if self.status == BookingStatus.CANCELLED:
            raise InvalidBookingStateError.already_cancelled("cancel")

        self.status = BookingStatus.CANCELLED
        self._record(BookingCancelled(booking_id=self.id, tenant_id=self.tenant_id))

    def overlaps(self, other: "Booking") -> bool:
        """Пересекается ли с другим активным бронированием того же ресурса."""
        if not self.is_active or not other.is_active:
            return False
        if self.resource_id != other.resource_id:
            return False
        return self.time_slot.overlaps(other.time_slot)

    def set_external_event_id(self, external_event_id: str) -> None:
        # Привязка к внешнему календарю не является доменным событием.
        self.external_event_id = external_event_id

    @property
    def pending_events(self) -> List[DomainEvent]:
        return list(self._domain_events)

    def release_events(self) -> List[DomainEvent]:
        """Извлекает накопленные события и очищает буфер.

        Вызывается ровно один раз на каждое сохраненное изменение.
        """
        events = list(self._domain_events)
        self._domain_events.clear()
        return events

    def _record(self, event: DomainEvent) -> None:
        self._domain_events.append(event)

    def __hash__(self):
        return hash(self.id)

    def __eq__(self, other):
        if not isinstance(other, Booking):
            return NotImplemented
        return self.id == other.id


class CancellationPolicy:
    """Политика отмены: не позднее чем за N часов до начала."""

    def __init__(self, minimum_lead_hours: int):
        if minimum_lead_hours < 0:
            raise ValueError("Минимальный срок отмены не может быть отрицательным")
        self.minimum_lead_hours = minimum_lead_hours

    def allows_cancellation(self, booking_start: datetime, current_time: datetime) -> bool:
        """Разрешена ли отмена бронирования с началом booking_start в момент current_time."""
        # Начавшееся (или начинающееся прямо сейчас) бронирование не отменить.
        if booking_start <= current_time:
            return False

        cutoff = current_time + timedelta(hours=self.minimum_lead_hours)
        return booking_start >= cutoff


class BookingService:
    """Доменный сервис проверки доступности ресурса."""

    def __init__(self, booking_repository: IBookingRepository):
        self.booking_repository = booking_repository

    def find_conflicts(self, resource_id: EntityId, time_slot: TimeRange) -> List[Booking]:
        return self.booking_repository.find_conflicting(resource_id, time_slot)

    def is_resource_available(self, resource_id: EntityId, time_slot: TimeRange) -> bool:
        """Проверяет, свободен ли ресурс на указанный интервал."""
        return not self.find_conflicts(resource_id, time_slot)

    def ensure_available(self, resource_id: EntityId, time_slot: TimeRange) -> None:
        """Бросает BookingConflictError, если есть подтвержденные пересечения."""
        if not self.is_resource_available(resource_id, time_slot):
            raise BookingConflictError.for_time_slot(resource_id, time_slot)
