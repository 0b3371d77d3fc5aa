"""
Интерфейсы (порты) для контекста бронирования.
"""

from __future__ import annotations

from datetime import datetime
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Iterable,
    List,
    Optional,
    Protocol,
    Type,
    TypeVar,
)

from identity.domain import CalendarCredentials
from pydantic import BaseModel
from shared_kernel import DomainEvent, EntityId, TimeRange

if TYPE_CHECKING:
    from .domain import Booking

T_Event = TypeVar("T_Event", bound=DomainEvent)


class ExternalCalendarUnavailableError(Exception):
    """Внешний календарь недоступен (сеть, авторизация, ошибка провайдера)."""

    pass


class ExternalCalendarEvent(BaseModel):
    """Состояние события во внешнем календаре."""

    event_id: str
    starts_at: datetime
    ends_at: datetime


class ILogger(Protocol):
    """Интерфейс для логгера."""

    def info(self, message: str, **kwargs: Any) -> None: ...
    def error(self, message: str, **kwargs: Any) -> None: ...
    def warning(self, message: str, **kwargs: Any) -> None: ...
    def debug(self, message: str, **kwargs: Any) -> None: ...


class IEventBus(Protocol):
    """Интерфейс для шины событий."""

    def publish(self, event: DomainEvent) -> None: ...
    def publish_all(self, events: Iterable[DomainEvent]) -> None: ...
    def subscribe(
        self, event_type: Type[T_Event], handler: Callable[[T_Event], None]
    ) -> None: ...


class IBookingRepository(Protocol):
    """Интерфейс репозитория для бронирований.

    Все запросы ограничены арендатором текущего контекста.
    """

    def save(self, booking: Booking) -> None: ...
    def find_by_id(self, booking_id: EntityId) -> Optional[Booking]: ...
    def find_conflicting(
        self, resource_id: EntityId, time_slot: TimeRange
    ) -> List[Booking]:
        """Подтвержденные бронирования ресурса, пересекающие интервал."""
        ...

    def find_all(self) -> List[Booking]: ...


class ICalendarClient(Protocol):
    """Клиент внешнего календаря."""

    def create_event(
        self, booking: Booking, credentials: CalendarCredentials, label: str
    ) -> str:
        """Создает событие и возвращает его внешний ID."""
        ...

    def cancel_event(self, external_id: str, credentials: CalendarCredentials) -> None: ...

    def is_available(
        self, time_slot: TimeRange, credentials: CalendarCredentials
    ) -> bool: ...

    def get_event(
        self, external_id: str, credentials: CalendarCredentials
    ) -> Optional[ExternalCalendarEvent]:
        """None означает, что событие удалено или не найдено."""
        ...


class IMailer(Protocol):
    """Интерфейс отправки писем."""

    def send(self, to: str, subject: str, body: str) -> None: ...


class IBookingUnitOfWork(Protocol):
    """Интерфейс Unit of Work для контекста Booking."""

    @property
    def bookings(self) -> IBookingRepository: ...
    @property
    def event_bus(self) -> IEventBus: ...

    def commit(self) -> None: ...
    def rollback(self) -> None: ...
