"""
Инфраструктурный слой контекста бронирования.

Содержит реализации репозиториев и других интерфейсов,
зависимые от конкретных технологий (хранилище, внешние сервисы и т.д.).
"""

import json
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Type
from uuid import uuid4

from identity.domain import CalendarCredentials
from identity.interfaces import ITenantContext
from shared_kernel import DomainEvent, EntityId, TimeRange

from . import interfaces as ports
from .domain import Booking, BookingConflictError, BookingStatus


class StructuredLogger(ports.ILogger):
    """Логгер поверх стандартного logging: контекст выводится в виде JSON."""

    def __init__(self, name: str = "booking"):
        self._logger = logging.getLogger(name)

    @staticmethod
    def _format(message: str, context: Dict[str, Any]) -> str:
        if not context:
            return message
        return f"{message} | " + json.dumps(
            context, default=str, ensure_ascii=False, sort_keys=True
        )

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(self._format(message, kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(self._format(message, kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._format(message, kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(self._format(message, kwargs))


class InMemoryEventBus(ports.IEventBus):
    """Синхронная шина событий в памяти.

    Обработчики вызываются прямо в потоке публикующего кода: сначала
    подписанные на точный тип события, затем на каждый из его супертипов
    (в порядке MRO). Исключение обработчика прерывает публикацию и
    пробрасывается вызывающему.
    """

    def __init__(self, logger: Optional[ports.ILogger] = None):
        self._subscribers: Dict[Type[DomainEvent], List[Callable]] = {}
        self._logger = logger or StructuredLogger(__name__)

    def subscribe(self, event_type: Type[DomainEvent], handler: Callable) -> None:
        """Подписывает обработчик на события указанного типа и его подтипов."""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)
        self._logger.debug(f"Subscribed handler to {event_type.__name__} events")

    def handlers_for(self, event_type: Type[DomainEvent]) -> List[Callable]:
        handlers = list(self._subscribers.get(event_type, []))
        for supertype in event_type.__mro__[1:]:
            handlers.extend(self._subscribers.get(supertype, []))
        return handlers

    def publish(self, event: DomainEvent) -> None:
        """Публикует событие."""
        handlers = self.handlers_for(type(event))
        if not handlers:
            self._logger.debug(f"No subscribers for event type {event.event_type}")
            return

        self._logger.info(
            f"Publishing event: {event.event_type}",
            event_id=event.event_id,
            handlers=len(handlers),
        )
        for handler in handlers:
            handler(event)

    def publish_all(self, events: Iterable[DomainEvent]) -> None:
        for event in events:
            self.publish(event)

    def handler_count(self, event_type: Type[DomainEvent]) -> int:
        """Сколько обработчиков получит событие этого типа, включая подписчиков супертипов."""
        return len(self.handlers_for(event_type))

    def clear(self) -> None:
        self._subscribers.clear()


class InMemoryBookingRepository(ports.IBookingRepository):
    """Реализация репозитория бронирований в памяти.

    Хранит снимки агрегатов, а не сами объекты: изменения становятся видны
    только после save, а загруженные бронирования не несут событий.
    Сохранение под блокировкой проверяет ограничение исключения: два
    подтвержденных бронирования одного ресурса не могут пересекаться.
    """

    def __init__(self, tenant_context: ITenantContext):
        self._tenant_context = tenant_context
        self._bookings: Dict[EntityId, Booking] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _snapshot(booking: Booking) -> Booking:
        return Booking.reconstitute(
            id=booking.id,
            tenant_id=booking.tenant_id,
            resource_id=booking.resource_id,
            time_slot=booking.time_slot,
            status=booking.status,
            created_at=booking.created_at,
            external_event_id=booking.external_event_id,
        )

    def _tenant_bookings(self) -> List[Booking]:
        tenant_id = self._tenant_context.get_tenant_id()
        with self._lock:
            return [b for b in self._bookings.values() if b.tenant_id == tenant_id]

    def save(self, booking: Booking) -> None:
        snapshot = self._snapshot(booking)
        with self._lock:
            if snapshot.status == BookingStatus.CONFIRMED:
                for stored in self._bookings.values():
                    if (
                        stored.id != snapshot.id
                        and stored.tenant_id == snapshot.tenant_id
                        and stored.status == BookingStatus.CONFIRMED
                        and stored.overlaps(snapshot)
                    ):
                        raise BookingConflictError.for_time_slot(
                            snapshot.resource_id, snapshot.time_slot
                        )
            self._bookings[snapshot.id] = snapshot

    def find_by_id(self, booking_id: EntityId) -> Optional[Booking]:
        tenant_id = self._tenant_context.get_tenant_id()
        with self._lock:
            stored = self._bookings.get(booking_id)
        if stored is None or stored.tenant_id != tenant_id:
            return None
        return self._snapshot(stored)

    def find_conflicting(
        self, resource_id: EntityId, time_slot: TimeRange
    ) -> List[Booking]:
        return [
            self._snapshot(booking)
            for booking in self._tenant_bookings()
            if booking.resource_id == resource_id
            and booking.status == BookingStatus.CONFIRMED
            and booking.time_slot.overlaps(time_slot)
        ]

    def find_all(self) -> List[Booking]:
        bookings = sorted(
            self._tenant_bookings(),
            key=lambda b: b.time_slot.starts_at,
            reverse=True,
        )
        return [self._snapshot(b) for b in bookings]


class InMemoryCalendarClient(ports.ICalendarClient):
    """Внешний календарь в памяти для тестов и локального запуска.

    Методы move_event, delete_event и mark_busy имитируют правки,
    которые пользователь делает напрямую во внешнем календаре.
    """

    def __init__(self) -> None:
        self._events: Dict[str, ports.ExternalCalendarEvent] = {}
        self._labels: Dict[str, str] = {}
        self._busy: List[TimeRange] = []
        self._revoked_tokens: Set[str] = set()

    def _authorize(self, credentials: CalendarCredentials) -> None:
        if credentials.access_token in self._revoked_tokens:
            raise ports.ExternalCalendarUnavailableError(
                "Токен доступа к календарю отозван"
            )

    def create_event(
        self, booking: Booking, credentials: CalendarCredentials, label: str
    ) -> str:
        self._authorize(credentials)
        external_id = f"evt-{uuid4().hex[:12]}"
        self._events[external_id] = ports.ExternalCalendarEvent(
            event_id=external_id,
            starts_at=booking.time_slot.starts_at,
            ends_at=booking.time_slot.ends_at,
        )
        self._labels[external_id] = label
        return external_id

    def cancel_event(self, external_id: str, credentials: CalendarCredentials) -> None:
        self._authorize(credentials)
        self._events.pop(external_id, None)
        self._labels.pop(external_id, None)

    def is_available(self, time_slot: TimeRange, credentials: CalendarCredentials) -> bool:
        self._authorize(credentials)
        busy = self._busy + [
            TimeRange(starts_at=e.starts_at, ends_at=e.ends_at)
            for e in self._events.values()
        ]
        return not any(slot.overlaps(time_slot) for slot in busy)

    def get_event(
        self, external_id: str, credentials: CalendarCredentials
    ) -> Optional[ports.ExternalCalendarEvent]:
        self._authorize(credentials)
        return self._events.get(external_id)

    def label_of(self, external_id: str) -> Optional[str]:
        return self._labels.get(external_id)

    def move_event(self, external_id: str, time_slot: TimeRange) -> None:
        self._events[external_id] = ports.ExternalCalendarEvent(
            event_id=external_id,
            starts_at=time_slot.starts_at,
            ends_at=time_slot.ends_at,
        )

    def delete_event(self, external_id: str) -> None:
        self._events.pop(external_id, None)

    def mark_busy(self, time_slot: TimeRange) -> None:
        self._busy.append(time_slot)

    def revoke_token(self, access_token: str) -> None:
        self._revoked_tokens.add(access_token)


class LoggingMailer(ports.IMailer):
    """Почтовый адаптер, который только журналирует письма.

    Доставка почты выполняется внешней системой; отправленные письма
    остаются в outbox.
    """

    def __init__(self, logger: Optional[ports.ILogger] = None):
        self._logger = logger or StructuredLogger(__name__)
        self.outbox: List[Dict[str, str]] = []

    def send(self, to: str, subject: str, body: str) -> None:
        self.outbox.append({"to": to, "subject": subject, "body": body})
        self._logger.info("Mail queued", to=to, subject=subject)


class BookingUnitOfWork(ports.IBookingUnitOfWork):
    """Единица работы для контекста бронирования."""

    def __init__(
        self,
        tenant_context: ITenantContext,
        bookings_repo: Optional[ports.IBookingRepository] = None,
        event_bus: Optional[ports.IEventBus] = None,
        logger: Optional[ports.ILogger] = None,
    ):
        self._logger = logger or StructuredLogger(__name__)
        self._bookings = bookings_repo or InMemoryBookingRepository(tenant_context)
        self._event_bus = event_bus or InMemoryEventBus(self._logger)
        self._committed = False

    @property
    def bookings(self) -> ports.IBookingRepository:
        return self._bookings

    @property
    def event_bus(self) -> ports.IEventBus:
        return self._event_bus

    @property
    def committed(self) -> bool:
        return self._committed

    def commit(self) -> None:
        """Фиксирует все изменения."""
        # Хранилище в памяти пишет сразу при save; здесь только отметка.
        self._committed = True
        self._logger.debug("BookingUnitOfWork committed")

    def rollback(self) -> None:
        """Откатывает все изменения."""
        self._committed = False
        self._logger.warning("BookingUnitOfWork rolled back")
