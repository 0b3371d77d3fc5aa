"""
Тесты синхронной шины доменных событий.
"""

import uuid

import pytest
from booking.domain import BookingCancelled, BookingCreated, BookingEvent
from booking.infrastructure import InMemoryEventBus
from shared_kernel import DomainEvent


@pytest.fixture
def created_event(tenant_id, base_time) -> BookingCreated:
    return BookingCreated(
        booking_id=uuid.uuid4(),
        tenant_id=tenant_id,
        resource_id=uuid.uuid4(),
        starts_at=base_time,
        ends_at=base_time.replace(hour=10),
    )


class TestEventBus:
    """Проверка подписки и доставки событий."""

    def test_handlers_called_in_registration_order(self, event_bus, created_event):
        calls = []
        event_bus.subscribe(BookingCreated, lambda e: calls.append("first"))
        event_bus.subscribe(BookingCreated, lambda e: calls.append("second"))

        event_bus.publish(created_event)

        assert calls == ["first", "second"]

    def test_handler_receives_event(self, mocker, event_bus, created_event):
        handler = mocker.Mock()
        event_bus.subscribe(BookingCreated, handler)

        event_bus.publish(created_event)

        handler.assert_called_once_with(created_event)

    def test_supertype_subscriber_receives_subtypes(self, mocker, event_bus, created_event, tenant_id):
        category_handler = mocker.Mock()
        event_bus.subscribe(BookingEvent, category_handler)

        cancelled = BookingCancelled(booking_id=uuid.uuid4(), tenant_id=tenant_id)
        event_bus.publish(created_event)
        event_bus.publish(cancelled)

        assert category_handler.call_args_list == [
            mocker.call(created_event),
            mocker.call(cancelled),
        ]

    def test_exact_type_handlers_run_before_supertype_handlers(self, event_bus, created_event):
        calls = []
        event_bus.subscribe(DomainEvent, lambda e: calls.append("domain"))
        event_bus.subscribe(BookingEvent, lambda e: calls.append("category"))
        event_bus.subscribe(BookingCreated, lambda e: calls.append("exact"))

        event_bus.publish(created_event)

        assert calls == ["exact", "category", "domain"]

    def test_unrelated_handler_not_called(self, mocker, event_bus, created_event):
        handler = mocker.Mock()
        event_bus.subscribe(BookingCancelled, handler)

        event_bus.publish(created_event)

        handler.assert_not_called()

    def test_publish_without_subscribers_is_noop(self, event_bus, created_event):
        event_bus.publish(created_event)

    def test_handler_exception_propagates_and_stops_delivery(self, mocker, event_bus, created_event):
        failing = mocker.Mock(side_effect=RuntimeError("boom"))
        after = mocker.Mock()
        event_bus.subscribe(BookingCreated, failing)
        event_bus.subscribe(BookingCreated, after)

        with pytest.raises(RuntimeError, match="boom"):
            event_bus.publish(created_event)

        after.assert_not_called()

    def test_publish_all_preserves_order(self, event_bus, created_event, tenant_id):
        received = []
        event_bus.subscribe(BookingEvent, received.append)
        cancelled = BookingCancelled(booking_id=created_event.booking_id, tenant_id=tenant_id)

        event_bus.publish_all([created_event, cancelled])

        assert received == [created_event, cancelled]

    def test_handler_count_and_clear(self, event_bus):
        event_bus.subscribe(BookingCreated, lambda e: None)
        event_bus.subscribe(BookingCreated, lambda e: None)
        assert event_bus.handler_count(BookingCreated) == 2
        assert event_bus.handler_count(BookingCancelled) == 0

        event_bus.clear()

        assert event_bus.handler_count(BookingCreated) == 0

    def test_handler_count_includes_supertype_subscribers(self, event_bus):
        event_bus.subscribe(BookingCreated, lambda e: None)
        event_bus.subscribe(BookingEvent, lambda e: None)
        event_bus.subscribe(DomainEvent, lambda e: None)

        assert event_bus.handler_count(BookingCreated) == 3
        assert event_bus.handler_count(BookingCancelled) == 2
        assert event_bus.handler_count(DomainEvent) == 1

    def test_uses_injected_logger(self, mocker, created_event):
        logger = mocker.Mock()
        bus = InMemoryEventBus(logger)
        bus.subscribe(BookingCreated, lambda e: None)

        bus.publish(created_event)

        logger.info.assert_called_once()
        assert "BookingCreated" in logger.info.call_args.args[0]
