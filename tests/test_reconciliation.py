"""
Тесты сверки локальных бронирований с внешним календарем.

Внешний календарь главный для связанных бронирований: удаленное событие
отменяет бронирование, перенесенное событие переносит его.
"""

from datetime import timedelta

import pytest
from booking.application import BookingApplicationService
from booking.calendar_sync import (
    CalendarReconciler,
    ReconciliationOutcome,
    ReconciliationReport,
)
from booking.domain import (
    Booking,
    BookingCancelled,
    BookingEvent,
    BookingRescheduled,
    BookingStatus,
    CancellationPolicy,
)
from booking.interfaces import ExternalCalendarUnavailableError
from shared_kernel import TimeRange, generate_id


@pytest.fixture
def published(event_bus):
    events = []
    event_bus.subscribe(BookingEvent, events.append)
    return events


@pytest.fixture
def link(booking_repo, calendar_sync, tenant_id, resource):
    """Создает бронирование и связывает его с событием внешнего календаря."""

    def factory(time_slot: TimeRange) -> Booking:
        booking = Booking.create(
            id=generate_id(), tenant_id=tenant_id, resource_id=resource.id, time_slot=time_slot
        )
        booking_repo.save(booking)
        booking.release_events()
        calendar_sync.sync_created(booking)
        return booking

    return factory


def _reconcile(calendar_sync, booking_repo, event_bus) -> ReconciliationReport:
    return calendar_sync.reconcile(booking_repo.find_all(), event_bus)


class TestReconciliationReport:
    """Подсчет результатов сверки."""

    def test_record_counts_each_outcome(self):
        report = ReconciliationReport()

        report.record(ReconciliationOutcome.CANCELLED)
        report.record(ReconciliationOutcome.RESCHEDULED)
        report.record(ReconciliationOutcome.RESCHEDULED)
        report.record(ReconciliationOutcome.UNCHANGED)
        report.record(ReconciliationOutcome.SKIPPED)

        assert report.cancelled == 1
        assert report.rescheduled == 2
        assert report.unchanged == 1
        assert report.skipped == 1
        assert report.corrected == 3
        assert report.failed == 0

    def test_record_failure_keeps_booking_id(self):
        report = ReconciliationReport()
        booking_id = generate_id()

        report.record_failure(booking_id)

        assert report.failed == 1
        assert report.failed_booking_ids == [booking_id]
        assert report.corrected == 0


class TestReconciliationScenarios:
    """Исправление расхождений с внешним календарем."""

    def test_deleted_external_event_cancels_booking(
        self, link, calendar_sync, calendar_client, booking_repo, event_bus, published, make_range
    ):
        booking = link(make_range(0, 60))
        calendar_client.delete_event(booking.external_event_id)

        report = _reconcile(calendar_sync, booking_repo, event_bus)

        assert report.examined == 1
        assert report.cancelled == 1
        assert report.corrected == 1
        assert booking_repo.find_by_id(booking.id).status == BookingStatus.CANCELLED
        assert len(published) == 1
        assert isinstance(published[0], BookingCancelled)
        assert published[0].booking_id == booking.id

    def test_moved_external_event_reschedules_booking(
        self, link, calendar_sync, calendar_client, booking_repo, event_bus, published, make_range
    ):
        booking = link(make_range(0, 60))
        calendar_client.move_event(booking.external_event_id, make_range(30, 60))

        report = _reconcile(calendar_sync, booking_repo, event_bus)

        assert report.rescheduled == 1
        assert booking_repo.find_by_id(booking.id).time_slot == make_range(30, 60)
        assert len(published) == 1
        event = published[0]
        assert isinstance(event, BookingRescheduled)
        assert event.old_starts_at == make_range(0, 60).starts_at
        assert event.old_ends_at == make_range(0, 60).ends_at
        assert event.new_starts_at == make_range(30, 60).starts_at
        assert event.new_ends_at == make_range(30, 60).ends_at

    def test_matching_event_is_unchanged(
        self, link, calendar_sync, booking_repo, event_bus, published, make_range
    ):
        link(make_range(0, 60))

        report = _reconcile(calendar_sync, booking_repo, event_bus)

        assert report.unchanged == 1
        assert report.corrected == 0
        assert published == []

    def test_sub_second_difference_is_ignored(
        self, link, calendar_sync, calendar_client, booking_repo, event_bus, published, make_range
    ):
        booking = link(make_range(0, 60))
        calendar_client.move_event(
            booking.external_event_id,
            make_range(0, 60).shifted(timedelta(milliseconds=400)),
        )

        report = _reconcile(calendar_sync, booking_repo, event_bus)

        assert report.unchanged == 1
        assert published == []

    def test_second_run_is_idempotent(
        self, link, calendar_sync, calendar_client, booking_repo, event_bus, published, make_range
    ):
        deleted = link(make_range(0, 60))
        moved = link(make_range(120, 60))
        calendar_client.delete_event(deleted.external_event_id)
        calendar_client.move_event(moved.external_event_id, make_range(150, 60))

        first = _reconcile(calendar_sync, booking_repo, event_bus)
        published.clear()
        second = _reconcile(calendar_sync, booking_repo, event_bus)

        assert first.corrected == 2
        assert second.corrected == 0
        assert second.unchanged == 2
        assert published == []

    def test_cancelled_booking_is_never_rescheduled(
        self, link, calendar_sync, calendar_client, booking_repo, event_bus, published, make_range
    ):
        booking = link(make_range(0, 60))
        booking.cancel()
        booking_repo.save(booking)
        calendar_client.move_event(booking.external_event_id, make_range(30, 60))

        report = _reconcile(calendar_sync, booking_repo, event_bus)

        assert report.unchanged == 1
        stored = booking_repo.find_by_id(booking.id)
        assert stored.status == BookingStatus.CANCELLED
        assert stored.time_slot == make_range(0, 60)
        assert published == []

    def test_without_bus_events_are_discarded(
        self, link, calendar_sync, calendar_client, booking_repo, published, make_range
    ):
        booking = link(make_range(0, 60))
        calendar_client.delete_event(booking.external_event_id)

        report = calendar_sync.reconcile(booking_repo.find_all())

        assert report.cancelled == 1
        assert published == []


class TestReconciliationSkips:
    """Бронирования, которые сверять нечем."""

    def test_unlinked_booking_is_skipped(
        self, calendar_sync, booking_repo, event_bus, tenant_id, resource, make_range
    ):
        booking = Booking.create(
            id=generate_id(), tenant_id=tenant_id, resource_id=resource.id, time_slot=make_range()
        )
        booking_repo.save(booking)

        report = _reconcile(calendar_sync, booking_repo, event_bus)

        assert report.examined == 1
        assert report.skipped == 1

    def test_no_credentials_is_skipped(
        self, link, calendar_sync, calendar_client, user_context, booking_repo, event_bus, make_range
    ):
        booking = link(make_range())
        calendar_client.delete_event(booking.external_event_id)
        user_context.clear()

        report = _reconcile(calendar_sync, booking_repo, event_bus)

        assert report.skipped == 1
        assert booking_repo.find_by_id(booking.id).status == BookingStatus.CONFIRMED


class TestReconciliationFailures:
    """Ошибка одной связки не прерывает проход."""

    def test_failed_fetch_does_not_stop_others(
        self, link, calendar_sync, calendar_client, booking_repo, event_bus, published, make_range, mocker
    ):
        broken = link(make_range(0, 60))
        deleted = link(make_range(120, 60))
        calendar_client.delete_event(deleted.external_event_id)

        real_get_event = calendar_client.get_event

        def flaky_get_event(external_id, credentials):
            if external_id == broken.external_event_id:
                raise ExternalCalendarUnavailableError("timeout")
            return real_get_event(external_id, credentials)

        mocker.patch.object(calendar_client, "get_event", side_effect=flaky_get_event)

        report = _reconcile(calendar_sync, booking_repo, event_bus)

        assert report.examined == 2
        assert report.failed == 1
        assert report.failed_booking_ids == [broken.id]
        assert report.cancelled == 1
        assert booking_repo.find_by_id(deleted.id).status == BookingStatus.CANCELLED
        assert booking_repo.find_by_id(broken.id).status == BookingStatus.CONFIRMED
        assert [e.booking_id for e in published] == [deleted.id]

    def test_reschedule_into_conflict_is_reported_as_failed(
        self, link, calendar_sync, calendar_client, booking_repo, event_bus, published, make_range
    ):
        moved = link(make_range(0, 60))
        blocker = link(make_range(90, 60))
        calendar_client.move_event(moved.external_event_id, make_range(60, 60))

        report = _reconcile(calendar_sync, booking_repo, event_bus)

        assert report.failed == 1
        assert report.failed_booking_ids == [moved.id]
        assert report.unchanged == 1
        assert booking_repo.find_by_id(moved.id).time_slot == make_range(0, 60)
        assert booking_repo.find_by_id(blocker.id).time_slot == make_range(90, 60)
        assert published == []

    def test_failures_are_logged(self, booking_repo, calendar_client, link, make_range, mocker):
        booking = link(make_range())
        logger = mocker.Mock()
        reconciler = CalendarReconciler(
            booking_repo=booking_repo,
            calendar_client=calendar_client,
            credentials_provider=mocker.Mock(side_effect=RuntimeError("boom")),
            logger=logger,
        )

        report = reconciler.reconcile(booking_repo.find_all())

        assert report.failed == 1
        logger.error.assert_called_once()
        assert logger.error.call_args.kwargs["booking_id"] == booking.id
        assert logger.error.call_args.kwargs["error"] == "boom"


class TestReconcileThroughApplicationService:
    """Сверка через сервис приложения."""

    def test_reconcile_calendar(
        self, uow, tenant_context, calendar_sync, calendar_client, link, published, make_range
    ):
        service = BookingApplicationService(
            uow=uow,
            tenant_context=tenant_context,
            cancellation_policy=CancellationPolicy(24),
            calendar_sync=calendar_sync,
        )
        booking = link(make_range())
        calendar_client.delete_event(booking.external_event_id)

        report = service.reconcile_calendar()

        assert report.cancelled == 1
        assert service.get_booking(booking.id).status == BookingStatus.CANCELLED
        assert [type(e) for e in published] == [BookingCancelled]
