"""
Room and table reservations, check-in/check-out and housekeeping.
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.core.exceptions import PermissionDenied, ValidationError

from hotel.exceptions import ConcurrentModification, IllegalTransition
from hotel.models import CleaningTask, MaintenanceRequest, Reservation, Room
from hotel.services import HousekeepingService, ReservationService
from hotel.workflow import ReservationStatus

CHECK_IN = date(2024, 6, 1)


@pytest.fixture
def room_booking(reception_session, customer, room):
    return ReservationService.book(
        reception_session, customer, 'room', CHECK_IN, room=room, check_out=CHECK_IN + timedelta(days=2), guests=2
    )


@pytest.mark.django_db
class TestBooking:

    def test_room_booking(self, room_booking, room):
        assert room_booking.status == ReservationStatus.PENDING
        assert room_booking.prepay_amount == room.price
        assert room_booking.prepay_status == 'pending'

    def test_table_booking_prepay(self, reception_session, customer, table, settings):
        settings.HOTEL_TABLE_RESERVATION_PREPAY = 500
        reservation = ReservationService.book(
            reception_session, customer, 'table', CHECK_IN, table=table, time_slot='19:30', guests=4
        )
        assert reservation.prepay_amount == Decimal('500')

    def test_customer_books_for_themselves(self, customer_session, customer, table):
        reservation = ReservationService.book(
            customer_session, None, 'table', CHECK_IN, table=table, time_slot='12:00'
        )
        assert reservation.customer == customer

    def test_room_booking_needs_check_out_after_check_in(self, reception_session, customer, room):
        with pytest.raises(ValidationError):
            ReservationService.book(reception_session, customer, 'room', CHECK_IN, room=room, check_out=CHECK_IN)
        assert not Reservation.objects.exists()

    def test_table_booking_needs_time_slot(self, reception_session, customer, table):
        with pytest.raises(ValidationError):
            ReservationService.book(reception_session, customer, 'table', CHECK_IN, table=table)

    def test_target_must_match_type(self, reception_session, customer, room):
        with pytest.raises(ValidationError):
            ReservationService.book(reception_session, customer, 'table', CHECK_IN, room=room, time_slot='19:00')


@pytest.mark.django_db
class TestStay:

    def test_check_in_then_check_out_leaves_room_cleaning(self, room_booking, reception_session, room):
        reservation = ReservationService.confirm(room_booking, reception_session)
        reservation = ReservationService.check_in(reservation, reception_session)
        room.refresh_from_db()
        assert room.status == 'occupied'

        reservation = ReservationService.check_out(reservation, reception_session)
        room.refresh_from_db()
        assert reservation.status == ReservationStatus.CHECKED_OUT
        assert room.status == 'cleaning'
        assert CleaningTask.objects.filter(room=room, task_type='checkout', status='pending').count() == 1

    def test_cannot_check_in_pending_booking(self, room_booking, reception_session, room):
        with pytest.raises(IllegalTransition):
            ReservationService.check_in(room_booking, reception_session)
        room.refresh_from_db()
        assert room.status == 'available'

    def test_cancel(self, room_booking, reception_session):
        reservation = ReservationService.cancel(room_booking, reception_session)
        assert reservation.status == ReservationStatus.CANCELLED
        with pytest.raises(IllegalTransition):
            ReservationService.confirm(reservation, reception_session)

    def test_waiter_cannot_check_in(self, room_booking, reception_session, waiter_session):
        reservation = ReservationService.confirm(room_booking, reception_session)
        with pytest.raises(IllegalTransition):
            ReservationService.check_in(reservation, waiter_session)

    def test_stale_reservation_rejected(self, room_booking, reception_session, manager_session):
        stale = Reservation.objects.get(pk=room_booking.pk)
        ReservationService.confirm(room_booking, reception_session)
        with pytest.raises(ConcurrentModification):
            ReservationService.cancel(stale, manager_session)

    def test_cannot_check_in_to_room_still_being_cleaned(self, room_booking, reception_session, customer, room):
        first = ReservationService.confirm(room_booking, reception_session)
        first = ReservationService.check_in(first, reception_session)
        ReservationService.check_out(first, reception_session)

        second = ReservationService.book(
            reception_session, customer, 'room', CHECK_IN + timedelta(days=2),
            room=room, check_out=CHECK_IN + timedelta(days=4),
        )
        second = ReservationService.confirm(second, reception_session)
        with pytest.raises(IllegalTransition):
            ReservationService.check_in(second, reception_session)

        second.refresh_from_db()
        room.refresh_from_db()
        assert second.status == ReservationStatus.CONFIRMED
        assert room.status == 'cleaning'
        assert CleaningTask.objects.filter(room=room, status='pending').count() == 1

    def test_cannot_check_in_to_room_under_maintenance(self, room_booking, reception_session, manager_session, room):
        reservation = ReservationService.confirm(room_booking, reception_session)
        HousekeepingService.set_room_status(room, manager_session, 'maintenance')

        with pytest.raises(IllegalTransition):
            ReservationService.check_in(reservation, reception_session)
        room.refresh_from_db()
        assert room.status == 'maintenance'

    def test_check_out_queues_housekeeping_alert(
        self, room_booking, reception_session, room, django_capture_on_commit_callbacks
    ):
        reservation = ReservationService.confirm(room_booking, reception_session)
        reservation = ReservationService.check_in(reservation, reception_session)
        with mock.patch('hotel.tasks.notify_room_needs_cleaning_task.delay') as delay:
            with django_capture_on_commit_callbacks(execute=True):
                ReservationService.check_out(reservation, reception_session)
        delay.assert_called_once_with(room.id)


@pytest.mark.django_db
class TestHousekeeping:

    @pytest.fixture
    def room_to_clean(self, room_booking, reception_session, room):
        reservation = ReservationService.confirm(room_booking, reception_session)
        reservation = ReservationService.check_in(reservation, reception_session)
        ReservationService.check_out(reservation, reception_session)
        room.refresh_from_db()
        return room

    def test_mark_room_clean(self, room_to_clean, cleaning_session):
        room = HousekeepingService.mark_room_clean(room_to_clean, cleaning_session)

        assert room.status == 'available'
        task = CleaningTask.objects.get(room=room)
        assert task.status == 'completed'
        assert task.completed_at is not None

    def test_only_cleaning_rooms_can_be_marked_clean(self, room, cleaning_session):
        with pytest.raises(IllegalTransition):
            HousekeepingService.mark_room_clean(room, cleaning_session)

    def test_waiter_cannot_mark_clean(self, room_to_clean, waiter_session):
        with pytest.raises(PermissionDenied):
            HousekeepingService.mark_room_clean(room_to_clean, waiter_session)

    def test_report_maintenance(self, room, cleaning_session):
        request = HousekeepingService.report_maintenance(room, cleaning_session, '  Leaking tap ', priority='high')

        assert request.issue == 'Leaking tap'
        assert request.priority == 'high'
        assert request.status == 'reported'
        assert request.reported_by_id == cleaning_session.staff_id

    def test_maintenance_needs_description(self, room, cleaning_session):
        with pytest.raises(ValidationError):
            HousekeepingService.report_maintenance(room, cleaning_session, '   ')
        assert not MaintenanceRequest.objects.exists()

    def test_customer_cannot_report_maintenance(self, room, customer_session):
        with pytest.raises(PermissionDenied):
            HousekeepingService.report_maintenance(room, customer_session, 'Broken lamp')


@pytest.mark.django_db
class TestManualRoomStatus:

    def test_out_of_service_and_back(self, room, manager_session):
        room = HousekeepingService.set_room_status(room, manager_session, 'maintenance')
        assert room.status == 'maintenance'

        room = HousekeepingService.set_room_status(room, manager_session, 'available')
        assert room.status == 'available'

    def test_back_from_maintenance_via_cleaning(self, room, manager_session, cleaning_session):
        room = HousekeepingService.set_room_status(room, manager_session, 'maintenance')
        room = HousekeepingService.set_room_status(room, manager_session, 'cleaning')
        room = HousekeepingService.mark_room_clean(room, cleaning_session)
        assert room.status == 'available'

    def test_occupied_room_is_not_freed_by_hand(self, room_booking, reception_session, manager_session, room):
        reservation = ReservationService.confirm(room_booking, reception_session)
        ReservationService.check_in(reservation, reception_session)
        room.refresh_from_db()

        for status in ('available', 'cleaning', 'maintenance'):
            with pytest.raises(IllegalTransition):
                HousekeepingService.set_room_status(room, manager_session, status)
        room.refresh_from_db()
        assert room.status == 'occupied'

    def test_available_room_cannot_be_marked_occupied(self, room, manager_session):
        with pytest.raises(IllegalTransition):
            HousekeepingService.set_room_status(room, manager_session, 'occupied')

    def test_only_managers_change_room_status(self, room, cleaning_session):
        with pytest.raises(IllegalTransition):
            HousekeepingService.set_room_status(room, cleaning_session, 'maintenance')
        room.refresh_from_db()
        assert room.status == 'available'

    def test_stale_room_rejected(self, room, manager_session):
        stale = Room.objects.get(pk=room.pk)
        HousekeepingService.set_room_status(room, manager_session, 'maintenance')
        with pytest.raises(ConcurrentModification):
            HousekeepingService.set_room_status(stale, manager_session, 'maintenance')
