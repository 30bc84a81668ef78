"""
Order and reservation state machines.
"""
import pytest

from hotel.exceptions import IllegalTransition
from hotel.session import Role
from hotel.workflow import (
    ORDER_OPEN_STATES, OrderStatus, OrderType, PaymentStatus, ReservationStatus,
    allowed_order_transitions, attempt_reservation_transition, attempt_transition,
)


class TestOrderTransitions:

    @pytest.mark.parametrize('current, requested, actor', [
        ('pending', 'confirmed', 'waitstaff'),
        ('pending', 'confirmed', 'receptionist'),
        ('pending', 'preparing', 'kitchen'),
        ('confirmed', 'preparing', 'kitchen'),
        ('preparing', 'ready', 'kitchen'),
        ('ready', 'served', 'waitstaff'),
        ('served', 'cancelled', 'manager'),
    ])
    def test_allowed(self, current, requested, actor):
        assert attempt_transition(current, requested, actor) == requested

    def test_ready_back_to_preparing_is_illegal(self):
        with pytest.raises(IllegalTransition):
            attempt_transition(OrderStatus.READY, OrderStatus.PREPARING, Role.KITCHEN)

    def test_wrong_role_is_illegal(self):
        with pytest.raises(IllegalTransition) as excinfo:
            attempt_transition('preparing', 'ready', 'waitstaff')
        assert 'waitstaff' in str(excinfo.value)

    def test_unknown_status_is_illegal(self):
        with pytest.raises(IllegalTransition):
            attempt_transition('pending', 'teleported', 'manager')

    def test_delivery_only_for_delivery_orders(self):
        assert attempt_transition('ready', 'delivered', 'delivery', order_type=OrderType.DELIVERY) == 'delivered'
        with pytest.raises(IllegalTransition):
            attempt_transition('ready', 'delivered', 'delivery', order_type=OrderType.DINE_IN)

    def test_completion_requires_payment(self):
        with pytest.raises(IllegalTransition):
            attempt_transition('served', 'completed', 'receptionist', payment_status=PaymentStatus.UNPAID)
        assert attempt_transition(
            'served', 'completed', 'receptionist', payment_status=PaymentStatus.PAID
        ) == OrderStatus.COMPLETED

    def test_waitstaff_cannot_complete(self):
        with pytest.raises(IllegalTransition):
            attempt_transition('served', 'completed', 'waitstaff', payment_status='paid')

    @pytest.mark.parametrize('current', sorted(ORDER_OPEN_STATES))
    def test_cancel_from_every_open_state(self, current):
        assert attempt_transition(current, 'cancelled', 'manager') == OrderStatus.CANCELLED

    @pytest.mark.parametrize('current', ['completed', 'cancelled'])
    def test_terminal_states_go_nowhere(self, current):
        for target in OrderStatus:
            with pytest.raises(IllegalTransition):
                attempt_transition(current, target, 'admin', order_type='delivery', payment_status='paid')

    def test_allowed_transitions_for_kitchen(self):
        assert allowed_order_transitions('confirmed', 'kitchen') == [OrderStatus.PREPARING]
        assert allowed_order_transitions('ready', 'delivery', order_type='delivery') == [OrderStatus.DELIVERED]
        assert allowed_order_transitions('ready', 'delivery', order_type='dine_in') == []


class TestReservationTransitions:

    def test_happy_path(self):
        status = ReservationStatus.PENDING
        for target in ('confirmed', 'checked_in', 'checked_out'):
            status = attempt_reservation_transition(status, target, 'receptionist')
        assert status == ReservationStatus.CHECKED_OUT

    def test_cannot_check_in_unconfirmed(self):
        with pytest.raises(IllegalTransition):
            attempt_reservation_transition('pending', 'checked_in', 'receptionist')

    def test_cannot_cancel_after_check_in(self):
        with pytest.raises(IllegalTransition):
            attempt_reservation_transition('checked_in', 'cancelled', 'manager')

    def test_customer_cannot_confirm(self):
        with pytest.raises(IllegalTransition):
            attempt_reservation_transition('pending', 'confirmed', 'customer')
