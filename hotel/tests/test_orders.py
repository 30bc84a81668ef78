"""
Order submission and status changes through OrderService.
"""
import pytest
from decimal import Decimal
from unittest import mock

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import DatabaseError

from hotel.billing import Cart
from hotel.exceptions import ConcurrentModification, IllegalTransition, PersistenceFailure
from hotel.models import Delivery, Order, OrderItem, OrderNumberSequence
from hotel.services import OrderService, DeliveryService
from hotel.workflow import OrderStatus, OrderType


def move_to(order, status):
    """Put an order straight into ``status`` for test setup."""
    Order.objects.filter(pk=order.pk).update(status=status)
    order.refresh_from_db()
    return order


@pytest.mark.django_db
class TestSubmitOrder:

    def test_submit_creates_pending_unpaid_order(self, pending_order, table):
        order = pending_order

        assert order.status == OrderStatus.PENDING
        assert order.payment_status == 'unpaid'
        assert order.table == table
        assert order.order_number == 1001
        assert order.subtotal == Decimal('1300')
        assert order.service_charge == Decimal('130')
        assert order.vat == Decimal('228.8')
        assert order.total == Decimal('1658.8')
        assert order.display_total == Decimal('1659')
        assert order.items.count() == 2

    def test_stored_totals_match_line_items(self, pending_order):
        totals = pending_order.calculate_totals()
        assert totals.total == pending_order.total

    def test_rates_are_stored_on_the_order(self, pending_order):
        assert pending_order.service_charge_rate == Decimal('0.10')
        assert pending_order.vat_rate == Decimal('0.16')

    def test_line_prices_are_captured(self, pending_order, nyama_choma):
        line = pending_order.items.get(menu_item=nyama_choma)
        nyama_choma.price = Decimal('650')
        nyama_choma.save()

        line.refresh_from_db()
        assert line.unit_price == Decimal('500')
        assert line.total_price == Decimal('1000')

    def test_order_numbers_increase(self, waiter_session, nyama_choma, pending_order):
        second = OrderService.submit_order(waiter_session, OrderService.build_cart([(nyama_choma, 1)]))
        assert second.order_number == pending_order.order_number + 1

    def test_numbering_continues_from_existing_orders(self, waiter_session, nyama_choma, pending_order):
        OrderNumberSequence.objects.all().delete()
        order = OrderService.submit_order(waiter_session, OrderService.build_cart([(nyama_choma, 1)]))
        assert order.order_number == pending_order.order_number + 1

    def test_failed_write_does_not_use_up_a_number(self, waiter_session, nyama_choma):
        with mock.patch.object(OrderItem.objects, 'bulk_create', side_effect=DatabaseError('disk full')):
            with pytest.raises(PersistenceFailure):
                OrderService.submit_order(waiter_session, OrderService.build_cart([(nyama_choma, 1)]))

        order = OrderService.submit_order(waiter_session, OrderService.build_cart([(nyama_choma, 1)]))
        assert order.order_number == 1001

    def test_empty_cart_rejected(self, waiter_session):
        with pytest.raises(ValidationError):
            OrderService.submit_order(waiter_session, Cart())
        assert not Order.objects.exists()

    def test_unavailable_item_rejected(self, waiter_session, nyama_choma):
        nyama_choma.is_available = False
        nyama_choma.save()
        with pytest.raises(ValidationError):
            OrderService.submit_order(waiter_session, OrderService.build_cart([(nyama_choma, 1)]))

    def test_room_service_needs_room(self, waiter_session, nyama_choma):
        with pytest.raises(ValidationError):
            OrderService.submit_order(
                waiter_session, OrderService.build_cart([(nyama_choma, 1)]), order_type=OrderType.ROOM_SERVICE
            )

    def test_customer_orders_for_themselves(self, customer_session, customer, nyama_choma):
        order = OrderService.submit_order(
            customer_session, OrderService.build_cart([(nyama_choma, 1)]), order_type=OrderType.TAKEAWAY
        )
        assert order.customer == customer
        assert order.staff is None

    def test_no_session_rejected(self, nyama_choma):
        with pytest.raises(PermissionDenied):
            OrderService.submit_order(None, OrderService.build_cart([(nyama_choma, 1)]))

    def test_failed_write_leaves_nothing(self, waiter_session, nyama_choma):
        with mock.patch.object(OrderItem.objects, 'bulk_create', side_effect=DatabaseError('disk full')):
            with pytest.raises(PersistenceFailure):
                OrderService.submit_order(waiter_session, OrderService.build_cart([(nyama_choma, 2)]))
        assert not Order.objects.exists()

    def test_kitchen_notification_queued_on_commit(
        self, waiter_session, nyama_choma, django_capture_on_commit_callbacks
    ):
        with mock.patch('hotel.tasks.notify_kitchen_order_task.delay') as delay:
            with django_capture_on_commit_callbacks(execute=True):
                order = OrderService.submit_order(waiter_session, OrderService.build_cart([(nyama_choma, 1)]))
        delay.assert_called_once_with(order.id)


@pytest.mark.django_db
class TestOrderTransitions:

    def test_dine_in_flow(self, pending_order, waiter_session, kitchen_session):
        order = OrderService.confirm(pending_order, waiter_session)
        order = OrderService.start_preparing(order, kitchen_session)
        assert set(order.items.values_list('status', flat=True)) == {'preparing'}
        order = OrderService.mark_ready(order, kitchen_session)
        order = OrderService.mark_served(order, waiter_session)

        assert order.status == OrderStatus.SERVED
        assert order.version == 4
        assert set(order.items.values_list('status', flat=True)) == {'served'}

    def test_ready_to_preparing_is_illegal(self, pending_order, kitchen_session):
        order = move_to(pending_order, OrderStatus.READY)
        with pytest.raises(IllegalTransition):
            OrderService.start_preparing(order, kitchen_session)
        order.refresh_from_db()
        assert order.status == OrderStatus.READY

    def test_illegal_transition_changes_nothing(self, pending_order, waiter_session):
        with pytest.raises(IllegalTransition):
            OrderService.mark_served(pending_order, waiter_session)
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PENDING
        assert pending_order.version == 0

    @pytest.mark.parametrize('status', ['pending', 'confirmed', 'preparing', 'ready', 'served', 'delivered'])
    def test_cancel_succeeds_exactly_once(self, pending_order, manager_session, status):
        order = move_to(pending_order, status)

        order = OrderService.cancel(order, manager_session)
        assert order.status == OrderStatus.CANCELLED

        with pytest.raises(IllegalTransition):
            OrderService.cancel(order, manager_session)
        for step in (OrderService.confirm, OrderService.mark_ready, OrderService.complete):
            with pytest.raises(IllegalTransition):
                step(order, manager_session)

    def test_cancel_marks_items_cancelled(self, pending_order, manager_session):
        OrderService.cancel(pending_order, manager_session)
        assert set(pending_order.items.values_list('status', flat=True)) == {'cancelled'}

    def test_waitstaff_cannot_cancel(self, pending_order, waiter_session):
        with pytest.raises(IllegalTransition):
            OrderService.cancel(pending_order, waiter_session)

    def test_unpaid_order_cannot_complete(self, pending_order, reception_session):
        with pytest.raises(IllegalTransition):
            OrderService.complete(move_to(pending_order, OrderStatus.SERVED), reception_session)

    def test_stale_copy_is_rejected(self, pending_order, waiter_session, manager_session):
        stale = Order.objects.get(pk=pending_order.pk)
        OrderService.confirm(pending_order, waiter_session)

        with pytest.raises(ConcurrentModification):
            OrderService.cancel(stale, manager_session)
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.CONFIRMED

    def test_concurrent_modification_is_a_persistence_failure(self):
        assert issubclass(ConcurrentModification, PersistenceFailure)


@pytest.mark.django_db
class TestDelivery:

    @pytest.fixture
    def ready_delivery_order(self, customer_session, nyama_choma):
        order = OrderService.submit_order(
            customer_session, OrderService.build_cart([(nyama_choma, 1)]), order_type=OrderType.DELIVERY
        )
        return move_to(order, OrderStatus.READY)

    def test_pick_up_creates_delivery(self, ready_delivery_order, delivery_session, customer):
        order = OrderService.pick_up(ready_delivery_order, delivery_session, delivery_address='Kilimani')

        assert order.status == OrderStatus.DELIVERED
        delivery = Delivery.objects.get(order=order)
        assert delivery.status == 'picked_up'
        assert delivery.delivery_address == 'Kilimani'
        assert delivery.customer_phone == customer.phone
        assert delivery.pickup_time is not None

    def test_mark_delivered(self, ready_delivery_order, delivery_session):
        OrderService.pick_up(ready_delivery_order, delivery_session)
        delivery = DeliveryService.mark_delivered(Delivery.objects.get(), delivery_session)

        assert delivery.status == 'delivered'
        assert delivery.delivery_time is not None
        with pytest.raises(IllegalTransition):
            DeliveryService.mark_delivered(delivery, delivery_session)

    def test_dine_in_order_cannot_be_picked_up(self, pending_order, delivery_session):
        with pytest.raises(IllegalTransition):
            OrderService.pick_up(move_to(pending_order, OrderStatus.READY), delivery_session)
        assert not Delivery.objects.exists()

    def test_waiter_cannot_mark_delivered(self, ready_delivery_order, delivery_session, waiter_session):
        OrderService.pick_up(ready_delivery_order, delivery_session)
        with pytest.raises(PermissionDenied):
            DeliveryService.mark_delivered(Delivery.objects.get(), waiter_session)
