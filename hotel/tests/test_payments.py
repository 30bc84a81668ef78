"""
Settlement: discounts, rounding, transaction codes and double-payment protection.
"""
import pytest
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError

from hotel.exceptions import AlreadySettled, IllegalTransition, InvalidDiscount
from hotel.models import Order
from hotel.services import OrderService, PaymentService
from hotel.workflow import OrderStatus, PaymentStatus


@pytest.mark.django_db
class TestSettlePayment:

    def test_settle_with_discount(self, pending_order, reception_session):
        """Total 1658.8 displays as 1659; a 159 discount settles at 1500."""
        order = PaymentService.settle_payment(
            pending_order, reception_session, 'cash', discount=Decimal('159')
        )

        assert order.payment_status == PaymentStatus.PAID
        assert order.status == OrderStatus.COMPLETED
        assert order.total == Decimal('1500')
        assert order.discount == Decimal('159')
        assert order.payment_method == 'cash'
        assert order.completed_at is not None

    def test_settle_without_discount_stores_rounded_total(self, pending_order, reception_session):
        order = PaymentService.settle_payment(pending_order, reception_session, 'card')
        assert order.total == Decimal('1659')
        assert order.discount == Decimal('0')

    def test_settle_twice_raises(self, pending_order, reception_session):
        order = PaymentService.settle_payment(pending_order, reception_session, 'cash')
        with pytest.raises(AlreadySettled):
            PaymentService.settle_payment(order, reception_session, 'cash')

        order.refresh_from_db()
        assert order.total == Decimal('1659')

    def test_discount_above_total_rejected(self, pending_order, reception_session):
        with pytest.raises(InvalidDiscount):
            PaymentService.settle_payment(pending_order, reception_session, 'cash', discount=Decimal('1660'))

        pending_order.refresh_from_db()
        assert pending_order.payment_status == PaymentStatus.UNPAID
        assert pending_order.status == OrderStatus.PENDING

    def test_discount_equal_to_total(self, pending_order, manager_session):
        order = PaymentService.settle_payment(pending_order, manager_session, 'cash', discount=Decimal('1659'))
        assert order.total == Decimal('0')

    def test_full_discount_passes_model_validation(self, pending_order, manager_session):
        """The discount bound is the rounded 1659, not the raw 1658.8."""
        order = PaymentService.settle_payment(pending_order, manager_session, 'cash', discount=Decimal('1659'))
        order.full_clean()

        order.discount = Decimal('1660')
        with pytest.raises(ValidationError):
            order.full_clean()

    def test_negative_discount_rejected(self, pending_order, reception_session):
        with pytest.raises(InvalidDiscount):
            PaymentService.settle_payment(pending_order, reception_session, 'cash', discount=Decimal('-10'))

    def test_unknown_method_rejected(self, pending_order, reception_session):
        with pytest.raises(ValidationError):
            PaymentService.settle_payment(pending_order, reception_session, 'bitcoin')

    def test_mpesa_without_code_gets_generated_code(self, pending_order, reception_session):
        order = PaymentService.settle_payment(pending_order, reception_session, 'mpesa')
        assert order.transaction_code.startswith('TXN')

    def test_mpesa_code_kept_when_given(self, pending_order, reception_session):
        order = PaymentService.settle_payment(pending_order, reception_session, 'mpesa', transaction_code='QK12ABC34')
        assert order.transaction_code == 'QK12ABC34'

    def test_cash_has_no_code(self, pending_order, reception_session):
        order = PaymentService.settle_payment(pending_order, reception_session, 'cash')
        assert order.transaction_code is None

    def test_waitstaff_cannot_settle(self, pending_order, waiter_session):
        with pytest.raises(IllegalTransition):
            PaymentService.settle_payment(pending_order, waiter_session, 'cash')
        assert Order.objects.get(pk=pending_order.pk).payment_status == PaymentStatus.UNPAID

    def test_cancelled_order_cannot_be_settled(self, pending_order, manager_session):
        order = OrderService.cancel(pending_order, manager_session)
        with pytest.raises(IllegalTransition):
            PaymentService.settle_payment(order, manager_session, 'cash')

    def test_payment_notification_queued(self, pending_order, reception_session, django_capture_on_commit_callbacks):
        with mock.patch('hotel.tasks.notify_payment_received_task.delay') as delay:
            with django_capture_on_commit_callbacks(execute=True):
                order = PaymentService.settle_payment(pending_order, reception_session, 'cash')
        delay.assert_called_once_with(order.id)
