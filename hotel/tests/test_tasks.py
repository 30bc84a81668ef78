"""
Celery tasks: notifications and periodic jobs, called synchronously.
"""
import pytest
from datetime import timedelta
from django.utils import timezone

from hotel.models import Notification, Order
from hotel.tasks import (
    check_unpaid_orders, cleanup_old_notifications, generate_daily_report,
    notify_kitchen_order_task, notify_order_ready_task, notify_payment_received_task,
    notify_room_needs_cleaning_task,
)


@pytest.mark.django_db
class TestNotificationTasks:

    def test_kitchen_and_managers_hear_about_new_orders(self, pending_order, kitchen_user, manager_user, waiter_user):
        result = notify_kitchen_order_task(pending_order.id)

        assert str(pending_order.order_number) in result
        notified = set(Notification.objects.filter(notification_type='order_placed').values_list('user__username', flat=True))
        assert notified == {kitchen_user.username, manager_user.username}

    def test_ready_dine_in_order_goes_to_waitstaff(self, pending_order, waiter_user, delivery_user):
        notify_order_ready_task(pending_order.id)
        notification = Notification.objects.get(notification_type='order_ready')
        assert notification.user == waiter_user
        assert notification.order_id == pending_order.id
        assert 'Table 4' in notification.title

    def test_payment_received(self, pending_order, reception_user):
        notify_payment_received_task(pending_order.id)
        assert Notification.objects.filter(user=reception_user, notification_type='payment_received').exists()

    def test_room_cleaning(self, room, cleaning_user):
        notify_room_needs_cleaning_task(room.id)
        notification = Notification.objects.get(user=cleaning_user)
        assert notification.room_id == room.id
        assert room.room_number in notification.title

    def test_missing_order_is_reported(self):
        result = notify_kitchen_order_task(999999)
        assert 'not found' in result
        assert not Notification.objects.exists()


@pytest.mark.django_db
class TestPeriodicTasks:

    def test_unpaid_orders_alerted_once(self, pending_order, manager_user, settings):
        settings.HOTEL_UNPAID_ORDER_ALERT_HOURS = 2
        Order.objects.filter(pk=pending_order.pk).update(created_at=timezone.now() - timedelta(hours=3))

        assert check_unpaid_orders() == 'Alerted managers about 1 unpaid orders'
        assert Notification.objects.filter(user=manager_user, notification_type='order_unpaid').count() == 1
        assert check_unpaid_orders() == 'Alerted managers about 0 unpaid orders'

    def test_recent_orders_not_alerted(self, pending_order, manager_user):
        assert check_unpaid_orders() == 'Alerted managers about 0 unpaid orders'

    def test_cleanup_removes_old_read_notifications(self, manager_user):
        old = Notification.objects.create(
            user=manager_user, notification_type='order_placed', title='Old', message='Old',
            is_read=True, read_at=timezone.now() - timedelta(days=40),
        )
        unread = Notification.objects.create(
            user=manager_user, notification_type='order_placed', title='New', message='New',
        )

        cleanup_old_notifications()

        assert not Notification.objects.filter(pk=old.pk).exists()
        assert Notification.objects.filter(pk=unread.pk).exists()

    def test_daily_report(self, pending_order, reception_session):
        from hotel.services import PaymentService

        PaymentService.settle_payment(pending_order, reception_session, 'cash')
        report = generate_daily_report()

        assert report['total_paid_orders'] == 1
        assert report['total_orders'] == 1
        assert report['orders_by_type'] == {'dine_in': 1}
