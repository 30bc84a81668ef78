"""
Celery tasks for background operations.
Handles notifications, unpaid-order alerts and periodic housekeeping.
"""
from celery import shared_task
from django.conf import settings
from django.utils import timezone
from datetime import timedelta
import logging

logger = logging.getLogger(__name__)

# ============================================================================
# ORDER NOTIFICATION TASKS
# ============================================================================

@shared_task(bind=True, max_retries=3)
def notify_kitchen_order_task(self, order_id):
    """
    Celery task to notify kitchen of new order.
    Runs after an order is submitted.
    """
    from hotel.models import Order
    from hotel.notifications import notify_kitchen_new_order

    try:
        order = Order.objects.get(id=order_id)
        notify_kitchen_new_order(order)
        return f"Kitchen notified of order #{order.order_number}"
    except Order.DoesNotExist:
        logger.error(f"Order {order_id} not found")
        return f"Order {order_id} not found"
    except Exception as exc:
        logger.error(f"Error notifying kitchen: {str(exc)}")
        raise self.retry(exc=exc, countdown=60)


@shared_task(bind=True, max_retries=3)
def notify_order_ready_task(self, order_id):
    """
    Celery task to notify waitstaff when order is ready.
    Runs when the kitchen marks an order ready.
    """
    from hotel.models import Order
    from hotel.notifications import notify_order_ready

    try:
        order = Order.objects.get(id=order_id)
        notify_order_ready(order)
        return f"Order #{order.order_number} ready notification sent"
    except Order.DoesNotExist:
        logger.error(f"Order {order_id} not found")
        return f"Order {order_id} not found"
    except Exception as exc:
        logger.error(f"Error notifying order ready: {str(exc)}")
        raise self.retry(exc=exc, countdown=60)

# ============================================================================
# PAYMENT NOTIFICATION TASKS
# ============================================================================

@shared_task(bind=True, max_retries=3)
def notify_payment_received_task(self, order_id):
    """
    Celery task to notify staff of payment received.
    Runs when an order is settled.
    """
    from hotel.models import Order
    from hotel.notifications import notify_payment_received

    try:
        order = Order.objects.get(id=order_id)
        notify_payment_received(order)
        return f"Payment notification sent for order #{order.order_number}"
    except Order.DoesNotExist:
        logger.error(f"Order {order_id} not found")
        return f"Order {order_id} not found"
    except Exception as exc:
        logger.error(f"Error notifying payment: {str(exc)}")
        raise self.retry(exc=exc, countdown=60)

# ============================================================================
# HOUSEKEEPING TASKS
# ============================================================================

@shared_task(bind=True, max_retries=3)
def notify_room_needs_cleaning_task(self, room_id):
    """Celery task to alert housekeeping after a check-out."""
    from hotel.models import Room
    from hotel.notifications import notify_room_needs_cleaning

    try:
        room = Room.objects.get(id=room_id)
        notify_room_needs_cleaning(room)
        return f"Housekeeping notified about room {room.room_number}"
    except Room.DoesNotExist:
        logger.error(f"Room {room_id} not found")
        return f"Room {room_id} not found"
    except Exception as exc:
        logger.error(f"Error notifying housekeeping: {str(exc)}")
        raise self.retry(exc=exc, countdown=60)

# ============================================================================
# PERIODIC TASKS
# ============================================================================

@shared_task
def check_unpaid_orders():
    """
    Periodic task to find orders left unpaid too long.
    Alerts managers once per order.
    """
    from hotel.models import Order, Notification
    from hotel.notifications import notify_manager_unpaid_order

    hours = settings.HOTEL_UNPAID_ORDER_ALERT_HOURS
    threshold = timezone.now() - timedelta(hours=hours)
    already_alerted = Notification.objects.filter(
        notification_type='order_unpaid', order_id__isnull=False
    ).values_list('order_id', flat=True)

    unpaid_orders = Order.objects.filter(
        payment_status__in=['unpaid', 'partial'],
        created_at__lte=threshold,
    ).exclude(status='cancelled').exclude(id__in=already_alerted)

    count = 0
    for order in unpaid_orders:
        notify_manager_unpaid_order(order, hours_unpaid=hours)
        count += 1

    logger.info(f"Alerted managers about {count} unpaid orders")
    return f"Alerted managers about {count} unpaid orders"


@shared_task
def cleanup_old_notifications():
    """
    Periodic task to clean up old read notifications (older than 30 days).
    """
    from hotel.models import Notification

    cutoff_date = timezone.now() - timedelta(days=30)
    deleted_count, _ = Notification.objects.filter(
        is_read=True,
        read_at__lt=cutoff_date
    ).delete()

    logger.info(f"Cleaned up {deleted_count} old notifications")
    return f"Cleaned up {deleted_count} old notifications"


@shared_task
def generate_daily_report():
    """
    Periodic task to generate daily sales and operations report.
    """
    from hotel.reports import daily_sales_summary

    report = daily_sales_summary(timezone.localdate())
    logger.info(f"Daily report generated: {report}")
    return report
