"""
Notifications system for hotel operations.
Handles in-app notifications raised by order, payment and housekeeping events.
"""
from django.contrib.auth.models import User
import logging

from .receipts import format_amount

logger = logging.getLogger(__name__)

# ============================================================================
# NOTIFICATION HELPER FUNCTIONS
# ============================================================================

def _staff_in_groups(*group_names):
    return User.objects.filter(groups__name__in=group_names, is_active=True).distinct()


def _order_label(order):
    if order.table_id:
        return f"Table {order.table.table_number}"
    if order.room_id:
        return f"Room {order.room.room_number}"
    return order.get_order_type_display()


def _create_for(users, **fields):
    from hotel.models import Notification

    notifications = [Notification(user=user, **fields) for user in users]
    Notification.objects.bulk_create(notifications)
    return len(notifications)


def notify_kitchen_new_order(order):
    """
    Notify kitchen staff when a new order is placed.
    Sends notification to all users in 'Kitchen' and 'Manager' groups.
    """
    try:
        count = _create_for(
            _staff_in_groups('Kitchen', 'Manager'),
            notification_type='order_placed',
            title=f"New Order #{order.order_number} - {_order_label(order)}",
            message=f"Order #{order.order_number} placed with {order.items.count()} items",
            order_id=order.id,
        )
        logger.info(f"Kitchen notified of new order #{order.order_number} ({count} users)")
    except Exception:
        logger.exception(f"Error notifying kitchen of order #{order.order_number}")


def notify_order_ready(order):
    """Notify waitstaff (or delivery riders for delivery orders) when food is ready."""
    groups = ('Delivery', 'Manager') if order.order_type == 'delivery' else ('Waitstaff', 'Manager')
    try:
        count = _create_for(
            _staff_in_groups(*groups),
            notification_type='order_ready',
            title=f"Order #{order.order_number} Ready - {_order_label(order)}",
            message=f"Order #{order.order_number} is ready for pickup",
            order_id=order.id,
        )
        logger.info(f"{groups[0]} notified that order #{order.order_number} is ready ({count} users)")
    except Exception:
        logger.exception(f"Error notifying order ready for #{order.order_number}")


def notify_payment_received(order):
    """Notify managers and reception when an order is paid."""
    try:
        _create_for(
            _staff_in_groups('Manager', 'Receptionist'),
            notification_type='payment_received',
            title=f"Payment Received - Order #{order.order_number}",
            message=(
                f"Order #{order.order_number} ({format_amount(order.total)}) "
                f"paid via {(order.payment_method or '').upper()}"
            ),
            order_id=order.id,
        )
        logger.info(f"Staff notified about payment for order #{order.order_number}")
    except Exception:
        logger.exception(f"Error notifying payment for order #{order.order_number}")


def notify_manager_unpaid_order(order, hours_unpaid):
    """Notify managers when an order stays unpaid too long."""
    try:
        _create_for(
            _staff_in_groups('Manager'),
            notification_type='order_unpaid',
            title=f"Order #{order.order_number} Unpaid - {_order_label(order)}",
            message=(
                f"Order #{order.order_number} ({format_amount(order.display_total)}) "
                f"has been unpaid for over {hours_unpaid} hours"
            ),
            order_id=order.id,
        )
        logger.info(f"Manager notified about unpaid order #{order.order_number}")
    except Exception:
        logger.exception(f"Error notifying manager about order #{order.order_number}")


def notify_room_needs_cleaning(room):
    """Notify housekeeping when a guest checks out."""
    try:
        _create_for(
            _staff_in_groups('Cleaning'),
            notification_type='room_cleaning',
            title=f"Room {room.room_number} Needs Cleaning",
            message=f"Guest checked out of room {room.room_number} ({room.get_class_type_display()})",
            room_id=room.id,
        )
        logger.info(f"Housekeeping notified about room {room.room_number}")
    except Exception:
        logger.exception(f"Error notifying housekeeping about room {room.room_number}")
