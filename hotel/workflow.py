"""
Status state machines for orders and reservations.

Order status flow:
    pending -> confirmed -> preparing -> ready -> served -> completed
    ready -> delivered (delivery orders)
    any non-terminal -> cancelled

Reservation status flow:
    pending -> confirmed -> checked_in -> checked_out
    pending/confirmed -> cancelled

Every status write in the services goes through ``attempt_transition`` or
``attempt_reservation_transition``; nothing else decides legality.
"""
from collections import namedtuple

from django.db import models

from .exceptions import IllegalTransition
from .session import Role


class OrderType(models.TextChoices):
    DINE_IN = 'dine_in', 'Dine In'
    ROOM_SERVICE = 'room_service', 'Room Service'
    DELIVERY = 'delivery', 'Delivery'
    TAKEAWAY = 'takeaway', 'Takeaway'


class OrderStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    PREPARING = 'preparing', 'Preparing'
    READY = 'ready', 'Ready'
    SERVED = 'served', 'Served'
    DELIVERED = 'delivered', 'Delivered'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class PaymentStatus(models.TextChoices):
    UNPAID = 'unpaid', 'Unpaid'
    PARTIAL = 'partial', 'Partial'
    PAID = 'paid', 'Paid'


class PaymentMethod(models.TextChoices):
    MPESA = 'mpesa', 'M-Pesa'
    CASH = 'cash', 'Cash'
    CARD = 'card', 'Card'
    TCASH = 'tcash', 'T-Cash'
    AIRTEL_MONEY = 'airtel_money', 'Airtel Money'


class ReservationStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    CHECKED_IN = 'checked_in', 'Checked In'
    CHECKED_OUT = 'checked_out', 'Checked Out'
    CANCELLED = 'cancelled', 'Cancelled'


ORDER_TERMINAL_STATES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})
ORDER_OPEN_STATES = frozenset(set(OrderStatus) - ORDER_TERMINAL_STATES)
SETTLEABLE_PAYMENT_STATES = frozenset({PaymentStatus.UNPAID, PaymentStatus.PARTIAL})

RESERVATION_TERMINAL_STATES = frozenset({ReservationStatus.CHECKED_OUT, ReservationStatus.CANCELLED})

FRONT_OF_HOUSE_ROLES = frozenset({Role.WAITSTAFF, Role.RECEPTIONIST, Role.MANAGER, Role.ADMIN})
BILLING_ROLES = frozenset({Role.ADMIN, Role.MANAGER, Role.RECEPTIONIST})
SUPERVISOR_ROLES = frozenset({Role.MANAGER, Role.ADMIN})
RECEPTION_ROLES = frozenset({Role.RECEPTIONIST, Role.MANAGER, Role.ADMIN})


# Keyed by target status: which statuses may move there, and who may move it.
TransitionRule = namedtuple('TransitionRule', 'sources actors order_types requires_paid')


def _rule(sources, actors, order_types=None, requires_paid=False):
    return TransitionRule(frozenset(sources), frozenset(actors), order_types, requires_paid)


ORDER_TRANSITIONS = {
    OrderStatus.CONFIRMED: _rule([OrderStatus.PENDING], FRONT_OF_HOUSE_ROLES),
    OrderStatus.PREPARING: _rule([OrderStatus.PENDING, OrderStatus.CONFIRMED], [Role.KITCHEN]),
    OrderStatus.READY: _rule([OrderStatus.PREPARING], [Role.KITCHEN]),
    OrderStatus.SERVED: _rule([OrderStatus.READY], [Role.WAITSTAFF]),
    OrderStatus.DELIVERED: _rule(
        [OrderStatus.READY], [Role.DELIVERY], order_types=frozenset({OrderType.DELIVERY})
    ),
    OrderStatus.COMPLETED: _rule(ORDER_OPEN_STATES, BILLING_ROLES, requires_paid=True),
    OrderStatus.CANCELLED: _rule(ORDER_OPEN_STATES, SUPERVISOR_ROLES),
}

RESERVATION_TRANSITIONS = {
    ReservationStatus.CONFIRMED: _rule([ReservationStatus.PENDING], RECEPTION_ROLES),
    ReservationStatus.CHECKED_IN: _rule([ReservationStatus.CONFIRMED], RECEPTION_ROLES),
    ReservationStatus.CHECKED_OUT: _rule([ReservationStatus.CHECKED_IN], RECEPTION_ROLES),
    ReservationStatus.CANCELLED: _rule(
        [ReservationStatus.PENDING, ReservationStatus.CONFIRMED], RECEPTION_ROLES
    ),
}

# Room status changes a manager can make by hand. Occupied rooms are only
# freed by checking the guest out.
MANUAL_ROOM_STATUS_MOVES = {
    'available': frozenset({'maintenance'}),
    'cleaning': frozenset({'maintenance'}),
    'maintenance': frozenset({'cleaning', 'available'}),
}

# Item status mirrors the order's preparation progress.
ITEM_STATUS_FOR_ORDER_STATUS = {
    OrderStatus.PREPARING: 'preparing',
    OrderStatus.READY: 'ready',
    OrderStatus.SERVED: 'served',
    OrderStatus.DELIVERED: 'served',
    OrderStatus.CANCELLED: 'cancelled',
}


def _coerce(enum, value):
    if value is None:
        return None
    try:
        return enum(value)
    except ValueError:
        return None


def attempt_transition(current, requested, actor, order_type=None, payment_status=None):
    """
    Validate an order status change and return the new status.

    ``payment_status`` is the payment status the order will have once the
    change is applied; completing an order requires it to be paid.
    Raises IllegalTransition for anything the transition table does not allow.
    """
    current_status = _coerce(OrderStatus, current)
    requested_status = _coerce(OrderStatus, requested)
    actor = _coerce(Role, actor)
    order_type = _coerce(OrderType, order_type)
    rule = ORDER_TRANSITIONS.get(requested_status)

    if current_status is None or rule is None or current_status not in rule.sources:
        raise IllegalTransition(current, requested)
    if actor not in rule.actors:
        raise IllegalTransition(
            current, requested,
            message=f"Role '{actor}' cannot move an order to '{requested}'."
        )
    if rule.order_types is not None and order_type not in rule.order_types:
        raise IllegalTransition(
            current, requested,
            message=f"Only {', '.join(sorted(rule.order_types))} orders can be '{requested}'."
        )
    if rule.requires_paid and payment_status != PaymentStatus.PAID:
        raise IllegalTransition(
            current, requested,
            message='Order must be paid before it can be completed.'
        )
    return requested_status


def attempt_reservation_transition(current, requested, actor):
    """Validate a reservation status change and return the new status."""
    current_status = _coerce(ReservationStatus, current)
    requested_status = _coerce(ReservationStatus, requested)
    actor = _coerce(Role, actor)
    rule = RESERVATION_TRANSITIONS.get(requested_status)

    if current_status is None or rule is None or current_status not in rule.sources:
        raise IllegalTransition(current, requested)
    if actor not in rule.actors:
        raise IllegalTransition(
            current, requested,
            message=f"Role '{actor}' cannot move a reservation to '{requested}'."
        )
    return requested_status


def allowed_order_transitions(current, actor, order_type=None):
    """Statuses ``actor`` could move an order to from ``current`` (payment aside)."""
    current = _coerce(OrderStatus, current)
    actor = _coerce(Role, actor)
    order_type = _coerce(OrderType, order_type)
    allowed = []
    for target, rule in ORDER_TRANSITIONS.items():
        if current in rule.sources and actor in rule.actors:
            if rule.order_types is None or order_type in rule.order_types:
                allowed.append(target)
    return allowed


def attempt_room_status_change(current, requested, actor):
    """Validate a manual room status change by ``actor`` and return the new status."""
    if requested not in MANUAL_ROOM_STATUS_MOVES.get(current, ()):
        raise IllegalTransition(current, requested)
    if _coerce(Role, actor) not in SUPERVISOR_ROLES:
        raise IllegalTransition(
            current, requested,
            message=f"Role '{actor}' cannot change room status by hand."
        )
    return requested
