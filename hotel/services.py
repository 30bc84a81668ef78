"""
Order, payment, reservation and housekeeping workflows.

Every action takes the acting PortalSession explicitly, validates before
writing, and writes with a conditional update inside one atomic block so a
failed or conflicting write leaves nothing behind.
"""
from decimal import Decimal
import logging

from django.conf import settings
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import F, Max
from django.utils import timezone

from . import tasks
from .billing import (
    Cart, Totals, apply_discount, generate_transaction_code,
    requires_transaction_code, round_currency, to_decimal,
)
from .exceptions import AlreadySettled, ConcurrentModification, IllegalTransition, PersistenceFailure
from .models import (
    CleaningTask, Customer, Delivery, MaintenanceRequest, Order, OrderItem, OrderNumberSequence,
    Reservation, Room,
)
from .session import Role, require_role
from .workflow import (
    ITEM_STATUS_FOR_ORDER_STATUS, SETTLEABLE_PAYMENT_STATES, OrderStatus, OrderType,
    PaymentMethod, PaymentStatus, ReservationStatus, attempt_reservation_transition,
    attempt_room_status_change, attempt_transition,
)

logger = logging.getLogger(__name__)

FIRST_ORDER_NUMBER = 1001
STAFF_ROLES = [role for role in Role if role != Role.CUSTOMER]


def billing_rates():
    """Service charge and VAT rates from settings."""
    return (
        to_decimal(getattr(settings, 'HOTEL_SERVICE_CHARGE_RATE', '0.10')),
        to_decimal(getattr(settings, 'HOTEL_VAT_RATE', '0.16')),
    )


def _enqueue(task, *args):
    """Queue a background task once the current transaction commits."""
    def send():
        try:
            task.delay(*args)
        except Exception:
            logger.exception(f"Could not queue {task.name} with {args}")
    transaction.on_commit(send)


def next_order_number():
    """
    Take the next order number. Must run inside a transaction: the counter
    row stays locked until it commits, so concurrent orders queue up here.
    """
    OrderNumberSequence.objects.get_or_create(
        pk=1,
        defaults={
            'last_number': Order.objects.aggregate(last=Max('order_number'))['last'] or FIRST_ORDER_NUMBER - 1,
        },
    )
    OrderNumberSequence.objects.filter(pk=1).update(last_number=F('last_number') + 1)
    return OrderNumberSequence.objects.values_list('last_number', flat=True).get(pk=1)


# ============================================================================
# ORDERS
# ============================================================================

class OrderService:
    """Order submission and status changes."""

    @staticmethod
    def build_cart(lines):
        """
        Build a cart from ``(menu_item, quantity)`` pairs, merging repeats of
        the same menu item.
        """
        cart = Cart()
        for menu_item, quantity in lines:
            cart.add(menu_item, quantity)
        return cart

    @staticmethod
    def submit_order(session, cart, order_type=OrderType.DINE_IN, customer=None,
                     table=None, room=None, notes=''):
        """
        Create a pending, unpaid order from a cart.
        Customers always order for themselves.
        """
        require_role(session)
        if not len(cart):
            raise ValidationError('Cannot submit an empty order.')
        unavailable = [line.menu_item.name for line in cart if not line.menu_item.is_available]
        if unavailable:
            raise ValidationError(f"Not available: {', '.join(unavailable)}.")
        if order_type == OrderType.ROOM_SERVICE and room is None:
            raise ValidationError('Room service orders need a room.')

        if session.role == Role.CUSTOMER:
            customer = Customer.objects.get(pk=session.customer_id)

        service_charge_rate, vat_rate = billing_rates()
        totals = cart.totals(service_charge_rate, vat_rate)

        try:
            with transaction.atomic():
                order = Order.objects.create(
                    order_number=next_order_number(),
                    order_type=order_type,
                    customer=customer,
                    staff_id=session.staff_id,
                    table=table,
                    room=room,
                    status=OrderStatus.PENDING,
                    payment_status=PaymentStatus.UNPAID,
                    subtotal=totals.subtotal,
                    service_charge=totals.service_charge,
                    vat=totals.vat,
                    total=totals.total,
                    service_charge_rate=service_charge_rate,
                    vat_rate=vat_rate,
                    notes=notes,
                )
                OrderItem.objects.bulk_create([
                    OrderItem(
                        order=order,
                        menu_item=line.menu_item,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        total_price=line.total_price,
                    )
                    for line in cart
                ])
        except DatabaseError as exc:
            logger.exception("Failed to save new order")
            raise PersistenceFailure() from exc

        logger.info(f"Order #{order.order_number} submitted ({order.order_type}, total {order.total})")
        _enqueue(tasks.notify_kitchen_order_task, order.id)
        return order

    @staticmethod
    def transition(order, requested, session, delivery_details=None, **changes):
        """
        Move ``order`` to ``requested`` if the transition table allows it for
        the session's role. ``changes`` are extra order fields written in the
        same conditional update; ``delivery_details`` fill the Delivery record
        created when an order is picked up.
        """
        require_role(session)
        new_status = attempt_transition(
            order.status,
            requested,
            session.role,
            order_type=order.order_type,
            payment_status=changes.get('payment_status', order.payment_status),
        )
        now = timezone.now()
        fields = dict(changes, status=new_status)
        if new_status == OrderStatus.COMPLETED:
            fields.setdefault('completed_at', now)

        try:
            with transaction.atomic():
                updated = Order.objects.filter(
                    pk=order.pk, status=order.status, version=order.version
                ).update(version=F('version') + 1, updated_at=now, **fields)
                if not updated:
                    raise ConcurrentModification()

                item_status = ITEM_STATUS_FOR_ORDER_STATUS.get(new_status)
                if item_status:
                    order.items.exclude(status='cancelled').update(status=item_status)

                if new_status == OrderStatus.DELIVERED:
                    Delivery.objects.create(
                        order=order,
                        staff_id=session.staff_id,
                        status='picked_up',
                        pickup_time=now,
                        customer_phone=order.customer.phone if order.customer_id else '',
                        **(delivery_details or {}),
                    )
        except DatabaseError as exc:
            logger.exception(f"Failed to move order #{order.order_number} to {new_status}")
            raise PersistenceFailure() from exc

        previous = order.status
        order.refresh_from_db()
        logger.info(
            f"Order #{order.order_number}: {previous} -> {order.status} by {session.role}"
        )

        if new_status == OrderStatus.READY:
            _enqueue(tasks.notify_order_ready_task, order.id)
        return order

    @staticmethod
    def confirm(order, session):
        return OrderService.transition(order, OrderStatus.CONFIRMED, session)

    @staticmethod
    def start_preparing(order, session):
        return OrderService.transition(order, OrderStatus.PREPARING, session)

    @staticmethod
    def mark_ready(order, session):
        return OrderService.transition(order, OrderStatus.READY, session)

    @staticmethod
    def mark_served(order, session):
        return OrderService.transition(order, OrderStatus.SERVED, session)

    @staticmethod
    def pick_up(order, session, delivery_address='', notes=''):
        """Delivery rider collects a ready delivery order."""
        return OrderService.transition(
            order, OrderStatus.DELIVERED, session,
            delivery_details={'delivery_address': delivery_address, 'notes': notes},
        )

    @staticmethod
    def cancel(order, session):
        return OrderService.transition(order, OrderStatus.CANCELLED, session)

    @staticmethod
    def complete(order, session):
        """Close a paid order. Unpaid orders must go through settlement."""
        return OrderService.transition(order, OrderStatus.COMPLETED, session)


class DeliveryService:
    """Delivery runs created when a rider picks up an order."""

    @staticmethod
    def mark_delivered(delivery, session):
        require_role(session, Role.DELIVERY, Role.MANAGER, Role.ADMIN)
        if delivery.status == 'delivered':
            raise IllegalTransition(delivery.status, 'delivered')

        now = timezone.now()
        try:
            with transaction.atomic():
                updated = Delivery.objects.filter(
                    pk=delivery.pk, status=delivery.status
                ).update(status='delivered', delivery_time=now)
                if not updated:
                    raise ConcurrentModification()
        except DatabaseError as exc:
            logger.exception(f"Failed to complete delivery {delivery.pk}")
            raise PersistenceFailure() from exc

        delivery.refresh_from_db()
        logger.info(f"Delivery {delivery.pk} for order #{delivery.order.order_number} delivered")
        return delivery


# ============================================================================
# PAYMENTS
# ============================================================================

class PaymentService:
    """Settlement of unpaid orders."""

    @staticmethod
    def settle_payment(order, session, method, transaction_code=None, discount=Decimal('0')):
        """
        Mark ``order`` paid and completed.

        The total is rounded to whole currency units before the discount is
        taken off; that rounded, discounted total is what gets stored.
        Mobile-money payments without a code get a generated placeholder.
        """
        require_role(session)
        if order.payment_status not in {str(status) for status in SETTLEABLE_PAYMENT_STATES}:
            raise AlreadySettled(f"Order #{order.order_number} is already paid.")
        if method not in PaymentMethod.values:
            raise ValidationError(f"Unknown payment method '{method}'.")

        # Role and status checks happen before any amount is touched.
        attempt_transition(
            order.status, OrderStatus.COMPLETED, session.role,
            order_type=order.order_type, payment_status=PaymentStatus.PAID,
        )

        totals = apply_discount(
            Totals(
                subtotal=order.subtotal,
                service_charge=order.service_charge,
                vat=order.vat,
                discount=Decimal('0'),
                total=round_currency(order.total),
            ),
            discount,
        )

        if not transaction_code and requires_transaction_code(method):
            transaction_code = generate_transaction_code()
            logger.info(f"Order #{order.order_number}: generated transaction code {transaction_code}")

        order = OrderService.transition(
            order,
            OrderStatus.COMPLETED,
            session,
            payment_status=PaymentStatus.PAID,
            payment_method=method,
            transaction_code=transaction_code or None,
            discount=totals.discount,
            total=totals.total,
        )
        logger.info(
            f"Order #{order.order_number} settled via {method}: {order.total} (discount {order.discount})"
        )
        _enqueue(tasks.notify_payment_received_task, order.id)
        return order


# ============================================================================
# RESERVATIONS
# ============================================================================

class ReservationService:
    """Room and table bookings, and the reception desk actions on them."""

    @staticmethod
    def book(session, customer, reservation_type, check_in, room=None, table=None,
             check_out=None, time_slot=None, guests=1, special_requests=''):
        """Create a pending reservation; customers can only book for themselves."""
        require_role(session)
        if session.role == Role.CUSTOMER:
            customer = Customer.objects.get(pk=session.customer_id)

        if reservation_type == 'room':
            prepay_amount = room.price if room is not None else Decimal('0')
        else:
            prepay_amount = to_decimal(getattr(settings, 'HOTEL_TABLE_RESERVATION_PREPAY', 500))

        reservation = Reservation(
            reservation_type=reservation_type,
            customer=customer,
            room=room,
            table=table,
            check_in=check_in,
            check_out=check_out,
            time_slot=time_slot,
            guests=guests,
            status=ReservationStatus.PENDING,
            prepay_amount=prepay_amount,
            special_requests=special_requests,
        )
        reservation.full_clean()

        try:
            reservation.save()
        except DatabaseError as exc:
            logger.exception("Failed to save reservation")
            raise PersistenceFailure() from exc

        logger.info(f"Reservation {reservation.pk} booked ({reservation_type}) for {customer}")
        return reservation

    @staticmethod
    def _transition(reservation, requested, session, room_status=None, room_from=None):
        """
        Move a reservation and, for room bookings, its room to ``room_status``.
        With ``room_from`` the room must currently be in that status.
        """
        require_role(session)
        new_status = attempt_reservation_transition(reservation.status, requested, session.role)
        now = timezone.now()

        try:
            with transaction.atomic():
                updated = Reservation.objects.filter(
                    pk=reservation.pk, status=reservation.status
                ).update(status=new_status, updated_at=now)
                if not updated:
                    raise ConcurrentModification()

                if room_status and reservation.room_id:
                    rooms = Room.objects.filter(pk=reservation.room_id)
                    if room_from:
                        rooms = rooms.filter(status=room_from)
                    if not rooms.update(status=room_status, updated_at=now):
                        current = Room.objects.filter(pk=reservation.room_id).values_list('status', flat=True).first()
                        raise IllegalTransition(
                            current, room_status,
                            message=f"Room is {current}; it must be {room_from} first."
                        )

                if new_status == ReservationStatus.CHECKED_OUT and reservation.room_id:
                    CleaningTask.objects.create(
                        room_id=reservation.room_id,
                        task_type='checkout',
                        requested_by_id=session.staff_id,
                    )
        except DatabaseError as exc:
            logger.exception(f"Failed to move reservation {reservation.pk} to {new_status}")
            raise PersistenceFailure() from exc

        previous = reservation.status
        reservation.refresh_from_db()
        logger.info(f"Reservation {reservation.pk}: {previous} -> {reservation.status} by {session.role}")
        return reservation

    @staticmethod
    def confirm(reservation, session):
        return ReservationService._transition(reservation, ReservationStatus.CONFIRMED, session)

    @staticmethod
    def check_in(reservation, session):
        """Guest arrives; the room must be available and becomes occupied."""
        return ReservationService._transition(
            reservation, ReservationStatus.CHECKED_IN, session, room_status='occupied', room_from='available'
        )

    @staticmethod
    def check_out(reservation, session):
        """Guest leaves; the room goes to cleaning, never straight to available."""
        reservation = ReservationService._transition(
            reservation, ReservationStatus.CHECKED_OUT, session, room_status='cleaning'
        )
        if reservation.room_id:
            _enqueue(tasks.notify_room_needs_cleaning_task, reservation.room_id)
        return reservation

    @staticmethod
    def cancel(reservation, session):
        return ReservationService._transition(reservation, ReservationStatus.CANCELLED, session)


# ============================================================================
# HOUSEKEEPING
# ============================================================================

class HousekeepingService:
    """Room cleaning and maintenance reports."""

    @staticmethod
    def mark_room_clean(room, session):
        """Room finished cleaning: cleaning -> available, open tasks completed."""
        require_role(session, Role.CLEANING, Role.MANAGER, Role.ADMIN)
        if room.status != 'cleaning':
            raise IllegalTransition(room.status, 'available')

        now = timezone.now()
        try:
            with transaction.atomic():
                updated = Room.objects.filter(pk=room.pk, status='cleaning').update(
                    status='available', updated_at=now
                )
                if not updated:
                    raise ConcurrentModification()
                CleaningTask.objects.filter(
                    room=room, status__in=['pending', 'in_progress']
                ).update(status='completed', completed_at=now)
        except DatabaseError as exc:
            logger.exception(f"Failed to mark room {room.room_number} clean")
            raise PersistenceFailure() from exc

        room.refresh_from_db()
        logger.info(f"Room {room.room_number} cleaned and available")
        return room

    @staticmethod
    def report_maintenance(room, session, issue, priority='medium'):
        require_role(session, *STAFF_ROLES)
        if not issue or not issue.strip():
            raise ValidationError('Please describe the issue.')

        try:
            request = MaintenanceRequest.objects.create(
                room=room,
                reported_by_id=session.staff_id,
                issue=issue.strip(),
                priority=priority,
                status='reported',
            )
        except DatabaseError as exc:
            logger.exception(f"Failed to report maintenance for room {room.room_number}")
            raise PersistenceFailure() from exc

        logger.info(f"Maintenance reported for room {room.room_number}: {request.issue[:60]}")
        return request

    @staticmethod
    def set_room_status(room, session, status):
        """
        Manager override: take a room out of service or bring it back.
        Allowed moves are in MANUAL_ROOM_STATUS_MOVES; occupied rooms are
        never freed this way.
        """
        require_role(session)
        new_status = attempt_room_status_change(room.status, status, session.role)

        now = timezone.now()
        try:
            with transaction.atomic():
                updated = Room.objects.filter(pk=room.pk, status=room.status).update(
                    status=new_status, updated_at=now
                )
                if not updated:
                    raise ConcurrentModification()
        except DatabaseError as exc:
            logger.exception(f"Failed to set room {room.room_number} to {new_status}")
            raise PersistenceFailure() from exc

        previous = room.status
        room.refresh_from_db()
        logger.info(f"Room {room.room_number}: {previous} -> {room.status} by {session.role}")
        return room


# ============================================================================
# CUSTOMERS
# ============================================================================

class CustomerService:
    """Customer portal sign-in."""

    @staticmethod
    def sign_in(name, phone):
        """
        Find the customer by phone or register them, and count the visit.
        Returns the customer with a linked login user.
        """
        name, phone = (name or '').strip(), (phone or '').strip()
        if not name or not phone:
            raise ValidationError('Please enter your name and phone number.')

        try:
            with transaction.atomic():
                customer = Customer.objects.select_for_update().filter(phone=phone).order_by('id').first()
                if customer is None:
                    customer = Customer.objects.create(name=name, phone=phone, total_visits=1)
                    logger.info(f"New customer {customer.pk} registered from the portal")
                else:
                    Customer.objects.filter(pk=customer.pk).update(total_visits=F('total_visits') + 1)

                if customer.user_id is None:
                    user = User.objects.create_user(username=f'customer_{customer.pk}')
                    Customer.objects.filter(pk=customer.pk).update(user=user)
        except DatabaseError as exc:
            logger.exception("Failed to sign in customer")
            raise PersistenceFailure() from exc

        customer.refresh_from_db()
        return customer
