from django.db import models
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.utils import timezone
from decimal import Decimal

from .billing import compute_totals, round_currency
from .workflow import (
    OrderType, OrderStatus, PaymentStatus, PaymentMethod, ReservationStatus,
    ORDER_TERMINAL_STATES,
)

MONEY = dict(max_digits=12, decimal_places=2, default=Decimal('0.00'), validators=[MinValueValidator(0)])
# Service charge, VAT and pre-settlement totals keep full precision.
PRECISE_MONEY = dict(max_digits=16, decimal_places=6, default=Decimal('0'), validators=[MinValueValidator(0)])

# ============================================================================
# PEOPLE
# ============================================================================

class Staff(models.Model):
    """
    Staff member profile. The member's role is the auth group of the linked
    user (Admin, Manager, Receptionist, Waitstaff, Kitchen, Cleaning, Delivery).
    """
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='staff_profile')
    full_name = models.CharField(max_length=150)
    phone = models.CharField(max_length=30, blank=True)
    rating = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(0), MaxValueValidator(5)]
    )
    total_orders = models.PositiveIntegerField(default=0)
    hire_date = models.DateField(default=timezone.localdate)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['full_name']
        verbose_name_plural = 'Staff'

    def __str__(self):
        return self.full_name


class Customer(models.Model):
    """Hotel guest or restaurant customer."""
    user = models.OneToOneField(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='customer_profile'
    )
    name = models.CharField(max_length=150)
    phone = models.CharField(max_length=30)
    email = models.EmailField(blank=True)
    is_loyal = models.BooleanField(default=False)
    total_visits = models.PositiveIntegerField(default=0)
    preferred_staff = models.ForeignKey(
        Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='preferred_by'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.phone})"


# ============================================================================
# ROOMS & TABLES
# ============================================================================

class Room(models.Model):
    """
    Hotel room.
    Status flow: Available -> Occupied -> Cleaning -> Available
    """
    CLASS_CHOICES = [
        ('safari', 'Safari'),
        ('savannah', 'Savannah'),
        ('serenity', 'Serenity'),
    ]
    STATUS_CHOICES = [
        ('available', 'Available'),
        ('occupied', 'Occupied'),
        ('cleaning', 'Cleaning'),
        ('maintenance', 'Maintenance'),
    ]

    class_type = models.CharField(max_length=20, choices=CLASS_CHOICES)
    name = models.CharField(max_length=100)
    room_number = models.CharField(max_length=10, unique=True)
    price = models.DecimalField(**MONEY)
    features = models.JSONField(default=list, blank=True)
    floor = models.IntegerField(default=1)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='available')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['room_number']

    def __str__(self):
        return f"Room {self.room_number} ({self.get_status_display()})"


class DiningTable(models.Model):
    """Restaurant table."""
    CLASS_CHOICES = [
        ('intimate', 'Intimate'),
        ('family', 'Family'),
        ('chiefs', "Chief's"),
    ]
    STATUS_CHOICES = [
        ('available', 'Available'),
        ('occupied', 'Occupied'),
        ('reserved', 'Reserved'),
        ('cleaning', 'Cleaning'),
    ]

    class_type = models.CharField(max_length=20, choices=CLASS_CHOICES)
    table_number = models.IntegerField(unique=True)
    capacity = models.IntegerField(validators=[MinValueValidator(1)])
    location = models.CharField(max_length=100, blank=True)
    features = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='available')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['table_number']
        verbose_name_plural = 'Dining tables'

    def __str__(self):
        return f"Table {self.table_number} ({self.get_status_display()})"


# ============================================================================
# MENU MANAGEMENT
# ============================================================================

class MenuItem(models.Model):
    """Menu items available in the restaurant."""
    CATEGORY_CHOICES = [
        ('nyama', 'Nyama'),
        ('wok', 'Wok'),
        ('vegetarian', 'Vegetarian'),
        ('seafood', 'Seafood'),
        ('sweets', 'Sweets'),
        ('drinks', 'Drinks'),
    ]

    name = models.CharField(max_length=100)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    price = models.DecimalField(**MONEY)
    description = models.TextField(blank=True)
    preparation_time = models.PositiveIntegerField(default=15, help_text="Minutes")
    is_available = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['category', 'name']

    def __str__(self):
        return f"{self.name} - KES {self.price}"


# ============================================================================
# ORDER MANAGEMENT
# ============================================================================

class OrderNumberSequence(models.Model):
    """
    Single-row counter for order numbers. Incrementing it row-locks the
    counter until the surrounding transaction ends.
    """
    last_number = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"Last order number {self.last_number}"


class Order(models.Model):
    """
    One customer order and its line items.
    Status changes go through hotel.services.OrderService only; ``version``
    is bumped on every write and checked by the conditional update.
    """
    order_number = models.PositiveIntegerField(unique=True)
    order_type = models.CharField(max_length=20, choices=OrderType.choices, default=OrderType.DINE_IN)
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    staff = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    table = models.ForeignKey(DiningTable, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    room = models.ForeignKey(Room, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING)

    subtotal = models.DecimalField(**MONEY)
    service_charge = models.DecimalField(**PRECISE_MONEY)
    vat = models.DecimalField(**PRECISE_MONEY)
    discount = models.DecimalField(**MONEY)
    total = models.DecimalField(**PRECISE_MONEY)
    # Rates in force when the order was placed.
    service_charge_rate = models.DecimalField(max_digits=5, decimal_places=4, default=Decimal('0.10'))
    vat_rate = models.DecimalField(max_digits=5, decimal_places=4, default=Decimal('0.16'))

    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, null=True, blank=True)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.UNPAID)
    transaction_code = models.CharField(max_length=40, null=True, blank=True)
    notes = models.TextField(blank=True)
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Order #{self.order_number} ({self.get_status_display()})"

    @property
    def is_terminal(self):
        return self.status in {str(status) for status in ORDER_TERMINAL_STATES}

    def calculate_totals(self, service_charge_rate=None, vat_rate=None):
        """Recompute the breakdown from the stored line items, at the order's own rates by default."""
        return compute_totals(
            self.items.all(),
            self.service_charge_rate if service_charge_rate is None else service_charge_rate,
            self.vat_rate if vat_rate is None else vat_rate,
        )

    @property
    def display_total(self):
        return round_currency(self.total)

    def clean(self):
        # Discounts apply to the rounded amount.
        if self.discount > round_currency(self.subtotal + self.service_charge + self.vat):
            raise ValidationError({'discount': 'Discount cannot exceed the order amount.'})
        if self.order_type == OrderType.ROOM_SERVICE and self.room_id is None:
            raise ValidationError({'room': 'Room service orders need a room.'})


class OrderItem(models.Model):
    """Individual line in an order, with the unit price captured at order time."""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('preparing', 'Preparing'),
        ('ready', 'Ready'),
        ('served', 'Served'),
        ('cancelled', 'Cancelled'),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    menu_item = models.ForeignKey(MenuItem, on_delete=models.PROTECT)
    quantity = models.IntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(**MONEY)
    total_price = models.DecimalField(**MONEY)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']
        unique_together = ('order', 'menu_item')

    def __str__(self):
        return f"{self.menu_item.name} x{self.quantity}"

    def save(self, *args, **kwargs):
        self.total_price = self.unit_price * self.quantity
        super().save(*args, **kwargs)


class Delivery(models.Model):
    """Delivery run for a delivery-type order, created when it is picked up."""
    STATUS_CHOICES = [
        ('assigned', 'Assigned'),
        ('picked_up', 'Picked Up'),
        ('in_transit', 'In Transit'),
        ('delivered', 'Delivered'),
    ]

    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name='delivery')
    staff = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='deliveries')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='assigned')
    delivery_address = models.TextField(blank=True)
    customer_phone = models.CharField(max_length=30, blank=True)
    pickup_time = models.DateTimeField(null=True, blank=True)
    delivery_time = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']
        verbose_name_plural = 'Deliveries'

    def __str__(self):
        return f"Delivery for order #{self.order.order_number} ({self.get_status_display()})"


# ============================================================================
# RESERVATIONS
# ============================================================================

class Reservation(models.Model):
    """
    Room or table booking.
    Room bookings need a check-out date; table bookings need a time slot.
    """
    TYPE_CHOICES = [
        ('room', 'Room'),
        ('table', 'Table'),
    ]
    PREPAY_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
    ]

    reservation_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='reservations')
    room = models.ForeignKey(Room, on_delete=models.PROTECT, null=True, blank=True, related_name='reservations')
    table = models.ForeignKey(
        DiningTable, on_delete=models.PROTECT, null=True, blank=True, related_name='reservations'
    )
    check_in = models.DateField()
    check_out = models.DateField(null=True, blank=True)
    time_slot = models.CharField(max_length=20, null=True, blank=True)
    guests = models.IntegerField(default=1, validators=[MinValueValidator(1)])
    status = models.CharField(max_length=20, choices=ReservationStatus.choices, default=ReservationStatus.PENDING)
    prepay_amount = models.DecimalField(**MONEY)
    prepay_status = models.CharField(max_length=20, choices=PREPAY_STATUS_CHOICES, default='pending')
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, null=True, blank=True)
    transaction_code = models.CharField(max_length=40, null=True, blank=True)
    special_requests = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(reservation_type='room', room__isnull=False, table__isnull=True)
                    | models.Q(reservation_type='table', table__isnull=False, room__isnull=True)
                ),
                name='reservation_target_matches_type',
            ),
        ]

    def __str__(self):
        target = f"Room {self.room.room_number}" if self.room_id else f"Table {self.table.table_number}"
        return f"{target} for {self.customer.name} on {self.check_in}"

    def clean(self):
        errors = {}
        if self.reservation_type == 'room':
            if self.room_id is None:
                errors['room'] = 'Room reservations need a room.'
            if self.table_id is not None:
                errors['table'] = 'Room reservations cannot reference a table.'
            if self.check_out is None:
                errors['check_out'] = 'Room reservations need a check-out date.'
            elif self.check_in and self.check_out <= self.check_in:
                errors['check_out'] = 'Check-out must be after check-in.'
        elif self.reservation_type == 'table':
            if self.table_id is None:
                errors['table'] = 'Table reservations need a table.'
            if self.room_id is not None:
                errors['room'] = 'Table reservations cannot reference a room.'
            if not self.time_slot:
                errors['time_slot'] = 'Table reservations need a time slot.'
        if errors:
            raise ValidationError(errors)


# ============================================================================
# HOUSEKEEPING
# ============================================================================

class CleaningTask(models.Model):
    """Housekeeping task for a room. Check-out opens one automatically."""
    TASK_TYPE_CHOICES = [
        ('checkout', 'Checkout Clean'),
        ('routine', 'Routine'),
        ('deep', 'Deep Clean'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
    ]

    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name='cleaning_tasks')
    staff = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='cleaning_tasks')
    task_type = models.CharField(max_length=20, choices=TASK_TYPE_CHOICES, default='routine')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    requested_by = models.ForeignKey(
        Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='requested_cleaning_tasks'
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.get_task_type_display()} - Room {self.room.room_number}"


class MaintenanceRequest(models.Model):
    """Issue reported against a room."""
    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
    ]
    STATUS_CHOICES = [
        ('reported', 'Reported'),
        ('in_progress', 'In Progress'),
        ('resolved', 'Resolved'),
    ]

    room = models.ForeignKey(Room, on_delete=models.CASCADE, null=True, blank=True, related_name='maintenance_requests')
    reported_by = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='reported_issues')
    issue = models.TextField()
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='reported')
    resolved_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        room = f"Room {self.room.room_number}" if self.room_id else "General"
        return f"{room}: {self.issue[:40]}"


# ============================================================================
# NOTIFICATIONS
# ============================================================================

class Notification(models.Model):
    """In-app notifications for users."""
    NOTIFICATION_TYPES = [
        ('order_placed', 'Order Placed'),
        ('order_ready', 'Order Ready'),
        ('order_unpaid', 'Order Unpaid'),
        ('order_cancelled', 'Order Cancelled'),
        ('payment_received', 'Payment Received'),
        ('room_cleaning', 'Room Needs Cleaning'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    notification_type = models.CharField(max_length=50, choices=NOTIFICATION_TYPES)
    title = models.CharField(max_length=200)
    message = models.TextField()

    # Related objects
    order_id = models.IntegerField(null=True, blank=True)
    reservation_id = models.IntegerField(null=True, blank=True)
    room_id = models.IntegerField(null=True, blank=True)

    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} - {self.user.username}"

    def mark_as_read(self):
        """Mark notification as read."""
        self.is_read = True
        self.read_at = timezone.now()
        self.save()
