from rest_framework import serializers
from django.contrib.auth.models import User

from .billing import round_currency
from .models import (
    Customer, Room, DiningTable, MenuItem, Order, OrderItem, Delivery,
    Reservation, CleaningTask, MaintenanceRequest, Notification,
)
from .session import role_for_user
from .workflow import OrderType, PaymentMethod, allowed_order_transitions


# ============================================================================
# USER & PEOPLE SERIALIZERS
# ============================================================================

class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model."""
    groups = serializers.StringRelatedField(many=True, read_only=True)
    role = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'groups', 'role', 'is_active']
        read_only_fields = ['id']

    def get_role(self, obj):
        role = role_for_user(obj)
        return role.value if role else None


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ['id', 'name', 'phone', 'email', 'is_loyal', 'total_visits', 'preferred_staff', 'created_at']
        read_only_fields = ['id', 'total_visits', 'created_at']


class CustomerSignInSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)
    phone = serializers.CharField(max_length=30)


# ============================================================================
# ROOM & TABLE SERIALIZERS
# ============================================================================

class RoomSerializer(serializers.ModelSerializer):
    """Serializer for Room model."""
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Room
        fields = [
            'id', 'class_type', 'name', 'room_number', 'price', 'features',
            'floor', 'status', 'status_display', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'status', 'created_at', 'updated_at']


class RoomStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Room.STATUS_CHOICES)


class DiningTableSerializer(serializers.ModelSerializer):
    """Serializer for DiningTable model."""
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = DiningTable
        fields = [
            'id', 'class_type', 'table_number', 'capacity', 'location',
            'features', 'status', 'status_display', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_capacity(self, value):
        if value < 1:
            raise serializers.ValidationError("Capacity must be at least 1.")
        return value


# ============================================================================
# MENU ITEM SERIALIZERS
# ============================================================================

class MenuItemSerializer(serializers.ModelSerializer):
    """Serializer for MenuItem model."""
    category_display = serializers.CharField(source='get_category_display', read_only=True)

    class Meta:
        model = MenuItem
        fields = [
            'id', 'name', 'category', 'category_display', 'price', 'description',
            'preparation_time', 'is_available', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Price cannot be negative.")
        return value


# ============================================================================
# ORDER SERIALIZERS
# ============================================================================

class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem model."""
    menu_item_name = serializers.CharField(source='menu_item.name', read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'menu_item', 'menu_item_name', 'quantity', 'unit_price',
            'total_price', 'status', 'notes', 'created_at'
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Simplified serializer for Order list view."""
    customer_name = serializers.SerializerMethodField(read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    items_count = serializers.SerializerMethodField(read_only=True)
    display_total = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'order_type', 'customer', 'customer_name',
            'status', 'status_display', 'payment_status', 'items_count',
            'display_total', 'created_at'
        ]
        read_only_fields = fields

    def get_customer_name(self, obj):
        return obj.customer.name if obj.customer_id else 'Walk-in'

    def get_items_count(self, obj):
        return obj.items.count()

    def get_display_total(self, obj):
        return str(round_currency(obj.total))


class OrderDetailSerializer(OrderListSerializer):
    """Detailed serializer for Order with items and the money breakdown."""
    items = OrderItemSerializer(many=True, read_only=True)
    display_service_charge = serializers.SerializerMethodField(read_only=True)
    display_vat = serializers.SerializerMethodField(read_only=True)
    next_statuses = serializers.SerializerMethodField(read_only=True)

    class Meta(OrderListSerializer.Meta):
        fields = [
            'id', 'order_number', 'order_type', 'customer', 'customer_name', 'staff',
            'table', 'room', 'status', 'status_display', 'items',
            'subtotal', 'service_charge', 'vat', 'discount', 'total',
            'display_service_charge', 'display_vat', 'display_total',
            'payment_method', 'payment_status', 'transaction_code', 'notes',
            'next_statuses', 'version', 'created_at', 'updated_at', 'completed_at'
        ]
        read_only_fields = fields

    def get_display_service_charge(self, obj):
        return str(round_currency(obj.service_charge))

    def get_display_vat(self, obj):
        return str(round_currency(obj.vat))

    def get_next_statuses(self, obj):
        """Statuses the requesting role could move this order to."""
        session = self.context.get('session')
        if session is None or obj.is_terminal:
            return []
        return [str(status) for status in allowed_order_transitions(obj.status, session.role, obj.order_type)]


class OrderLineSerializer(serializers.Serializer):
    """One cart line submitted with a new order."""
    menu_item = serializers.PrimaryKeyRelatedField(queryset=MenuItem.objects.all())
    quantity = serializers.IntegerField(min_value=1)

    def validate_menu_item(self, value):
        if not value.is_available:
            raise serializers.ValidationError(f'Menu item "{value.name}" is not available.')
        return value


class OrderCreateSerializer(serializers.Serializer):
    """Payload for submitting a cart as a new order."""
    order_type = serializers.ChoiceField(choices=OrderType.choices, default=OrderType.DINE_IN)
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)
    table = serializers.PrimaryKeyRelatedField(queryset=DiningTable.objects.all(), required=False, allow_null=True)
    room = serializers.PrimaryKeyRelatedField(queryset=Room.objects.all(), required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = OrderLineSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("Cannot submit an empty order.")
        return value

    def validate(self, data):
        if data.get('order_type') == OrderType.ROOM_SERVICE and not data.get('room'):
            raise serializers.ValidationError({'room': 'Room service orders need a room.'})
        return data


class SettlePaymentSerializer(serializers.Serializer):
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    transaction_code = serializers.CharField(required=False, allow_blank=True, max_length=40)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)

    def validate_transaction_code(self, value):
        return value.strip().upper()


class PickUpSerializer(serializers.Serializer):
    delivery_address = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class DeliverySerializer(serializers.ModelSerializer):
    order_number = serializers.IntegerField(source='order.order_number', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Delivery
        fields = [
            'id', 'order', 'order_number', 'staff', 'status', 'status_display',
            'delivery_address', 'customer_phone', 'pickup_time', 'delivery_time',
            'notes', 'created_at'
        ]
        read_only_fields = fields


# ============================================================================
# RESERVATION SERIALIZERS
# ============================================================================

class ReservationSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Reservation
        fields = [
            'id', 'reservation_type', 'customer', 'customer_name', 'room', 'table',
            'check_in', 'check_out', 'time_slot', 'guests', 'status', 'status_display',
            'prepay_amount', 'prepay_status', 'payment_method', 'transaction_code',
            'special_requests', 'created_at'
        ]
        read_only_fields = fields


class ReservationCreateSerializer(serializers.Serializer):
    reservation_type = serializers.ChoiceField(choices=Reservation.TYPE_CHOICES)
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)
    room = serializers.PrimaryKeyRelatedField(queryset=Room.objects.all(), required=False, allow_null=True)
    table = serializers.PrimaryKeyRelatedField(queryset=DiningTable.objects.all(), required=False, allow_null=True)
    check_in = serializers.DateField()
    check_out = serializers.DateField(required=False, allow_null=True)
    time_slot = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    guests = serializers.IntegerField(min_value=1, default=1)
    special_requests = serializers.CharField(required=False, allow_blank=True, default='')


# ============================================================================
# HOUSEKEEPING SERIALIZERS
# ============================================================================

class CleaningTaskSerializer(serializers.ModelSerializer):
    room_number = serializers.CharField(source='room.room_number', read_only=True)

    class Meta:
        model = CleaningTask
        fields = [
            'id', 'room', 'room_number', 'staff', 'task_type', 'status',
            'requested_by', 'completed_at', 'notes', 'created_at'
        ]
        read_only_fields = fields


class MaintenanceRequestSerializer(serializers.ModelSerializer):
    room_number = serializers.CharField(source='room.room_number', read_only=True, default=None)

    class Meta:
        model = MaintenanceRequest
        fields = [
            'id', 'room', 'room_number', 'reported_by', 'issue', 'priority',
            'status', 'resolved_at', 'notes', 'created_at'
        ]
        read_only_fields = fields


class MaintenanceReportSerializer(serializers.Serializer):
    issue = serializers.CharField()
    priority = serializers.ChoiceField(choices=MaintenanceRequest.PRIORITY_CHOICES, default='medium')


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            'id', 'notification_type', 'title', 'message', 'order_id',
            'reservation_id', 'room_id', 'is_read', 'created_at', 'read_at'
        ]
        read_only_fields = fields
