from django.contrib import admin
from .models import (
    Staff, Customer, Room, DiningTable, MenuItem, Order, OrderItem, Delivery,
    Reservation, CleaningTask, MaintenanceRequest, Notification,
)


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'user', 'phone', 'rating', 'total_orders', 'is_active']
    list_filter = ['is_active', 'user__groups']
    search_fields = ['full_name', 'user__username', 'phone']


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'phone', 'email', 'is_loyal', 'total_visits']
    list_filter = ['is_loyal']
    search_fields = ['name', 'phone', 'email']
    readonly_fields = ['created_at']


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ['room_number', 'name', 'class_type', 'floor', 'price', 'status', 'updated_at']
    list_filter = ['status', 'class_type', 'floor']
    search_fields = ['room_number', 'name']
    readonly_fields = ['created_at', 'updated_at']
    fieldsets = (
        ('Room Information', {
            'fields': ('room_number', 'name', 'class_type', 'floor', 'price', 'features', 'status')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(DiningTable)
class DiningTableAdmin(admin.ModelAdmin):
    list_display = ['table_number', 'class_type', 'capacity', 'location', 'status', 'updated_at']
    list_filter = ['status', 'class_type']
    search_fields = ['table_number', 'location']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'price', 'preparation_time', 'is_available', 'updated_at']
    list_filter = ['category', 'is_available']
    search_fields = ['name', 'description']
    readonly_fields = ['created_at', 'updated_at']
    fieldsets = (
        ('Menu Item Details', {
            'fields': ('name', 'category', 'price', 'description', 'preparation_time', 'is_available')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['menu_item', 'quantity', 'unit_price', 'total_price', 'status']
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Orders are read-only here; status and payment change through the API."""
    list_display = ['order_number', 'order_type', 'customer', 'status', 'payment_status', 'total', 'created_at', 'items_count']
    list_filter = ['status', 'payment_status', 'order_type', 'created_at']
    search_fields = ['order_number', 'customer__name', 'transaction_code']
    readonly_fields = [
        'order_number', 'status', 'subtotal', 'service_charge', 'vat', 'discount', 'total',
        'service_charge_rate', 'vat_rate',
        'payment_method', 'payment_status', 'transaction_code', 'version',
        'created_at', 'updated_at', 'completed_at',
    ]
    inlines = [OrderItemInline]
    fieldsets = (
        ('Order', {
            'fields': ('order_number', 'order_type', 'customer', 'staff', 'table', 'room', 'status', 'notes')
        }),
        ('Amounts', {
            'fields': ('subtotal', 'service_charge', 'vat', 'discount', 'total', 'service_charge_rate', 'vat_rate')
        }),
        ('Payment', {
            'fields': ('payment_method', 'payment_status', 'transaction_code')
        }),
        ('Timestamps', {
            'fields': ('version', 'created_at', 'updated_at', 'completed_at'),
            'classes': ('collapse',)
        }),
    )

    def items_count(self, obj):
        return obj.items.count()
    items_count.short_description = 'Items'


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    list_display = ['order', 'staff', 'status', 'pickup_time', 'delivery_time']
    list_filter = ['status']
    search_fields = ['order__order_number', 'delivery_address', 'customer_phone']


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ['id', 'reservation_type', 'customer', 'room', 'table', 'check_in', 'check_out', 'status']
    list_filter = ['reservation_type', 'status', 'check_in']
    search_fields = ['customer__name', 'customer__phone', 'room__room_number']
    readonly_fields = ['status', 'created_at', 'updated_at']


@admin.register(CleaningTask)
class CleaningTaskAdmin(admin.ModelAdmin):
    list_display = ['room', 'task_type', 'status', 'staff', 'created_at', 'completed_at']
    list_filter = ['status', 'task_type']
    search_fields = ['room__room_number']


@admin.register(MaintenanceRequest)
class MaintenanceRequestAdmin(admin.ModelAdmin):
    list_display = ['room', 'priority', 'status', 'reported_by', 'created_at']
    list_filter = ['priority', 'status']
    search_fields = ['room__room_number', 'issue']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'notification_type', 'is_read', 'created_at']
    list_filter = ['notification_type', 'is_read']
    search_fields = ['title', 'user__username']
