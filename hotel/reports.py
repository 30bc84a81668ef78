"""
Sales and operations reporting.
"""
from django.db.models import Count, Sum
from django.utils import timezone
from datetime import datetime, time
from decimal import Decimal

from .models import Order, Reservation, Room


def _day_bounds(day):
    start = timezone.make_aware(datetime.combine(day, time.min))
    end = timezone.make_aware(datetime.combine(day, time.max))
    return start, end


def daily_sales_summary(day):
    """Revenue, order counts and occupancy for one calendar day."""
    start, end = _day_bounds(day)

    paid_orders = Order.objects.filter(payment_status='paid', completed_at__range=[start, end])
    totals = paid_orders.aggregate(
        revenue=Sum('total'),
        discounts=Sum('discount'),
        vat=Sum('vat'),
        service_charge=Sum('service_charge'),
    )
    revenue = totals['revenue'] or Decimal('0')
    paid_count = paid_orders.count()

    by_method = {
        row['payment_method']: str(row['amount'])
        for row in paid_orders.values('payment_method').annotate(amount=Sum('total')).order_by('payment_method')
    }
    by_type = {
        row['order_type']: row['count']
        for row in Order.objects.filter(created_at__range=[start, end])
        .values('order_type').annotate(count=Count('id')).order_by('order_type')
    }

    rooms = Room.objects.all()
    occupied = rooms.filter(status='occupied').count()

    return {
        'date': str(day),
        'total_revenue': str(revenue.quantize(Decimal('0.01'))),
        'total_paid_orders': paid_count,
        'total_orders': sum(by_type.values()),
        'average_order_value': str((revenue / paid_count).quantize(Decimal('0.01'))) if paid_count else '0.00',
        'total_discounts': str(totals['discounts'] or Decimal('0')),
        'total_vat': str((totals['vat'] or Decimal('0')).quantize(Decimal('0.01'))),
        'total_service_charge': str((totals['service_charge'] or Decimal('0')).quantize(Decimal('0.01'))),
        'revenue_by_payment_method': by_method,
        'orders_by_type': by_type,
        'rooms_occupied': occupied,
        'rooms_total': rooms.count(),
        'check_ins': Reservation.objects.filter(check_in=day, status__in=['checked_in', 'checked_out']).count(),
    }
