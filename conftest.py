"""
Root conftest.py for the hotel test-suite.

Fixtures for staff accounts by role, their portal sessions, menu items,
rooms, tables and a ready-made pending order.
"""
import pytest
from decimal import Decimal
from django.contrib.auth.models import User, Group
from rest_framework.test import APIClient

from hotel.models import Staff, Customer, Room, DiningTable, MenuItem
from hotel.services import OrderService
from hotel.session import GROUP_NAMES, Role, session_for_user


# ============================================================================
# USERS & SESSIONS
# ============================================================================

@pytest.fixture
def make_staff_user(db):
    """
    Factory for staff users in a role group.

    Usage:
        chef = make_staff_user(Role.KITCHEN)
    """
    def _make(role, username=None):
        username = username or f'{role.value}_user'
        user = User.objects.create_user(username=username, password='secret123')
        group, _ = Group.objects.get_or_create(name=GROUP_NAMES[role])
        user.groups.add(group)
        Staff.objects.create(user=user, full_name=username.replace('_', ' ').title())
        return user
    return _make


@pytest.fixture
def admin_user(make_staff_user):
    return make_staff_user(Role.ADMIN)


@pytest.fixture
def manager_user(make_staff_user):
    return make_staff_user(Role.MANAGER)


@pytest.fixture
def reception_user(make_staff_user):
    return make_staff_user(Role.RECEPTIONIST)


@pytest.fixture
def waiter_user(make_staff_user):
    return make_staff_user(Role.WAITSTAFF)


@pytest.fixture
def kitchen_user(make_staff_user):
    return make_staff_user(Role.KITCHEN)


@pytest.fixture
def cleaning_user(make_staff_user):
    return make_staff_user(Role.CLEANING)


@pytest.fixture
def delivery_user(make_staff_user):
    return make_staff_user(Role.DELIVERY)


@pytest.fixture
def customer(db):
    user = User.objects.create_user(username='amina', password='secret123')
    return Customer.objects.create(user=user, name='Amina Hassan', phone='+254711222333')


@pytest.fixture
def customer_user(customer):
    return customer.user


@pytest.fixture
def manager_session(manager_user):
    return session_for_user(manager_user)


@pytest.fixture
def reception_session(reception_user):
    return session_for_user(reception_user)


@pytest.fixture
def waiter_session(waiter_user):
    return session_for_user(waiter_user)


@pytest.fixture
def kitchen_session(kitchen_user):
    return session_for_user(kitchen_user)


@pytest.fixture
def cleaning_session(cleaning_user):
    return session_for_user(cleaning_user)


@pytest.fixture
def delivery_session(delivery_user):
    return session_for_user(delivery_user)


@pytest.fixture
def customer_session(customer_user):
    return session_for_user(customer_user)


# ============================================================================
# API CLIENT
# ============================================================================

@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for(api_client):
    """
    Provide an API client authenticated as the given user.

    Usage:
        def test_menu(client_for, waiter_user):
            response = client_for(waiter_user).get('/api/menu-items/')
    """
    def _client(user):
        api_client.force_authenticate(user=user)
        return api_client
    return _client


# ============================================================================
# CATALOGUE
# ============================================================================

@pytest.fixture
def nyama_choma(db):
    return MenuItem.objects.create(name='Nyama Choma', category='nyama', price=Decimal('500'))


@pytest.fixture
def dawa(db):
    return MenuItem.objects.create(name='Dawa', category='drinks', price=Decimal('300'))


@pytest.fixture
def room(db):
    return Room.objects.create(
        class_type='savannah', name='Savannah Deluxe', room_number='201', price=Decimal('9800'), floor=2
    )


@pytest.fixture
def table(db):
    return DiningTable.objects.create(class_type='family', table_number=4, capacity=6)


@pytest.fixture
def pending_order(waiter_session, table, nyama_choma, dawa):
    """Dine-in order for 2x Nyama Choma and 1x Dawa: subtotal 1300, total 1658.8."""
    cart = OrderService.build_cart([(nyama_choma, 2), (dawa, 1)])
    return OrderService.submit_order(waiter_session, cart, table=table)
