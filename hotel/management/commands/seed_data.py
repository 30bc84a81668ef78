from django.core.management.base import BaseCommand
from django.contrib.auth.models import User, Group, Permission
from django.contrib.contenttypes.models import ContentType
from django.db import transaction
from django.utils import timezone
from datetime import timedelta
from decimal import Decimal

from hotel.models import (
    Staff, Customer, Room, DiningTable, MenuItem, Order, Reservation, CleaningTask, MaintenanceRequest,
)
from hotel.services import HousekeepingService, OrderService, PaymentService, ReservationService
from hotel.session import GROUP_NAMES, Role, session_for_user
from hotel.workflow import OrderType


class Command(BaseCommand):
    help = 'Seed database with hotel staff, rooms, tables, menu and sample activity'

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS('Starting data seed...'))

        # Create user groups/roles
        self.stdout.write(self.style.HTTP_INFO('Creating user roles...'))
        groups = {role: Group.objects.get_or_create(name=name)[0] for role, name in GROUP_NAMES.items()}
        self._setup_permissions(groups)

        # Create staff users
        self.stdout.write(self.style.HTTP_INFO('Creating staff accounts...'))
        staff_data = [
            ('admin1', 'Grace Wanjiru', Role.ADMIN),
            ('manager1', 'David Otieno', Role.MANAGER),
            ('reception1', 'Faith Njeri', Role.RECEPTIONIST),
            ('waiter1', 'Brian Kiprop', Role.WAITSTAFF),
            ('waiter2', 'Mercy Achieng', Role.WAITSTAFF),
            ('chef1', 'Joseph Mwangi', Role.KITCHEN),
            ('cleaner1', 'Esther Wambui', Role.CLEANING),
            ('rider1', 'Kevin Omondi', Role.DELIVERY),
        ]
        users = {}
        for username, full_name, role in staff_data:
            user = self._create_user(username, f'{username}@savannahpalace.co.ke', f'{username}123', groups[role])
            Staff.objects.get_or_create(user=user, defaults={'full_name': full_name, 'phone': '+254700000000'})
            users[username] = user
        self.stdout.write(self.style.SUCCESS(f'✓ Created {len(users)} staff accounts'))

        # Create a customer account
        guest_user = self._create_user('guest1', 'amina@example.com', 'guest123', None)
        guest, created = Customer.objects.get_or_create(
            user=guest_user,
            defaults={'name': 'Amina Hassan', 'phone': '+254711222333', 'email': 'amina@example.com'}
        )
        self.stdout.write(self.style.SUCCESS('✓ Created customer account guest1'))

        # Create rooms
        self.stdout.write(self.style.HTTP_INFO('Creating rooms...'))
        rooms_data = [
            ('101', 'Safari Standard', 'safari', 1, 6500, ['Queen bed', 'Garden view']),
            ('102', 'Safari Standard', 'safari', 1, 6500, ['Twin beds', 'Garden view']),
            ('103', 'Safari Standard', 'safari', 1, 6500, ['Queen bed']),
            ('201', 'Savannah Deluxe', 'savannah', 2, 9800, ['King bed', 'Balcony', 'Minibar']),
            ('202', 'Savannah Deluxe', 'savannah', 2, 9800, ['King bed', 'Balcony']),
            ('301', 'Serenity Suite', 'serenity', 3, 15500, ['King bed', 'Lounge', 'Jacuzzi']),
        ]
        rooms = []
        for room_number, name, class_type, floor, price, features in rooms_data:
            room, created = Room.objects.get_or_create(
                room_number=room_number,
                defaults={
                    'name': name,
                    'class_type': class_type,
                    'floor': floor,
                    'price': price,
                    'features': features,
                }
            )
            rooms.append(room)
        self.stdout.write(self.style.SUCCESS(f'✓ Created {len(rooms)} rooms'))

        # Create tables
        self.stdout.write(self.style.HTTP_INFO('Creating dining tables...'))
        tables_data = [
            (1, 'intimate', 2, 'Terrace'), (2, 'intimate', 2, 'Terrace'),
            (3, 'family', 4, 'Main hall'), (4, 'family', 6, 'Main hall'),
            (5, 'family', 6, 'Garden'), (6, 'chiefs', 10, 'Private room'),
        ]
        tables = []
        for table_number, class_type, capacity, location in tables_data:
            table, created = DiningTable.objects.get_or_create(
                table_number=table_number,
                defaults={'class_type': class_type, 'capacity': capacity, 'location': location}
            )
            tables.append(table)
        self.stdout.write(self.style.SUCCESS(f'✓ Created {len(tables)} tables'))

        # Create menu items
        self.stdout.write(self.style.HTTP_INFO('Creating menu items...'))
        menu_items_data = [
            ('Nyama Choma', 'nyama', 500, 'Flame-grilled goat ribs with kachumbari', 30),
            ('Mbuzi Wet Fry', 'nyama', 650, 'Goat stewed with tomatoes and dhania', 25),
            ('Kuku Kienyeji', 'nyama', 850, 'Free-range chicken stew', 40),
            ('Beef Stir Fry', 'wok', 450, 'Beef strips with peppers and soy', 15),
            ('Chicken Fried Rice', 'wok', 400, 'Wok-fried rice with chicken and egg', 15),
            ('Sukuma Wiki & Ugali', 'vegetarian', 250, 'Braised collard greens with ugali', 10),
            ('Githeri', 'vegetarian', 300, 'Maize and beans with vegetables', 15),
            ('Tilapia Fry', 'seafood', 900, 'Whole Lake Victoria tilapia, fried', 25),
            ('Coconut Prawns', 'seafood', 1200, 'Swahili prawn curry', 25),
            ('Mandazi', 'sweets', 150, 'Coastal doughnuts with cardamom', 10),
            ('Fruit Salad', 'sweets', 200, 'Seasonal tropical fruit', 5),
            ('Dawa', 'drinks', 300, 'Vodka, lime and honey', 5),
            ('Chai', 'drinks', 100, 'Spiced Kenyan tea', 5),
            ('Passion Juice', 'drinks', 150, 'Fresh passion fruit juice', 5),
        ]
        menu_items = {}
        for name, category, price, description, preparation_time in menu_items_data:
            item, created = MenuItem.objects.get_or_create(
                name=name,
                defaults={
                    'category': category,
                    'price': price,
                    'description': description,
                    'preparation_time': preparation_time,
                }
            )
            menu_items[name] = item
        self.stdout.write(self.style.SUCCESS(f'✓ Created {len(menu_items)} menu items'))

        if Order.objects.exists():
            self.stdout.write(self.style.WARNING('Orders already exist, skipping sample activity.'))
        else:
            self._create_sample_activity(users, guest, rooms, tables, menu_items)

        self.stdout.write(self.style.SUCCESS('\n=== SEED DATA COMPLETE ==='))
        self.stdout.write(self.style.SUCCESS('\nAccounts created (password is username + "123"):'))
        for username, full_name, role in staff_data:
            self.stdout.write(f'  {role.label}: username={username}')
        self.stdout.write('  Customer: username=guest1, password=guest123')
        self.stdout.write(self.style.SUCCESS('\nRun: python manage.py runserver'))
        self.stdout.write(self.style.SUCCESS('Then visit: http://127.0.0.1:8000/api/'))

    def _create_sample_activity(self, users, guest, rooms, tables, menu_items):
        """Run sample orders and bookings through the services so they follow the normal workflow."""
        waiter = session_for_user(users['waiter1'])
        chef = session_for_user(users['chef1'])
        reception = session_for_user(users['reception1'])
        manager = session_for_user(users['manager1'])
        rider = session_for_user(users['rider1'])
        customer = session_for_user(guest.user)

        self.stdout.write(self.style.HTTP_INFO('Creating sample orders...'))
        with transaction.atomic():
            # Pending dine-in order
            OrderService.submit_order(
                waiter,
                OrderService.build_cart([(menu_items['Nyama Choma'], 2), (menu_items['Chai'], 2)]),
                table=tables[0],
                notes='Birthday celebration',
            )

            # Order in the kitchen
            order = OrderService.submit_order(
                waiter,
                OrderService.build_cart([(menu_items['Tilapia Fry'], 1), (menu_items['Sukuma Wiki & Ugali'], 1)]),
                table=tables[2],
            )
            OrderService.start_preparing(order, chef)

            # Served and settled with a discount
            order = OrderService.submit_order(
                waiter,
                OrderService.build_cart([(menu_items['Nyama Choma'], 2), (menu_items['Dawa'], 1)]),
                table=tables[3],
            )
            order = OrderService.confirm(order, waiter)
            order = OrderService.start_preparing(order, chef)
            order = OrderService.mark_ready(order, chef)
            order = OrderService.mark_served(order, waiter)
            PaymentService.settle_payment(order, reception, 'mpesa', discount=Decimal('159'))

            # Delivery order picked up by a rider
            order = OrderService.submit_order(
                customer,
                OrderService.build_cart([(menu_items['Chicken Fried Rice'], 2), (menu_items['Passion Juice'], 2)]),
                order_type=OrderType.DELIVERY,
            )
            order = OrderService.start_preparing(order, chef)
            order = OrderService.mark_ready(order, chef)
            OrderService.pick_up(order, rider, delivery_address='Kilimani, Argwings Kodhek Rd')
        self.stdout.write(self.style.SUCCESS('✓ Created 4 sample orders'))

        self.stdout.write(self.style.HTTP_INFO('Creating sample reservations...'))
        today = timezone.localdate()
        with transaction.atomic():
            stay = ReservationService.book(
                reception, guest, 'room', today, room=rooms[3], check_out=today + timedelta(days=2), guests=2,
            )
            stay = ReservationService.confirm(stay, reception)
            ReservationService.check_in(stay, reception)

            ReservationService.book(
                customer, None, 'table', today + timedelta(days=1), table=tables[5], time_slot='19:30', guests=8,
                special_requests='Window side please',
            )

            # A finished stay leaves a room waiting for housekeeping
            past = ReservationService.book(
                reception, guest, 'room', today - timedelta(days=2), room=rooms[0], check_out=today,
            )
            past = ReservationService.confirm(past, reception)
            past = ReservationService.check_in(past, reception)
            ReservationService.check_out(past, reception)

            MaintenanceRequest.objects.get_or_create(
                room=rooms[5],
                issue='Jacuzzi heater not working',
                defaults={'priority': 'high', 'reported_by': users['cleaner1'].staff_profile}
            )
            HousekeepingService.set_room_status(rooms[5], manager, 'maintenance')
        self.stdout.write(self.style.SUCCESS(
            f'✓ Created {Reservation.objects.count()} reservations and '
            f'{CleaningTask.objects.count()} cleaning tasks'
        ))

    def _create_user(self, username, email, password, group):
        """Create a user and add to group."""
        user, created = User.objects.get_or_create(
            username=username,
            defaults={
                'email': email,
                'is_staff': group is not None and group.name in ('Admin', 'Manager'),
                'is_active': True,
            }
        )
        if created:
            user.set_password(password)
            user.save()
        if group is not None:
            user.groups.add(group)
        return user

    def _setup_permissions(self, groups):
        """Django admin permissions for each group; API access is decided by role."""
        hotel_types = ContentType.objects.filter(app_label='hotel')

        groups[Role.ADMIN].permissions.set(Permission.objects.filter(content_type__in=hotel_types))
        groups[Role.MANAGER].permissions.set(Permission.objects.filter(content_type__in=hotel_types))
        groups[Role.RECEPTIONIST].permissions.set(Permission.objects.filter(
            content_type__in=hotel_types,
            codename__in=['view_order', 'view_reservation', 'change_reservation', 'view_room', 'view_customer',
                          'add_customer', 'change_customer'],
        ))
        view_only = Permission.objects.filter(content_type__in=hotel_types, codename__startswith='view_')
        for role in (Role.WAITSTAFF, Role.KITCHEN, Role.CLEANING, Role.DELIVERY):
            groups[role].permissions.set(view_only)
