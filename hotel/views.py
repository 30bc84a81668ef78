from rest_framework import viewsets, mixins, status, permissions
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.authtoken.models import Token
from django.contrib.auth.models import User
from django.core.exceptions import PermissionDenied, ValidationError
from django.http import FileResponse
from django.utils import timezone
from django.utils.dateparse import parse_date
from io import BytesIO
import logging

from .exceptions import (
    HotelError, InvalidDiscount, IllegalTransition, AlreadySettled, OrderNotSettled, PersistenceFailure,
)
from .models import (
    Room, DiningTable, MenuItem, Order, Delivery, Reservation, CleaningTask, MaintenanceRequest, Notification,
)
from .receipts import build_receipt, render_receipt_text, render_receipt_pdf
from .reports import daily_sales_summary
from .serializers import (
    UserSerializer, CustomerSerializer, CustomerSignInSerializer, RoomSerializer, RoomStatusSerializer, DiningTableSerializer, MenuItemSerializer,
    OrderListSerializer, OrderDetailSerializer, OrderCreateSerializer, SettlePaymentSerializer,
    PickUpSerializer, DeliverySerializer, ReservationSerializer, ReservationCreateSerializer,
    CleaningTaskSerializer, MaintenanceRequestSerializer, MaintenanceReportSerializer, NotificationSerializer,
)
from .services import (
    OrderService, PaymentService, DeliveryService, ReservationService, HousekeepingService, CustomerService,
)
from .session import Role, session_for_user
from .workflow import SUPERVISOR_ROLES

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidDiscount: status.HTTP_400_BAD_REQUEST,
    IllegalTransition: status.HTTP_409_CONFLICT,
    AlreadySettled: status.HTTP_409_CONFLICT,
    OrderNotSettled: status.HTTP_409_CONFLICT,
    PersistenceFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(exc):
    """Turn a hotel or Django error into the API's {'error': message} shape."""
    if isinstance(exc, PermissionDenied):
        return Response({'error': str(exc) or 'Not allowed.'}, status=status.HTTP_403_FORBIDDEN)
    if isinstance(exc, ValidationError):
        return Response({'error': ' '.join(exc.messages)}, status=status.HTTP_400_BAD_REQUEST)
    for error_class, code in ERROR_STATUS.items():
        if isinstance(exc, error_class):
            return Response({'error': str(exc)}, status=code)
    return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)


def run_action(func, *args, **kwargs):
    """Call a service and return (result, None) or (None, error response)."""
    try:
        return func(*args, **kwargs), None
    except (HotelError, PermissionDenied, ValidationError) as exc:
        return None, error_response(exc)


# ============================================================================
# CUSTOM PERMISSIONS
# ============================================================================

class HasPortalSession(permissions.BasePermission):
    """Any authenticated user that maps to a hotel role."""
    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        request.portal_session = session_for_user(request.user)
        return request.portal_session is not None


class IsStaff(HasPortalSession):
    """Anyone except customers."""
    def has_permission(self, request, view):
        return super().has_permission(request, view) and request.portal_session.role != Role.CUSTOMER


class IsManager(HasPortalSession):
    """Manager or Admin role."""
    def has_permission(self, request, view):
        return super().has_permission(request, view) and request.portal_session.has_role(*SUPERVISOR_ROLES)


class IsManagerOrReadOnly(HasPortalSession):
    """Management can edit, others can only read."""
    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return request.portal_session.has_role(*SUPERVISOR_ROLES)

# ============================================================================
# AUTHENTICATION VIEWS
# ============================================================================

@api_view(['POST'])
@permission_classes([AllowAny])
def obtain_token(request):
    """
    Get authentication token and portal session for a user.
    POST /api/auth/login/
    {
        "username": "reception1",
        "password": "password123"
    }
    """
    username = request.data.get('username')
    password = request.data.get('password')

    if not username or not password:
        return Response(
            {'error': 'Username and password are required.'},
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        user = User.objects.get(username=username)
    except User.DoesNotExist:
        return Response(
            {'error': 'Invalid credentials.'},
            status=status.HTTP_401_UNAUTHORIZED
        )

    if not user.is_active or not user.check_password(password):
        return Response(
            {'error': 'Invalid credentials.'},
            status=status.HTTP_401_UNAUTHORIZED
        )

    session = session_for_user(user)
    if session is None:
        return Response(
            {'error': 'This account has no role at the hotel.'},
            status=status.HTTP_403_FORBIDDEN
        )

    token, created = Token.objects.get_or_create(user=user)
    logger.info(f"{user.username} signed in to the {session.portal_type} portal as {session.role}")
    return Response({
        'token': token.key,
        'user': UserSerializer(user).data,
        'session': session.as_dict(),
    })


@api_view(['POST'])
@permission_classes([AllowAny])
def customer_sign_in(request):
    """
    Customer portal sign-in by phone number. Unknown numbers are registered;
    every sign-in counts as a visit.
    POST /api/auth/customer/
    {
        "name": "Amina Hassan",
        "phone": "+254711222333"
    }
    """
    serializer = CustomerSignInSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    customer, error = run_action(CustomerService.sign_in, **serializer.validated_data)
    if error:
        return error

    token, created = Token.objects.get_or_create(user=customer.user)
    session = session_for_user(customer.user)
    logger.info(f"Customer {customer.pk} signed in to the customer portal")
    return Response({
        'token': token.key,
        'customer': CustomerSerializer(customer).data,
        'session': session.as_dict(),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request):
    """Logout and delete token."""
    Token.objects.filter(user=request.user).delete()
    return Response({'message': 'Logged out successfully.'})

# ============================================================================
# MENU, ROOM & TABLE VIEWS
# ============================================================================

class MenuItemViewSet(viewsets.ModelViewSet):
    """
    Menu management. Management can create/edit/delete; everyone signed in,
    customers included, can browse.
    """
    queryset = MenuItem.objects.all()
    serializer_class = MenuItemSerializer
    permission_classes = [IsManagerOrReadOnly]
    filterset_fields = ['category', 'is_available']


class DiningTableViewSet(viewsets.ModelViewSet):
    queryset = DiningTable.objects.all()
    serializer_class = DiningTableSerializer
    permission_classes = [IsManagerOrReadOnly]
    filterset_fields = ['status', 'class_type']


class RoomViewSet(viewsets.ModelViewSet):
    """
    Room management. Status only changes through reservations and
    housekeeping actions.
    """
    queryset = Room.objects.all()
    serializer_class = RoomSerializer
    permission_classes = [IsManagerOrReadOnly]
    filterset_fields = ['status', 'class_type', 'floor']

    @action(detail=True, methods=['post'], permission_classes=[IsStaff])
    def mark_clean(self, request, pk=None):
        """Housekeeping finished: cleaning -> available."""
        room, error = run_action(HousekeepingService.mark_room_clean, self.get_object(), request.portal_session)
        if error:
            return error
        return Response(RoomSerializer(room).data)

    @action(detail=True, methods=['post'], permission_classes=[IsStaff])
    def report_maintenance(self, request, pk=None):
        serializer = MaintenanceReportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        maintenance, error = run_action(
            HousekeepingService.report_maintenance,
            self.get_object(),
            request.portal_session,
            serializer.validated_data['issue'],
            priority=serializer.validated_data['priority'],
        )
        if error:
            return error
        return Response(MaintenanceRequestSerializer(maintenance).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], permission_classes=[IsManager])
    def set_status(self, request, pk=None):
        """Take a room out of service or return it; occupied rooms are freed by check-out only."""
        serializer = RoomStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        room, error = run_action(
            HousekeepingService.set_room_status,
            self.get_object(),
            request.portal_session,
            serializer.validated_data['status'],
        )
        if error:
            return error
        return Response(RoomSerializer(room).data)

# ============================================================================
# ORDER VIEWS
# ============================================================================

class OrderViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Orders. Created from a submitted cart and moved along only through the
    status actions below; there is no direct update or delete.
    """
    permission_classes = [HasPortalSession]
    filterset_fields = ['status', 'payment_status', 'order_type']

    def get_serializer_class(self):
        if self.action == 'list':
            return OrderListSerializer
        return OrderDetailSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['session'] = getattr(self.request, 'portal_session', None)
        return context

    def get_queryset(self):
        queryset = Order.objects.select_related('customer', 'table', 'room', 'staff').prefetch_related('items')
        session = getattr(self.request, 'portal_session', None)
        if session is not None and session.role == Role.CUSTOMER:
            # Customers only see their own orders.
            queryset = queryset.filter(customer_id=session.customer_id)
        return queryset

    def create(self, request, *args, **kwargs):
        """
        Submit a cart as a new order.
        POST /api/orders/
        {
            "order_type": "dine_in",
            "table": 1,
            "items": [{"menu_item": 3, "quantity": 2}]
        }
        """
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        cart = OrderService.build_cart((line['menu_item'], line['quantity']) for line in data['items'])
        order, error = run_action(
            OrderService.submit_order,
            request.portal_session,
            cart,
            order_type=data['order_type'],
            customer=data.get('customer'),
            table=data.get('table'),
            room=data.get('room'),
            notes=data.get('notes', ''),
        )
        if error:
            return error
        return Response(self.get_serializer(order).data, status=status.HTTP_201_CREATED)

    def _move(self, request, service_call, **kwargs):
        order, error = run_action(service_call, self.get_object(), request.portal_session, **kwargs)
        if error:
            return error
        return Response(self.get_serializer(order).data)

    @action(detail=True, methods=['post'])
    def confirm(self, request, pk=None):
        return self._move(request, OrderService.confirm)

    @action(detail=True, methods=['post'])
    def start_preparing(self, request, pk=None):
        return self._move(request, OrderService.start_preparing)

    @action(detail=True, methods=['post'])
    def mark_ready(self, request, pk=None):
        return self._move(request, OrderService.mark_ready)

    @action(detail=True, methods=['post'])
    def mark_served(self, request, pk=None):
        return self._move(request, OrderService.mark_served)

    @action(detail=True, methods=['post'])
    def pick_up(self, request, pk=None):
        serializer = PickUpSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._move(request, OrderService.pick_up, **serializer.validated_data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        return self._move(request, OrderService.cancel)

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        return self._move(request, OrderService.complete)

    @action(detail=True, methods=['post'])
    def settle(self, request, pk=None):
        """
        Take payment and close the order.
        POST /api/orders/{id}/settle/
        {
            "payment_method": "mpesa",
            "transaction_code": "QK12ABC34",
            "discount": "159"
        }
        """
        serializer = SettlePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return self._move(
            request,
            PaymentService.settle_payment,
            method=data['payment_method'],
            transaction_code=data.get('transaction_code') or None,
            discount=data.get('discount', 0),
        )

    @action(detail=True, methods=['get'])
    def receipt(self, request, pk=None):
        """Receipt of a settled order as structured data plus printable text."""
        receipt, error = run_action(build_receipt, self.get_object())
        if error:
            return error
        return Response({
            'receipt': receipt.as_dict(),
            'text': render_receipt_text(receipt),
        })

    @action(detail=True, methods=['get'])
    def receipt_pdf(self, request, pk=None):
        """Export the receipt of a settled order as PDF."""
        receipt, error = run_action(build_receipt, self.get_object())
        if error:
            return error
        return FileResponse(
            BytesIO(render_receipt_pdf(receipt)),
            as_attachment=True,
            filename=f'receipt_{receipt.order_number}.pdf',
            content_type='application/pdf',
        )


class DeliveryViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Delivery.objects.select_related('order', 'staff')
    serializer_class = DeliverySerializer
    permission_classes = [IsStaff]
    filterset_fields = ['status']

    @action(detail=True, methods=['post'])
    def mark_delivered(self, request, pk=None):
        delivery, error = run_action(DeliveryService.mark_delivered, self.get_object(), request.portal_session)
        if error:
            return error
        return Response(DeliverySerializer(delivery).data)

# ============================================================================
# RESERVATION VIEWS
# ============================================================================

class ReservationViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = ReservationSerializer
    permission_classes = [HasPortalSession]
    filterset_fields = ['status', 'reservation_type', 'check_in']

    def get_queryset(self):
        queryset = Reservation.objects.select_related('customer', 'room', 'table')
        session = getattr(self.request, 'portal_session', None)
        if session is not None and session.role == Role.CUSTOMER:
            queryset = queryset.filter(customer_id=session.customer_id)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = ReservationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        session = request.portal_session

        if data.get('customer') is None and session.role != Role.CUSTOMER:
            return Response({'error': 'Customer is required.'}, status=status.HTTP_400_BAD_REQUEST)

        reservation, error = run_action(
            ReservationService.book,
            session,
            data.get('customer'),
            data['reservation_type'],
            data['check_in'],
            room=data.get('room'),
            table=data.get('table'),
            check_out=data.get('check_out'),
            time_slot=data.get('time_slot') or None,
            guests=data['guests'],
            special_requests=data['special_requests'],
        )
        if error:
            return error
        return Response(ReservationSerializer(reservation).data, status=status.HTTP_201_CREATED)

    def _move(self, request, service_call):
        reservation, error = run_action(service_call, self.get_object(), request.portal_session)
        if error:
            return error
        return Response(ReservationSerializer(reservation).data)

    @action(detail=True, methods=['post'])
    def confirm(self, request, pk=None):
        return self._move(request, ReservationService.confirm)

    @action(detail=True, methods=['post'])
    def check_in(self, request, pk=None):
        return self._move(request, ReservationService.check_in)

    @action(detail=True, methods=['post'])
    def check_out(self, request, pk=None):
        return self._move(request, ReservationService.check_out)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        return self._move(request, ReservationService.cancel)

# ============================================================================
# HOUSEKEEPING VIEWS
# ============================================================================

class CleaningTaskViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = CleaningTask.objects.select_related('room')
    serializer_class = CleaningTaskSerializer
    permission_classes = [IsStaff]
    filterset_fields = ['status', 'task_type', 'room']


class MaintenanceRequestViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = MaintenanceRequest.objects.select_related('room')
    serializer_class = MaintenanceRequestSerializer
    permission_classes = [IsStaff]
    filterset_fields = ['status', 'priority', 'room']


class UserViewSet(viewsets.ReadOnlyModelViewSet):
    """Staff accounts; management only."""
    queryset = User.objects.filter(staff_profile__isnull=False).order_by('username')
    serializer_class = UserSerializer
    permission_classes = [IsManager]

    @action(detail=False, methods=['get'], permission_classes=[HasPortalSession])
    def me(self, request):
        """Current user and portal session."""
        return Response({
            'user': UserSerializer(request.user).data,
            'session': request.portal_session.as_dict(),
        })

# ============================================================================
# REPORTS
# ============================================================================

@api_view(['GET'])
@permission_classes([IsManager])
def daily_sales_report(request):
    """
    Daily sales and occupancy report.
    GET /api/reports/daily-sales/?date=2024-05-01
    """
    day = timezone.localdate()
    if request.query_params.get('date'):
        try:
            day = parse_date(request.query_params['date'])
        except ValueError:
            day = None
        if day is None:
            return Response(
                {'error': 'Date must be in YYYY-MM-DD format.'},
                status=status.HTTP_400_BAD_REQUEST
            )
    return Response(daily_sales_summary(day))

# ============================================================================
# NOTIFICATIONS
# ============================================================================

class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    """The signed-in user's own notifications."""
    serializer_class = NotificationSerializer
    permission_classes = [IsStaff]
    filterset_fields = ['is_read', 'notification_type']

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user)

    @action(detail=True, methods=['post'])
    def mark_read(self, request, pk=None):
        notification = self.get_object()
        notification.mark_as_read()
        return Response(NotificationSerializer(notification).data)
