from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'menu-items', views.MenuItemViewSet, basename='menuitem')
router.register(r'rooms', views.RoomViewSet, basename='room')
router.register(r'tables', views.DiningTableViewSet, basename='table')
router.register(r'orders', views.OrderViewSet, basename='order')
router.register(r'deliveries', views.DeliveryViewSet, basename='delivery')
router.register(r'reservations', views.ReservationViewSet, basename='reservation')
router.register(r'cleaning-tasks', views.CleaningTaskViewSet, basename='cleaningtask')
router.register(r'maintenance-requests', views.MaintenanceRequestViewSet, basename='maintenancerequest')
router.register(r'notifications', views.NotificationViewSet, basename='notification')
router.register(r'users', views.UserViewSet, basename='user')

urlpatterns = [
    # Auth endpoints
    path('auth/login/', views.obtain_token, name='auth_login'),
    path('auth/customer/', views.customer_sign_in, name='auth_customer'),
    path('auth/logout/', views.logout, name='auth_logout'),

    # Reports
    path('reports/daily-sales/', views.daily_sales_report, name='daily_sales_report'),

    # Router endpoints
    path('', include(router.urls)),
]
