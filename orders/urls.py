# orders/urls.py
from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    # Checkout
    path('calculate-totals/', views.calculate_totals, name='calculate_totals'),
    path('payment/initiate/', views.initiate_payment, name='initiate_payment'),
    path('payment/verify/', views.verify_payment, name='verify_payment'),
    path('cod/', views.create_cod_order, name='create_cod_order'),

    # Customer
    path('my-orders/', views.my_orders, name='my_orders'),
    path('number/<str:order_number>/', views.order_by_number, name='order_by_number'),

    # Admin
    path('admin/', views.admin_order_list, name='admin_order_list'),
    path('admin/bulk-delete/', views.admin_bulk_delete, name='admin_bulk_delete'),
    path('admin/cancel-expired/', views.admin_cancel_expired, name='admin_cancel_expired'),
    path('admin/<int:order_id>/', views.admin_order_detail, name='admin_order_detail'),
    path('admin/<int:order_id>/status/', views.admin_update_status, name='admin_update_status'),
    path('admin/<int:order_id>/tracking/', views.admin_update_tracking, name='admin_update_tracking'),
    path('admin/<int:order_id>/refund/', views.admin_process_refund, name='admin_process_refund'),
    path('admin/<int:order_id>/soft-delete/', views.admin_soft_delete, name='admin_soft_delete'),
    path('admin/<int:order_id>/restore/', views.admin_restore, name='admin_restore'),
]
