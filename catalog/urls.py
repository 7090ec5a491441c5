from django.urls import path
from . import views

app_name = 'catalog'

urlpatterns = [
    # Public
    path('subcategories/',                      views.subcategory_list,   name='subcategory_list'),
    path('subcategories/<int:subcategory_id>/', views.subcategory_detail, name='subcategory_detail'),

    # Admin
    path('admin/subcategories/',                                       views.admin_create_subcategory, name='admin_create_subcategory'),
    path('admin/subcategories/<int:subcategory_id>/',                  views.admin_subcategory_detail, name='admin_subcategory_detail'),
    path('admin/subcategories/<int:subcategory_id>/status/',           views.admin_toggle_subcategory, name='admin_toggle_subcategory'),
    path('admin/subcategories/<int:subcategory_id>/quantity-prices/',  views.admin_quantity_prices,    name='admin_quantity_prices'),
]
