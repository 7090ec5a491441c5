from django.urls import path
from . import views

app_name = 'content'

urlpatterns = [
    # Public
    path('sliders/', views.active_sliders, name='active_sliders'),

    # Admin
    path('admin/sliders/',                       views.admin_sliders,         name='admin_sliders'),
    path('admin/sliders/reorder/',               views.admin_reorder_sliders, name='admin_reorder_sliders'),
    path('admin/sliders/<int:slider_id>/',        views.admin_slider_detail,   name='admin_slider_detail'),
    path('admin/sliders/<int:slider_id>/status/', views.admin_toggle_slider,   name='admin_toggle_slider'),
]
