from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/orders/', include('orders.urls')),
    path('api/ratings/', include('reviews.urls')),
    path('api/catalog/', include('catalog.urls')),
    path('api/content/', include('content.urls')),
]
