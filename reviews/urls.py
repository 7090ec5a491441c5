from django.urls import path
from . import views

app_name = 'reviews'

urlpatterns = [
    # Public
    path('product/<int:product_id>/', views.product_ratings, name='product_ratings'),

    # Authenticated users
    path('', views.create_rating, name='create_rating'),
    path('my-ratings/', views.my_ratings, name='my_ratings'),
    path('<int:rating_id>/', views.rating_detail, name='rating_detail'),
    path('<int:rating_id>/helpful/', views.helpful, name='helpful'),

    # Moderation
    path('admin/<int:rating_id>/approval/', views.toggle_approval, name='toggle_approval'),
]
