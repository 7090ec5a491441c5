from django.contrib import admin
from unfold.admin import ModelAdmin

from .models import Rating


@admin.register(Rating)
class RatingAdmin(ModelAdmin):
    list_display = ("product", "user_name", "rating", "is_approved", "helpful_count", "created_at")
    list_filter = ("is_approved", "rating")
    search_fields = ("product__name", "user_name", "user_email", "title")
    readonly_fields = ("helpful_count", "created_at", "updated_at")
