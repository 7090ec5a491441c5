from django.contrib import admin
from unfold.admin import ModelAdmin

from .models import User


@admin.register(User)
class UserAdmin(ModelAdmin):
    list_display = ("username", "email", "name", "user_type", "is_active")
    list_filter = ("user_type", "is_active")
    search_fields = ("username", "email", "name", "phone")
