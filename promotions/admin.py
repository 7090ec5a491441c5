from django.contrib import admin
from unfold.admin import ModelAdmin
from unfold.decorators import display

from .models import Coupon


@admin.register(Coupon)
class CouponAdmin(ModelAdmin):
    list_display = ("code", "discount_type", "discount_value", "usage_display", "valid_until", "is_active")
    list_filter = ("discount_type", "is_active")
    search_fields = ("code", "description")
    readonly_fields = ("used_count",)

    @display(description="Usage")
    def usage_display(self, obj):
        limit = obj.usage_limit if obj.usage_limit is not None else "∞"
        return f"{obj.used_count} / {limit}"
