from django.contrib import admin
from django.utils.html import format_html
from unfold.admin import ModelAdmin
from unfold.decorators import display

from .models import Order, OrderItem, CustomOrderImage, TrackingHistory


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("product", "product_variant", "quantity", "price")


class CustomOrderImageInline(admin.TabularInline):
    model = CustomOrderImage
    extra = 0


class TrackingHistoryInline(admin.TabularInline):
    model = TrackingHistory
    extra = 0
    readonly_fields = ("status", "description", "location", "created_at")
    can_delete = False


@admin.register(Order)
class OrderAdmin(ModelAdmin):
    list_display = [
        "order_number",
        "user",
        "status_display",
        "payment_status",
        "payment_method",
        "total_amount",
        "created_at",
        "deleted_at",
    ]
    list_filter = ["status", "payment_status", "payment_method", "payment_gateway"]
    search_fields = ["order_number", "email", "phone", "provider_order_id"]
    readonly_fields = [
        "order_number", "subtotal", "discount", "total_amount",
        "provider_order_id", "provider_payment_id", "provider_signature",
        "provider_transaction_id", "notes", "created_at", "updated_at",
    ]
    inlines = [OrderItemInline, CustomOrderImageInline, TrackingHistoryInline]

    @display(description="Status")
    def status_display(self, obj):
        if obj.deleted_at:
            return format_html('<span style="color: #9ca3af;">{} (deleted)</span>', obj.get_status_display())
        return obj.get_status_display()


@admin.register(TrackingHistory)
class TrackingHistoryAdmin(ModelAdmin):
    list_display = ("order", "status", "location", "created_at")
    list_filter = ("status",)
    search_fields = ("order__order_number",)
    readonly_fields = ("created_at",)
