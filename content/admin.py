from django.contrib import admin
from django.utils.html import format_html
from unfold.admin import ModelAdmin
from unfold.decorators import display

from .models import HomeSlider


@admin.register(HomeSlider)
class HomeSliderAdmin(ModelAdmin):
    list_display = ("image_display", "title", "layout", "order", "is_active", "start_date", "end_date")
    list_filter = ("is_active", "layout")
    search_fields = ("title", "subtitle")
    ordering = ("order",)

    @display(description="Image", header=True)
    def image_display(self, obj):
        if obj.image:
            return format_html(
                '<img src="{}" style="width: 50px; height: 50px; object-fit: cover; border-radius: 8px;" />',
                obj.image,
            )
        return "-"
