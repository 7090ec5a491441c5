from django.contrib import admin
from unfold.admin import ModelAdmin
from unfold.decorators import display
from .models import Category, Subcategory, SubcategoryQuantityPrice, Product, ProductVariant


@admin.register(Category)
class CategoryAdmin(ModelAdmin):
    list_display = ("name", "is_active")
    prepopulated_fields = {"slug": ("name",)}
    list_filter = ("is_active",)
    search_fields = ("name",)


class SubcategoryQuantityPriceInline(admin.TabularInline):
    model = SubcategoryQuantityPrice
    extra = 1


@admin.register(Subcategory)
class SubcategoryAdmin(ModelAdmin):
    list_display = ("name", "category", "rule_count", "is_active")
    list_filter = ("category", "is_active")
    search_fields = ("name", "category__name")
    inlines = [SubcategoryQuantityPriceInline]

    @display(description="Quantity rules")
    def rule_count(self, obj):
        return obj.quantity_prices.filter(is_active=True).count()


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 1


@admin.register(Product)
class ProductAdmin(ModelAdmin):
    list_display = [
        "name",
        "product_code",
        "subcategory",
        "normal_price",
        "offer_price",
        "stock_display",
        "status",
    ]
    list_filter = ["status", "category", "subcategory"]
    search_fields = ["name", "product_code"]
    inlines = [ProductVariantInline]

    @display(description="Stock")
    def stock_display(self, obj):
        return sum(variant.stock for variant in obj.variants.all())
