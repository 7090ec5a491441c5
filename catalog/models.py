from django.db import models
from django.core.validators import MinValueValidator


class Category(models.Model):
    """Main product categories"""
    name = models.CharField(max_length=100)
    slug = models.SlugField(unique=True, db_index=True)
    description = models.TextField(blank=True)
    image = models.URLField(blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'catalog_categories'
        verbose_name_plural = 'Categories'
        ordering = ['name']

    def __str__(self):
        return self.name


class Subcategory(models.Model):
    """Second-level grouping; carries the quantity price rules"""
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name='subcategories')
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, null=True)
    image = models.URLField(blank=True, null=True)
    image_public_id = models.CharField(max_length=255, blank=True, null=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'catalog_subcategories'
        verbose_name_plural = 'Subcategories'
        ordering = ['-created_at']
        unique_together = [['category', 'name']]
        indexes = [
            models.Index(fields=['category', 'is_active']),
        ]

    def __str__(self):
        return f"{self.category.name} / {self.name}"


class SubcategoryQuantityPrice(models.Model):
    """Tiered discount applied when the purchased quantity reaches a threshold"""
    PRICE_TYPES = [
        ('PERCENTAGE', 'Percentage'),
        ('FIXED', 'Fixed Total'),
    ]

    subcategory = models.ForeignKey(Subcategory, on_delete=models.CASCADE, related_name='quantity_prices')
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    price_type = models.CharField(max_length=20, choices=PRICE_TYPES)
    # PERCENTAGE: percent off the line total. FIXED: flat line total.
    value = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'catalog_subcategory_quantity_prices'
        ordering = ['-quantity']
        indexes = [
            models.Index(fields=['subcategory', 'is_active', 'quantity']),
        ]

    def __str__(self):
        return f"{self.subcategory_id}: {self.quantity}+ {self.price_type} {self.value}"


class Product(models.Model):
    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('INACTIVE', 'Inactive'),
        ('OUT_OF_STOCK', 'Out of Stock'),
    ]

    name = models.CharField(max_length=255)
    product_code = models.CharField(max_length=100, unique=True, db_index=True)
    description = models.TextField(blank=True)

    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name='products', null=True, blank=True)
    subcategory = models.ForeignKey(Subcategory, on_delete=models.PROTECT, related_name='products', null=True, blank=True)

    # Pricing
    normal_price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    offer_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ACTIVE', db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'catalog_products'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['subcategory', 'status']),
        ]

    def __str__(self):
        return self.name

    @property
    def selling_price(self):
        if self.offer_price is not None:
            return self.offer_price
        return self.normal_price


class ProductVariant(models.Model):
    """Product color/size variants; stock is tracked per variant"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')

    sku = models.CharField(max_length=100, unique=True, db_index=True)
    color = models.CharField(max_length=100, blank=True)
    size = models.CharField(max_length=50, blank=True)

    stock = models.IntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'catalog_product_variants'
        ordering = ['product', 'color', 'size']
        indexes = [
            models.Index(fields=['product']),
        ]

    def __str__(self):
        label = " / ".join(part for part in (self.color, self.size) if part)
        return f"{self.product.name} ({label or self.sku})"
