# orders/models.py
from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator

from catalog.models import Product, ProductVariant
from promotions.models import Coupon


class OrderQuerySet(models.QuerySet):
    def live(self):
        return self.filter(deleted_at__isnull=True)

    def soft_deleted(self):
        return self.filter(deleted_at__isnull=False)


class Order(models.Model):
    """Main order model"""
    ORDER_STATUS = [
        ('PENDING', 'Pending'),
        ('CONFIRMED', 'Confirmed'),
        ('PROCESSING', 'Processing'),
        ('SHIPPED', 'Shipped'),
        ('DELIVERED', 'Delivered'),
        ('CANCELLED', 'Cancelled'),
        ('REFUNDED', 'Refunded'),
    ]

    PAYMENT_STATUS = [
        ('PENDING', 'Pending'),
        ('PAID', 'Paid'),
        ('FAILED', 'Failed'),
        ('REFUNDED', 'Refunded'),
    ]

    PAYMENT_METHODS = [
        ('ONLINE', 'Online'),
        ('COD', 'Cash on Delivery'),
    ]

    # Order Identifiers
    order_number = models.CharField(max_length=50, unique=True, db_index=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='orders')

    # Status
    status = models.CharField(max_length=20, choices=ORDER_STATUS, default='PENDING', db_index=True)

    # Pricing
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    shipping_cost = models.DecimalField(max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    coupon = models.ForeignKey(Coupon, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')

    # Shipping snapshot (independent of later profile changes)
    name = models.CharField(max_length=200)
    email = models.EmailField()
    phone = models.CharField(max_length=20)
    address = models.TextField()
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100)
    pincode = models.CharField(max_length=20)

    # Payment
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS, default='PENDING', db_index=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHODS)
    payment_gateway = models.CharField(max_length=50, blank=True)
    provider_order_id = models.CharField(max_length=255, blank=True, db_index=True)
    provider_payment_id = models.TextField(blank=True)
    provider_signature = models.CharField(max_length=512, blank=True)
    provider_transaction_id = models.CharField(max_length=255, blank=True)

    # Tracking
    tracking_number = models.CharField(max_length=255, blank=True)
    carrier = models.CharField(max_length=100, blank=True)
    tracking_url = models.URLField(blank=True)
    estimated_delivery = models.DateTimeField(null=True, blank=True)

    # Notes
    admin_notes = models.TextField(blank=True)
    notes = models.JSONField(default=dict, blank=True)  # soft-delete audit record

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = OrderQuerySet.as_manager()

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', '-created_at']),
            models.Index(fields=['status', '-created_at']),
            models.Index(fields=['status', 'payment_status', 'created_at']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['payment_gateway', 'provider_order_id'],
                condition=~models.Q(provider_order_id=''),
                name='unique_provider_payment',
            ),
        ]

    def __str__(self):
        return self.order_number

    @property
    def is_soft_deleted(self):
        return self.deleted_at is not None

    @property
    def location(self):
        return f"{self.city}, {self.state}"


class OrderItem(models.Model):
    """Individual items within an order; price is the unit price at purchase time"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')

    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='order_items')
    product_variant = models.ForeignKey(ProductVariant, on_delete=models.PROTECT, null=True, blank=True, related_name='order_items')

    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    price = models.DecimalField(max_digits=10, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_items'
        ordering = ['id']
        indexes = [
            models.Index(fields=['order']),
        ]


class CustomOrderImage(models.Model):
    """Customer-supplied images attached to an order (already uploaded)"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='custom_images')
    image_url = models.URLField(max_length=500)
    image_key = models.CharField(max_length=255, blank=True)
    filename = models.CharField(max_length=255)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'custom_order_images'


class TrackingHistory(models.Model):
    """Append-only audit trail of order status transitions"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='tracking_history')
    status = models.CharField(max_length=20, choices=Order.ORDER_STATUS)
    description = models.TextField()
    location = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'tracking_history'
        ordering = ['created_at', 'id']
        verbose_name_plural = 'Tracking history'
        indexes = [
            models.Index(fields=['order', 'created_at']),
        ]

    def __str__(self):
        return f"{self.order_id} {self.status}"
