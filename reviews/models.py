# reviews/models.py
from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from catalog.models import Product, ProductVariant


class Rating(models.Model):
    """Product ratings, optionally tied to a specific variant"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='ratings')
    variant = models.ForeignKey(ProductVariant, on_delete=models.SET_NULL, null=True, blank=True, related_name='ratings')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='ratings')

    # Snapshot of the reviewer at posting time
    user_name = models.CharField(max_length=200, blank=True)
    user_email = models.EmailField(blank=True)

    rating = models.PositiveIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])

    title = models.CharField(max_length=200, blank=True)
    review = models.TextField(blank=True)

    # Moderation
    is_approved = models.BooleanField(default=True)

    # Helpfulness
    helpful_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'ratings'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['product', 'is_approved', '-created_at']),
            models.Index(fields=['user']),
        ]

    def __str__(self):
        return f"{self.product_id} - {self.rating}/5"


class HelpfulRating(models.Model):
    """Track who found ratings helpful"""
    rating = models.ForeignKey(Rating, on_delete=models.CASCADE, related_name='helpfuls')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='helpful_ratings')

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'helpful_ratings'
        unique_together = [['rating', 'user']]
