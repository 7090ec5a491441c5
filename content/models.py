# content/models.py
from django.db import models


class HomeSlider(models.Model):
    """Homepage hero slides"""
    LAYOUT_CHOICES = [
        ('left', 'Left'),
        ('right', 'Right'),
        ('center', 'Center'),
    ]

    title = models.CharField(max_length=200)
    subtitle = models.CharField(max_length=255, null=True, blank=True)
    description = models.TextField(null=True, blank=True)
    small_text = models.CharField(max_length=255, null=True, blank=True)
    offer_text = models.CharField(max_length=255, null=True, blank=True)

    # Call to action
    button_text = models.CharField(max_length=100, null=True, blank=True)
    button_link = models.CharField(max_length=500, null=True, blank=True)

    layout = models.CharField(max_length=20, choices=LAYOUT_CHOICES, default='left')

    # Images are uploaded elsewhere; these hold the public URL and storage key
    bg_image = models.URLField(max_length=500)
    bg_image_public_id = models.CharField(max_length=255, null=True, blank=True)
    image = models.URLField(max_length=500)
    image_public_id = models.CharField(max_length=255, null=True, blank=True)

    # Scheduling
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)

    order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'content_home_sliders'
        ordering = ['order', '-created_at']
        indexes = [
            models.Index(fields=['is_active', 'order']),
        ]

    def __str__(self):
        return self.title
