# content/services.py
import logging
from datetime import datetime

from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core.exceptions import NotFound, ValidationError
from core.pagination import paginate

from .models import HomeSlider

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    'title', 'subtitle', 'description', 'small_text', 'offer_text',
    'button_text', 'button_link', 'layout',
    'bg_image', 'bg_image_public_id', 'image', 'image_public_id',
    'start_date', 'end_date', 'order', 'is_active',
)


def _parse_date(value):
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = parse_datetime(str(value))
        if parsed is None:
            raise ValidationError(f"Invalid date: {value}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def _clean(data):
    cleaned = {field: data[field] for field in EDITABLE_FIELDS if field in data}
    for field in ('start_date', 'end_date'):
        if field in cleaned:
            cleaned[field] = _parse_date(cleaned[field])
    if 'order' in cleaned:
        try:
            cleaned['order'] = int(cleaned['order'] or 0)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid slider order: {cleaned['order']}")
    return cleaned


def get_slider(slider_id):
    try:
        return HomeSlider.objects.get(pk=slider_id)
    except (HomeSlider.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Slider not found: {slider_id}")


def get_active_sliders(now=None):
    """Active slides whose schedule window (if any) contains ``now``."""
    now = now or timezone.now()
    return list(
        HomeSlider.objects.filter(is_active=True)
        .filter(Q(start_date__isnull=True) | Q(start_date__lte=now))
        .filter(Q(end_date__isnull=True) | Q(end_date__gte=now))
        .order_by('order', '-created_at')
    )


def get_all_sliders(page=1, limit=10, is_active=None):
    sliders = HomeSlider.objects.all()
    if is_active is not None:
        sliders = sliders.filter(is_active=is_active)
    return paginate(sliders.order_by('order', '-created_at'), page, limit)


def create_slider(data):
    if not data.get('title') or not data.get('bg_image') or not data.get('image'):
        raise ValidationError('Title, background image, and image are required')

    cleaned = _clean(data)
    cleaned.setdefault('layout', 'left')
    slider = HomeSlider.objects.create(**cleaned)
    logger.info(f"Slider created: {slider.id}")
    return slider


def update_slider(slider_id, data):
    slider = get_slider(slider_id)
    for field, value in _clean(data).items():
        setattr(slider, field, value)
    if not slider.title or not slider.bg_image or not slider.image:
        raise ValidationError('Title, background image, and image are required')
    slider.save()
    logger.info(f"Slider updated: {slider_id}")
    return slider


def delete_slider(slider_id):
    slider = get_slider(slider_id)
    slider.delete()
    logger.info(f"Slider deleted: {slider_id}")


def toggle_slider_status(slider_id, is_active):
    slider = get_slider(slider_id)
    slider.is_active = is_active is True or is_active == 'true'
    slider.save(update_fields=['is_active', 'updated_at'])
    logger.info(f"Slider status updated: {slider_id} -> {slider.is_active}")
    return slider


def reorder_sliders(slider_orders):
    """Apply ``[{'id': ..., 'order': ...}, ...]`` in one transaction."""
    if not isinstance(slider_orders, (list, tuple)) or not slider_orders:
        raise ValidationError('Slider orders array is required')

    with transaction.atomic():
        sliders = []
        for entry in slider_orders:
            slider = get_slider(entry.get('id'))
            try:
                slider.order = int(entry.get('order'))
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid slider order: {entry.get('order')}")
            slider.save(update_fields=['order', 'updated_at'])
            sliders.append(slider)

    logger.info(f"Sliders reordered: {len(sliders)} items")
    return sliders
