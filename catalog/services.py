# catalog/services.py
"""
Subcategory maintenance and the quantity price rules attached to each
subcategory. Image upload happens elsewhere; these functions take URLs.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction

from core.exceptions import NotFound, ValidationError
from core.pagination import paginate

from .models import Category, Subcategory, SubcategoryQuantityPrice

logger = logging.getLogger(__name__)

PRICE_TYPES = [value for value, _ in SubcategoryQuantityPrice.PRICE_TYPES]


def _get_category(category_id):
    try:
        return Category.objects.get(pk=category_id)
    except (Category.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Category not found: {category_id}")


def get_subcategory(subcategory_id):
    try:
        return Subcategory.objects.select_related('category').get(pk=subcategory_id)
    except (Subcategory.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Subcategory not found: {subcategory_id}")


def _ensure_unique_name(category, name, exclude_id=None):
    duplicates = Subcategory.objects.filter(category=category, name__iexact=name)
    if exclude_id:
        duplicates = duplicates.exclude(pk=exclude_id)
    if duplicates.exists():
        raise ValidationError('Subcategory name already exists in this category')


def get_all_subcategories(page=1, limit=10, category_id=None, is_active=None):
    subcategories = Subcategory.objects.select_related('category').prefetch_related('quantity_prices')
    if category_id:
        subcategories = subcategories.filter(category_id=category_id)
    if is_active is not None:
        subcategories = subcategories.filter(is_active=is_active)
    return paginate(subcategories.order_by('-created_at'), page, limit)


def create_subcategory(category_id, name, description=None, image=None, image_public_id=None, is_active=True):
    name = (name or '').strip()
    if not name:
        raise ValidationError('Subcategory name is required')

    category = _get_category(category_id)
    _ensure_unique_name(category, name)

    subcategory = Subcategory.objects.create(
        category=category,
        name=name,
        description=description,
        image=image,
        image_public_id=image_public_id,
        is_active=is_active,
    )
    logger.info(f"Subcategory created: {subcategory.id} in category {category.id}")
    return subcategory


def update_subcategory(subcategory_id, **changes):
    subcategory = get_subcategory(subcategory_id)

    category = subcategory.category
    if changes.get('category_id'):
        category = _get_category(changes['category_id'])

    name = (changes.get('name') or subcategory.name).strip()
    if name != subcategory.name or category.pk != subcategory.category_id:
        _ensure_unique_name(category, name, exclude_id=subcategory.pk)

    subcategory.category = category
    subcategory.name = name
    for field in ('description', 'image', 'image_public_id', 'is_active'):
        if field in changes:
            setattr(subcategory, field, changes[field])
    subcategory.save()

    logger.info(f"Subcategory updated: {subcategory_id}")
    return subcategory


def delete_subcategory(subcategory_id):
    subcategory = get_subcategory(subcategory_id)
    if subcategory.products.exists():
        raise ValidationError('Cannot delete subcategory with existing products')
    subcategory.delete()
    logger.info(f"Subcategory deleted: {subcategory_id}")


def toggle_subcategory_status(subcategory_id, is_active):
    subcategory = get_subcategory(subcategory_id)
    subcategory.is_active = is_active is True or is_active == 'true'
    subcategory.save(update_fields=['is_active', 'updated_at'])
    logger.info(f"Subcategory status updated: {subcategory_id} -> {subcategory.is_active}")
    return subcategory


def _clean_rule(rule):
    try:
        quantity = int(rule.get('quantity'))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid quantity in price rule: {rule.get('quantity')}")
    if quantity <= 0:
        raise ValidationError('Quantity price threshold must be greater than 0')

    price_type = str(rule.get('price_type', '')).upper()
    if price_type not in PRICE_TYPES:
        raise ValidationError(f"Invalid price type: {rule.get('price_type')}. Must be one of {', '.join(PRICE_TYPES)}")

    try:
        value = Decimal(str(rule.get('value')))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid value in price rule: {rule.get('value')}")
    if price_type == 'PERCENTAGE' and not (0 < value <= 100):
        raise ValidationError('Percentage discount must be greater than 0 and at most 100')
    if price_type == 'FIXED' and value <= 0:
        raise ValidationError('Fixed price must be greater than 0')

    return {
        'quantity':   quantity,
        'price_type': price_type,
        'value':      value,
        'is_active':  rule.get('is_active', True) is not False,
    }


def set_quantity_prices(subcategory_id, rules):
    """Replace the subcategory's whole rule set with ``rules``."""
    subcategory = get_subcategory(subcategory_id)
    cleaned = [_clean_rule(rule) for rule in (rules or [])]

    thresholds = [rule['quantity'] for rule in cleaned]
    if len(thresholds) != len(set(thresholds)):
        raise ValidationError('Each quantity threshold may only appear once')

    with transaction.atomic():
        subcategory.quantity_prices.all().delete()
        created = SubcategoryQuantityPrice.objects.bulk_create([
            SubcategoryQuantityPrice(subcategory=subcategory, **rule) for rule in cleaned
        ])

    logger.info(f"Quantity prices set for subcategory {subcategory_id}: {len(created)} rules")
    return sorted(created, key=lambda rule: rule.quantity, reverse=True)
