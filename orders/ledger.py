# orders/ledger.py
"""
Stock and coupon side effects of the order lifecycle.

    order created   -> stock decremented per variant item, coupon used_count + 1
    refund          -> stock restored per variant item (coupon untouched)
    delete/restore  -> nothing

All updates are single conditional/relative UPDATE statements so callers can
run them inside their own transaction.
"""

import logging

from django.db.models import F

from catalog.models import ProductVariant
from core.exceptions import InsufficientStock
from promotions.models import Coupon

logger = logging.getLogger(__name__)


def _variant_lines(items):
    for item in items:
        if isinstance(item, dict):
            variant_id = item.get('product_variant_id')
            quantity = item['quantity']
        else:
            variant_id = item.product_variant_id
            quantity = item.quantity
        if variant_id:
            yield variant_id, quantity


def reserve_stock(items):
    """
    Decrement variant stock for each line, refusing to go below zero.

    Raises InsufficientStock when a variant no longer holds the quantity;
    the caller's transaction must roll back any lines already decremented.
    """
    for variant_id, quantity in _variant_lines(items):
        updated = ProductVariant.objects.filter(
            pk=variant_id, stock__gte=quantity,
        ).update(stock=F('stock') - quantity)
        if not updated:
            available = ProductVariant.objects.filter(pk=variant_id).values_list('stock', flat=True).first()
            raise InsufficientStock(variant_id, available or 0, quantity)
        logger.debug(f"Stock reserved: variant {variant_id} -{quantity}")


def restore_stock(items):
    for variant_id, quantity in _variant_lines(items):
        ProductVariant.objects.filter(pk=variant_id).update(stock=F('stock') + quantity)
        logger.debug(f"Stock restored: variant {variant_id} +{quantity}")


def record_coupon_use(coupon):
    if coupon is None:
        return
    Coupon.objects.filter(pk=coupon.pk).update(used_count=F('used_count') + 1)
    logger.info(f"Coupon {coupon.code} usage recorded")
