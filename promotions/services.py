# promotions/services.py
import logging
from decimal import Decimal

from django.db.models import F, Q
from django.utils import timezone

from .models import Coupon

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def calculate_coupon_discount(coupon, subtotal):
    """
    Discount a coupon grants on ``subtotal``.

    PERCENTAGE is capped at ``max_discount`` when one is set. FIXED is a flat
    amount, never more than the subtotal itself.
    """
    if coupon.discount_type == 'PERCENTAGE':
        discount = (subtotal * coupon.discount_value) / Decimal('100')
        if coupon.max_discount and discount > coupon.max_discount:
            discount = coupon.max_discount
    else:
        discount = min(coupon.discount_value, subtotal)
    return discount


def resolve_coupon(coupon_code, subtotal, now=None):
    """
    Look up a coupon and check that it applies to an order of ``subtotal``.

    Returns ``(coupon, discount)``. Any coupon that fails a precondition
    (unknown code, inactive, outside its validity window, usage limit
    reached, minimum order amount not met) resolves to ``(None, 0)``;
    nothing is raised.
    """
    if not coupon_code:
        return None, ZERO

    now = now or timezone.now()
    coupon = Coupon.objects.filter(
        Q(usage_limit__isnull=True) | Q(usage_limit__gt=F('used_count')),
        code=str(coupon_code).strip(),
        is_active=True,
        valid_from__lte=now,
        valid_until__gte=now,
    ).first()

    if coupon is None:
        logger.info(f"Coupon {coupon_code!r} not applicable: missing, inactive, expired or exhausted")
        return None, ZERO

    if subtotal < (coupon.min_order_amount or ZERO):
        logger.info(
            f"Coupon {coupon.code} not applicable: subtotal {subtotal} "
            f"below minimum {coupon.min_order_amount}"
        )
        return None, ZERO

    return coupon, calculate_coupon_discount(coupon, subtotal)
