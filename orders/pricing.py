# orders/pricing.py
"""
Order pricing: tiered quantity discounts per line and coupon application
over the order.

``calculate_item_quantity_price`` is a pure function of its arguments.
``calculate_order_totals`` reads catalog and coupon state but writes nothing,
so it can run once at quote time and again when the order is finalised.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from catalog.models import Product, ProductVariant, SubcategoryQuantityPrice
from core.exceptions import InsufficientStock, NotFound, ProductUnavailable, ValidationError
from promotions.services import resolve_coupon

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0.00')

# Flat shipping policy: every order ships free.
SHIPPING_COST = ZERO


def money(value):
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _rule_field(rule, name, default=None):
    if isinstance(rule, dict):
        return rule.get(name, default)
    return getattr(rule, name, default)


def _describe_rule(rule):
    return {
        'quantity':   _rule_field(rule, 'quantity'),
        'price_type': _rule_field(rule, 'price_type'),
        'value':      Decimal(str(_rule_field(rule, 'value'))),
    }


def calculate_item_quantity_price(base_price, quantity, rules=()):
    """
    Price ``quantity`` units at ``base_price`` under the best quantity rule.

    A rule is eligible when it is active and its threshold is at most the
    purchased quantity. Eligible rules are tried highest threshold first and
    a rule replaces the current best only when it is strictly cheaper, so
    ties go to the higher threshold and a rule that would cost more than
    the undiscounted total is never applied.

    PERCENTAGE rules take ``value`` percent off the line total; FIXED rules
    set the line total to ``value``.
    """
    if quantity <= 0:
        raise ValidationError('Quantity must be a positive integer')
    base_price = Decimal(str(base_price))
    original_price = base_price * quantity

    eligible = [
        rule for rule in rules
        if _rule_field(rule, 'quantity') <= quantity and _rule_field(rule, 'is_active', True)
    ]
    eligible.sort(key=lambda rule: _rule_field(rule, 'quantity'), reverse=True)

    best_total = original_price
    applied_rule = None
    for rule in eligible:
        value = Decimal(str(_rule_field(rule, 'value')))
        if _rule_field(rule, 'price_type') == 'PERCENTAGE':
            candidate = original_price * (1 - value / Decimal('100'))
        else:
            candidate = value

        if candidate < best_total:
            best_total = candidate
            applied_rule = _describe_rule(rule)

    final_price = money(best_total)
    return {
        'original_price': money(original_price),
        'final_price':    final_price,
        'total_savings':  money(original_price) - final_price,
        'price_per_item': money(best_total / quantity),
        'has_discount':   applied_rule is not None,
        'applied_rule':   applied_rule,
    }


def applicable_quantity_rules(subcategory_id, quantity):
    if not subcategory_id:
        return []
    return list(
        SubcategoryQuantityPrice.objects.filter(
            subcategory_id=subcategory_id,
            is_active=True,
            quantity__lte=quantity,
        ).order_by('-quantity')
    )


def _validate_items(order_items):
    if not order_items or not isinstance(order_items, (list, tuple)):
        raise ValidationError('Order items are required and must be a non-empty list')

    cleaned = []
    for index, item in enumerate(order_items):
        if not isinstance(item, dict):
            raise ValidationError(f"Order item {index} must be an object")
        product_id = item.get('product_id')
        quantity = item.get('quantity')
        if not product_id:
            raise ValidationError(f"Invalid order item {index}: product_id is required")
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid order item {index}: quantity must be a positive integer")
        if quantity <= 0:
            raise ValidationError(f"Invalid order item {index}: quantity must be a positive integer")
        cleaned.append({
            'product_id':         product_id,
            'product_variant_id': item.get('product_variant_id') or None,
            'quantity':           quantity,
        })
    return cleaned


def calculate_order_totals(order_items, coupon_code=None):
    """
    Price an order.

    ``order_items`` is a list of ``{'product_id', 'product_variant_id'?,
    'quantity'}`` mappings. Returns a dict with the rounded monetary totals,
    the applied coupon (or None) and a per-item breakdown. Unknown products
    or variants raise NotFound, inactive products ProductUnavailable, and a
    variant without enough stock InsufficientStock.
    """
    items = _validate_items(order_items)

    subtotal = ZERO
    quantity_savings = ZERO
    breakdown = []

    for item in items:
        product = Product.objects.filter(pk=item['product_id']).first()
        if product is None:
            raise NotFound(f"Product not found: {item['product_id']}")
        if product.status != 'ACTIVE':
            raise ProductUnavailable(
                f"Product {product.id} is not available for purchase (status: {product.status})"
            )

        variant = None
        if item['product_variant_id']:
            variant = ProductVariant.objects.filter(
                pk=item['product_variant_id'], product=product,
            ).first()
            if variant is None:
                raise NotFound(f"Product variant not found: {item['product_variant_id']}")
            if variant.stock < item['quantity']:
                raise InsufficientStock(variant.id, variant.stock, item['quantity'])

        base_price = product.selling_price
        pricing = calculate_item_quantity_price(
            base_price,
            item['quantity'],
            applicable_quantity_rules(product.subcategory_id, item['quantity']),
        )

        subtotal += pricing['final_price']
        quantity_savings += pricing['total_savings']

        breakdown.append({
            **item,
            'product':          product,
            'variant':          variant,
            'base_price':       money(base_price),
            'quantity_pricing': pricing,
            'item_total':       pricing['final_price'],
            'item_savings':     pricing['total_savings'],
        })

    coupon, coupon_discount = resolve_coupon(coupon_code, subtotal)
    coupon_discount = money(coupon_discount)
    total_amount = subtotal - coupon_discount + SHIPPING_COST

    return {
        'subtotal':               money(subtotal),
        'quantity_savings':       money(quantity_savings),
        'coupon_discount':        money(coupon_discount),
        'shipping_cost':          money(SHIPPING_COST),
        'total_amount':           money(total_amount),
        'coupon':                 coupon,
        'items':                  breakdown,
        'has_quantity_discounts': quantity_savings > 0,
    }


def serialize_totals(totals):
    """JSON-safe view of calculate_order_totals() output."""
    coupon = totals['coupon']
    return {
        'subtotal':               str(totals['subtotal']),
        'quantity_savings':       str(totals['quantity_savings']),
        'coupon_discount':        str(totals['coupon_discount']),
        'shipping_cost':          str(totals['shipping_cost']),
        'total_amount':           str(totals['total_amount']),
        'applied_coupon':         coupon.code if coupon else None,
        'has_quantity_discounts': totals['has_quantity_discounts'],
        'items': [
            {
                'product_id':         item['product'].id,
                'product_name':       item['product'].name,
                'product_variant_id': item['variant'].id if item['variant'] else None,
                'quantity':           item['quantity'],
                'base_price':         str(item['base_price']),
                'original_price':     str(item['quantity_pricing']['original_price']),
                'final_price':        str(item['quantity_pricing']['final_price']),
                'price_per_item':     str(item['quantity_pricing']['price_per_item']),
                'total_savings':      str(item['quantity_pricing']['total_savings']),
                'has_discount':       item['quantity_pricing']['has_discount'],
                'applied_rule': (
                    {**item['quantity_pricing']['applied_rule'],
                     'value': str(item['quantity_pricing']['applied_rule']['value'])}
                    if item['quantity_pricing']['applied_rule'] else None
                ),
            }
            for item in totals['items']
        ],
    }
