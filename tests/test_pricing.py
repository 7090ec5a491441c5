from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from catalog.models import ProductVariant, SubcategoryQuantityPrice
from core.exceptions import InsufficientStock, NotFound, ProductUnavailable, ValidationError
from orders.pricing import calculate_item_quantity_price, calculate_order_totals, serialize_totals
from promotions.models import Coupon
from promotions.services import calculate_coupon_discount, resolve_coupon


class TestItemQuantityPrice:

    def test_percentage_rule_above_threshold(self):
        rules = [{'quantity': 10, 'price_type': 'PERCENTAGE', 'value': 20, 'is_active': True}]
        result = calculate_item_quantity_price(Decimal('100'), 12, rules)

        assert result['original_price'] == Decimal('1200.00')
        assert result['final_price'] == Decimal('960.00')
        assert result['total_savings'] == Decimal('240.00')
        assert result['price_per_item'] == Decimal('80.00')
        assert result['has_discount'] is True
        assert result['applied_rule']['quantity'] == 10

    def test_below_threshold_no_discount(self):
        rules = [{'quantity': 10, 'price_type': 'PERCENTAGE', 'value': 20}]
        result = calculate_item_quantity_price(Decimal('100'), 9, rules)

        assert result['final_price'] == Decimal('900.00')
        assert result['has_discount'] is False
        assert result['applied_rule'] is None

    def test_fixed_rule_sets_line_total(self):
        rules = [{'quantity': 5, 'price_type': 'FIXED', 'value': 400}]
        result = calculate_item_quantity_price(Decimal('100'), 5, rules)

        assert result['final_price'] == Decimal('400.00')
        assert result['total_savings'] == Decimal('100.00')

    def test_fixed_rule_costing_more_is_ignored(self):
        rules = [{'quantity': 2, 'price_type': 'FIXED', 'value': 500}]
        result = calculate_item_quantity_price(Decimal('100'), 3, rules)

        assert result['final_price'] == Decimal('300.00')
        assert result['has_discount'] is False

    def test_cheapest_rule_wins(self):
        rules = [
            {'quantity': 5, 'price_type': 'PERCENTAGE', 'value': 30},
            {'quantity': 10, 'price_type': 'PERCENTAGE', 'value': 10},
        ]
        result = calculate_item_quantity_price(Decimal('10'), 10, rules)

        assert result['final_price'] == Decimal('70.00')
        assert result['applied_rule']['quantity'] == 5

    def test_tie_goes_to_higher_threshold(self):
        rules = [
            {'quantity': 5, 'price_type': 'PERCENTAGE', 'value': 20},
            {'quantity': 10, 'price_type': 'PERCENTAGE', 'value': 20},
        ]
        result = calculate_item_quantity_price(Decimal('10'), 12, rules)

        assert result['applied_rule']['quantity'] == 10

    def test_inactive_rules_are_skipped(self):
        rules = [{'quantity': 1, 'price_type': 'PERCENTAGE', 'value': 50, 'is_active': False}]
        result = calculate_item_quantity_price(Decimal('10'), 4, rules)

        assert result['has_discount'] is False

    @pytest.mark.parametrize('quantity', [1, 3, 7, 10, 25])
    def test_final_never_exceeds_original(self, quantity):
        rules = [
            {'quantity': 3, 'price_type': 'FIXED', 'value': 1000},
            {'quantity': 7, 'price_type': 'PERCENTAGE', 'value': 15},
            {'quantity': 20, 'price_type': 'FIXED', 'value': 50},
        ]
        result = calculate_item_quantity_price(Decimal('19.99'), quantity, rules)

        assert result['final_price'] <= result['original_price']
        assert result['total_savings'] == result['original_price'] - result['final_price']

    def test_savings_add_up_after_rounding(self):
        rules = [{'quantity': 10, 'price_type': 'PERCENTAGE', 'value': 15}]

        result = calculate_item_quantity_price(Decimal('19.99'), 10, rules)

        assert result['original_price'] == Decimal('199.90')
        assert result['final_price'] == Decimal('169.92')
        assert result['total_savings'] == Decimal('29.98')

    def test_non_positive_quantity_rejected(self):
        with pytest.raises(ValidationError):
            calculate_item_quantity_price(Decimal('10'), 0, [])


class TestCouponDiscount:

    def test_percentage_capped_at_max_discount(self, coupon):
        assert calculate_coupon_discount(coupon, Decimal('1000')) == Decimal('50')

    def test_fixed_never_exceeds_subtotal(self, coupon):
        coupon.discount_type = 'FIXED'
        coupon.discount_value = Decimal('500')
        assert calculate_coupon_discount(coupon, Decimal('300')) == Decimal('300')

    def test_resolve_matches_exact_code(self, coupon):
        found, discount = resolve_coupon(' SAVE10 ', Decimal('200'))
        assert found == coupon
        assert discount == Decimal('20')

    def test_codes_differing_in_case_are_distinct(self, coupon):
        lower = Coupon.objects.create(
            code='save10',
            discount_type='FIXED',
            discount_value=Decimal('5'),
            valid_from=coupon.valid_from,
            valid_until=coupon.valid_until,
        )

        assert resolve_coupon('save10', Decimal('200'))[0] == lower
        assert resolve_coupon('SAVE10', Decimal('200'))[0] == coupon

    def test_numeric_code_is_looked_up_as_text(self, coupon):
        Coupon.objects.filter(pk=coupon.pk).update(code='12345')

        found, _ = resolve_coupon(12345, Decimal('200'))

        assert found.pk == coupon.pk

    def test_exhausted_coupon_ignored(self, coupon):
        coupon.usage_limit = 2
        coupon.used_count = 2
        coupon.save()

        assert resolve_coupon('SAVE10', Decimal('200')) == (None, Decimal('0.00'))

    def test_expired_coupon_ignored(self, coupon):
        coupon.valid_until = timezone.now() - timedelta(minutes=1)
        coupon.save()

        assert resolve_coupon('SAVE10', Decimal('200'))[0] is None

    def test_minimum_order_amount(self, coupon):
        coupon.min_order_amount = Decimal('500')
        coupon.save()

        assert resolve_coupon('SAVE10', Decimal('499.99'))[0] is None
        assert resolve_coupon('SAVE10', Decimal('500'))[0] == coupon

    def test_unknown_code(self, db):
        assert resolve_coupon('NOPE', Decimal('100')) == (None, Decimal('0.00'))


class TestOrderTotals:

    def test_quantity_rule_and_coupon(self, product, variant, coupon):
        variant.stock = 20
        variant.save()

        totals = calculate_order_totals(
            [{'product_id': product.id, 'product_variant_id': variant.id, 'quantity': 12}],
            coupon_code='SAVE10',
        )

        assert totals['subtotal'] == Decimal('960.00')
        assert totals['quantity_savings'] == Decimal('240.00')
        assert totals['coupon_discount'] == Decimal('50.00')
        assert totals['total_amount'] == Decimal('910.00')
        assert totals['coupon'] == coupon
        assert totals['has_quantity_discounts'] is True

    def test_offer_price_used_as_base(self, product, variant):
        totals = calculate_order_totals([{'product_id': product.id, 'product_variant_id': variant.id, 'quantity': 1}])

        assert totals['items'][0]['base_price'] == Decimal('100.00')
        assert totals['total_amount'] == Decimal('100.00')

    def test_normal_price_when_no_offer(self, product):
        product.offer_price = None
        product.save()

        totals = calculate_order_totals([{'product_id': product.id, 'quantity': 2}])

        assert totals['subtotal'] == Decimal('240.00')

    def test_total_equals_subtotal_minus_discount(self, product, coupon):
        product.offer_price = Decimal('33.33')
        product.save()
        coupon.max_discount = None
        coupon.save()

        totals = calculate_order_totals([{'product_id': product.id, 'quantity': 1}], coupon_code='SAVE10')

        assert totals['total_amount'] == totals['subtotal'] - totals['coupon_discount'] + totals['shipping_cost']

    def test_unknown_product(self, db):
        with pytest.raises(NotFound):
            calculate_order_totals([{'product_id': 999, 'quantity': 1}])

    def test_inactive_product(self, product):
        product.status = 'INACTIVE'
        product.save()

        with pytest.raises(ProductUnavailable):
            calculate_order_totals([{'product_id': product.id, 'quantity': 1}])

    def test_variant_of_another_product(self, product, category):
        from catalog.models import Product
        other = Product.objects.create(name='Pen', product_code='PEN', category=category, normal_price=Decimal('5'))
        foreign = ProductVariant.objects.create(product=other, sku='PEN-RED', stock=3)

        with pytest.raises(NotFound):
            calculate_order_totals([{'product_id': product.id, 'product_variant_id': foreign.id, 'quantity': 1}])

    def test_insufficient_stock(self, product, variant):
        with pytest.raises(InsufficientStock) as excinfo:
            calculate_order_totals([{'product_id': product.id, 'product_variant_id': variant.id, 'quantity': 6}])

        assert excinfo.value.available == 5
        assert excinfo.value.requested == 6

    @pytest.mark.parametrize('items', [None, [], [{'product_id': 1, 'quantity': 0}], [{'quantity': 1}]])
    def test_invalid_items(self, db, items):
        with pytest.raises(ValidationError):
            calculate_order_totals(items)

    def test_inactive_rule_rows_are_ignored(self, product, subcategory):
        SubcategoryQuantityPrice.objects.filter(subcategory=subcategory).update(is_active=False)

        totals = calculate_order_totals([{'product_id': product.id, 'quantity': 12}])

        assert totals['subtotal'] == Decimal('1200.00')
        assert totals['has_quantity_discounts'] is False

    def test_serialized_totals_are_strings(self, product, coupon):
        totals = serialize_totals(calculate_order_totals([{'product_id': product.id, 'quantity': 12}], 'SAVE10'))

        assert totals['total_amount'] == '910.00'
        assert totals['applied_coupon'] == 'SAVE10'
        assert totals['items'][0]['applied_rule']['value'] == '20.00'


def test_totals_are_stable_for_unchanged_state(product, variant, coupon):
    items = [{'product_id': product.id, 'product_variant_id': variant.id, 'quantity': 3}]

    first = calculate_order_totals(items, 'SAVE10')
    second = calculate_order_totals(items, 'SAVE10')

    assert serialize_totals(first) == serialize_totals(second)
    assert first['coupon'] == second['coupon']
    variant.refresh_from_db()
    assert variant.stock == 5
