from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from catalog.models import Category, Product, ProductVariant, Subcategory, SubcategoryQuantityPrice
from orders.services import OrderService
from promotions.models import Coupon
from users.models import User

from .fakes import FakeGateway, FakeNotifier


@pytest.fixture
def customer(db):
    return User.objects.create_user(
        username='asha', email='asha@example.com', password='secret123', name='Asha Rao',
    )


@pytest.fixture
def other_customer(db):
    return User.objects.create_user(username='ravi', email='ravi@example.com', password='secret123')


@pytest.fixture
def store_admin(db):
    return User.objects.create_user(
        username='manager', email='manager@example.com', password='secret123', user_type='admin',
    )


@pytest.fixture
def category(db):
    return Category.objects.create(name='Stationery', slug='stationery')


@pytest.fixture
def subcategory(category):
    sub = Subcategory.objects.create(category=category, name='Notebooks')
    SubcategoryQuantityPrice.objects.create(subcategory=sub, quantity=10, price_type='PERCENTAGE', value=Decimal('20'))
    return sub


@pytest.fixture
def product(category, subcategory):
    return Product.objects.create(
        name='A5 Notebook',
        product_code='NB-A5',
        category=category,
        subcategory=subcategory,
        normal_price=Decimal('120.00'),
        offer_price=Decimal('100.00'),
    )


@pytest.fixture
def variant(product):
    return ProductVariant.objects.create(product=product, sku='NB-A5-BLUE', color='Blue', size='A5', stock=5)


@pytest.fixture
def coupon(db):
    now = timezone.now()
    return Coupon.objects.create(
        code='SAVE10',
        discount_type='PERCENTAGE',
        discount_value=Decimal('10'),
        max_discount=Decimal('50'),
        valid_from=now - timedelta(days=1),
        valid_until=now + timedelta(days=30),
    )


@pytest.fixture
def shipping():
    return {
        'name':    'Asha Rao',
        'email':   'asha@example.com',
        'phone':   '9876543210',
        'address': '12 MG Road',
        'city':    'Bengaluru',
        'state':   'Karnataka',
        'pincode': '560001',
    }


@pytest.fixture
def order_data(shipping, product, variant):
    return {
        **shipping,
        'order_items': [{'product_id': product.id, 'product_variant_id': variant.id, 'quantity': 3}],
    }


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def service(gateway, notifier):
    return OrderService(gateway=gateway, notifier=notifier)


@pytest.fixture
def paid_order(service, customer, order_data):
    """An online order that went through quote, payment and verification."""
    quote = service.initiate_online_payment(customer, order_data)
    return service.verify_and_create_order(
        customer, quote['provider_order_id'], 'pay_TEST1', 'sig', quote['quote_token'],
    )
