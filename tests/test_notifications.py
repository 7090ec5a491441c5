from datetime import timedelta
from io import StringIO
from unittest import mock

import pytest
from django.core import mail
from django.core.management import call_command
from django.utils import timezone

from orders.email_service import OrderEmailNotifier
from orders.models import Order
from orders.services import OrderService

from .fakes import FakeGateway


@pytest.fixture(autouse=True)
def email_settings(settings):
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    settings.ADMIN_EMAIL = 'ops@example.com'
    settings.DEFAULT_FROM_EMAIL = 'orders@example.com'


@pytest.fixture
def order(customer, order_data):
    return OrderService(gateway=FakeGateway(), notifier=mock.Mock()).create_cod_order(customer, order_data)


def test_order_notifications_reach_customer_and_admin(order):
    assert OrderEmailNotifier().send_order_notifications(order) is True

    recipients = [message.to for message in mail.outbox]
    assert recipients == [['asha@example.com'], ['ops@example.com']]
    assert order.order_number in mail.outbox[0].subject
    assert 'A5 Notebook' in mail.outbox[0].body
    assert mail.outbox[0].content_subtype == 'html'


def test_admin_alert_skipped_without_address(order, settings):
    settings.ADMIN_EMAIL = ''

    assert OrderEmailNotifier().send_admin_order_alert(order) is False
    assert mail.outbox == []


def test_status_update_email(order):
    assert OrderEmailNotifier().send_status_update(order, 'CONFIRMED', 'SHIPPED') is True
    assert 'Shipped' in mail.outbox[0].subject


def test_refund_email(order):
    sent = OrderEmailNotifier().send_refund_notification(order, {
        'refund_amount': '300.00', 'reason': 'Damaged', 'provider_refund_id': 'rfnd_1',
    })

    assert sent is True
    assert 'rfnd_1' in mail.outbox[0].body


def test_send_failure_is_logged_not_raised(order, caplog):
    with mock.patch('orders.email_service.EmailMessage.send', side_effect=OSError('SMTP down')):
        assert OrderEmailNotifier().send_order_confirmation(order) is False

    assert 'Failed to send order confirmation email' in caplog.text


def test_cancel_expired_orders_command(customer, shipping):
    order = Order.objects.create(
        order_number='ORD-1-STALE1',
        user=customer,
        subtotal=10,
        total_amount=10,
        payment_method='ONLINE',
        **shipping,
    )
    Order.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(days=2))
    out = StringIO()

    call_command('cancel_expired_orders', stdout=out)

    order.refresh_from_db()
    assert order.status == 'CANCELLED'
    assert 'Cancelled 1 expired orders' in out.getvalue()
