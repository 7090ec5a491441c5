# orders/email_service.py
"""
Order notification emails.

Every public method returns True on success and False on failure; none of
them raises, so a mail outage never fails the order operation that
triggered it.
"""

import logging

from django.conf import settings
from django.core.mail import EmailMessage
from django.template.loader import render_to_string
from django.utils.timezone import localtime

logger = logging.getLogger(__name__)


PAYMENT_METHOD_LABELS = {
    'COD':    'Cash on Delivery',
    'ONLINE': 'Online Payment',
}


def _site_url():
    return getattr(settings, 'SITE_URL', '').rstrip('/')


def _order_context(order):
    items_data = []
    for item in order.items.select_related('product', 'product_variant'):
        variant = item.product_variant
        items_data.append({
            'product_name': item.product.name,
            'variant':      f"{variant.color} {variant.size}".strip() if variant else '',
            'quantity':     item.quantity,
            'unit_price':   str(item.price),
        })

    return {
        'customer_name':          order.name or 'Valued Customer',
        'order_number':           order.order_number,
        'order_date':             localtime(order.created_at).strftime('%B %d, %Y at %I:%M %p'),
        'status':                 order.get_status_display(),
        'payment_method_display': PAYMENT_METHOD_LABELS.get(order.payment_method, order.payment_method),
        'payment_status':         order.get_payment_status_display(),
        'order_items':            items_data,
        'subtotal':               str(order.subtotal),
        'discount':               str(order.discount),
        'shipping_cost':          str(order.shipping_cost),
        'total_amount':           str(order.total_amount),
        'shipping_address':       f"{order.address}, {order.city}, {order.state} - {order.pincode}",
        'shipping_phone':         order.phone,
        'tracking_number':        order.tracking_number,
        'carrier':                order.carrier,
        'tracking_url':           order.tracking_url,
        'order_detail_url':       f"{_site_url()}/orders/{order.order_number}/",
        'support_email':          getattr(settings, 'SUPPORT_EMAIL', settings.DEFAULT_FROM_EMAIL),
    }


class OrderEmailNotifier:

    def _send(self, template, subject, recipient, context):
        html_body = render_to_string(template, context)
        email = EmailMessage(
            subject=subject,
            body=html_body,
            to=[recipient],
            from_email=settings.DEFAULT_FROM_EMAIL,
        )
        email.content_subtype = 'html'
        email.send(fail_silently=False)

    def send_order_notifications(self, order):
        """Customer confirmation plus the admin new-order alert."""
        customer_sent = self.send_order_confirmation(order)
        admin_sent = self.send_admin_order_alert(order)
        return customer_sent and admin_sent

    def send_order_confirmation(self, order):
        try:
            self._send(
                'orders/emails/order_confirmation.html',
                f"Order Confirmed - #{order.order_number}",
                order.email,
                _order_context(order),
            )
            logger.info(f"Order confirmation email sent to {order.email} for order {order.order_number}")
            return True
        except Exception as e:
            logger.error(f"Failed to send order confirmation email for {order.order_number}: {e}", exc_info=True)
            return False

    def send_admin_order_alert(self, order):
        admin_email = getattr(settings, 'ADMIN_EMAIL', '')
        if not admin_email:
            logger.warning(f"ADMIN_EMAIL not set; skipping admin alert for {order.order_number}")
            return False
        try:
            context = _order_context(order)
            context['customer_email'] = order.email
            self._send(
                'orders/emails/admin_new_order.html',
                f"New Order #{order.order_number} - {order.get_payment_method_display()}",
                admin_email,
                context,
            )
            logger.info(f"Admin order alert sent for order {order.order_number}")
            return True
        except Exception as e:
            logger.error(f"Failed to send admin order alert for {order.order_number}: {e}", exc_info=True)
            return False

    def send_status_update(self, order, old_status, new_status):
        try:
            context = _order_context(order)
            context.update({
                'old_status': dict(order.ORDER_STATUS).get(old_status, old_status),
                'new_status': dict(order.ORDER_STATUS).get(new_status, new_status),
            })
            self._send(
                'orders/emails/status_update.html',
                f"Order #{order.order_number} is now {context['new_status']}",
                order.email,
                context,
            )
            logger.info(f"Status update email sent for order {order.order_number}: {old_status} -> {new_status}")
            return True
        except Exception as e:
            logger.error(f"Failed to send status update email for {order.order_number}: {e}", exc_info=True)
            return False

    def send_refund_notification(self, order, refund_info):
        try:
            context = _order_context(order)
            context.update({
                'refund_amount':      str(refund_info.get('refund_amount', '')),
                'reason':             refund_info.get('reason', ''),
                'provider_refund_id': refund_info.get('provider_refund_id', ''),
            })
            self._send(
                'orders/emails/refund_processed.html',
                f"Refund processed for order #{order.order_number}",
                order.email,
                context,
            )
            logger.info(f"Refund email sent for order {order.order_number}")
            return True
        except Exception as e:
            logger.error(f"Failed to send refund email for {order.order_number}: {e}", exc_info=True)
            return False
