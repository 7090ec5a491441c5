# orders/services.py
"""
Order lifecycle: creation (online and cash on delivery), status and
tracking updates, refunds, hard/soft deletion and restore, and the expiry
job for unpaid orders.

Each mutating operation runs in one database transaction. Notifications go
out only after that transaction has committed, and their failure is logged
and never reported back to the caller.
"""

import logging
import random
import string
import time
from datetime import datetime, timedelta
from decimal import InvalidOperation

from django.conf import settings
from django.core import signing
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from core.exceptions import (
    AlreadyDeleted,
    AuthorizationError,
    InvalidStatus,
    NotDeletable,
    NotFound,
    PaymentVerificationFailed,
    RefundFailed,
    RefundNotEligible,
    ServiceError,
    ValidationError,
)
from core.pagination import paginate

from . import ledger, tracking
from .audit import SoftDeleteAudit
from .email_service import OrderEmailNotifier
from .models import CustomOrderImage, Order, OrderItem
from .payment_services import PaymentGatewayFactory
from .pricing import calculate_order_totals, money, serialize_totals

logger = logging.getLogger(__name__)


SHIPPING_FIELDS = ('name', 'email', 'phone', 'address', 'city', 'state', 'pincode')
VALID_STATUSES = [value for value, _ in Order.ORDER_STATUS]
NON_DELETABLE_STATUSES = ('PROCESSING', 'SHIPPED', 'DELIVERED')
TERMINAL_STATUSES = ('DELIVERED', 'CANCELLED', 'REFUNDED')
CANCELLABLE_STATUSES = ('PENDING', 'CONFIRMED', 'PROCESSING')
FORWARD_PROGRESSION = ['PENDING', 'CONFIRMED', 'PROCESSING', 'SHIPPED', 'DELIVERED']

QUOTE_SALT = 'orders.quote'


def generate_order_number():
    timestamp  = int(time.time() * 1000)
    random_str = ''.join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"ORD-{timestamp}-{random_str}"


def _parse_estimated_delivery(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    parsed = parse_datetime(str(value))
    if parsed is None:
        day = parse_date(str(value))
        if day is None:
            raise ValidationError(f"Invalid estimated delivery date: {value}")
        parsed = datetime(day.year, day.month, day.day)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def check_status_transition(old_status, new_status):
    """
    Admin-driven transitions: forward along the fulfilment path, or to
    CANCELLED before shipping. Nothing leaves DELIVERED, CANCELLED or
    REFUNDED, and REFUNDED is only reachable through process_refund().
    """
    if new_status == 'REFUNDED':
        raise InvalidStatus('Orders can only be marked REFUNDED by processing a refund')
    if old_status in TERMINAL_STATUSES:
        raise InvalidStatus(f"Cannot change status of a {old_status} order")
    if new_status == 'CANCELLED':
        if old_status not in CANCELLABLE_STATUSES:
            raise InvalidStatus(f"Cannot cancel an order with status {old_status}")
        return
    if FORWARD_PROGRESSION.index(new_status) < FORWARD_PROGRESSION.index(old_status):
        raise InvalidStatus(f"Cannot move order from {old_status} back to {new_status}")


class OrderService:

    def __init__(self, gateway=None, notifier=None):
        self._gateway = gateway
        self.notifier = notifier or OrderEmailNotifier()

    # ─────────────────────────────────────────────────────────
    # HELPERS
    # ─────────────────────────────────────────────────────────

    @property
    def gateway(self):
        if self._gateway is None:
            self._gateway = PaymentGatewayFactory.get_service()
        return self._gateway

    def _gateway_for(self, order):
        if self._gateway is not None or not order.payment_gateway:
            return self.gateway
        return PaymentGatewayFactory.get_service(order.payment_gateway)

    def _notify(self, method_name, *args):
        try:
            getattr(self.notifier, method_name)(*args)
        except Exception as e:
            logger.error(f"Notification {method_name} failed: {e}", exc_info=True)

    def _get_order(self, order_id, lock=False):
        queryset = Order.objects.select_for_update() if lock else Order.objects.all()
        try:
            return queryset.get(pk=order_id)
        except (Order.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Order not found: {order_id}")

    @staticmethod
    def _validate_shipping(order_data):
        missing = [field for field in SHIPPING_FIELDS if not str(order_data.get(field) or '').strip()]
        if missing:
            raise ValidationError(
                f"All shipping information fields are required. Missing: {', '.join(missing)}",
                missing=missing,
            )

    @staticmethod
    def _clean_order_data(order_data):
        return {
            **{field: str(order_data[field]).strip() for field in SHIPPING_FIELDS},
            'order_items':   order_data.get('order_items') or [],
            'coupon_code':   order_data.get('coupon_code') or None,
            'custom_images': order_data.get('custom_images') or [],
        }

    # ─────────────────────────────────────────────────────────
    # PRICING
    # ─────────────────────────────────────────────────────────

    def calculate_totals(self, order_items, coupon_code=None):
        return calculate_order_totals(order_items, coupon_code)

    # ─────────────────────────────────────────────────────────
    # ORDER CREATION
    # ─────────────────────────────────────────────────────────

    def initiate_online_payment(self, user, order_data):
        """
        Quote stage of an online order: price it, open a payment with the
        gateway and hand back a signed quote token for the finalisation call.
        Nothing is written to the database.
        """
        self._validate_shipping(order_data)
        data = self._clean_order_data(order_data)

        totals = calculate_order_totals(data['order_items'], data['coupon_code'])
        currency = getattr(settings, 'PAYMENT_CURRENCY', 'INR')
        intent = self.gateway.create_payment_intent(totals['total_amount'], currency)

        quote_token = signing.dumps(
            {
                'user_id':           user.pk,
                'gateway':           self.gateway.name,
                'provider_order_id': intent['provider_order_id'],
                'quoted_total':      str(totals['total_amount']),
                'order_data':        data,
            },
            salt=QUOTE_SALT,
        )

        logger.info(
            f"{self.gateway.name} payment initiated for user {user.pk}: "
            f"{intent['provider_order_id']}, total {totals['total_amount']}, "
            f"quantity savings {totals['quantity_savings']}"
        )
        return {
            **intent,
            'quote_token':       quote_token,
            'totals':            serialize_totals(totals),
        }

    def _load_quote(self, user, provider_order_id, quote_token):
        try:
            quote = signing.loads(
                quote_token,
                salt=QUOTE_SALT,
                max_age=getattr(settings, 'ORDER_QUOTE_MAX_AGE', 3600),
            )
        except signing.SignatureExpired:
            raise ValidationError('Order quote has expired, please start checkout again')
        except signing.BadSignature:
            raise ValidationError('Order quote is invalid')

        if quote.get('provider_order_id') != provider_order_id:
            raise PaymentVerificationFailed('Payment does not belong to this order quote')
        if quote.get('user_id') != user.pk:
            raise AuthorizationError('Order quote belongs to another user')
        return quote

    def _recorded_order(self, provider_order_id):
        return Order.objects.filter(
            provider_order_id=provider_order_id, payment_gateway=self.gateway.name,
        ).first()

    def verify_and_create_order(self, user, provider_order_id, provider_payment_id, signature, quote_token):
        """
        Finalisation stage of an online order. The payment must verify;
        totals are then recomputed from current catalog and coupon state and
        that result is what gets recorded.
        """
        quote = self._load_quote(user, provider_order_id, quote_token)

        if not self.gateway.verify_payment(provider_order_id, provider_payment_id, signature):
            raise PaymentVerificationFailed(f"Payment verification failed for {provider_order_id}")

        existing = self._recorded_order(provider_order_id)
        if existing:
            logger.warning(f"Payment {provider_order_id} already recorded as order {existing.order_number}")
            return existing

        try:
            order = self._place_order(
                user,
                quote['order_data'],
                payment_method='ONLINE',
                payment_status='PAID',
                payment_fields={
                    'payment_gateway':         self.gateway.name,
                    'provider_order_id':       provider_order_id,
                    'provider_payment_id':     provider_payment_id,
                    'provider_signature':      str(signature),
                    'provider_transaction_id': self.gateway.refund_reference(provider_order_id, provider_payment_id),
                },
                description='Order confirmed and payment received. Quantity savings: ₹{savings}',
            )
        except IntegrityError:
            # Another request recorded the same payment between the check and the insert
            existing = self._recorded_order(provider_order_id)
            if existing is None:
                raise
            logger.warning(f"Payment {provider_order_id} recorded concurrently as order {existing.order_number}")
            return existing

        if str(order.total_amount) != quote['quoted_total']:
            logger.warning(
                f"Order {order.order_number} total {order.total_amount} differs from "
                f"quoted {quote['quoted_total']}"
            )
        return order

    def create_cod_order(self, user, order_data):
        self._validate_shipping(order_data)
        return self._place_order(
            user,
            self._clean_order_data(order_data),
            payment_method='COD',
            payment_status='PENDING',
            payment_fields={},
            description='COD order confirmed. Quantity savings: ₹{savings}',
        )

    def _place_order(self, user, data, payment_method, payment_status, payment_fields, description):
        with transaction.atomic():
            totals = calculate_order_totals(data['order_items'], data['coupon_code'])

            order = Order.objects.create(
                order_number   = generate_order_number(),
                user           = user,
                status         = 'CONFIRMED',
                subtotal       = totals['subtotal'],
                discount       = totals['coupon_discount'],
                shipping_cost  = totals['shipping_cost'],
                total_amount   = totals['total_amount'],
                coupon         = totals['coupon'],
                payment_method = payment_method,
                payment_status = payment_status,
                **{field: data[field] for field in SHIPPING_FIELDS},
                **payment_fields,
            )

            order_items = OrderItem.objects.bulk_create([
                OrderItem(
                    order              = order,
                    product            = item['product'],
                    product_variant    = item['variant'],
                    quantity           = item['quantity'],
                    price              = item['base_price'],
                )
                for item in totals['items']
            ])

            CustomOrderImage.objects.bulk_create([
                CustomOrderImage(
                    order     = order,
                    image_url = image['url'],
                    image_key = image.get('key', ''),
                    filename  = image.get('filename') or f"custom-image-{int(time.time() * 1000)}.jpg",
                )
                for image in data['custom_images']
                if image.get('url')
            ])

            ledger.reserve_stock(order_items)
            ledger.record_coupon_use(totals['coupon'])

            tracking.record(
                order,
                'CONFIRMED',
                description.format(savings=totals['quantity_savings']),
            )

        order.quantity_savings = totals['quantity_savings']
        order.has_quantity_discounts = totals['has_quantity_discounts']

        self._notify('send_order_notifications', order)
        logger.info(
            f"{payment_method} order {order.order_number} created for user {user.pk}. "
            f"Quantity savings: ₹{totals['quantity_savings']}"
        )
        return order

    # ─────────────────────────────────────────────────────────
    # STATUS & TRACKING
    # ─────────────────────────────────────────────────────────

    def update_status(self, order_id, status, admin_notes=None):
        if status not in VALID_STATUSES:
            raise InvalidStatus(f"Invalid status: {status}. Must be one of {', '.join(VALID_STATUSES)}")

        with transaction.atomic():
            order = self._get_order(order_id, lock=True)
            old_status = order.status

            if admin_notes:
                order.admin_notes = admin_notes

            if status == old_status:
                if admin_notes:
                    order.save(update_fields=['admin_notes', 'updated_at'])
                logger.info(f"Order {order.order_number} already {status}; no transition recorded")
                return order

            check_status_transition(old_status, status)

            now = timezone.now()
            order.status = status
            if status == 'SHIPPED' and order.shipped_at is None:
                order.shipped_at = now
            if status == 'DELIVERED' and order.delivered_at is None:
                order.delivered_at = now
            order.save()

            tracking.record(order, status, tracking.status_description(status))

        self._notify('send_status_update', order, old_status, status)
        logger.info(f"Order status updated: {order.order_number} {old_status} -> {status}")
        return order

    def update_tracking(self, order_id, tracking_number, carrier, tracking_url=None, estimated_delivery=None):
        """
        Record shipment details. The order is always moved to SHIPPED with
        shipped_at reset to now, whatever its current status.
        """
        if not tracking_number or not carrier:
            raise ValidationError('Tracking number and carrier are required')
        estimated_delivery = _parse_estimated_delivery(estimated_delivery)

        with transaction.atomic():
            order = self._get_order(order_id, lock=True)
            old_status = order.status

            order.tracking_number    = tracking_number
            order.carrier            = carrier
            order.tracking_url       = tracking_url or ''
            order.estimated_delivery = estimated_delivery
            order.status             = 'SHIPPED'
            order.shipped_at         = timezone.now()
            order.save()

            tracking.record(
                order,
                'SHIPPED',
                f"Order shipped via {carrier}. Tracking number: {tracking_number}",
            )

        self._notify('send_status_update', order, old_status, 'SHIPPED')
        logger.info(f"Tracking info updated for order: {order.order_number}")
        return order

    # ─────────────────────────────────────────────────────────
    # REFUNDS
    # ─────────────────────────────────────────────────────────

    def process_refund(self, order_id, reason, refund_amount=None, admin_notes=None):
        if not reason:
            raise ValidationError('A refund reason is required')

        with transaction.atomic():
            order = self._get_order(order_id, lock=True)

            if order.payment_status != 'PAID':
                raise RefundNotEligible(f"Cannot refund order that is not paid (payment status: {order.payment_status})")
            if order.status == 'REFUNDED':
                raise RefundNotEligible('Order is already refunded')
            if not order.provider_transaction_id:
                raise RefundNotEligible('Original transaction ID not found for refund')

            if refund_amount in (None, ''):
                amount = order.total_amount
            else:
                try:
                    amount = money(str(refund_amount))
                except (InvalidOperation, TypeError, ValueError):
                    amount = None
                if amount is None or not amount.is_finite():
                    raise ValidationError(f"Invalid refund amount: {refund_amount}")
            if amount <= 0 or amount > order.total_amount:
                raise ValidationError(
                    f"Refund amount must be greater than 0 and at most {order.total_amount}"
                )

            try:
                result = self._gateway_for(order).refund(
                    order.provider_transaction_id, amount, f"REFUND_{order.id}",
                )
            except ServiceError as e:
                if isinstance(e, RefundFailed):
                    raise
                raise RefundFailed(f"Refund processing failed: {e.message}", provider_message=e.message)
            except Exception as e:
                logger.error(f"Refund failed for order {order.order_number}: {e}", exc_info=True)
                raise RefundFailed(f"Refund processing failed: {e}", provider_message=str(e))

            provider_refund_id = result['provider_refund_id']

            # The provider has already paid out; a failure below leaves the order PAID.
            try:
                order.status = 'REFUNDED'
                order.payment_status = 'REFUNDED'
                if admin_notes:
                    order.admin_notes = admin_notes
                order.save()

                ledger.restore_stock(order.items.all())

                tracking.record(
                    order,
                    'REFUNDED',
                    f"Order refunded. Amount: ₹{amount}. Reason: {reason}. Refund ID: {provider_refund_id}",
                    location=tracking.SYSTEM_LOCATION,
                )
            except Exception:
                logger.error(
                    f"Refund {provider_refund_id} of ₹{amount} issued for order {order.order_number} "
                    f"but the order could not be updated; reconcile manually",
                    exc_info=True,
                )
                raise

        self._notify('send_refund_notification', order, {
            'refund_amount':      amount,
            'reason':             reason,
            'provider_refund_id': provider_refund_id,
        })
        logger.info(f"Order refunded: {order.order_number}, refund id: {provider_refund_id}")
        return {
            'order':              order,
            'provider_refund_id': provider_refund_id,
            'refund_amount':      amount,
        }

    # ─────────────────────────────────────────────────────────
    # DELETION
    # ─────────────────────────────────────────────────────────

    @staticmethod
    def _hard_delete(order):
        order.tracking_history.all().delete()
        order.custom_images.all().delete()
        order.items.all().delete()
        order.delete()

    def delete_order(self, order_id):
        """Permanently delete an order that never went into fulfilment."""
        with transaction.atomic():
            order = self._get_order(order_id, lock=True)
            if order.status in NON_DELETABLE_STATUSES:
                raise NotDeletable(
                    f"Cannot delete order with status: {order.status}. Please cancel or refund first."
                )

            order_info = {
                'order_number': order.order_number,
                'total_amount': str(order.total_amount),
                'status':       order.status,
            }
            self._hard_delete(order)

        logger.info(f"Order permanently deleted: {order_info}")
        return {
            'deleted_order': order_info,
            'deleted_at':    timezone.now(),
            'message':       'Order permanently deleted',
        }

    @staticmethod
    def _apply_soft_delete(order, deleted_by, description):
        now = timezone.now()
        audit = SoftDeleteAudit(deleted_at=now, deleted_by=deleted_by, previous_status=order.status)
        order.notes = audit.apply(order.notes)
        order.deleted_at = now
        order.status = 'CANCELLED'
        order.save(update_fields=['notes', 'deleted_at', 'status', 'updated_at'])
        tracking.record(order, 'CANCELLED', description, location=tracking.SYSTEM_LOCATION)

    def soft_delete_order(self, order_id, deleted_by='ADMIN'):
        with transaction.atomic():
            order = self._get_order(order_id, lock=True)
            if order.deleted_at:
                raise AlreadyDeleted(f"Order {order.order_number} is already soft deleted")
            self._apply_soft_delete(order, str(deleted_by), 'Order soft deleted by admin')

        logger.info(f"Order soft deleted: {order.order_number} (ID: {order.id})")
        return order

    def bulk_delete_orders(self, order_ids, delete_type='soft', deleted_by='ADMIN'):
        """
        Soft or hard delete several orders.

        Every id must exist, and for hard deletes none may be in fulfilment;
        either check failing rejects the whole batch before anything changes.
        Hard deletes then run order by order, reporting failures per order
        instead of aborting the batch.
        """
        if not isinstance(order_ids, (list, tuple)) or not order_ids:
            raise ValidationError('No order IDs provided')
        if delete_type not in ('soft', 'hard'):
            raise ValidationError(f"Invalid delete type: {delete_type}. Must be 'soft' or 'hard'")

        try:
            order_ids = list(dict.fromkeys(int(order_id) for order_id in order_ids))
        except (ValueError, TypeError):
            raise ValidationError('Order IDs must be integers')
        orders = {order.id: order for order in Order.objects.filter(id__in=order_ids)}
        missing = [order_id for order_id in order_ids if order_id not in orders]
        if missing:
            raise NotFound(
                f"Some orders not found: {', '.join(str(order_id) for order_id in missing)}",
                missing=missing,
            )
        ordered = [orders[order_id] for order_id in order_ids]

        results = []
        if delete_type == 'hard':
            blocked = [order for order in ordered if order.status in NON_DELETABLE_STATUSES]
            if blocked:
                raise NotDeletable(
                    f"Cannot permanently delete orders in status: {', '.join(NON_DELETABLE_STATUSES)}. "
                    f"Affected orders: {', '.join(order.order_number for order in blocked)}"
                )

            for order in ordered:
                order_id = order.id
                try:
                    with transaction.atomic():
                        self._hard_delete(order)
                    results.append({
                        'order_id':     order_id,
                        'order_number': order.order_number,
                        'status':       'PERMANENTLY_DELETED',
                        'success':      True,
                    })
                except (DatabaseError, ServiceError) as e:
                    logger.error(f"Bulk hard delete failed for order {order.order_number}: {e}", exc_info=True)
                    results.append({
                        'order_id':     order_id,
                        'order_number': order.order_number,
                        'status':       'FAILED',
                        'error':        str(e),
                        'success':      False,
                    })
            logger.info(f"Bulk hard deleted {len(ordered)} orders")
        else:
            already = [order for order in ordered if order.deleted_at]
            if already:
                raise AlreadyDeleted(
                    f"Orders already soft deleted: {', '.join(order.order_number for order in already)}"
                )

            with transaction.atomic():
                for order in ordered:
                    self._apply_soft_delete(
                        order, str(deleted_by), 'Order soft deleted by admin (bulk operation)',
                    )
                    results.append({
                        'order_id':     order.id,
                        'order_number': order.order_number,
                        'status':       'SOFT_DELETED',
                        'success':      True,
                    })
            logger.info(f"Bulk soft deleted {len(ordered)} orders")

        return {
            'deleted_count': sum(1 for result in results if result['success']),
            'failed_count':  sum(1 for result in results if not result['success']),
            'results':       results,
        }

    def restore_order(self, order_id):
        """
        Undo a soft delete. The status set by the soft delete (CANCELLED) is
        kept; the previous status stays readable only in the tracking log.
        """
        with transaction.atomic():
            order = self._get_order(order_id, lock=True)
            if not order.deleted_at:
                raise InvalidStatus(f"Order {order.order_number} is not soft deleted")

            order.deleted_at = None
            order.notes = SoftDeleteAudit.clear(order.notes)
            order.save(update_fields=['deleted_at', 'notes', 'updated_at'])

            tracking.record(order, order.status, 'Order restored by admin', location=tracking.SYSTEM_LOCATION)

        logger.info(f"Order restored: {order.order_number} (ID: {order.id})")
        return order

    # ─────────────────────────────────────────────────────────
    # EXPIRY
    # ─────────────────────────────────────────────────────────

    def cancel_expired_pending_orders(self, now=None):
        hours = getattr(settings, 'ORDER_PENDING_EXPIRY_HOURS', 24)
        cutoff = (now or timezone.now()) - timedelta(hours=hours)

        with transaction.atomic():
            expired = list(
                Order.objects.select_for_update().filter(
                    status='PENDING',
                    payment_status='PENDING',
                    created_at__lt=cutoff,
                )
            )
            for order in expired:
                order.status = 'CANCELLED'
                order.payment_status = 'FAILED'
                order.save(update_fields=['status', 'payment_status', 'updated_at'])
                tracking.record(
                    order,
                    'CANCELLED',
                    f"Order automatically cancelled due to incomplete payment within {hours} hours",
                    location=tracking.SYSTEM_LOCATION,
                )
                logger.info(f"Auto-cancelled expired order: {order.order_number}")

        return {
            'cancelled_count':  len(expired),
            'cancelled_orders': [order.order_number for order in expired],
        }

    # ─────────────────────────────────────────────────────────
    # QUERIES
    # ─────────────────────────────────────────────────────────

    @staticmethod
    def _with_relations(queryset):
        return queryset.select_related('user', 'coupon').prefetch_related(
            'items__product', 'items__product_variant', 'custom_images', 'tracking_history',
        )

    def get_order_by_id(self, order_id):
        try:
            return self._with_relations(Order.objects.all()).get(pk=order_id)
        except (Order.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Order not found: {order_id}")

    def get_order_by_number(self, order_number, user=None):
        order = self._with_relations(Order.objects.all()).filter(order_number=order_number).first()
        if order is None:
            raise NotFound(f"Order not found: {order_number}")
        if user is not None and order.user_id != user.pk and not (user.is_staff or user.is_admin):
            raise AuthorizationError('You can only view your own orders')
        return order

    def get_all_orders(self, page=1, limit=10, status=None, user_id=None, payment_status=None,
                       include_deleted=False):
        orders = Order.objects.all() if include_deleted else Order.objects.live()
        if status:
            orders = orders.filter(status=status)
        if user_id:
            orders = orders.filter(user_id=user_id)
        if payment_status:
            orders = orders.filter(payment_status=payment_status)
        return paginate(self._with_relations(orders).order_by('-created_at'), page, limit)

    def get_user_orders(self, user, page=1, limit=10, status=None):
        orders = Order.objects.live().filter(user=user)
        if status:
            orders = orders.filter(status=status)
        return paginate(self._with_relations(orders).order_by('-created_at'), page, limit)
