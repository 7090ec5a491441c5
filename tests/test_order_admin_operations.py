from decimal import Decimal
from unittest import mock

import pytest
from django.db import DatabaseError
from django.utils import timezone

from core.exceptions import (
    AlreadyDeleted,
    InvalidStatus,
    NotDeletable,
    NotFound,
    RefundFailed,
    RefundNotEligible,
    ValidationError,
)
from orders.audit import SoftDeleteAudit
from orders.models import Order, OrderItem, TrackingHistory
from orders.services import OrderService

from .fakes import FakeGateway, FakeNotifier


@pytest.fixture
def cod_order(service, customer, order_data):
    return service.create_cod_order(customer, order_data)


def _statuses(order):
    return list(order.tracking_history.values_list('status', flat=True))


class TestUpdateStatus:

    def test_forward_transition(self, service, cod_order, notifier):
        order = service.update_status(cod_order.id, 'SHIPPED', admin_notes='Packed')

        assert order.status == 'SHIPPED'
        assert order.shipped_at is not None
        assert order.admin_notes == 'Packed'
        assert _statuses(order) == ['CONFIRMED', 'SHIPPED']
        assert notifier.calls[-1] == ('send_status_update', (order, 'CONFIRMED', 'SHIPPED'))

    def test_same_status_is_a_no_op(self, service, cod_order, notifier):
        service.update_status(cod_order.id, 'CONFIRMED')

        assert _statuses(cod_order) == ['CONFIRMED']
        assert notifier.names() == ['send_order_notifications']

    def test_delivered_at_set_once(self, service, cod_order):
        service.update_status(cod_order.id, 'SHIPPED')
        delivered = service.update_status(cod_order.id, 'DELIVERED').delivered_at

        assert delivered is not None
        assert Order.objects.get(pk=cod_order.pk).delivered_at == delivered

    def test_unknown_status(self, service, cod_order):
        with pytest.raises(InvalidStatus):
            service.update_status(cod_order.id, 'LOST')

    def test_no_transition_out_of_terminal_status(self, service, cod_order):
        service.update_status(cod_order.id, 'CANCELLED')

        with pytest.raises(InvalidStatus):
            service.update_status(cod_order.id, 'PROCESSING')

    def test_refunded_only_through_refund(self, service, cod_order):
        with pytest.raises(InvalidStatus):
            service.update_status(cod_order.id, 'REFUNDED')

    def test_no_backwards_moves(self, service, cod_order):
        service.update_status(cod_order.id, 'SHIPPED')

        with pytest.raises(InvalidStatus):
            service.update_status(cod_order.id, 'PROCESSING')

    def test_cannot_cancel_after_shipping(self, service, cod_order):
        service.update_status(cod_order.id, 'SHIPPED')

        with pytest.raises(InvalidStatus):
            service.update_status(cod_order.id, 'CANCELLED')

    def test_missing_order(self, service, db):
        with pytest.raises(NotFound):
            service.update_status(12345, 'SHIPPED')


class TestUpdateTracking:

    def test_records_shipment(self, service, cod_order):
        order = service.update_tracking(
            cod_order.id, 'AWB123', 'BlueDart',
            tracking_url='https://track.example.com/AWB123',
            estimated_delivery='2026-11-01',
        )

        assert order.status == 'SHIPPED'
        assert order.tracking_number == 'AWB123'
        assert order.estimated_delivery.date().isoformat() == '2026-11-01'
        assert order.tracking_history.last().description == 'Order shipped via BlueDart. Tracking number: AWB123'

    def test_delivered_order_forced_back_to_shipped(self, service, cod_order):
        service.update_status(cod_order.id, 'SHIPPED')
        delivered = service.update_status(cod_order.id, 'DELIVERED')
        first_shipped_at = delivered.shipped_at

        order = service.update_tracking(cod_order.id, 'AWB999', 'Delhivery')

        assert order.status == 'SHIPPED'
        assert order.shipped_at > first_shipped_at
        assert _statuses(order)[-1] == 'SHIPPED'

    def test_requires_number_and_carrier(self, service, cod_order):
        with pytest.raises(ValidationError):
            service.update_tracking(cod_order.id, '', 'BlueDart')

    def test_bad_delivery_date(self, service, cod_order):
        with pytest.raises(ValidationError):
            service.update_tracking(cod_order.id, 'AWB1', 'BlueDart', estimated_delivery='soon')


class TestRefund:

    def test_unpaid_order_not_eligible(self, service, cod_order, gateway):
        with pytest.raises(RefundNotEligible) as excinfo:
            service.process_refund(cod_order.id, 'Customer request')

        cod_order.refresh_from_db()
        assert 'not paid' in excinfo.value.message
        assert cod_order.status == 'CONFIRMED'
        assert gateway.refunds == []

    def test_full_refund_restores_stock(self, service, paid_order, variant, gateway, notifier):
        result = service.process_refund(paid_order.id, 'Damaged in transit', admin_notes='Approved')

        order = result['order']
        variant.refresh_from_db()
        assert order.status == 'REFUNDED'
        assert order.payment_status == 'REFUNDED'
        assert result['refund_amount'] == Decimal('300.00')
        assert result['provider_refund_id'] == 'rfnd_1'
        assert gateway.refunds == [('pay_TEST1', Decimal('300.00'), f"REFUND_{order.id}")]
        assert variant.stock == 5
        assert order.tracking_history.last().location == 'System'
        assert notifier.names()[-1] == 'send_refund_notification'

    def test_partial_amount(self, service, paid_order, gateway):
        service.process_refund(paid_order.id, 'Partial', refund_amount='120.50')

        assert gateway.refunds[0][1] == Decimal('120.50')

    def test_amount_above_total_rejected(self, service, paid_order):
        with pytest.raises(ValidationError):
            service.process_refund(paid_order.id, 'Too much', refund_amount='999')

    @pytest.mark.parametrize('amount', ['abc', 'NaN', [120]])
    def test_malformed_amount_rejected(self, service, paid_order, gateway, amount):
        with pytest.raises(ValidationError):
            service.process_refund(paid_order.id, 'Damaged', refund_amount=amount)

        assert gateway.refunds == []

    def test_failed_bookkeeping_logs_refund_id(self, service, paid_order, gateway, caplog):
        with mock.patch('orders.ledger.restore_stock', side_effect=DatabaseError('disk full')):
            with pytest.raises(DatabaseError):
                service.process_refund(paid_order.id, 'Damaged')

        paid_order.refresh_from_db()
        assert len(gateway.refunds) == 1
        assert paid_order.payment_status == 'PAID'
        assert 'Refund rfnd_1' in caplog.text
        assert 'reconcile manually' in caplog.text

    def test_already_refunded(self, service, paid_order):
        service.process_refund(paid_order.id, 'First')
        Order.objects.filter(pk=paid_order.pk).update(payment_status='PAID')

        with pytest.raises(RefundNotEligible):
            service.process_refund(paid_order.id, 'Second')

    def test_missing_transaction_id(self, service, paid_order):
        Order.objects.filter(pk=paid_order.pk).update(provider_transaction_id='')

        with pytest.raises(RefundNotEligible):
            service.process_refund(paid_order.id, 'No id')

    def test_provider_failure_leaves_order_untouched(self, paid_order, variant):
        service = OrderService(gateway=FakeGateway(refund_error='BAD_REQUEST'), notifier=FakeNotifier())

        with pytest.raises(RefundFailed) as excinfo:
            service.process_refund(paid_order.id, 'Customer request')

        paid_order.refresh_from_db()
        variant.refresh_from_db()
        assert excinfo.value.provider_message == 'BAD_REQUEST'
        assert paid_order.status == 'CONFIRMED'
        assert paid_order.payment_status == 'PAID'
        assert variant.stock == 2

    def test_coupon_usage_not_reversed(self, service, customer, order_data, coupon):
        quote = service.initiate_online_payment(customer, {**order_data, 'coupon_code': 'SAVE10'})
        order = service.verify_and_create_order(customer, quote['provider_order_id'], 'pay_C', 'sig', quote['quote_token'])

        service.process_refund(order.id, 'Customer request')

        coupon.refresh_from_db()
        assert coupon.used_count == 1


class TestDeletion:

    def test_hard_delete(self, service, cod_order):
        result = service.delete_order(cod_order.id)

        assert result['deleted_order']['order_number'] == cod_order.order_number
        assert not Order.objects.filter(pk=cod_order.pk).exists()
        assert not OrderItem.objects.exists()
        assert not TrackingHistory.objects.exists()

    @pytest.mark.parametrize('status', ['PROCESSING', 'SHIPPED', 'DELIVERED'])
    def test_hard_delete_refused_in_fulfilment(self, service, cod_order, status):
        Order.objects.filter(pk=cod_order.pk).update(status=status)

        with pytest.raises(NotDeletable):
            service.delete_order(cod_order.id)

    def test_soft_delete_and_restore(self, service, cod_order, store_admin):
        deleted = service.soft_delete_order(cod_order.id, deleted_by=store_admin.username)

        audit = SoftDeleteAudit.read(deleted.notes)
        assert deleted.status == 'CANCELLED'
        assert deleted.deleted_at is not None
        assert audit.deleted_by == 'manager'
        assert audit.previous_status == 'CONFIRMED'

        restored = service.restore_order(cod_order.id)

        assert restored.deleted_at is None
        assert restored.status == 'CANCELLED'
        assert SoftDeleteAudit.read(restored.notes) is None
        assert restored.tracking_history.last().description == 'Order restored by admin'

    def test_soft_delete_keeps_other_notes(self, service, cod_order):
        Order.objects.filter(pk=cod_order.pk).update(notes={'gift_wrap': True})

        restored = service.restore_order(service.soft_delete_order(cod_order.id).id)

        assert restored.notes == {'gift_wrap': True}

    def test_soft_delete_twice(self, service, cod_order):
        service.soft_delete_order(cod_order.id)

        with pytest.raises(AlreadyDeleted):
            service.soft_delete_order(cod_order.id)

    def test_restore_requires_soft_deleted(self, service, cod_order):
        with pytest.raises(InvalidStatus):
            service.restore_order(cod_order.id)


class TestBulkDelete:

    @pytest.fixture
    def three_orders(self, service, customer, order_data, variant):
        variant.stock = 50
        variant.save()
        return [service.create_cod_order(customer, order_data) for _ in range(3)]

    def test_hard_bulk_fails_fast_on_shipped(self, service, three_orders):
        shipped = three_orders[1]
        Order.objects.filter(pk=shipped.pk).update(status='SHIPPED')

        with pytest.raises(NotDeletable) as excinfo:
            service.bulk_delete_orders([order.id for order in three_orders], delete_type='hard')

        assert shipped.order_number in excinfo.value.message
        assert Order.objects.count() == 3

    def test_hard_bulk(self, service, three_orders):
        result = service.bulk_delete_orders([order.id for order in three_orders], delete_type='hard')

        assert result['deleted_count'] == 3
        assert result['failed_count'] == 0
        assert {entry['status'] for entry in result['results']} == {'PERMANENTLY_DELETED'}
        assert not Order.objects.exists()

    def test_hard_bulk_continues_past_failures(self, service, three_orders):
        failing = three_orders[1]
        delete = OrderService._hard_delete

        def flaky_delete(order):
            if order.pk == failing.pk:
                raise DatabaseError('disk full')
            delete(order)

        with mock.patch.object(OrderService, '_hard_delete', side_effect=flaky_delete):
            result = service.bulk_delete_orders([order.id for order in three_orders], delete_type='hard')

        assert result['deleted_count'] == 2
        assert result['failed_count'] == 1
        assert [entry['status'] for entry in result['results']] == ['PERMANENTLY_DELETED', 'FAILED', 'PERMANENTLY_DELETED']
        assert result['results'][1]['order_id'] == failing.id
        assert list(Order.objects.values_list('id', flat=True)) == [failing.id]

    def test_duplicate_ids_in_mixed_forms(self, service, three_orders):
        order = three_orders[0]

        result = service.bulk_delete_orders([order.id, str(order.id)], delete_type='hard')

        assert result['deleted_count'] == 1
        assert result['results'] == [{
            'order_id':     order.id,
            'order_number': order.order_number,
            'status':       'PERMANENTLY_DELETED',
            'success':      True,
        }]
        assert Order.objects.count() == 2

    def test_soft_bulk(self, service, three_orders):
        result = service.bulk_delete_orders([order.id for order in three_orders])

        assert result['deleted_count'] == 3
        assert Order.objects.soft_deleted().count() == 3
        assert set(Order.objects.values_list('status', flat=True)) == {'CANCELLED'}

    def test_soft_bulk_rejects_already_deleted(self, service, three_orders):
        service.soft_delete_order(three_orders[0].id)

        with pytest.raises(AlreadyDeleted):
            service.bulk_delete_orders([order.id for order in three_orders])

        assert Order.objects.soft_deleted().count() == 1

    def test_missing_ids(self, service, three_orders):
        with pytest.raises(NotFound):
            service.bulk_delete_orders([three_orders[0].id, 98765], delete_type='hard')

        assert Order.objects.count() == 3

    @pytest.mark.parametrize('ids, delete_type', [
        ([], 'soft'),
        (None, 'soft'),
        ([1], 'purge'),
        ([None], 'hard'),
        (['abc'], 'soft'),
    ])
    def test_invalid_arguments(self, service, db, ids, delete_type):
        with pytest.raises(ValidationError):
            service.bulk_delete_orders(ids, delete_type=delete_type)


def test_soft_delete_audit_round_trip():
    now = timezone.now()
    notes = SoftDeleteAudit(deleted_at=now, deleted_by='7', previous_status='PENDING').apply({'source': 'app'})

    assert notes['source'] == 'app'
    assert SoftDeleteAudit.read(notes).deleted_at == now
    assert SoftDeleteAudit.clear(notes) == {'source': 'app'}
