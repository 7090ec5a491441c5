# orders/tracking.py
from .models import TrackingHistory

SYSTEM_LOCATION = 'System'

STATUS_DESCRIPTIONS = {
    'PENDING':    'Order has been placed and is awaiting confirmation',
    'CONFIRMED':  'Order has been confirmed and is being processed',
    'PROCESSING': 'Order is being prepared for shipment',
    'SHIPPED':    'Order has been shipped',
    'DELIVERED':  'Order has been delivered successfully',
    'CANCELLED':  'Order has been cancelled',
    'REFUNDED':   'Order has been refunded',
}


def status_description(status):
    return STATUS_DESCRIPTIONS.get(status, 'Order status updated')


def record(order, status, description=None, location=None):
    """Append one tracking entry for ``order``. Entries are never edited."""
    return TrackingHistory.objects.create(
        order=order,
        status=status,
        description=description or status_description(status),
        location=location if location is not None else order.location,
    )