import logging

from django.core.management.base import BaseCommand

from orders.services import OrderService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Cancel PENDING orders whose payment never arrived within ORDER_PENDING_EXPIRY_HOURS"

    def handle(self, *args, **options):
        result = OrderService().cancel_expired_pending_orders()
        logger.info(f"Expired order sweep cancelled {result['cancelled_count']} orders")
        for order_number in result['cancelled_orders']:
            self.stdout.write(f"  cancelled {order_number}")
        self.stdout.write(self.style.SUCCESS(f"Cancelled {result['cancelled_count']} expired orders"))
