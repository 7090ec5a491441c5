# orders/payment_services.py
"""
Payment Gateway Integration Services
Supports: Razorpay (signature based), PhonePe (callback based)

Both gateways expose the same capability to the order service:

    create_payment_intent(amount, currency, receipt)   -> {'provider_order_id': ...}
    verify_payment(provider_order_id, provider_payment_id, signature) -> bool
    refund(provider_transaction_id, amount, reference_id) -> {'provider_refund_id': ...}
    refund_reference(provider_order_id, provider_payment_id) -> id to refund against
"""

import base64
import hashlib
import hmac
import json
import logging
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

import razorpay
import requests
from django.conf import settings

from core.exceptions import PaymentProviderError, RefundFailed

logger = logging.getLogger(__name__)


def to_minor_units(amount):
    """Rupees -> paise, as the gateways expect integer minor units."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


class PaymentGateway:
    name = ''

    def create_payment_intent(self, amount, currency, receipt=None):
        raise NotImplementedError

    def verify_payment(self, provider_order_id, provider_payment_id, signature):
        raise NotImplementedError

    def refund(self, provider_transaction_id, amount, reference_id):
        raise NotImplementedError

    def refund_reference(self, provider_order_id, provider_payment_id):
        raise NotImplementedError


# ══════════════════════════════════════════════════════════════
# RAZORPAY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RazorpayConfig:
    key_id: str
    key_secret: str
    timeout: float = 10

    @classmethod
    def from_settings(cls):
        return cls(
            key_id=getattr(settings, 'RAZORPAY_KEY_ID', ''),
            key_secret=getattr(settings, 'RAZORPAY_KEY_SECRET', ''),
            timeout=getattr(settings, 'PAYMENT_TIMEOUT', 10),
        )


class RazorpayPaymentService(PaymentGateway):
    name = 'razorpay'

    def __init__(self, config, client=None):
        if not config.key_id or not config.key_secret:
            raise PaymentProviderError("Razorpay is not configured")
        self.config = config
        self.client = client or razorpay.Client(auth=(config.key_id, config.key_secret))

    def create_payment_intent(self, amount, currency='INR', receipt=None):
        try:
            rp_order = self.client.order.create(
                {
                    'amount':   to_minor_units(amount),
                    'currency': currency,
                    'receipt':  receipt or f"receipt_{int(time.time() * 1000)}",
                },
                timeout=self.config.timeout,
            )
        except Exception as e:
            logger.error(f"Error creating Razorpay order: {e}", exc_info=True)
            raise PaymentProviderError(f"Failed to create payment order: {e}")

        logger.info(f"Razorpay order created: {rp_order['id']}")
        return {
            'provider_order_id': rp_order['id'],
            'amount':            amount,
            'currency':          currency,
            'key_id':            self.config.key_id,
        }

    def expected_signature(self, provider_order_id, provider_payment_id):
        body = f"{provider_order_id}|{provider_payment_id}"
        return hmac.new(
            self.config.key_secret.encode('utf-8'),
            body.encode('utf-8'),
            hashlib.sha256,
        ).hexdigest()

    def verify_payment(self, provider_order_id, provider_payment_id, signature):
        if not (provider_order_id and provider_payment_id and signature):
            logger.warning(f"Payment verification failed for order {provider_order_id}: missing fields")
            return False

        expected = self.expected_signature(provider_order_id, provider_payment_id)
        is_valid = hmac.compare_digest(expected, str(signature))
        if is_valid:
            logger.info(f"Payment verified successfully for order: {provider_order_id}")
        else:
            logger.warning(f"Payment verification failed for order: {provider_order_id}")
        return is_valid

    def refund(self, provider_transaction_id, amount, reference_id):
        if not provider_transaction_id:
            raise RefundFailed("Original transaction ID not found for refund")
        try:
            rp_refund = self.client.payment.refund(
                provider_transaction_id,
                {
                    'amount': to_minor_units(amount),
                    'notes':  {'reference_id': reference_id},
                },
                timeout=self.config.timeout,
            )
        except Exception as e:
            logger.error(f"Razorpay refund failed for payment {provider_transaction_id}: {e}", exc_info=True)
            raise RefundFailed(f"Refund processing failed: {e}", provider_message=str(e))

        logger.info(f"Refund processed: {rp_refund['id']} for payment: {provider_transaction_id}")
        return {
            'provider_refund_id': rp_refund['id'],
            'status':             rp_refund.get('status', ''),
            'amount':             Decimal(rp_refund.get('amount', 0)) / 100,
        }

    def refund_reference(self, provider_order_id, provider_payment_id):
        return provider_payment_id


# ══════════════════════════════════════════════════════════════
# PHONEPE  Standard Checkout (PG v1)
# ══════════════════════════════════════════════════════════════
#
#  Requests are a base64 JSON payload posted as {"request": <b64>} with
#      X-VERIFY = sha256(<b64> + <endpoint> + salt_key) + "###" + salt_index
#  Callbacks carry {"response": <b64>} and an X-VERIFY header of
#      sha256(<b64> + salt_key) + "###" + salt_index
#
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PhonePeConfig:
    merchant_id: str
    salt_key: str
    salt_index: str = '1'
    base_url: str = 'https://api-preprod.phonepe.com/apis/pg-sandbox'
    callback_url: str = ''
    redirect_url: str = ''
    timeout: float = 10

    @classmethod
    def from_settings(cls):
        return cls(
            merchant_id=getattr(settings, 'PHONEPE_MERCHANT_ID', ''),
            salt_key=getattr(settings, 'PHONEPE_SALT_KEY', ''),
            salt_index=str(getattr(settings, 'PHONEPE_SALT_INDEX', '1')),
            base_url=getattr(settings, 'PHONEPE_BASE_URL', cls.base_url),
            callback_url=getattr(settings, 'PHONEPE_CALLBACK_URL', ''),
            redirect_url=getattr(settings, 'PHONEPE_REDIRECT_URL', ''),
            timeout=getattr(settings, 'PAYMENT_TIMEOUT', 10),
        )


class PhonePePaymentService(PaymentGateway):
    name = 'phonepe'

    PAY_ENDPOINT = '/pg/v1/pay'
    REFUND_ENDPOINT = '/pg/v1/refund'

    def __init__(self, config, session=None):
        if not config.merchant_id or not config.salt_key:
            raise PaymentProviderError("PhonePe is not configured")
        self.config = config
        self.session = session or requests.Session()

    # ── Checksums ───────────────────────────────────────────────

    def _checksum(self, *parts):
        digest = hashlib.sha256(''.join(parts).encode('utf-8')).hexdigest()
        return f"{digest}###{self.config.salt_index}"

    def _encode(self, payload):
        return base64.b64encode(json.dumps(payload, separators=(',', ':')).encode('utf-8')).decode('utf-8')

    @staticmethod
    def _decode(encoded):
        return json.loads(base64.b64decode(encoded).decode('utf-8'))

    def _post(self, endpoint, payload):
        encoded = self._encode(payload)
        response = self.session.post(
            f"{self.config.base_url.rstrip('/')}{endpoint}",
            json={'request': encoded},
            headers={
                'Content-Type': 'application/json',
                'X-VERIFY':     self._checksum(encoded, endpoint, self.config.salt_key),
            },
            timeout=self.config.timeout,
        )
        try:
            body = response.json()
        except ValueError:
            body = {'success': False, 'message': response.text}
        return response, body

    # ── Capability ──────────────────────────────────────────────

    def create_payment_intent(self, amount, currency='INR', receipt=None):
        merchant_transaction_id = receipt or f"MT{uuid.uuid4().hex[:30].upper()}"
        payload = {
            'merchantId':            self.config.merchant_id,
            'merchantTransactionId': merchant_transaction_id,
            'merchantUserId':        f"MU{merchant_transaction_id[-12:]}",
            'amount':                to_minor_units(amount),
            'redirectUrl':           self.config.redirect_url,
            'redirectMode':          'POST',
            'callbackUrl':           self.config.callback_url,
            'paymentInstrument':     {'type': 'PAY_PAGE'},
        }
        try:
            response, body = self._post(self.PAY_ENDPOINT, payload)
        except requests.RequestException as e:
            logger.error(f"PhonePe pay request failed: {e}", exc_info=True)
            raise PaymentProviderError(f"Failed to create payment order: {e}")

        if not body.get('success'):
            message = body.get('message') or body.get('code') or f"HTTP {response.status_code}"
            logger.error(f"PhonePe rejected pay request {merchant_transaction_id}: {message}")
            raise PaymentProviderError(f"Failed to create payment order: {message}")

        redirect = (
            body.get('data', {})
            .get('instrumentResponse', {})
            .get('redirectInfo', {})
            .get('url', '')
        )
        logger.info(f"PhonePe payment initiated: {merchant_transaction_id}")
        return {
            'provider_order_id': merchant_transaction_id,
            'amount':            amount,
            'currency':          currency,
            'redirect_url':      redirect,
        }

    def verify_payment(self, provider_order_id, provider_payment_id, signature):
        """
        ``provider_payment_id`` is the base64 ``response`` of the callback and
        ``signature`` its X-VERIFY header.
        """
        if not (provider_order_id and provider_payment_id and signature):
            logger.warning(f"PhonePe verification failed for {provider_order_id}: missing fields")
            return False

        expected = self._checksum(provider_payment_id, self.config.salt_key)
        if not hmac.compare_digest(expected, str(signature)):
            logger.warning(f"PhonePe checksum mismatch for {provider_order_id}")
            return False

        try:
            decoded = self._decode(provider_payment_id)
        except (ValueError, TypeError):
            logger.warning(f"PhonePe callback for {provider_order_id} is not valid base64 JSON")
            return False

        data = decoded.get('data') or {}
        if data.get('merchantTransactionId') != provider_order_id:
            logger.warning(
                f"PhonePe callback transaction {data.get('merchantTransactionId')} "
                f"does not match {provider_order_id}"
            )
            return False
        if decoded.get('code') != 'PAYMENT_SUCCESS':
            logger.warning(f"PhonePe payment {provider_order_id} not successful: {decoded.get('code')}")
            return False

        logger.info(f"PhonePe payment verified: {provider_order_id}")
        return True

    def refund(self, provider_transaction_id, amount, reference_id):
        if not provider_transaction_id:
            raise RefundFailed("Original transaction ID not found for refund")

        payload = {
            'merchantId':            self.config.merchant_id,
            'merchantUserId':        f"MU{provider_transaction_id[-12:]}",
            'originalTransactionId': provider_transaction_id,
            'merchantTransactionId': reference_id,
            'amount':                to_minor_units(amount),
            'callbackUrl':           self.config.callback_url,
        }
        try:
            response, body = self._post(self.REFUND_ENDPOINT, payload)
        except requests.RequestException as e:
            logger.error(f"PhonePe refund request failed: {e}", exc_info=True)
            raise RefundFailed(f"Refund processing failed: {e}", provider_message=str(e))

        if not body.get('success'):
            message = body.get('message') or body.get('code') or f"HTTP {response.status_code}"
            logger.error(f"PhonePe refund rejected for {provider_transaction_id}: {message}")
            raise RefundFailed(f"Refund processing failed: {message}", provider_message=message)

        data = body.get('data') or {}
        logger.info(f"PhonePe refund processed: {reference_id} for {provider_transaction_id}")
        return {
            'provider_refund_id': data.get('merchantTransactionId', reference_id),
            'status':             data.get('state', ''),
            'amount':             Decimal(data.get('amount', to_minor_units(amount))) / 100,
        }

    def refund_reference(self, provider_order_id, provider_payment_id):
        return provider_order_id


# ══════════════════════════════════════════════════════════════
# FACTORY
# ══════════════════════════════════════════════════════════════

class PaymentGatewayFactory:
    GATEWAYS = {
        'razorpay': (RazorpayPaymentService, RazorpayConfig),
        'phonepe':  (PhonePePaymentService, PhonePeConfig),
    }

    @classmethod
    def get_service(cls, gateway_name=None):
        gateway_name = (gateway_name or getattr(settings, 'PAYMENT_GATEWAY', 'razorpay')).lower()
        entry = cls.GATEWAYS.get(gateway_name)
        if not entry:
            raise PaymentProviderError(f"Unsupported gateway: {gateway_name}")
        service_class, config_class = entry
        return service_class(config_class.from_settings())
