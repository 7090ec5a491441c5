# core/exceptions.py
"""
Service-layer error taxonomy.

Every error raised by the order, rating, catalog and content services is a
ServiceError. Views turn them into JSON responses using ``code`` and
``http_status``; messages always name the precondition that failed.
"""


class ServiceError(Exception):
    code = 'service_error'
    http_status = 400

    def __init__(self, message='', **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self):
        data = {'success': False, 'error': self.message, 'code': self.code}
        if self.details:
            data['details'] = self.details
        return data


class ValidationError(ServiceError):
    code = 'validation_error'


class NotFound(ServiceError):
    code = 'not_found'
    http_status = 404


class AuthorizationError(ServiceError):
    code = 'authorization_error'
    http_status = 403


# ── Catalog preconditions ─────────────────────────────────────

class ProductUnavailable(ServiceError):
    code = 'product_unavailable'
    http_status = 409


class InsufficientStock(ServiceError):
    code = 'insufficient_stock'
    http_status = 409

    def __init__(self, variant_id, available, requested):
        super().__init__(
            f"Insufficient stock for variant {variant_id}. "
            f"Available: {available}, Requested: {requested}",
            variant_id=variant_id,
            available=available,
            requested=requested,
        )
        self.variant_id = variant_id
        self.available = available
        self.requested = requested


# ── Payment boundary ──────────────────────────────────────────

class PaymentVerificationFailed(ServiceError):
    code = 'payment_verification_failed'
    http_status = 402


class PaymentProviderError(ServiceError):
    code = 'payment_provider_error'
    http_status = 502


class RefundFailed(ServiceError):
    code = 'refund_failed'
    http_status = 502

    def __init__(self, message, provider_message=''):
        super().__init__(message, provider_message=provider_message)
        self.provider_message = provider_message


class RefundNotEligible(ServiceError):
    code = 'refund_not_eligible'
    http_status = 409


# ── Lifecycle preconditions ───────────────────────────────────

class InvalidStatus(ServiceError):
    code = 'invalid_status'


class NotDeletable(ServiceError):
    code = 'not_deletable'
    http_status = 409


class AlreadyDeleted(ServiceError):
    code = 'already_deleted'
    http_status = 409
