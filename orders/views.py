# orders/views.py
import logging

from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core.views import admin_required, api_login_required, api_view, int_param, json_body
from core.exceptions import ValidationError

from .audit import SoftDeleteAudit
from .pricing import serialize_totals
from .services import OrderService

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────────────

def get_order_service():
    return OrderService()


def _iso(value):
    return value.isoformat() if value else None


def order_to_dict(order, detail=False):
    data = {
        'id':              order.id,
        'order_number':    order.order_number,
        'status':          order.status,
        'payment_status':  order.payment_status,
        'payment_method':  order.payment_method,
        'payment_gateway': order.payment_gateway,
        'subtotal':        str(order.subtotal),
        'discount':        str(order.discount),
        'shipping_cost':   str(order.shipping_cost),
        'total_amount':    str(order.total_amount),
        'coupon_code':     order.coupon.code if order.coupon_id else None,
        'created_at':      _iso(order.created_at),
        'is_soft_deleted': order.is_soft_deleted,
        'deleted_at':      _iso(order.deleted_at),
    }
    if hasattr(order, 'quantity_savings'):
        data['quantity_savings'] = str(order.quantity_savings)
        data['has_quantity_discounts'] = order.has_quantity_discounts
    if not detail:
        return data

    audit = SoftDeleteAudit.read(order.notes)
    data.update({
        'shipping': {
            'name':    order.name,
            'email':   order.email,
            'phone':   order.phone,
            'address': order.address,
            'city':    order.city,
            'state':   order.state,
            'pincode': order.pincode,
        },
        'tracking': {
            'tracking_number':    order.tracking_number,
            'carrier':            order.carrier,
            'tracking_url':       order.tracking_url,
            'estimated_delivery': _iso(order.estimated_delivery),
            'shipped_at':         _iso(order.shipped_at),
            'delivered_at':       _iso(order.delivered_at),
        },
        'items': [
            {
                'product_id':         item.product_id,
                'product_name':       item.product.name,
                'product_variant_id': item.product_variant_id,
                'quantity':           item.quantity,
                'price':              str(item.price),
            }
            for item in order.items.all()
        ],
        'custom_images': [
            {'url': image.image_url, 'key': image.image_key, 'filename': image.filename}
            for image in order.custom_images.all()
        ],
        'tracking_history': [
            {
                'status':      entry.status,
                'description': entry.description,
                'location':    entry.location,
                'created_at':  _iso(entry.created_at),
            }
            for entry in order.tracking_history.all()
        ],
        'admin_notes': order.admin_notes,
        'soft_delete': {
            'deleted_at':      _iso(audit.deleted_at),
            'deleted_by':      audit.deleted_by,
            'previous_status': audit.previous_status,
        } if audit else None,
    })
    return data


def _paginated(orders, pagination):
    return JsonResponse({
        'success':    True,
        'orders':     [order_to_dict(order) for order in orders],
        'pagination': pagination,
    })


def _order_response(order, status=200, **extra):
    return JsonResponse({'success': True, 'order': order_to_dict(order, detail=True), **extra}, status=status)


# ─────────────────────────────────────────────────────────────
# CUSTOMER
# ─────────────────────────────────────────────────────────────

@require_POST
@api_login_required
@api_view
def calculate_totals(request):
    data = json_body(request)
    totals = get_order_service().calculate_totals(data.get('order_items'), data.get('coupon_code'))
    return JsonResponse({'success': True, 'totals': serialize_totals(totals)})


@require_POST
@api_login_required
@api_view
def initiate_payment(request):
    result = get_order_service().initiate_online_payment(request.user, json_body(request))
    return JsonResponse({'success': True, **result})


@require_POST
@api_login_required
@api_view
def verify_payment(request):
    data = json_body(request)
    order = get_order_service().verify_and_create_order(
        request.user,
        provider_order_id   = data.get('provider_order_id', ''),
        provider_payment_id = data.get('provider_payment_id', ''),
        signature           = data.get('signature', ''),
        quote_token         = data.get('quote_token', ''),
    )
    return _order_response(order, status=201, message='Payment verified and order created successfully')


@require_POST
@api_login_required
@api_view
def create_cod_order(request):
    order = get_order_service().create_cod_order(request.user, json_body(request))
    return _order_response(order, status=201, message='COD order created successfully')


@require_GET
@api_login_required
@api_view
def my_orders(request):
    orders, pagination = get_order_service().get_user_orders(
        request.user,
        page=int_param(request, 'page', 1),
        limit=int_param(request, 'limit', 10),
        status=request.GET.get('status') or None,
    )
    return _paginated(orders, pagination)


@require_GET
@api_login_required
@api_view
def order_by_number(request, order_number):
    order = get_order_service().get_order_by_number(order_number, user=request.user)
    return _order_response(order)


# ─────────────────────────────────────────────────────────────
# ADMIN
# ─────────────────────────────────────────────────────────────

@require_GET
@admin_required
@api_view
def admin_order_list(request):
    orders, pagination = get_order_service().get_all_orders(
        page=int_param(request, 'page', 1),
        limit=int_param(request, 'limit', 10),
        status=request.GET.get('status') or None,
        user_id=request.GET.get('user_id') or None,
        payment_status=request.GET.get('payment_status') or None,
        include_deleted=request.GET.get('include_deleted') == 'true',
    )
    return _paginated(orders, pagination)


@require_http_methods(['GET', 'DELETE'])
@admin_required
@api_view
def admin_order_detail(request, order_id):
    service = get_order_service()
    if request.method == 'DELETE':
        result = service.delete_order(order_id)
        result['deleted_at'] = _iso(result['deleted_at'])
        return JsonResponse({'success': True, **result})
    return _order_response(service.get_order_by_id(order_id))


@require_http_methods(['POST', 'PATCH'])
@admin_required
@api_view
def admin_update_status(request, order_id):
    data = json_body(request)
    if not data.get('status'):
        raise ValidationError('Status is required')
    order = get_order_service().update_status(order_id, data['status'], data.get('admin_notes'))
    return _order_response(order, message='Order status updated successfully')


@require_http_methods(['POST', 'PATCH'])
@admin_required
@api_view
def admin_update_tracking(request, order_id):
    data = json_body(request)
    order = get_order_service().update_tracking(
        order_id,
        tracking_number    = data.get('tracking_number'),
        carrier            = data.get('carrier'),
        tracking_url       = data.get('tracking_url'),
        estimated_delivery = data.get('estimated_delivery'),
    )
    return _order_response(order, message='Tracking information updated successfully')


@require_POST
@admin_required
@api_view
def admin_process_refund(request, order_id):
    data = json_body(request)
    result = get_order_service().process_refund(
        order_id,
        reason        = data.get('reason'),
        refund_amount = data.get('refund_amount'),
        admin_notes   = data.get('admin_notes'),
    )
    return _order_response(
        result['order'],
        message='Refund processed successfully',
        refund={
            'provider_refund_id': result['provider_refund_id'],
            'refund_amount':      str(result['refund_amount']),
        },
    )


@require_POST
@admin_required
@api_view
def admin_soft_delete(request, order_id):
    order = get_order_service().soft_delete_order(order_id, deleted_by=request.user.username)
    return _order_response(order, message='Order soft deleted successfully')


@require_POST
@admin_required
@api_view
def admin_restore(request, order_id):
    order = get_order_service().restore_order(order_id)
    return _order_response(order, message='Order restored successfully')


@require_POST
@admin_required
@api_view
def admin_bulk_delete(request):
    data = json_body(request)
    result = get_order_service().bulk_delete_orders(
        data.get('order_ids'),
        delete_type=data.get('delete_type', 'soft'),
        deleted_by=request.user.username,
    )
    return JsonResponse({'success': True, **result})


@require_POST
@admin_required
@api_view
def admin_cancel_expired(request):
    result = get_order_service().cancel_expired_pending_orders()
    return JsonResponse({'success': True, **result})
