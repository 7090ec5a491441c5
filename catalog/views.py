# catalog/views.py
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core.views import admin_required, api_view, bool_param, int_param, json_body

from . import services


def rule_to_dict(rule):
    return {
        'id':         rule.id,
        'quantity':   rule.quantity,
        'price_type': rule.price_type,
        'value':      str(rule.value),
        'is_active':  rule.is_active,
    }


def subcategory_to_dict(subcategory, rules=None):
    if rules is None:
        rules = subcategory.quantity_prices.all()
    return {
        'id':              subcategory.id,
        'category_id':     subcategory.category_id,
        'category_name':   subcategory.category.name,
        'name':            subcategory.name,
        'description':     subcategory.description,
        'image':           subcategory.image,
        'image_public_id': subcategory.image_public_id,
        'is_active':       subcategory.is_active,
        'quantity_prices': [rule_to_dict(rule) for rule in rules],
    }


# ─────────────────────────────────────────────────────────────
# PUBLIC
# ─────────────────────────────────────────────────────────────

@require_GET
@api_view
def subcategory_list(request):
    subcategories, pagination = services.get_all_subcategories(
        page=int_param(request, 'page', 1),
        limit=int_param(request, 'limit', 10),
        category_id=request.GET.get('category_id') or None,
        is_active=bool_param(request, 'is_active'),
    )
    return JsonResponse({
        'success':       True,
        'subcategories': [subcategory_to_dict(subcategory) for subcategory in subcategories],
        'pagination':    pagination,
    })


@require_GET
@api_view
def subcategory_detail(request, subcategory_id):
    subcategory = services.get_subcategory(subcategory_id)
    return JsonResponse({'success': True, 'subcategory': subcategory_to_dict(subcategory)})


# ─────────────────────────────────────────────────────────────
# ADMIN
# ─────────────────────────────────────────────────────────────

@require_POST
@admin_required
@api_view
def admin_create_subcategory(request):
    data = json_body(request)
    subcategory = services.create_subcategory(
        data.get('category_id'),
        data.get('name'),
        description=data.get('description'),
        image=data.get('image'),
        image_public_id=data.get('image_public_id'),
        is_active=data.get('is_active', True) is not False,
    )
    return JsonResponse({'success': True, 'subcategory': subcategory_to_dict(subcategory)}, status=201)


@require_http_methods(['PUT', 'PATCH', 'DELETE'])
@admin_required
@api_view
def admin_subcategory_detail(request, subcategory_id):
    if request.method == 'DELETE':
        services.delete_subcategory(subcategory_id)
        return JsonResponse({'success': True, 'message': 'Subcategory deleted successfully'})

    data = json_body(request)
    changes = {
        field: data[field]
        for field in ('category_id', 'name', 'description', 'image', 'image_public_id', 'is_active')
        if field in data
    }
    subcategory = services.update_subcategory(subcategory_id, **changes)
    return JsonResponse({'success': True, 'subcategory': subcategory_to_dict(subcategory)})


@require_http_methods(['POST', 'PATCH'])
@admin_required
@api_view
def admin_toggle_subcategory(request, subcategory_id):
    data = json_body(request)
    subcategory = services.toggle_subcategory_status(subcategory_id, data.get('is_active'))
    return JsonResponse({'success': True, 'subcategory': subcategory_to_dict(subcategory)})


@require_http_methods(['POST', 'PUT'])
@admin_required
@api_view
def admin_quantity_prices(request, subcategory_id):
    data = json_body(request)
    rules = services.set_quantity_prices(subcategory_id, data.get('quantity_prices'))
    return JsonResponse({'success': True, 'quantity_prices': [rule_to_dict(rule) for rule in rules]})
