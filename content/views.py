# content/views.py
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core.views import admin_required, api_view, bool_param, int_param, json_body

from . import services


def _iso(value):
    return value.isoformat() if value else None


def slider_to_dict(slider):
    return {
        'id':                 slider.id,
        'title':              slider.title,
        'subtitle':           slider.subtitle,
        'description':        slider.description,
        'small_text':         slider.small_text,
        'offer_text':         slider.offer_text,
        'button_text':        slider.button_text,
        'button_link':        slider.button_link,
        'layout':             slider.layout,
        'bg_image':           slider.bg_image,
        'bg_image_public_id': slider.bg_image_public_id,
        'image':              slider.image,
        'image_public_id':    slider.image_public_id,
        'start_date':         _iso(slider.start_date),
        'end_date':           _iso(slider.end_date),
        'order':              slider.order,
        'is_active':          slider.is_active,
    }


@require_GET
@api_view
def active_sliders(request):
    sliders = services.get_active_sliders()
    return JsonResponse({'success': True, 'sliders': [slider_to_dict(slider) for slider in sliders]})


@require_http_methods(['GET', 'POST'])
@admin_required
@api_view
def admin_sliders(request):
    if request.method == 'POST':
        slider = services.create_slider(json_body(request))
        return JsonResponse({'success': True, 'slider': slider_to_dict(slider)}, status=201)

    sliders, pagination = services.get_all_sliders(
        page=int_param(request, 'page', 1),
        limit=int_param(request, 'limit', 10),
        is_active=bool_param(request, 'is_active'),
    )
    return JsonResponse({
        'success':    True,
        'sliders':    [slider_to_dict(slider) for slider in sliders],
        'pagination': pagination,
    })


@require_http_methods(['GET', 'PUT', 'PATCH', 'DELETE'])
@admin_required
@api_view
def admin_slider_detail(request, slider_id):
    if request.method == 'DELETE':
        services.delete_slider(slider_id)
        return JsonResponse({'success': True, 'message': 'Slider deleted successfully'})
    if request.method == 'GET':
        slider = services.get_slider(slider_id)
    else:
        slider = services.update_slider(slider_id, json_body(request))
    return JsonResponse({'success': True, 'slider': slider_to_dict(slider)})


@require_http_methods(['POST', 'PATCH'])
@admin_required
@api_view
def admin_toggle_slider(request, slider_id):
    data = json_body(request)
    slider = services.toggle_slider_status(slider_id, data.get('is_active'))
    return JsonResponse({'success': True, 'slider': slider_to_dict(slider)})


@require_POST
@admin_required
@api_view
def admin_reorder_sliders(request):
    data = json_body(request)
    sliders = services.reorder_sliders(data.get('sliders'))
    return JsonResponse({'success': True, 'sliders': [slider_to_dict(slider) for slider in sliders]})
