# reviews/views.py
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core.views import admin_required, api_login_required, api_view, int_param, json_body

from . import services


def rating_to_dict(rating):
    return {
        'id':            rating.id,
        'product_id':    rating.product_id,
        'variant_id':    rating.variant_id,
        'user_id':       rating.user_id,
        'user_name':     rating.user_name,
        'rating':        rating.rating,
        'title':         rating.title,
        'review':        rating.review,
        'is_approved':   rating.is_approved,
        'helpful_count': rating.helpful_count,
        'created_at':    rating.created_at.isoformat() if rating.created_at else None,
    }


@require_GET
@api_view
def product_ratings(request, product_id):
    result = services.get_product_ratings(
        product_id,
        page=int_param(request, 'page', 1),
        limit=int_param(request, 'limit', 10),
    )
    result['ratings'] = [rating_to_dict(rating) for rating in result['ratings']]
    return JsonResponse({'success': True, **result})


@require_POST
@api_login_required
@api_view
def create_rating(request):
    data = json_body(request)
    rating = services.create_rating(
        request.user,
        product_id=data.get('product_id'),
        rating=data.get('rating'),
        title=data.get('title', ''),
        review=data.get('review', ''),
        variant_id=data.get('variant_id'),
    )
    return JsonResponse({'success': True, 'rating': rating_to_dict(rating)}, status=201)


@require_GET
@api_login_required
@api_view
def my_ratings(request):
    ratings, pagination = services.get_user_ratings(
        request.user,
        page=int_param(request, 'page', 1),
        limit=int_param(request, 'limit', 10),
    )
    return JsonResponse({
        'success':    True,
        'ratings':    [rating_to_dict(rating) for rating in ratings],
        'pagination': pagination,
    })


@require_http_methods(['PUT', 'PATCH', 'DELETE'])
@api_login_required
@api_view
def rating_detail(request, rating_id):
    if request.method == 'DELETE':
        services.delete_rating(rating_id, request.user)
        return JsonResponse({'success': True, 'message': 'Rating deleted successfully'})

    data = json_body(request)
    rating = services.update_rating(
        rating_id,
        request.user,
        rating=data.get('rating'),
        title=data.get('title'),
        review=data.get('review'),
    )
    return JsonResponse({'success': True, 'rating': rating_to_dict(rating)})


@require_http_methods(['POST', 'DELETE'])
@api_login_required
@api_view
def helpful(request, rating_id):
    if request.method == 'DELETE':
        rating = services.remove_helpful(rating_id, request.user)
    else:
        rating = services.mark_helpful(rating_id, request.user)
    return JsonResponse({'success': True, 'rating': rating_to_dict(rating)})


@require_http_methods(['POST', 'PATCH'])
@admin_required
@api_view
def toggle_approval(request, rating_id):
    data = json_body(request)
    rating = services.toggle_approval(rating_id, data.get('is_approved'))
    return JsonResponse({'success': True, 'rating': rating_to_dict(rating)})
