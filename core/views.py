# core/views.py
import json
import logging
from functools import wraps

from django.http import JsonResponse

from .exceptions import AuthorizationError, ServiceError, ValidationError

logger = logging.getLogger(__name__)


def is_admin(user):
    return user.is_authenticated and (user.is_staff or user.user_type == 'admin')


def json_body(request):
    """Decode a JSON request body, falling back to form data."""
    if not request.body:
        return request.POST.dict()
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, ValueError):
        raise ValidationError('Request body must be valid JSON')
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def error_response(exc):
    return JsonResponse(exc.as_dict(), status=exc.http_status)


def api_view(view_func):
    """Turn ServiceErrors raised by a JSON view into error responses."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except ServiceError as e:
            logger.info(f"{view_func.__name__} rejected: {e.code}: {e.message}")
            return error_response(e)
    return wrapper


def admin_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse(
                {'success': False, 'error': 'Authentication required', 'code': 'not_authenticated'},
                status=401,
            )
        if not is_admin(request.user):
            return error_response(AuthorizationError('Admin access required'))
        return view_func(request, *args, **kwargs)
    return wrapper


def api_login_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse(
                {'success': False, 'error': 'Authentication required', 'code': 'not_authenticated'},
                status=401,
            )
        return view_func(request, *args, **kwargs)
    return wrapper


def int_param(request, name, default):
    try:
        value = int(request.GET.get(name, default))
    except (TypeError, ValueError):
        raise ValidationError(f"Query parameter '{name}' must be an integer")
    return value if value > 0 else default


def bool_param(request, name):
    """'true' / 'false' query parameter as a bool, None when absent."""
    value = request.GET.get(name)
    if value in (None, ''):
        return None
    return value.lower() in ('1', 'true', 'yes')
