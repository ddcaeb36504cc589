"""Bearer token authentication for the JSON API."""

from functools import wraps

from django.views.decorators.csrf import csrf_exempt

from accounts.models import ApiToken
from core.http import json_error
from core.logging_utils import get_accounts_logger
from core.middleware import bind_user, get_client_ip

logger = get_accounts_logger()

_BEARER_PREFIX = 'bearer '


def get_bearer_token(request):
    header = request.headers.get('Authorization', '')
    if not header.lower().startswith(_BEARER_PREFIX):
        return None
    return header[len(_BEARER_PREFIX):].strip() or None


def authenticate_request(request):
    """Resolve the request's bearer token to an ``ApiToken`` or ``None``."""
    raw_key = get_bearer_token(request)
    if raw_key is None:
        return None
    token = ApiToken.objects.resolve(raw_key)
    if token is None:
        logger.security_event("API request with unknown bearer token", extra_data={
            "ip": get_client_ip(request),
            "path": request.path,
        })
    return token


def token_required(view_func):
    """Reject requests without a valid bearer token; sets ``request.user`` and ``request.api_token``."""

    @csrf_exempt
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        token = authenticate_request(request)
        if token is None:
            return json_error('Authentication required', status=401)
        request.user = token.user
        request.api_token = token
        bind_user(token.user)
        return view_func(request, *args, **kwargs)

    return wrapper
