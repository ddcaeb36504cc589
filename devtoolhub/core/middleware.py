import logging
import threading
import uuid
from ipaddress import ip_address, ip_network

from django.conf import settings

# Per-thread request data read by UserIdFilter
_request_data = threading.local()
_REQUEST_ATTRIBUTES = ('user_id', 'user_email', 'ip_address', 'path', 'method', 'request_id')


def _normalize_ip(candidate):
    """Return a cleaned IP address string or ``None``."""
    if not candidate:
        return None
    value = candidate.strip().strip('"')
    if value.startswith('for='):
        value = value[4:]
    if value.startswith('[') and ']' in value:
        value = value[1:value.index(']')]
    if value.startswith('::ffff:'):
        value = value[len('::ffff:'):]
    # IPv4 host:port
    if value.count(':') == 1 and '.' in value:
        value = value.partition(':')[0]
    try:
        return str(ip_address(value))
    except ValueError:
        return None


def _remote_addr_is_trusted(meta):
    remote_addr = _normalize_ip(meta.get('REMOTE_ADDR'))
    if not remote_addr:
        return False
    candidate = ip_address(remote_addr)
    for network in getattr(settings, 'TRUSTED_PROXY_IPS', ()):
        try:
            if candidate in ip_network(network, strict=False):
                return True
        except ValueError:
            continue
    return False


def _candidate_ips(request):
    meta = getattr(request, 'META', {}) or {}
    if _remote_addr_is_trusted(meta):
        for part in (meta.get('HTTP_X_FORWARDED_FOR') or '').split(','):
            cleaned = _normalize_ip(part)
            if cleaned:
                yield cleaned
        cleaned = _normalize_ip(meta.get('HTTP_X_REAL_IP'))
        if cleaned:
            yield cleaned
    cleaned = _normalize_ip(meta.get('REMOTE_ADDR'))
    if cleaned:
        yield cleaned


def get_client_ip(request):
    """Best guess of the client address; proxy headers only count behind a trusted proxy."""
    fallback = None
    for candidate in _candidate_ips(request):
        if ip_address(candidate).is_global:
            return candidate
        if fallback is None:
            fallback = candidate
    return fallback or 'unknown'


def get_request_context():
    return {
        attribute: getattr(_request_data, attribute)
        for attribute in _REQUEST_ATTRIBUTES
        if hasattr(_request_data, attribute)
    }


def bind_user(user):
    """Update the logging context once a user is resolved after the middleware ran."""
    _request_data.user_id = str(getattr(user, 'pk', 'anonymous'))
    _request_data.user_email = getattr(user, 'email', None)


class UserIdFilter(logging.Filter):
    """Attach the current request's user, address and path to every record."""

    def filter(self, record):
        context = get_request_context()
        record.user_id = context.get('user_id') or 'anonymous'
        record.user_email = context.get('user_email') or 'anonymous'
        record.ip = context.get('ip_address') or 'unknown'
        if context.get('request_id'):
            record.request_id = context['request_id']
        if context.get('path'):
            record.path = context['path']
        if context.get('method'):
            record.http_method = context['method']
        return True


class LoggingMiddleware:
    """Populate the logging context for the duration of a request."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.request_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex
        self._bind(request)
        try:
            response = self.get_response(request)
        finally:
            for attribute in _REQUEST_ATTRIBUTES:
                if hasattr(_request_data, attribute):
                    delattr(_request_data, attribute)
        response['X-Request-ID'] = request.request_id
        return response

    @staticmethod
    def _bind(request):
        user = getattr(request, 'user', None)
        if getattr(user, 'is_authenticated', False):
            bind_user(user)
        else:
            _request_data.user_id = 'anonymous'
            _request_data.user_email = None
        _request_data.ip_address = get_client_ip(request)
        _request_data.path = request.get_full_path()
        _request_data.method = request.method
        _request_data.request_id = request.request_id
