import uuid

from django.conf import settings
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from accounts.api_auth import token_required
from core.http import json_error, json_ok, parse_client_datetime, read_json_body
from core.logging_utils import get_library_logger
from .models import Favorite, HistoryEntry

logger = get_library_logger()

MAX_SLUG_LENGTH = 100
MAX_HISTORY_LIMIT = 500


def _clean_slug(value):
    if not isinstance(value, str) or not value.strip():
        raise ValueError('tool_slug is required')
    value = value.strip()
    if len(value) > MAX_SLUG_LENGTH:
        raise ValueError('tool_slug is too long')
    return value


def _client_id(data):
    raw_id = data.get('id')
    if not raw_id:
        return uuid.uuid4()
    try:
        return uuid.UUID(str(raw_id))
    except ValueError as exc:
        raise ValueError('id must be a UUID') from exc


def _history_limit(request):
    raw = request.GET.get('limit')
    if raw in (None, ''):
        return settings.HISTORY_FETCH_LIMIT
    try:
        limit = int(raw)
    except ValueError as exc:
        raise ValueError('limit must be an integer') from exc
    if not 1 <= limit <= MAX_HISTORY_LIMIT:
        raise ValueError(f'limit must be between 1 and {MAX_HISTORY_LIMIT}')
    return limit


def _insert(model, request, **fields):
    """Create a row with the client's id; an id the user already owns is returned unchanged."""
    data = read_json_body(request)
    row_id = _client_id(data)
    existing = model.objects.filter(pk=row_id).first()
    if existing is not None:
        if existing.user_id != request.user.pk:
            return json_error('Id already in use', status=409, field='id')
        return json_ok(item=existing.to_dict())
    values = {name: clean(data) for name, clean in fields.items()}
    row = model.objects.create(id=row_id, user=request.user, **values)
    return json_ok(status=201, item=row.to_dict())


@require_http_methods(['GET', 'POST'])
@token_required
def favorite_collection(request):
    if request.method == 'GET':
        favorites = Favorite.objects.filter(user=request.user)
        return json_ok(items=[favorite.to_dict() for favorite in favorites])
    try:
        response = _insert(
            Favorite, request,
            tool_slug=lambda data: _clean_slug(data.get('tool_slug')),
            created_at=lambda data: parse_client_datetime(data.get('created_at'), 'created_at') or timezone.now(),
        )
    except ValueError as exc:
        return json_error(str(exc))
    logger.user_activity("favorite_added", request.user)
    return response


@require_http_methods(['DELETE'])
@token_required
def favorite_detail(request, tool_slug):
    deleted, _ = Favorite.objects.filter(user=request.user, tool_slug=tool_slug).delete()
    logger.user_activity("favorite_removed", request.user, f"{tool_slug} ({deleted} rows)")
    return json_ok(deleted=deleted)


@require_http_methods(['GET', 'POST'])
@token_required
def history_collection(request):
    try:
        if request.method == 'GET':
            limit = _history_limit(request)
            entries = HistoryEntry.objects.filter(user=request.user)[:limit]
            return json_ok(items=[entry.to_dict() for entry in entries])
        return _insert(
            HistoryEntry, request,
            tool_slug=lambda data: _clean_slug(data.get('tool_slug')),
            timestamp=lambda data: parse_client_datetime(data.get('timestamp'), 'timestamp') or timezone.now(),
        )
    except ValueError as exc:
        return json_error(str(exc))
