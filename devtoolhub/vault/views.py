import uuid

from django.http import Http404
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from accounts.api_auth import token_required
from core.http import json_error, json_ok, parse_client_datetime, read_json_body
from core.logging_utils import get_vault_logger
from .models import PasswordEntry

# Get centralized logger
logger = get_vault_logger()

MAX_CATEGORY_LENGTH = 100


def _clean_category(value):
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValueError('category must be a string')
    return value.strip()[:MAX_CATEGORY_LENGTH]


def _clean_ciphertext(value):
    if not isinstance(value, str) or not value.strip():
        raise ValueError('encrypted_data is required')
    return value.strip()


def _list_entries(request):
    entries = PasswordEntry.objects.filter(user=request.user)
    return json_ok(items=[entry.to_dict() for entry in entries])


def _create_entry(request):
    """Insert an entry; re-sending an id the user already owns returns the stored row."""
    data = read_json_body(request)
    raw_id = data.get('id')
    try:
        entry_id = uuid.UUID(str(raw_id)) if raw_id else uuid.uuid4()
    except ValueError:
        return json_error('id must be a UUID', field='id')

    existing = PasswordEntry.objects.filter(pk=entry_id).first()
    if existing is not None:
        if existing.user_id != request.user.pk:
            logger.security_event("Password entry id collision with another account", request.user,
                                  extra_data={"entry_id": str(entry_id)})
            return json_error('Entry id already in use', status=409, field='id')
        return json_ok(item=existing.to_dict())

    now = timezone.now()
    created_at = parse_client_datetime(data.get('created_at'), 'created_at') or now
    entry = PasswordEntry.objects.create(
        id=entry_id,
        user=request.user,
        encrypted_data=_clean_ciphertext(data.get('encrypted_data')),
        category=_clean_category(data.get('category')),
        created_at=created_at,
        updated_at=parse_client_datetime(data.get('updated_at'), 'updated_at') or created_at,
    )
    logger.user_activity("password_entry_created", request.user, f"Stored password entry {entry.id}")
    return json_ok(status=201, item=entry.to_dict())


@require_http_methods(['GET', 'POST'])
@token_required
def entry_collection(request):
    if request.method == 'GET':
        return _list_entries(request)
    try:
        return _create_entry(request)
    except ValueError as exc:
        return json_error(str(exc))


@require_http_methods(['PATCH', 'DELETE'])
@token_required
def entry_detail(request, entry_id):
    try:
        entry = get_object_or_404(PasswordEntry, pk=entry_id, user=request.user)
    except Http404:
        return json_error('Entry not found', status=404)

    if request.method == 'DELETE':
        entry.delete()
        logger.user_activity("password_entry_deleted", request.user, f"Deleted password entry {entry_id}")
        return json_ok()

    try:
        data = read_json_body(request)
        if 'encrypted_data' in data:
            entry.encrypted_data = _clean_ciphertext(data['encrypted_data'])
        if 'category' in data:
            entry.category = _clean_category(data['category'])
        entry.updated_at = parse_client_datetime(data.get('updated_at'), 'updated_at') or timezone.now()
    except ValueError as exc:
        return json_error(str(exc))
    entry.save()
    logger.user_activity("password_entry_updated", request.user, f"Updated password entry {entry.id}")
    return json_ok(item=entry.to_dict())
