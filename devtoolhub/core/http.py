"""JSON response helpers shared by the API views."""

import json
from datetime import timezone as dt_timezone

from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_datetime


def json_error(message, status=400, **extra):
    payload = {'success': False, 'error': message}
    payload.update(extra)
    return JsonResponse(payload, status=status)


def json_ok(status=200, **data):
    payload = {'success': True}
    payload.update(data)
    return JsonResponse(payload, status=status)


def read_json_body(request):
    """Decode a JSON object body; ``ValueError`` for anything else."""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        raise ValueError('Request body must be valid JSON') from exc
    if not isinstance(data, dict):
        raise ValueError('Request body must be a JSON object')
    return data


def parse_client_datetime(value, field):
    """Aware datetime from an ISO-8601 string sent by a client; ``None`` when absent."""
    if value in (None, ''):
        return None
    parsed = parse_datetime(value) if isinstance(value, str) else None
    if parsed is None:
        raise ValueError(f'{field} must be an ISO-8601 date and time')
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed
