"""Sign-up, sign-in and session endpoints used by the companion client."""

from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.password_validation import validate_password
from django.contrib.auth.signals import user_logged_in
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from accounts.api_auth import token_required
from accounts.models import ApiToken
from core.http import json_error, json_ok, read_json_body
from core.logging_utils import get_accounts_logger
from core.middleware import get_client_ip
from core.rate_limit import RateLimitScenario, increment_rate_limit, is_rate_limited
from tools.validators import validate_email

User = get_user_model()

# Get centralized logger
logger = get_accounts_logger()


def _too_many_requests(message, retry_after):
    response = json_error(message, status=429)
    if retry_after:
        response['Retry-After'] = str(retry_after)
    return response


def _credentials(request):
    data = read_json_body(request)
    email = str(data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    if not isinstance(password, str):
        raise ValueError('Password must be a string')
    return email, password


def _session_payload(user, raw_key):
    return {'user': user.to_public_dict(), 'token': raw_key}


@csrf_exempt
@require_POST
def signup(request):
    client_ip = get_client_ip(request)
    result = increment_rate_limit(RateLimitScenario.SIGNUP_IP, client_ip, limit=5, window=3600)
    if not result.allowed:
        logger.security_event("Sign-up rate limited", extra_data={"ip": client_ip})
        return _too_many_requests("Too many sign-up attempts. Please try again later.", result.retry_after)

    try:
        email, password = _credentials(request)
    except ValueError as exc:
        return json_error(str(exc))
    if not validate_email(email):
        return json_error('Enter a valid email address', field='email')
    try:
        validate_password(password, user=User(email=email))
    except ValidationError as exc:
        return json_error(' '.join(exc.messages), field='password')

    try:
        with transaction.atomic():
            user = User.objects.create_user(email=email, password=password)
    except IntegrityError:
        logger.info("Sign-up for existing email rejected", extra_data={"ip": client_ip})
        return json_error('An account with this email already exists', status=409, field='email')

    _, raw_key = ApiToken.objects.issue(user, label=request.headers.get('User-Agent', ''))
    logger.user_activity("api_signup", user, f"Account created from IP: {client_ip}")
    return json_ok(status=201, **_session_payload(user, raw_key))


@csrf_exempt
@require_POST
def signin(request):
    client_ip = get_client_ip(request)
    try:
        email, password = _credentials(request)
    except ValueError as exc:
        return json_error(str(exc))

    for scenario, identifier in ((RateLimitScenario.LOGIN_IP, client_ip), (RateLimitScenario.LOGIN_EMAIL, email)):
        result = is_rate_limited(scenario, identifier)
        if not result.allowed:
            logger.security_event("Login blocked due to rate limit", extra_data={
                "email": email,
                "ip": client_ip,
                "retry_after": result.retry_after,
            })
            return _too_many_requests("Too many failed login attempts. Please try again later.",
                                      result.retry_after)

    if not email or not password:
        return json_error('Email and password are required')

    # Failures are counted by the user_login_failed receiver.
    user = authenticate(request, username=email, password=password)
    if user is None:
        return json_error('Invalid email or password', status=401)

    _, raw_key = ApiToken.objects.issue(user, label=request.headers.get('User-Agent', ''))
    user_logged_in.send(sender=user.__class__, request=request, user=user)
    return json_ok(**_session_payload(user, raw_key))


@require_POST
@token_required
def signout(request):
    request.api_token.delete()
    logger.user_activity("api_signout", request.user, "API token revoked")
    return json_ok()


@require_GET
@token_required
def session(request):
    return json_ok(user=request.user.to_public_dict())
