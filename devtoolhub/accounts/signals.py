"""
Signal handlers for authentication events: logging and login rate limiting
"""

from django.contrib.auth.signals import user_logged_in, user_logged_out, user_login_failed
from django.dispatch import receiver
from allauth.account.signals import password_changed, password_reset, user_signed_up

from core.logging_utils import get_accounts_logger
from core.middleware import get_client_ip
from core.rate_limit import (
    RateLimitScenario,
    increment_rate_limit,
    reset_rate_limit,
)

logger = get_accounts_logger()

LOGIN_IP_LIMIT = 10
LOGIN_EMAIL_LIMIT = 6
LOGIN_WINDOW = 600
LOGIN_BLOCK = 1800


def _ip(request):
    return get_client_ip(request) if request is not None else 'unknown'


@receiver(user_logged_in)
def log_user_login(sender, request, user, **kwargs):
    """Log successful logins and clear the failure counters"""
    ip = _ip(request)
    logger.user_activity("user_logged_in_signal", user, f"User login signal received from IP: {ip}")
    if ip and ip != 'unknown':
        reset_rate_limit(RateLimitScenario.LOGIN_IP, ip)
    if getattr(user, 'email', None):
        reset_rate_limit(RateLimitScenario.LOGIN_EMAIL, user.email)


@receiver(user_logged_out)
def log_user_logout(sender, request, user, **kwargs):
    if user:
        logger.user_activity("user_logged_out_signal", user, "User logout signal received")
    else:
        logger.info("Anonymous user logout signal received", extra_data={"ip": _ip(request)})


@receiver(user_login_failed)
def log_login_failure(sender, credentials, request=None, **kwargs):
    """Log failed login attempts and count them against the IP and the account"""
    email = credentials.get('username') or credentials.get('email') or 'unknown'
    ip = _ip(request)
    logger.security_event("Login failed - Django signal", extra_data={
        "email": email,
        "ip": ip,
    })
    if ip and ip != 'unknown':
        increment_rate_limit(
            RateLimitScenario.LOGIN_IP,
            ip,
            limit=LOGIN_IP_LIMIT,
            window=LOGIN_WINDOW,
            block=LOGIN_BLOCK,
        )
    if email and email != 'unknown':
        increment_rate_limit(
            RateLimitScenario.LOGIN_EMAIL,
            email,
            limit=LOGIN_EMAIL_LIMIT,
            window=LOGIN_WINDOW,
            block=LOGIN_BLOCK,
        )


@receiver(user_signed_up)
def log_user_signup(sender, request, user, **kwargs):
    logger.user_activity("user_signed_up", user, f"User registration signal received from IP: {_ip(request)}")


@receiver(password_reset)
def log_password_reset(sender, request, user, **kwargs):
    logger.security_event("Password reset completed", user, extra_data={"ip": _ip(request)})


@receiver(password_changed)
def log_password_changed(sender, request, user, **kwargs):
    logger.security_event("Password changed", user, extra_data={"ip": _ip(request)})
