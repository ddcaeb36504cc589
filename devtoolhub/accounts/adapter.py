from allauth.account.adapter import DefaultAccountAdapter
from django.conf import settings

from core.logging_utils import get_accounts_logger
from core.middleware import get_client_ip

# Get centralized logger
logger = get_accounts_logger()


class CustomAccountAdapter(DefaultAccountAdapter):
    """
    Logging for the browser based allauth flows. The JSON API in
    ``accounts.views`` logs the same events for the companion client.
    """

    def save_user(self, request, user, form, commit=True):
        user = super().save_user(request, user, form, commit=commit)
        if commit:
            logger.user_activity("registration_completed", user, f"Registered from IP: {get_client_ip(request)}")
        return user

    def authenticate(self, request, **credentials):
        email = credentials.get('email') or credentials.get('username')
        user = super().authenticate(request, **credentials)
        if user:
            logger.user_activity("successful_login", user, "User authenticated successfully")
        else:
            logger.security_event("Login failed - Invalid credentials", extra_data={
                "email": email,
                "ip": get_client_ip(request),
            })
        return user

    def login(self, request, user):
        logger.user_activity("login_completed", user, f"User logged in from IP: {get_client_ip(request)}")
        return super().login(request, user)

    def logout(self, request):
        if request.user.is_authenticated:
            logger.user_activity("logout", request.user, "User logged out")
        else:
            logger.info("Anonymous logout attempt", extra_data={"ip": get_client_ip(request)})
        return super().logout(request)

    def is_open_for_signup(self, request):
        """
        Registration can be closed with ``ACCOUNT_ALLOW_SIGNUP = False``
        """
        is_open = getattr(settings, 'ACCOUNT_ALLOW_SIGNUP', True) and super().is_open_for_signup(request)
        if not is_open:
            logger.security_event("Registration attempt when signup is closed", extra_data={
                "ip": get_client_ip(request)
            })
        return is_open
