from django.http import JsonResponse
from django.shortcuts import redirect
from django.views.decorators.http import require_GET

from core.logging_utils import get_core_logger
from core.middleware import get_client_ip
from tools.catalog import TOOLS

# Get centralized logger
logger = get_core_logger()


@require_GET
def home(request):
    logger.info("Home accessed", extra_data={"ip": get_client_ip(request)})
    user_email = ""
    if request.user.is_authenticated:
        logger.user_activity("home_access", request.user)
        user_email = request.user.email
    return JsonResponse({
        "name": "DevToolHub",
        "authenticated": request.user.is_authenticated,
        "user_email": user_email,
        "tool_count": len(TOOLS),
    })


@require_GET
def health(request):
    return JsonResponse({"status": "ok"})


def root(request):
    return redirect("/home/")
