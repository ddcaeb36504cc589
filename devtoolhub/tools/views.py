from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from core.http import json_error, json_ok, read_json_body
from core.logging_utils import get_tools_logger
from core.middleware import get_client_ip
from core.rate_limit import RateLimitScenario, increment_rate_limit
from tools.catalog import TOOLS, categories, get_tool_by_slug, get_tools_by_category, search_tools
from tools.exceptions import ToolInputError
from tools.registry import actions_for, run_tool

logger = get_tools_logger()

RUNS_PER_MINUTE = 120


@require_GET
def tool_list(request):
    query = request.GET.get('q', '')
    category = request.GET.get('category', '')
    tools = search_tools(query) if query else list(TOOLS)
    if category:
        tools = [tool for tool in tools if tool in get_tools_by_category(category)]
    return JsonResponse({
        'tools': [tool.to_dict() for tool in tools],
        'categories': categories(),
    })


@require_GET
def tool_detail(request, slug):
    tool = get_tool_by_slug(slug)
    if tool is None:
        return json_error(f"Unknown tool '{slug}'", status=404)
    data = tool.to_dict()
    data['actions'] = actions_for(slug)
    return JsonResponse(data)


# Stateless and unauthenticated, no session to protect.
@csrf_exempt
@require_POST
def run_action(request, slug, action):
    client_ip = get_client_ip(request)
    limited = increment_rate_limit(RateLimitScenario.TOOLS_IP, client_ip, limit=RUNS_PER_MINUTE, window=60)
    if not limited.allowed:
        logger.security_event("Tool runs rate limited", extra_data={"ip": client_ip, "tool": slug})
        response = json_error('Too many requests. Please try again later.', status=429)
        response['Retry-After'] = str(limited.retry_after)
        return response

    if get_tool_by_slug(slug) is None:
        return json_error(f"Unknown tool '{slug}'", status=404)
    try:
        payload = read_json_body(request)
        result = run_tool(slug, action, payload)
    except LookupError as exc:
        return json_error(str(exc), status=404)
    except ToolInputError as exc:
        logger.info("Tool input rejected", extra_data={'tool': slug, 'action': action, 'field': exc.field})
        return json_error(str(exc), field=exc.field)
    except ValueError as exc:
        return json_error(str(exc))
    return json_ok(result=result)
