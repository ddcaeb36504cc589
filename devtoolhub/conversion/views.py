from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.http import json_error
from core.logging_utils import get_conversion_logger
from core.middleware import get_client_ip
from core.rate_limit import RateLimitScenario, increment_rate_limit
from .exceptions import ConversionError
from .services import CloudConvertClient

logger = get_conversion_logger()

MAX_UPLOAD_BYTES = 50 * 1024 * 1024
PDF_CONTENT_TYPE = 'application/pdf'


def get_client():
    return CloudConvertClient(api_key=settings.CLOUDCONVERT_API_KEY, base_url=settings.CLOUDCONVERT_API_URL)


@csrf_exempt
@require_POST
def pdf_to_docx(request):
    client_ip = get_client_ip(request)
    result = increment_rate_limit(RateLimitScenario.CONVERSION_IP, client_ip, limit=10, window=3600)
    if not result.allowed:
        logger.security_event("Conversion rate limited", extra_data={"ip": client_ip})
        response = json_error('Too many conversions. Please try again later.', status=429)
        response['Retry-After'] = str(result.retry_after)
        return response

    upload = request.FILES.get('file')
    if upload is None:
        return json_error('No file uploaded', field='file')
    if upload.content_type != PDF_CONTENT_TYPE:
        return json_error('The file must be a PDF', field='file')
    if upload.size > MAX_UPLOAD_BYTES:
        return json_error('The file must not be larger than 50 MB', field='file')
    if not settings.CLOUDCONVERT_API_KEY:
        logger.error("Conversion requested but CLOUDCONVERT_API_KEY is not set")
        return json_error('CloudConvert API key is not configured. Set CLOUDCONVERT_API_KEY.', status=500)

    logger.info("Conversion requested", extra_data={"file_name": upload.name, "size": upload.size})
    try:
        conversion = get_client().convert_pdf_to_docx(upload.name, upload.read())
    except ConversionError as exc:
        return json_error(str(exc), status=500)
    return JsonResponse(conversion.to_dict())
