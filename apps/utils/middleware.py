import logging
import time

from django.http import JsonResponse

logger = logging.getLogger("apps.requests")


class RequestLogMiddleware:
    """
    One log line per API request: method, path, status, duration.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not request.path.startswith("/api/"):
            return self.get_response(request)

        started = time.monotonic()
        response = self.get_response(request)
        duration_ms = round((time.monotonic() - started) * 1000, 1)

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s -> %s (%sms)",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response


class GlobalExceptionMiddleware:
    """
    Last line of defense for non-DRF views.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        logger.exception(f"Unhandled Middleware Exception: {exception}")
        if request.path.startswith('/api/'):
            return JsonResponse(
                {"error": "Internal Server Error", "code": "server_error"},
                status=500
            )
        return None  # Let Django's default 500 handler work for HTML
