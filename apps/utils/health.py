from django.apps import apps
from django.conf import settings
from django.db import connection
from django.http import JsonResponse

from apps.storage.memory import MemoryStorage


def health_check(request):
    status = {"db": "unknown", "cache": "unknown", "storage": "unknown"}
    try:
        storage = apps.get_app_config("storage").get_storage()
        status["storage"] = type(storage).__name__
        in_memory = isinstance(storage, MemoryStorage)

        # Check DB; only fatal when orders live there
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            status["db"] = "ok"
        except Exception:
            if not in_memory:
                raise
            status["db"] = "unavailable"

        # Check Redis (only when configured)
        if settings.REDIS_URL:
            from django_redis import get_redis_connection
            get_redis_connection("default").ping()
            status["cache"] = "ok"
        else:
            status["cache"] = "local"

        overall = "degraded" if status["db"] != "ok" else "ok"
        return JsonResponse({"status": overall, "components": status}, status=200)
    except Exception as e:
        return JsonResponse(
            {"status": "error", "error": str(e), "components": status},
            status=503
        )
