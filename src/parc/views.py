"""Project-level views for PARC."""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def ratelimited_view(request, exception=None):
    """Return 429 with Retry-After header on rate limit."""
    response = JsonResponse(
        {
            "error": "Rate limit exceeded. Please try again later.",
            "code": "RATE_LIMITED",
        },
        status=429,
    )
    response["Retry-After"] = "60"
    return response


def health_check(request):
    """Health check endpoint for monitoring and load balancers."""
    db_ok = True
    try:
        connection.ensure_connection()
    except DatabaseError:
        logger.exception("Health check: database unavailable")
        db_ok = False

    cache_ok = True
    try:
        cache.set("_health_check", "1", timeout=10)
        cache_ok = cache.get("_health_check") == "1"
    except Exception:
        logger.warning("Health check: cache unavailable", exc_info=True)
        cache_ok = False

    status = "ok" if db_ok and cache_ok else "degraded"
    status_code = 200 if db_ok else 503

    return JsonResponse(
        {"status": status, "db": db_ok, "cache": cache_ok},
        status=status_code,
    )
