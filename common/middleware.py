import logging

from django.db import DatabaseError
from django.http import JsonResponse

logger = logging.getLogger(__name__)


class PersistenceErrorMiddleware:
    """
    Turns store failures (connection lost, lock timeout, ...) into a 503 JSON
    body. The transaction that raised has already rolled back, so no partial
    state is visible.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if not isinstance(exception, DatabaseError):
            return None
        logger.exception("Persistence failure on %s %s", request.method, request.path)
        return JsonResponse(
            {"error": "The data store is unavailable. Your change was not saved, please retry."},
            status=503,
        )
