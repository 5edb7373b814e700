"""
Request logging for the reservation endpoints.
"""
import logging
import time

from utils.mongo import log_api_request

logger = logging.getLogger(__name__)


class APILoggingMiddleware:
    """
    Writes one MongoDB entry per booking request (book, list, cancel, ticket).
    A logging failure never changes the response.
    """

    LOGGED_PREFIXES = ('/api/bookings',)

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not request.path.startswith(self.LOGGED_PREFIXES):
            return self.get_response(request)

        started = time.perf_counter()
        response = self.get_response(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        try:
            log_api_request(
                endpoint=request.path,
                method=request.method,
                user_id=self.user_id(request),
                request_params=self.query_params(request),
                response_status=response.status_code,
                execution_time_ms=elapsed_ms,
                results_count=self.results_count(response),
            )
        except Exception:
            logger.warning("Could not log %s %s", request.method, request.path, exc_info=True)

        return response

    @staticmethod
    def user_id(request):
        user = getattr(request, 'user', None)
        return user.pk if user is not None and user.is_authenticated else None

    @staticmethod
    def query_params(request):
        # Single values are stored unwrapped
        return {
            key: values[0] if len(values) == 1 else values
            for key, values in request.GET.lists()
        }

    @staticmethod
    def results_count(response):
        data = getattr(response, 'data', None)
        if isinstance(data, dict) and isinstance(data.get('results'), list):
            return len(data['results'])
        return None
