"""
Core middleware for request processing.
"""
import threading
import uuid
import logging
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

_request_context = threading.local()


def get_request_context():
    """Return (request_id, venue_id) for the request handled by this thread."""
    return (
        getattr(_request_context, 'request_id', None),
        getattr(_request_context, 'venue_id', None),
    )


def set_request_venue(venue_id):
    """Record the venue of the authenticated principal for log records."""
    _request_context.venue_id = str(venue_id) if venue_id else None


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.
    The request_id is added to the request object and to log records.
    """

    def process_request(self, request):
        """Generate and attach request_id to the request."""
        request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        request.request_id = request_id
        _request_context.request_id = request_id
        _request_context.venue_id = None

    def process_response(self, request, response):
        """Add request_id to response headers and clear thread-local context."""
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        _request_context.request_id = None
        _request_context.venue_id = None
        return response


class RequestContextFilter(logging.Filter):
    """
    Add request_id and venue_id to log records from thread-local storage.
    """

    def filter(self, record):
        request_id, venue_id = get_request_context()
        if request_id and not getattr(record, 'request_id', None):
            record.request_id = request_id
        if venue_id and not getattr(record, 'venue_id', None):
            record.venue_id = venue_id
        return True
