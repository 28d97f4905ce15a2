"""
Trace middleware.

Attaches a trace ID to every request so webhook deliveries and the vendor
calls they trigger can be correlated in the logs.
"""
import uuid
import logging

logger = logging.getLogger(__name__)


class TraceMiddleware:
    """
    Attach a unique trace ID to every request.

    Reuses the X-Trace-Id header when the caller sends one, otherwise
    generates a new UUID. The ID is exposed as ``request.trace_id`` and echoed
    back in the response headers.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        trace_id = request.headers.get('X-Trace-Id') or str(uuid.uuid4())
        request.trace_id = trace_id

        response = self.get_response(request)
        response['X-Trace-Id'] = trace_id

        logger.debug(
            f"[TRACE] trace_id={trace_id} method={request.method} "
            f"path={request.path} status={response.status_code}"
        )
        return response
