import uuid

import structlog

CORRELATION_ID_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware:
    """
    Tag every request with a correlation id.

    Taken from the X-Correlation-ID header when the client sends one,
    generated otherwise. It is bound into structlog's context so every
    log line written while handling the request carries it, and echoed
    back on the response.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())
        request.correlation_id = correlation_id

        # start from a clean context for each request
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        try:
            response = self.get_response(request)
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")

        response[CORRELATION_ID_HEADER] = correlation_id
        return response
