"""
Request ID tracking.

Every request carries an ID in g.request_id, taken from the incoming
X-Request-ID header when present, and echoed back on the response so log
lines can be correlated with client reports.
"""
import uuid
from flask import g, request

REQUEST_ID_HEADER = 'X-Request-ID'


def init_request_id_tracking(app):
    """Register before/after request hooks that manage the request ID."""

    @app.before_request
    def assign_request_id():
        incoming = request.headers.get(REQUEST_ID_HEADER, '').strip()
        g.request_id = incoming[:64] if incoming else uuid.uuid4().hex

    @app.after_request
    def add_request_id_header(response):
        request_id = getattr(g, 'request_id', None)
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response
