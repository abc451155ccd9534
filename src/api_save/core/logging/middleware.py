"""
Request ID middleware for FastAPI / Starlette.

An upstream `X-Request-ID` is reused when it looks like an opaque token;
anything else (missing, too long, unexpected characters) is replaced with a
fresh UUID4 so client input never lands unchecked in log lines. The id is
bound to the request-id contextvar while the request runs and echoed on the
response, error responses from the ApiSaveError handler included.
"""

import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .filters import set_request_id, reset_request_id

REQUEST_ID_HEADER = "X-Request-ID"

_ACCEPTED_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(incoming: str | None) -> str:
    if incoming and _ACCEPTED_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = set_request_id(rid)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
