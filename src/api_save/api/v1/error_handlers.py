"""
FastAPI exception handlers for classified save errors.

    app = FastAPI()
    register_exception_handlers(app)

The payload comes from ApiSaveError.to_payload() and the status from
ApiSaveError.http_status(); the wrapped storage error never reaches clients.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api_save.exceptions.base import ApiSaveError, ErrorCode

logger = logging.getLogger(__name__)


async def api_save_error_handler(request: Request, exc: ApiSaveError) -> JSONResponse:
    if exc.code is ErrorCode.INTERNAL_ERROR:
        logger.warning("ApiSaveError for %s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("ApiSaveError for %s %s: code=%s fields=%s", request.method, request.url.path, int(exc.code), exc.fields)
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiSaveError, api_save_error_handler)
