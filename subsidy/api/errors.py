"""Maps engine exceptions to HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from subsidy.core.exceptions import DependencyError, SubsidyError

logger = logging.getLogger(__name__)


async def subsidy_error_handler(request: Request, exc: SubsidyError) -> JSONResponse:
    if isinstance(exc, DependencyError):
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SubsidyError, subsidy_error_handler)
