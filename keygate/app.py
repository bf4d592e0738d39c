"""
FastAPI application for keygate.

The entitlement core is built once per app and stored on app.state; routes
reach it through a dependency. KeygateError codes map to HTTP statuses here
and nowhere else. Stack traces are never returned to clients.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from keygate.api import routes
from keygate.config import Settings, load_settings
from keygate.errors import KeygateError, ValidationError
from keygate.keystore import KeyStore
from keygate.plans import load_plan_catalog
from keygate.service import EntitlementService

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "INVALID_KEY": status.HTTP_401_UNAUTHORIZED,
    "DUPLICATE_KEY": status.HTTP_403_FORBIDDEN,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_LIST_KIND": status.HTTP_404_NOT_FOUND,
}


def build_service(settings: Settings) -> EntitlementService:
    plans = load_plan_catalog(settings.plans_path)
    key_store = KeyStore(plans=plans, free_plan_key=settings.free_plan_key)
    return EntitlementService(key_store=key_store)


async def keygate_error_handler(request: Request, exc: KeygateError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.warning(
        "Request rejected",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies get the same 400 shape as service validation errors."""
    fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
    return await keygate_error_handler(
        request, ValidationError("Invalid request body.", details={"fields": fields})
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        extra={
            "error_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": {},
            }
        },
    )


def create_app(
    service: Optional[EntitlementService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="keygate")
    app.state.settings = settings
    app.state.service = service or build_service(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(KeygateError, keygate_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(routes.router)
    return app


def main() -> None:
    import uvicorn

    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = create_app(settings=settings)
    logger.info("Starting keygate", extra={"port": settings.port})
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
