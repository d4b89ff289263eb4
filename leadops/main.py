"""Application entrypoint for the monitoring API."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from leadops.api.v1 import get_api_router
from leadops.core.config import get_config
from leadops.core.exceptions import NotFoundError, ValidationError
from leadops.core.startup import bootstrap
from leadops.schemas import error_body

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Authorization"]


def _validation_details(exc: RequestValidationError) -> list[dict]:
    return [
        {"field": ".".join(str(part) for part in error.get("loc", ())), "message": error.get("msg", "")}
        for error in exc.errors()
    ]


def create_app() -> FastAPI:
    """Create the FastAPI application with CORS and the error envelope."""
    cfg = get_config()
    app = FastAPI(title=cfg.APP_NAME, version=cfg.APP_VERSION)

    @app.middleware("http")
    async def answer_preflight(request: Request, call_next):
        # Plain OPTIONS without CORS request headers never reaches CORSMiddleware's preflight path.
        if request.method == "OPTIONS":
            headers = {
                "Access-Control-Allow-Methods": ", ".join(ALLOWED_METHODS),
                "Access-Control-Allow-Headers": ", ".join(ALLOWED_HEADERS),
            }
            origin = request.headers.get("origin", "")
            if "*" in cfg.CORS_ALLOW_ORIGINS:
                headers["Access-Control-Allow-Origin"] = "*"
            elif origin and origin in cfg.CORS_ALLOW_ORIGINS:
                headers["Access-Control-Allow-Origin"] = origin
            return Response(status_code=200, headers=headers)
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.CORS_ALLOW_ORIGINS),
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content=error_body(exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=error_body("Invalid request", _validation_details(exc)))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=error_body(str(exc) or "Not found"))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return JSONResponse(status_code=405, content=error_body("Method not allowed"))
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content=error_body("Not found"))
        return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail)))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            "api.unhandled_error",
            extra={"event": "api.unhandled_error", "path": request.url.path, "error": str(exc)},
            exc_info=exc,
        )
        details = None if cfg.is_production else str(exc)
        return JSONResponse(status_code=500, content=error_body("Internal server error", details))

    app.include_router(get_api_router())

    @app.get("/")
    def root() -> dict:
        return {"service": cfg.APP_NAME, "version": cfg.APP_VERSION, "api_prefix": cfg.API_PREFIX}

    return app


# Expose ASGI app for `uvicorn leadops.main:app`.
app = create_app()


if __name__ == "__main__":
    import uvicorn

    bootstrap()
    cfg = get_config()
    uvicorn.run(app, host=cfg.API_HOST, port=cfg.API_PORT)
