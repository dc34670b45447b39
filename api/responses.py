from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from core.errors import (
    BadRequestError,
    ConfigurationError,
    NotFoundError,
    build_error_envelope,
)
from core.logging_config import logger

# raised through to the app-level handlers below
PASSTHROUGH_ERRORS = (ConfigurationError, BadRequestError, NotFoundError)


def guarded(context, fn, *args, **kwargs):
    """Run an orchestrator; anything unexpected becomes the 500 error envelope."""
    try:
        return fn(*args, **kwargs)
    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        logger.exception(f"[API] {context}: {e}")
        return JSONResponse(status_code=500, content=build_error_envelope(e, context))


def csv_response(filename, body) -> Response:
    return Response(
        content=body.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# === Exception handlers ===
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"[API] Configuration error on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"error": "Configuration Error", "message": str(exc)})


async def bad_request_handler(request: Request, exc: BadRequestError):
    logger.warning(f"[API] Bad request on {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"error": str(exc), "message": str(exc)})


async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": "Not Found", "message": str(exc)})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path"))
        problems.append(f"{loc}: {error.get('msg')}" if loc else str(error.get("msg")))
    message = "; ".join(problems) or "Invalid request"
    return JSONResponse(status_code=400, content={"error": message, "message": message})


def install_error_handlers(app):
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(BadRequestError, bad_request_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
