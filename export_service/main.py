import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from export_service.api import export
from export_service.config import get_settings
from export_service.exceptions import ExportError, InvalidInputError
from export_service.schemas.export import ErrorResponse

settings = get_settings()
logger = logging.getLogger(__name__)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_json(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body.model_dump(exclude_none=True)),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies as 400 invalid input."""
    errors = exc.errors()
    if errors:
        first_error = errors[0]
        loc = " -> ".join(str(x) for x in first_error.get("loc", []))
        msg = first_error.get("msg", "Validation error")
        message = f"{loc}: {msg}" if loc else msg
    else:
        message = "Request validation failed"

    logger.info(f"[EXPORT] Rejected invalid request: {message}")
    error = InvalidInputError(message)
    return _error_json(error.status_code, error.to_error_response())


@app.exception_handler(ExportError)
async def export_exception_handler(request: Request, exc: ExportError) -> JSONResponse:
    return _error_json(exc.status_code, exc.to_error_response())


# Global exception handler to ensure errors return proper JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    error = ExportError(str(exc) or type(exc).__name__)
    return _error_json(error.status_code, error.to_error_response())


# Routers
app.include_router(export.router, tags=["export"])


@app.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "FFmpeg Export Service is live!"


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "version": settings.app_version}


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"FFmpeg Export Service running at: http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
