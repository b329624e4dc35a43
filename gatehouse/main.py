"""FastAPI application entrypoint. No business logic; only wiring, middleware and error translation."""

from dotenv import load_dotenv

load_dotenv()

import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from gatehouse.api.v1 import router as v1_router
from gatehouse.core.config import settings
from gatehouse.core.errors import ApiError, RateLimitError
from gatehouse.middleware import ApiVersionMiddleware
from gatehouse.schemas.common import error_body
from gatehouse.schemas.health import RootStatus

logger = logging.getLogger(__name__)

PYDANTIC_VALUE_ERROR_PREFIX = "Value error, "

app = FastAPI(
    title="Gatehouse API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    ApiVersionMiddleware,
    prefix=settings.API_V1_PREFIX,
    version="v1",
    settings=settings,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Translate the error taxonomy into the JSON envelope."""
    if isinstance(exc, RateLimitError):
        content = {"success": False, "message": exc.message, "retry_after": exc.retry_after}
    else:
        content = error_body(exc.message, exc.errors)
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Field-keyed messages: {"email": ["..."], "password_confirmation": ["..."]}."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = loc[-1] if loc else "request"
        message = str(error.get("msg", "Invalid value."))
        if message.startswith(PYDANTIC_VALUE_ERROR_PREFIX):
            message = message[len(PYDANTIC_VALUE_ERROR_PREFIX):]
        errors.setdefault(field, []).append(message)
    return JSONResponse(status_code=422, content=error_body("Validation Error.", errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: 500 without internals outside dev."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = f"Server Error: {exc}" if settings.APP_ENV == "dev" else "Server Error."
    return JSONResponse(status_code=500, content=error_body(message))


app.include_router(v1_router, prefix=settings.API_V1_PREFIX)
app.mount(
    "/storage",
    StaticFiles(directory=settings.STORAGE_DIR, check_dir=False),
    name="storage",
)


@app.get("/", response_model=RootStatus)
def root() -> RootStatus:
    """Root route; minimal payload for discovery."""
    return RootStatus(
        version=settings.API_LATEST_VERSION,
        timestamp=datetime.now(UTC).isoformat(),
    )
