import os
import uuid
from contextlib import asynccontextmanager

import structlog
from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sentry_sdk import set_tag

from .config import get_settings
from .database import SessionLocal
from .exceptions import (
    ConfigurationMissingError,
    GenerationBusyError,
    GenerationError,
    ProviderConfigNotFoundError,
    RequestInvalidError,
    TaskNotFoundError,
)
from .logging_config import SERVICE_NAME, configure_logging
from .routers.ai_providers import router as ai_providers_router
from .routers.nutrition_plans import router as nutrition_plans_router
from .routers.training_plans import router as training_plans_router
from .services.runtime import build_runtime

configure_logging()
set_tag("service", SERVICE_NAME)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime = await build_runtime(get_settings(), SessionLocal)
    app.state.runtime = runtime
    try:
        yield
    finally:
        await runtime.aclose()
        logger.info("generation_runtime_closed")


app = FastAPI(title=SERVICE_NAME, version="0.1.0", lifespan=lifespan)

Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

_cors_origins = os.getenv("CORS_ORIGINS", "*")
_allow_origins = [o.strip() for o in _cors_origins.split(",")] if _cors_origins != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allow_origins,
    allow_credentials=_allow_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    CorrelationIdMiddleware,
    header_name="X-Request-ID",
    generator=lambda: str(uuid.uuid4()),
    update_request_header=True,
)

_STATUS_BY_ERROR: dict[type[GenerationError], int] = {
    RequestInvalidError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConfigurationMissingError: status.HTTP_409_CONFLICT,
    ProviderConfigNotFoundError: status.HTTP_404_NOT_FOUND,
    TaskNotFoundError: status.HTTP_404_NOT_FOUND,
    GenerationBusyError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, mapped in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            status_code = mapped
            break

    content: dict = {"detail": exc.user_message, "code": exc.code}
    headers = None
    if isinstance(exc, RequestInvalidError) and exc.errors:
        content["errors"] = exc.errors
    if isinstance(exc, GenerationBusyError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    if status_code >= 500 and not isinstance(exc, GenerationBusyError):
        logger.error("unhandled_generation_error", error_code=exc.code, error_type=type(exc).__name__)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(training_plans_router, prefix="/training-plans", tags=["training-plans"])
app.include_router(nutrition_plans_router, prefix="/nutrition-plans", tags=["nutrition-plans"])
app.include_router(ai_providers_router, prefix="/ai-providers", tags=["ai-providers"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8012)
