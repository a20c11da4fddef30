from collections.abc import Generator

from fastapi import HTTPException, Request, status
from sentry_sdk import set_tag, set_user
from sqlalchemy.orm import Session

from .database import SessionLocal
from .logging_config import SERVICE_NAME
from .services.orchestrator import GenerationOrchestrator
from .services.provider_configs import ProviderConfigService


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_current_user_id(request: Request) -> str:
    user_id = request.headers.get("x-user-id")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header required")
    set_user({"id": str(user_id)})
    set_tag("service", SERVICE_NAME)
    return user_id

def get_orchestrator(request: Request) -> GenerationOrchestrator:
    return request.app.state.runtime.orchestrator

def get_provider_config_service(request: Request) -> ProviderConfigService:
    return request.app.state.runtime.provider_configs
