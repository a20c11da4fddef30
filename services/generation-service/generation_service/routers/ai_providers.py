from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..dependencies import get_current_user_id, get_db, get_provider_config_service
from ..schemas.provider_configs import (
    ConnectionTestResult,
    ProviderConfigCreate,
    ProviderConfigRead,
    ProviderConfigUpdate,
)
from ..services.provider_configs import ProviderConfigService

router = APIRouter()


@router.post("/", response_model=ProviderConfigRead, status_code=status.HTTP_201_CREATED)
def create_ai_provider(
    payload: ProviderConfigCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: ProviderConfigService = Depends(get_provider_config_service),
):
    return service.create(db, user_id, payload)


@router.get("/", response_model=list[ProviderConfigRead])
def list_ai_providers(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: ProviderConfigService = Depends(get_provider_config_service),
):
    return service.list_for_owner(db, user_id)


@router.get("/{config_id}", response_model=ProviderConfigRead)
def get_ai_provider(
    config_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: ProviderConfigService = Depends(get_provider_config_service),
):
    return service.get(db, user_id, config_id)


@router.put("/{config_id}", response_model=ProviderConfigRead)
def update_ai_provider(
    config_id: int,
    payload: ProviderConfigUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: ProviderConfigService = Depends(get_provider_config_service),
):
    return service.update(db, user_id, config_id, payload)


@router.delete("/{config_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ai_provider(
    config_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: ProviderConfigService = Depends(get_provider_config_service),
):
    service.delete(db, user_id, config_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{config_id}/default", response_model=ProviderConfigRead)
def set_default_ai_provider(
    config_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: ProviderConfigService = Depends(get_provider_config_service),
):
    return service.set_default(db, user_id, config_id)


@router.post("/{config_id}/test", response_model=ConnectionTestResult)
async def check_ai_provider_connection(
    config_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    service: ProviderConfigService = Depends(get_provider_config_service),
):
    return await service.test_connection(db, user_id, config_id)
