"""Management of per-user AI provider configurations."""

from __future__ import annotations

import asyncio
import time

import httpx
import structlog
from sqlalchemy.orm import Session

from ..exceptions import (
    ConfigurationMissingError,
    GenerationError,
    ProviderConfigNotFoundError,
    ProviderRejectedError,
)
from ..metrics import PROVIDER_CONNECTION_TESTS_TOTAL
from ..models import AIProviderConfig
from ..providers import ProviderClient, ProviderCredentials, build_provider_client
from ..repositories.provider_configs import ProviderConfigRepository
from ..schemas.provider_configs import (
    AIProvider,
    ConnectionTestResult,
    ModelInfo,
    ProviderConfigCreate,
    ProviderConfigUpdate,
)
from ..security import SecretCipher, SecretDecryptionError

logger = structlog.get_logger(__name__)


class ProviderConfigService:
    def __init__(
        self,
        cipher: SecretCipher,
        *,
        timeout_seconds: float,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._cipher = cipher
        self._timeout = timeout_seconds
        self._http_client = http_client

    def create(self, db: Session, owner_id: str, data: ProviderConfigCreate) -> AIProviderConfig:
        values = data.model_dump(exclude={"api_key", "is_default"})
        values["provider"] = data.provider.value
        values["encrypted_secret"] = self._cipher.encrypt(data.api_key.get_secret_value())
        config = ProviderConfigRepository.create(db, owner_id, values, make_default=data.is_default)
        logger.info(
            "ai_provider_config_created",
            owner_id=owner_id,
            config_id=config.id,
            provider=config.provider,
            is_default=config.is_default,
        )
        return config

    def list_for_owner(self, db: Session, owner_id: str) -> list[AIProviderConfig]:
        return ProviderConfigRepository.list_for_owner(db, owner_id)

    def get(self, db: Session, owner_id: str, config_id: int) -> AIProviderConfig:
        config = ProviderConfigRepository.get(db, config_id, owner_id)
        if config is None:
            raise ProviderConfigNotFoundError()
        return config

    def update(self, db: Session, owner_id: str, config_id: int, data: ProviderConfigUpdate) -> AIProviderConfig:
        config = self.get(db, owner_id, config_id)
        changes = data.model_dump(exclude_unset=True, exclude={"api_key"})
        if data.api_key is not None:
            changes["encrypted_secret"] = self._cipher.encrypt(data.api_key.get_secret_value())
        return ProviderConfigRepository.update(db, config, changes)

    def set_default(self, db: Session, owner_id: str, config_id: int) -> AIProviderConfig:
        config = self.get(db, owner_id, config_id)
        config = ProviderConfigRepository.set_default(db, config)
        logger.info("ai_provider_default_changed", owner_id=owner_id, config_id=config.id)
        return config

    def delete(self, db: Session, owner_id: str, config_id: int) -> None:
        config = self.get(db, owner_id, config_id)
        ProviderConfigRepository.delete(db, config)
        logger.info("ai_provider_config_deleted", owner_id=owner_id, config_id=config_id)

    def resolve(self, db: Session, owner_id: str, config_id: int | None = None) -> AIProviderConfig:
        """Pick the config for a generation: the explicit one, else the default."""
        if config_id is None:
            config = ProviderConfigRepository.get_default(db, owner_id)
            if config is None:
                raise ConfigurationMissingError()
            return config
        config = ProviderConfigRepository.get(db, config_id, owner_id)
        if config is None or not config.is_active:
            raise ProviderConfigNotFoundError()
        return config

    def load_credentials(self, config: AIProviderConfig) -> ProviderCredentials:
        try:
            api_key = self._cipher.decrypt(config.encrypted_secret)
        except SecretDecryptionError as exc:
            logger.error("ai_provider_secret_unreadable", config_id=config.id, provider=config.provider)
            raise ProviderRejectedError("stored credential could not be decrypted") from exc
        return ProviderCredentials(
            provider=AIProvider(config.provider),
            api_key=api_key,
            endpoint=config.endpoint,
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )

    def client_for(self, credentials: ProviderCredentials) -> ProviderClient:
        return build_provider_client(credentials, timeout=self._timeout, http_client=self._http_client)

    def build_client(self, config: AIProviderConfig) -> ProviderClient:
        return self.client_for(self.load_credentials(config))

    async def test_connection(self, db: Session, owner_id: str, config_id: int) -> ConnectionTestResult:
        # the session is synchronous; keep the lookup off the event loop
        config = await asyncio.to_thread(self.get, db, owner_id, config_id)
        started = time.monotonic()
        model_info = ModelInfo()
        try:
            async with self.build_client(config) as client:
                model_info = ModelInfo(name=client.model_name, max_tokens=client.max_tokens)
                await client.test_connection()
        except GenerationError as exc:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            PROVIDER_CONNECTION_TESTS_TOTAL.labels(provider=config.provider, status="failed").inc()
            logger.info(
                "ai_provider_connection_test_failed",
                config_id=config.id,
                provider=config.provider,
                error_code=exc.code,
                response_time_ms=elapsed_ms,
            )
            return ConnectionTestResult(
                status="failed",
                response_time_ms=elapsed_ms,
                model_info=model_info,
                message=exc.user_message,
            )

        elapsed_ms = int((time.monotonic() - started) * 1000)
        PROVIDER_CONNECTION_TESTS_TOTAL.labels(provider=config.provider, status="success").inc()
        return ConnectionTestResult(
            status="success",
            response_time_ms=elapsed_ms,
            model_info=model_info,
            message="Connection successful",
        )
