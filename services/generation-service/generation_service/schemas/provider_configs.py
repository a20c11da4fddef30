from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class AIProvider(str, Enum):
    OPENAI = "openai"
    WENXIN = "wenxin"
    TONGYI = "tongyi"
    GEMINI = "gemini"


class ProviderConfigCreate(BaseModel):
    provider: AIProvider
    name: str = Field(min_length=1, max_length=100)
    endpoint: str | None = Field(default=None, max_length=500)
    api_key: SecretStr = Field(min_length=1)
    model: str | None = Field(default=None, max_length=100)
    max_tokens: int | None = Field(default=None, ge=1, le=32000)
    temperature: float | None = Field(default=None, ge=0, le=2)
    is_default: bool = False


class ProviderConfigUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    endpoint: str | None = Field(default=None, max_length=500)
    api_key: SecretStr | None = None
    model: str | None = Field(default=None, max_length=100)
    max_tokens: int | None = Field(default=None, ge=1, le=32000)
    temperature: float | None = Field(default=None, ge=0, le=2)
    is_active: bool | None = None
    is_default: bool | None = None


class ProviderConfigRead(BaseModel):
    id: int
    provider: AIProvider
    name: str
    endpoint: str | None = None
    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    is_default: bool
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ModelInfo(BaseModel):
    name: str = ""
    max_tokens: int = 0


class ConnectionTestResult(BaseModel):
    status: Literal["success", "failed"]
    response_time_ms: int
    model_info: ModelInfo
    message: str
