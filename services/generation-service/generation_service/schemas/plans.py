from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from .generation import PlanKind


class GeneratedPlanSummary(BaseModel):
    id: int
    kind: PlanKind
    plan_name: str
    start_date: date
    end_date: date
    provider_config_id: int | None = None
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GeneratedPlanRead(GeneratedPlanSummary):
    parameters: dict[str, Any] | None = None
    plan_data: dict[str, Any]
