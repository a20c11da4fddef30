from __future__ import annotations

import abc
from datetime import date, timedelta
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, model_validator

from ..exceptions import RequestInvalidError

MACRO_RATIO_TOLERANCE = 0.01


class PlanKind(str, Enum):
    TRAINING = "training"
    NUTRITION = "nutrition"


class BodyData(BaseModel):
    age: int = Field(ge=10, le=120)
    gender: Literal["male", "female", "other"]
    height: float = Field(gt=0, le=300, description="Height in cm")
    weight: float = Field(gt=0, le=500, description="Weight in kg")
    body_fat_percentage: float | None = Field(default=None, ge=0, le=100)


class FitnessGoal(BaseModel):
    goal_type: str = Field(min_length=1, max_length=100)
    goal_description: str | None = Field(default=None, max_length=500)


class FitnessAssessment(BaseModel):
    experience_level: Literal["beginner", "intermediate", "advanced"]
    weekly_available_days: int = Field(ge=1, le=7)
    daily_available_minutes: int = Field(ge=10, le=300)
    injury_history: str | None = Field(default=None, max_length=1000)
    health_conditions: str | None = Field(default=None, max_length=1000)
    equipment_available: list[str] = Field(default_factory=list)


class _PlanRequestBase(BaseModel):
    plan_name: str = Field(min_length=1, max_length=200)
    start_date: date | None = None
    end_date: date | None = None
    ai_provider_config_id: int | None = Field(
        default=None,
        description="Provider configuration to use; the caller's default is used when omitted",
    )
    body_data: BodyData | None = None
    fitness_goals: list[FitnessGoal] = Field(default_factory=list)

    def _check_date_order(self) -> None:
        if self.end_date is None:
            return
        if self.start_date is None:
            raise ValueError("end_date requires start_date")
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")

    @abc.abstractmethod
    def _span_days(self) -> int: ...

    def planned_dates(self, today: date | None = None) -> tuple[date, date]:
        start = self.start_date or today or date.today()
        end = self.end_date or start + timedelta(days=self._span_days())
        return start, end


class TrainingPlanRequest(_PlanRequestBase):
    kind: Literal["training"] = "training"
    duration_weeks: int = Field(ge=1, le=52)
    goal: str = Field(min_length=1, max_length=100)
    difficulty_level: Literal["easy", "medium", "hard", "extreme"]
    assessment: FitnessAssessment | None = None

    @model_validator(mode="after")
    def _validate_dates(self) -> TrainingPlanRequest:
        self._check_date_order()
        return self

    def _span_days(self) -> int:
        return self.duration_weeks * 7


class NutritionPlanRequest(_PlanRequestBase):
    kind: Literal["nutrition"] = "nutrition"
    duration_days: int = Field(ge=1, le=365)
    daily_calories: float | None = Field(default=None, gt=0, le=10000)
    protein_ratio: float = Field(ge=0, le=1)
    carb_ratio: float = Field(ge=0, le=1)
    fat_ratio: float = Field(ge=0, le=1)
    dietary_restrictions: list[str] = Field(default_factory=list)
    preferences: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_ratios_and_dates(self) -> NutritionPlanRequest:
        ratio_sum = self.protein_ratio + self.carb_ratio + self.fat_ratio
        if abs(ratio_sum - 1.0) > MACRO_RATIO_TOLERANCE:
            raise ValueError("protein_ratio, carb_ratio and fat_ratio must sum to 1.0")
        self._check_date_order()
        return self

    def _span_days(self) -> int:
        return self.duration_days


GenerationRequest = Annotated[TrainingPlanRequest | NutritionPlanRequest, Field(discriminator="kind")]

_request_adapter: TypeAdapter[TrainingPlanRequest | NutritionPlanRequest] = TypeAdapter(GenerationRequest)


def parse_generation_request(payload: dict[str, Any]) -> TrainingPlanRequest | NutritionPlanRequest:
    """Validate a raw payload into a typed request, raising ``RequestInvalidError``."""
    try:
        return _request_adapter.validate_python(payload)
    except ValidationError as exc:
        errors = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        raise RequestInvalidError("The generation request is invalid.", errors=errors) from exc
