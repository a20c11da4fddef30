"""Strict schemas for plans produced by AI providers.

Models reject unknown numeric shapes instead of coercing them: a set count
given as ``"4"`` or ``-1`` fails validation, as does a calorie count given as
``"2200"`` or a missing section. Integers are accepted where a float is expected.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt


class _Document(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class Exercise(_Document):
    name: str = Field(min_length=1, max_length=200)
    sets: StrictInt = Field(gt=0, le=20)
    reps: str = Field(min_length=1, max_length=50)
    weight: str | None = Field(default=None, max_length=100)
    rest: str | None = Field(default=None, max_length=50)
    difficulty: Literal["easy", "medium", "hard"] | None = None
    safety_notes: str | None = Field(default=None, max_length=1000)


class TrainingDay(_Document):
    day: StrictInt = Field(ge=1)
    date: str | None = None
    type: Literal["strength", "cardio", "rest", "flexibility", "mixed"]
    focus_area: str | None = Field(default=None, max_length=100)
    exercises: list[Exercise] = Field(default_factory=list)
    duration: StrictInt = Field(ge=0, le=600, description="Minutes")
    estimated_calories: StrictInt = Field(ge=0, le=5000)


class TrainingWeek(_Document):
    week: StrictInt = Field(ge=1)
    days: list[TrainingDay] = Field(min_length=1)


class TrainingPlanDocument(_Document):
    weeks: list[TrainingWeek] = Field(min_length=1)


class Food(_Document):
    name: str = Field(min_length=1, max_length=200)
    amount: str = Field(min_length=1, max_length=50)
    calories: StrictFloat = Field(ge=0)
    protein: StrictFloat = Field(ge=0)
    carbs: StrictFloat = Field(ge=0)
    fat: StrictFloat = Field(ge=0)
    fiber: StrictFloat | None = Field(default=None, ge=0)


class Meal(_Document):
    time: str | None = Field(default=None, max_length=50)
    foods: list[Food] = Field(min_length=1)
    total_calories: StrictFloat = Field(ge=0)


class DailyTotals(_Document):
    calories: StrictFloat = Field(ge=0)
    protein: StrictFloat = Field(ge=0)
    carbs: StrictFloat = Field(ge=0)
    fat: StrictFloat = Field(ge=0)


class NutritionDay(_Document):
    day: StrictInt = Field(ge=1)
    date: str | None = None
    meals: dict[str, Meal] = Field(min_length=1)
    daily_totals: DailyTotals


class MacroRatios(_Document):
    protein: StrictFloat = Field(ge=0, le=1)
    carbs: StrictFloat = Field(ge=0, le=1)
    fat: StrictFloat = Field(ge=0, le=1)


class NutritionPlanDocument(_Document):
    daily_calories: StrictFloat = Field(gt=0)
    macro_ratios: MacroRatios
    days: list[NutritionDay] = Field(min_length=1)


PlanDocument = TrainingPlanDocument | NutritionPlanDocument
