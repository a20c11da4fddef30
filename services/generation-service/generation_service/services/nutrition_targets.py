from __future__ import annotations

import math
from collections.abc import Sequence

from ..schemas.generation import BodyData, FitnessGoal

DEFAULT_DAILY_CALORIES = 2000.0
MODERATE_ACTIVITY_MULTIPLIER = 1.55
CALORIE_ROUNDING_STEP = 50

DEFICIT_GOALS = frozenset({"weight_loss", "fat_loss", "减脂", "减重"})
SURPLUS_GOALS = frozenset({"muscle_gain", "bulk", "增肌"})
DEFICIT_FACTOR = 0.85
SURPLUS_FACTOR = 1.15


def basal_metabolic_rate(body_data: BodyData) -> float:
    """Mifflin-St Jeor BMR in kcal/day."""
    base = 10 * body_data.weight + 6.25 * body_data.height - 5 * body_data.age
    return base + 5 if body_data.gender == "male" else base - 161


def estimate_daily_calories(body_data: BodyData | None, goals: Sequence[FitnessGoal] = ()) -> float:
    """Daily calorie target at moderate activity, adjusted by the first goal only."""
    if body_data is None:
        return DEFAULT_DAILY_CALORIES

    tdee = basal_metabolic_rate(body_data) * MODERATE_ACTIVITY_MULTIPLIER
    if goals:
        goal_type = goals[0].goal_type
        if goal_type in DEFICIT_GOALS:
            tdee *= DEFICIT_FACTOR
        elif goal_type in SURPLUS_GOALS:
            tdee *= SURPLUS_FACTOR

    # half-up rounding to the nearest step
    return float(math.floor(tdee / CALORIE_ROUNDING_STEP + 0.5) * CALORIE_ROUNDING_STEP)
