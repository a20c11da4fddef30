from __future__ import annotations

from textwrap import dedent

from ..schemas.generation import NutritionPlanRequest
from .common import format_body_data, format_goals, join_sections

NUTRITION_PLAN_STRUCTURE = dedent(
    """
    Return the plan as JSON with this structure:
    {
      "daily_calories": 2000,
      "macro_ratios": {"protein": 0.3, "carbs": 0.4, "fat": 0.3},
      "days": [
        {
          "day": 1,
          "date": "YYYY-MM-DD",
          "meals": {
            "breakfast": {
              "time": "07:00-08:00",
              "foods": [
                {
                  "name": "Food name",
                  "amount": "100g",
                  "calories": 200,
                  "protein": 10,
                  "carbs": 25,
                  "fat": 5,
                  "fiber": 3
                }
              ],
              "total_calories": 450
            },
            "lunch": {"time": "...", "foods": [], "total_calories": 0},
            "dinner": {"time": "...", "foods": [], "total_calories": 0},
            "snacks": {"time": "...", "foods": [], "total_calories": 0}
          },
          "daily_totals": {"calories": 2000, "protein": 150, "carbs": 200, "fat": 67}
        }
      ]
    }

    Ensure the plan:
    1. Meets the specified calorie and macro targets
    2. Respects all dietary restrictions
    3. Includes variety across days
    4. Provides balanced nutrition
    5. Includes meal timing suggestions
    6. Lists specific portion sizes

    Return ONLY the JSON object, no additional text.
    "macro_ratios" values are fractions between 0 and 1.
    """
).strip()


def build_nutrition_plan_prompt(request: NutritionPlanRequest, daily_calories: float) -> str:
    """Compose the provider-agnostic prompt for a nutrition plan.

    ``daily_calories`` is passed separately because it may have been derived
    from body data when the request left it out.
    """
    start, _ = request.planned_dates()
    header = dedent(
        f"""
        Generate a detailed {request.duration_days}-day nutrition plan with the following specifications:

        Plan Name: {request.plan_name}
        Start Date: {start.isoformat()}
        Daily Calories: {daily_calories:.0f} kcal
        Macronutrient Ratios:
        - Protein: {request.protein_ratio * 100:.0f}%
        - Carbohydrates: {request.carb_ratio * 100:.0f}%
        - Fat: {request.fat_ratio * 100:.0f}%
        """
    )
    preferences = []
    if request.dietary_restrictions:
        preferences.append(f"Dietary Restrictions: {', '.join(request.dietary_restrictions)}")
    if request.preferences:
        preferences.append(f"Preferences: {', '.join(request.preferences)}")
    return join_sections(
        header,
        "\n".join(preferences),
        format_body_data(request.body_data, include_body_fat=False),
        format_goals(request.fitness_goals),
        NUTRITION_PLAN_STRUCTURE,
    )
