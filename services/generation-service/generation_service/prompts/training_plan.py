from __future__ import annotations

from textwrap import dedent

from ..schemas.generation import FitnessAssessment, TrainingPlanRequest
from .common import format_body_data, format_goals, join_sections

TRAINING_PLAN_STRUCTURE = dedent(
    """
    Return the plan as JSON with this structure:
    {
      "weeks": [
        {
          "week": 1,
          "days": [
            {
              "day": 1,
              "date": "YYYY-MM-DD",
              "type": "strength|cardio|rest|flexibility|mixed",
              "focus_area": "upper_body|lower_body|full_body|cardio",
              "exercises": [
                {
                  "name": "Exercise name",
                  "sets": 4,
                  "reps": "8-10",
                  "weight": "70kg or bodyweight",
                  "rest": "90s",
                  "difficulty": "easy|medium|hard",
                  "safety_notes": "Short form cues"
                }
              ],
              "duration": 60,
              "estimated_calories": 350
            }
          ]
        }
      ]
    }

    Ensure the plan:
    1. Progressively increases in difficulty
    2. Includes proper rest days
    3. Balances different muscle groups
    4. Considers any injuries or health conditions
    5. Fits within the user's available time
    6. Includes safety notes for complex exercises

    Return ONLY the JSON object, no additional text.
    "sets", "duration" and "estimated_calories" must be whole numbers.
    """
).strip()


def _format_assessment(assessment: FitnessAssessment | None) -> str:
    if assessment is None:
        return ""
    lines = [
        "User Assessment:",
        f"- Experience Level: {assessment.experience_level}",
        f"- Weekly Available Days: {assessment.weekly_available_days}",
        f"- Daily Available Minutes: {assessment.daily_available_minutes}",
    ]
    if assessment.injury_history:
        lines.append(f"- Injury History: {assessment.injury_history}")
    if assessment.health_conditions:
        lines.append(f"- Health Conditions: {assessment.health_conditions}")
    if assessment.equipment_available:
        lines.append(f"- Equipment Available: {', '.join(assessment.equipment_available)}")
    return "\n".join(lines)


def build_training_plan_prompt(request: TrainingPlanRequest) -> str:
    """Compose the provider-agnostic prompt for a training plan."""
    start, _ = request.planned_dates()
    header = dedent(
        f"""
        Generate a detailed {request.duration_weeks}-week training plan with the following specifications:

        Goal: {request.goal}
        Difficulty Level: {request.difficulty_level}
        Plan Name: {request.plan_name}
        Start Date: {start.isoformat()}
        """
    )
    return join_sections(
        header,
        _format_assessment(request.assessment),
        format_body_data(request.body_data),
        format_goals(request.fitness_goals),
        TRAINING_PLAN_STRUCTURE,
    )
