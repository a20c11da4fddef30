from __future__ import annotations

from collections.abc import Sequence
from textwrap import dedent

from ..schemas.generation import BodyData, FitnessGoal

STRICT_JSON_INSTRUCTION = dedent(
    """
    IMPORTANT: your previous answer could not be parsed.
    Respond with exactly one JSON object that matches the structure above.
    Do not use markdown, code fences, comments or any text outside the JSON.
    Every numeric field must be a plain number, not a string or a range.
    """
).strip()


def format_body_data(body_data: BodyData | None, *, include_body_fat: bool = True) -> str:
    if body_data is None:
        return ""
    lines = [
        "User Body Data:",
        f"- Age: {body_data.age}",
        f"- Gender: {body_data.gender}",
        f"- Height: {body_data.height:.2f} cm",
        f"- Weight: {body_data.weight:.2f} kg",
    ]
    if include_body_fat and body_data.body_fat_percentage is not None:
        lines.append(f"- Body Fat: {body_data.body_fat_percentage:.2f}%")
    return "\n".join(lines)


def format_goals(goals: Sequence[FitnessGoal]) -> str:
    if not goals:
        return ""
    lines = ["Fitness Goals:"]
    for goal in goals:
        line = f"- {goal.goal_type}"
        if goal.goal_description:
            line += f": {goal.goal_description}"
        lines.append(line)
    return "\n".join(lines)


def join_sections(*sections: str) -> str:
    return "\n\n".join(section.strip() for section in sections if section and section.strip())


def with_strict_json_instruction(prompt: str) -> str:
    """Prompt variant used when regenerating after unparseable output."""
    return join_sections(prompt, STRICT_JSON_INSTRUCTION)
