from .common import with_strict_json_instruction
from .nutrition_plan import build_nutrition_plan_prompt
from .training_plan import build_training_plan_prompt

__all__ = [
    "build_nutrition_plan_prompt",
    "build_training_plan_prompt",
    "with_strict_json_instruction",
]
