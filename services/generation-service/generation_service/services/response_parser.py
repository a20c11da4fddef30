"""Turn raw provider text into a validated plan document.

Providers are asked for bare JSON but routinely wrap it in markdown fences or
prose. Fenced blocks are tried first (``json``-tagged ones before the rest),
then the whole text. From each, the parser extracts the outermost balanced
JSON object, falls back to a bare top-level array (wrapped as ``weeks`` or
``days`` depending on the plan kind) and validates the result against the
plan schema. The first candidate that validates wins. It never repairs
invalid values.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator

import structlog
from pydantic import ValidationError

from ..exceptions import OutputInvalidError
from ..schemas.generation import PlanKind
from ..schemas.plan_documents import NutritionPlanDocument, PlanDocument, TrainingPlanDocument

logger = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"```([\w-]*)[ \t]*\n?(.*?)```", re.DOTALL)

DOCUMENT_TYPES: dict[PlanKind, type[TrainingPlanDocument] | type[NutritionPlanDocument]] = {
    PlanKind.TRAINING: TrainingPlanDocument,
    PlanKind.NUTRITION: NutritionPlanDocument,
}

ARRAY_FALLBACK_KEYS = {
    PlanKind.TRAINING: "weeks",
    PlanKind.NUTRITION: "days",
}


def _candidate_bodies(text: str) -> list[str]:
    tagged: list[str] = []
    untagged: list[str] = []
    for match in _FENCE_RE.finditer(text):
        (tagged if match.group(1).lower() == "json" else untagged).append(match.group(2))
    return tagged + untagged + [text]


def extract_balanced(text: str, open_char: str, close_char: str) -> str | None:
    """Return the first balanced ``open_char``..``close_char`` span in ``text``.

    Brackets inside JSON string literals are ignored. Returns ``None`` when no
    opening bracket exists or the span never closes (truncated output).
    """
    start = text.find(open_char)
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def _extract_candidate(body: str, kind: PlanKind) -> dict | None:
    obj_start = body.find("{")
    arr_start = body.find("[")
    # a leading array holds the objects, so the first "{" would be a single item
    prefer_array = arr_start != -1 and (obj_start == -1 or arr_start < obj_start)

    attempts = (_array_candidate, _object_candidate) if prefer_array else (_object_candidate, _array_candidate)
    for attempt in attempts:
        candidate = attempt(body, kind)
        if candidate is not None:
            return candidate
    return None


def _candidates(text: str, kind: PlanKind) -> Iterator[dict]:
    seen: list[dict] = []
    for body in _candidate_bodies(text):
        candidate = _extract_candidate(body, kind)
        if candidate is not None and candidate not in seen:
            seen.append(candidate)
            yield candidate


def _object_candidate(body: str, kind: PlanKind) -> dict | None:
    span = extract_balanced(body, "{", "}")
    if span is None:
        return None
    value = _loads(span)
    return value if isinstance(value, dict) else None


def _array_candidate(body: str, kind: PlanKind) -> dict | None:
    span = extract_balanced(body, "[", "]")
    if span is None:
        return None
    items = _loads(span)
    if isinstance(items, list):
        return {ARRAY_FALLBACK_KEYS[kind]: items}
    return None


def _loads(span: str) -> object | None:
    try:
        return json.loads(span)
    except json.JSONDecodeError:
        return None


def parse_plan(raw: str, kind: PlanKind) -> PlanDocument:
    """Extract and validate a plan document or raise ``OutputInvalidError``."""
    if not raw or not raw.strip():
        raise OutputInvalidError("provider returned empty output")

    document_type = DOCUMENT_TYPES[kind]
    first_error: ValidationError | None = None
    for candidate in _candidates(raw, kind):
        try:
            return document_type.model_validate(candidate)
        except ValidationError as exc:
            first_error = first_error or exc

    if first_error is None:
        logger.info("plan_output_not_json", kind=kind.value, output_length=len(raw))
        raise OutputInvalidError("no JSON document found in provider output")

    logger.info(
        "plan_output_schema_mismatch",
        kind=kind.value,
        error_count=first_error.error_count(),
        first_error=first_error.errors()[0].get("msg") if first_error.errors() else None,
    )
    raise OutputInvalidError(
        f"plan output failed validation with {first_error.error_count()} errors"
    ) from first_error
