from collections.abc import Callable

from generation_service.providers.base import ProviderClient, ProviderCredentials
from generation_service.schemas.provider_configs import AIProvider, ProviderConfigCreate
from generation_service.security import SecretCipher
from generation_service.services.provider_configs import ProviderConfigService

OWNER_ID = "user-1"
OTHER_OWNER_ID = "user-2"
TEST_API_KEY = "sk-test-0123456789abcdef"

TRAINING_REQUEST = {
    "kind": "training",
    "plan_name": "Spring block",
    "duration_weeks": 4,
    "goal": "strength",
    "difficulty_level": "medium",
}

NUTRITION_REQUEST = {
    "kind": "nutrition",
    "plan_name": "Lean cut",
    "duration_days": 7,
    "protein_ratio": 0.3,
    "carb_ratio": 0.4,
    "fat_ratio": 0.3,
}


class ScriptedProviderClient(ProviderClient):
    """Replays a fixed sequence of outputs; an exception instance is raised instead of returned."""

    provider = AIProvider.OPENAI
    default_model = "scripted-model"

    def __init__(self, script: list, credentials: ProviderCredentials | None = None):
        super().__init__(credentials or ProviderCredentials(provider=AIProvider.OPENAI, api_key=TEST_API_KEY))
        self._script = list(script)
        self.prompts: list[str] = []
        self.closed = False

    async def complete(self, prompt: str, *, max_tokens: int | None = None) -> str:
        self.prompts.append(prompt)
        if not self._script:
            raise AssertionError("provider called more often than scripted")
        item = self._script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return await item()
        return item

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def aclose(self) -> None:
        self.closed = True


class ScriptedProviderConfigService(ProviderConfigService):
    def __init__(self, cipher: SecretCipher, client_factory: Callable[[ProviderCredentials], ProviderClient]):
        super().__init__(cipher, timeout_seconds=5)
        self._client_factory = client_factory
        self.credentials_seen: list[ProviderCredentials] = []

    def client_for(self, credentials: ProviderCredentials) -> ProviderClient:
        self.credentials_seen.append(credentials)
        return self._client_factory(credentials)


def make_provider_config(service: ProviderConfigService, db, owner_id: str = OWNER_ID, **overrides):
    data = {
        "provider": AIProvider.OPENAI,
        "name": "Primary",
        "api_key": TEST_API_KEY,
        "model": "gpt-4o-mini",
    }
    data.update(overrides)
    return service.create(db, owner_id, ProviderConfigCreate(**data))


TRAINING_PLAN = {
    "weeks": [
        {
            "week": 1,
            "days": [
                {
                    "day": 1,
                    "date": "2026-01-05",
                    "type": "strength",
                    "focus_area": "upper_body",
                    "exercises": [
                        {
                            "name": "Bench Press",
                            "sets": 4,
                            "reps": "8-10",
                            "weight": "60kg",
                            "rest": "90s",
                            "difficulty": "medium",
                            "safety_notes": "Keep shoulder blades retracted {always}",
                        }
                    ],
                    "duration": 60,
                    "estimated_calories": 320,
                },
                {"day": 2, "type": "rest", "exercises": [], "duration": 0, "estimated_calories": 0},
            ],
        }
    ]
}

NUTRITION_PLAN = {
    "daily_calories": 2200,
    "macro_ratios": {"protein": 0.3, "carbs": 0.4, "fat": 0.3},
    "days": [
        {
            "day": 1,
            "meals": {
                "breakfast": {
                    "time": "07:30",
                    "foods": [
                        {"name": "Oats", "amount": "80g", "calories": 300, "protein": 10, "carbs": 54, "fat": 5}
                    ],
                    "total_calories": 300,
                }
            },
            "daily_totals": {"calories": 2200, "protein": 165, "carbs": 220, "fat": 73},
        }
    ],
}
