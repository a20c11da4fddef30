from .generation import (
    BodyData,
    FitnessAssessment,
    FitnessGoal,
    GenerationRequest,
    NutritionPlanRequest,
    PlanKind,
    TrainingPlanRequest,
    parse_generation_request,
)
from .plan_documents import NutritionPlanDocument, PlanDocument, TrainingPlanDocument
from .plans import GeneratedPlanRead, GeneratedPlanSummary
from .provider_configs import (
    AIProvider,
    ConnectionTestResult,
    ModelInfo,
    ProviderConfigCreate,
    ProviderConfigRead,
    ProviderConfigUpdate,
)
from .tasks import GenerationJob, GenerationTask, TaskState, TaskStatusResponse, TaskSubmissionResponse

__all__ = [
    "AIProvider",
    "BodyData",
    "ConnectionTestResult",
    "FitnessAssessment",
    "FitnessGoal",
    "GeneratedPlanRead",
    "GeneratedPlanSummary",
    "GenerationJob",
    "GenerationRequest",
    "GenerationTask",
    "ModelInfo",
    "NutritionPlanDocument",
    "NutritionPlanRequest",
    "PlanDocument",
    "PlanKind",
    "ProviderConfigCreate",
    "ProviderConfigRead",
    "ProviderConfigUpdate",
    "TaskState",
    "TaskStatusResponse",
    "TaskSubmissionResponse",
    "TrainingPlanDocument",
    "TrainingPlanRequest",
    "parse_generation_request",
]
