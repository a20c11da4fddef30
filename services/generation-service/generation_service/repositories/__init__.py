from .plans import PlanRepository, SqlPlanStore
from .provider_configs import ProviderConfigRepository

__all__ = ["PlanRepository", "ProviderConfigRepository", "SqlPlanStore"]
