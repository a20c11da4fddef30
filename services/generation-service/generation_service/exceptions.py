"""Error taxonomy for plan generation.

Every error carries a stable ``code`` and a ``user_message`` that is safe to
show to the caller. The ``str()`` of an error may hold internal detail for
logs and must never be copied into a task record.
"""

from __future__ import annotations


class GenerationError(Exception):
    code = "internal_error"
    user_message = "An unexpected error occurred while generating the plan."

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.user_message)
        self.detail = detail


class RequestInvalidError(GenerationError):
    code = "request_invalid"
    user_message = "The generation request is invalid."

    def __init__(self, detail: str | None = None, errors: list[dict] | None = None):
        super().__init__(detail)
        self.user_message = detail or self.user_message
        self.errors = errors or []


class ConfigurationMissingError(GenerationError):
    code = "ai_provider_not_configured"
    user_message = "No AI provider is configured. Add an AI provider and mark it as default."


class ProviderConfigNotFoundError(GenerationError):
    code = "ai_provider_not_found"
    user_message = "AI provider configuration not found."


class TaskNotFoundError(GenerationError):
    code = "task_not_found"
    user_message = "Task not found or expired."


class GenerationBusyError(GenerationError):
    code = "busy"
    user_message = "Too many plans are being generated right now. Please try again shortly."
    retry_after_seconds = 30


class ProviderError(GenerationError):
    retryable = False

    def __init__(self, detail: str | None = None, *, status_code: int | None = None):
        super().__init__(detail)
        self.status_code = status_code


class TransientProviderError(ProviderError):
    code = "provider_unavailable"
    user_message = "The plan generation service is currently unavailable. Please try again later."
    retryable = True


class ProviderTimeoutError(TransientProviderError):
    pass


class ProviderUnavailableError(TransientProviderError):
    pass


class ProviderRejectedError(ProviderError):
    code = "provider_rejected"
    user_message = "The AI provider rejected the request. Please review your AI provider configuration."


class ProviderRequestError(ProviderError):
    code = "provider_request_invalid"
    user_message = "The AI provider could not process the request. Please review your AI provider settings."


class ProviderRateLimitedError(ProviderError):
    code = "provider_rate_limited"
    user_message = "The AI provider is rate limiting requests. Please try again later."


class OutputInvalidError(GenerationError):
    code = "output_invalid"
    user_message = "The AI response could not be turned into a valid plan. Please try again."


class PersistenceError(GenerationError):
    code = "persistence_failed"
    user_message = "The plan was generated but could not be saved. Please try generating it again."


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable
