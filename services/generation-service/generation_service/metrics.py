from prometheus_client import Counter

GENERATION_TASKS_TOTAL = Counter(
    "generation_tasks_total",
    "Number of plan generation tasks by final outcome",
    ["kind", "outcome"],
)

PROVIDER_CALL_ATTEMPTS_TOTAL = Counter(
    "provider_call_attempts_total",
    "Number of AI provider call attempts",
    ["provider", "outcome"],
)

PLAN_SAVE_FAILURES_TOTAL = Counter(
    "plan_save_failures_total",
    "Number of failed attempts to persist a generated plan",
    ["kind"],
)

PROVIDER_CONNECTION_TESTS_TOTAL = Counter(
    "provider_connection_tests_total",
    "Number of AI provider connection tests",
    ["provider", "status"],
)
