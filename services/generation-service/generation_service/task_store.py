"""Ephemeral storage for generation task records.

Records expire by TTL; there is no delete path. Terminal states are
write-once: every transition is a conditional update that only applies while
the record is still ``generating``.
"""

from __future__ import annotations

import abc
import asyncio
import json
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog
from redis.asyncio import Redis

from .exceptions import TaskNotFoundError
from .schemas.generation import PlanKind
from .schemas.tasks import GenerationTask, TaskState

logger = structlog.get_logger(__name__)

TASK_ID_BYTES = 16


def new_task_id() -> str:
    return secrets.token_urlsafe(TASK_ID_BYTES)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clamp_progress(percent: int) -> int:
    return max(0, min(100, int(percent)))


class TaskStore(abc.ABC):
    @abc.abstractmethod
    async def create(self, owner_id: str, kind: PlanKind) -> str: ...

    @abc.abstractmethod
    async def get(self, task_id: str, owner_id: str) -> GenerationTask: ...

    @abc.abstractmethod
    async def transition_to_completed(self, task_id: str, result_ref: str) -> bool: ...

    @abc.abstractmethod
    async def transition_to_failed(self, task_id: str, error_message: str, error_code: str) -> bool: ...

    @abc.abstractmethod
    async def set_progress(self, task_id: str, percent: int) -> bool: ...


class InMemoryTaskStore(TaskStore):
    """Single-process store; the lock makes each transition a compare-and-set."""

    def __init__(self, ttl_seconds: int, clock: Callable[[], datetime] = _utcnow):
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._records: dict[str, GenerationTask] = {}
        self._lock = asyncio.Lock()

    def _live(self, task_id: str) -> GenerationTask | None:
        task = self._records.get(task_id)
        if task is None:
            return None
        if task.expires_at <= self._clock():
            self._records.pop(task_id, None)
            return None
        return task

    def _sweep_expired(self, now: datetime) -> None:
        expired = [task_id for task_id, task in self._records.items() if task.expires_at <= now]
        for task_id in expired:
            del self._records[task_id]

    async def create(self, owner_id: str, kind: PlanKind) -> str:
        now = self._clock()
        async with self._lock:
            # expired records are otherwise only dropped when read
            self._sweep_expired(now)
            task_id = new_task_id()
            while task_id in self._records:
                task_id = new_task_id()
            self._records[task_id] = GenerationTask(
                id=task_id,
                owner_id=owner_id,
                kind=kind,
                created_at=now,
                updated_at=now,
                expires_at=now + self._ttl,
            )
        return task_id

    async def get(self, task_id: str, owner_id: str) -> GenerationTask:
        async with self._lock:
            task = self._live(task_id)
            if task is None or task.owner_id != owner_id:
                raise TaskNotFoundError()
            return task.model_copy()

    async def _update_if_generating(self, task_id: str, **changes) -> bool:
        async with self._lock:
            task = self._live(task_id)
            if task is None or task.is_terminal:
                return False
            self._records[task_id] = task.model_copy(update={**changes, "updated_at": self._clock()})
            return True

    async def transition_to_completed(self, task_id: str, result_ref: str) -> bool:
        return await self._update_if_generating(
            task_id,
            status=TaskState.COMPLETED,
            progress=100,
            result_ref=result_ref,
        )

    async def transition_to_failed(self, task_id: str, error_message: str, error_code: str) -> bool:
        return await self._update_if_generating(
            task_id,
            status=TaskState.FAILED,
            error_message=error_message,
            error_code=error_code,
        )

    async def set_progress(self, task_id: str, percent: int) -> bool:
        percent = _clamp_progress(percent)
        async with self._lock:
            task = self._live(task_id)
            if task is None or task.is_terminal or percent <= task.progress:
                return False
            self._records[task_id] = task.model_copy(update={"progress": percent, "updated_at": self._clock()})
            return True


# KEYS[1] = task key, ARGV[1] = JSON patch, ARGV[2] = minimum progress (or "")
_CAS_UPDATE_SCRIPT = """
local raw = redis.call('GET', KEYS[1])
if not raw then
    return 0
end
local task = cjson.decode(raw)
if task['status'] ~= 'generating' then
    return 0
end
if ARGV[2] ~= '' and tonumber(ARGV[2]) <= tonumber(task['progress']) then
    return 0
end
local patch = cjson.decode(ARGV[1])
for k, v in pairs(patch) do
    task[k] = v
end
redis.call('SET', KEYS[1], cjson.encode(task), 'KEEPTTL')
return 1
"""


def task_key(task_id: str) -> str:
    return f"generation:task:{task_id}"


class RedisTaskStore(TaskStore):
    """Shared store for API processes and Celery workers.

    Transitions run as a Lua script so the status check and the write happen
    atomically on the server, and ``KEEPTTL`` leaves the expiry untouched.
    """

    def __init__(self, redis: Redis, ttl_seconds: int, clock: Callable[[], datetime] = _utcnow):
        self._redis = redis
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._cas_update = redis.register_script(_CAS_UPDATE_SCRIPT)

    async def create(self, owner_id: str, kind: PlanKind) -> str:
        now = self._clock()
        while True:
            task_id = new_task_id()
            task = GenerationTask(
                id=task_id,
                owner_id=owner_id,
                kind=kind,
                created_at=now,
                updated_at=now,
                expires_at=now + timedelta(seconds=self._ttl_seconds),
            )
            created = await self._redis.set(
                task_key(task_id),
                task.model_dump_json(),
                ex=self._ttl_seconds,
                nx=True,
            )
            if created:
                return task_id
            logger.warning("generation_task_id_collision")

    async def get(self, task_id: str, owner_id: str) -> GenerationTask:
        raw = await self._redis.get(task_key(task_id))
        if raw is None:
            raise TaskNotFoundError()
        task = GenerationTask.model_validate_json(raw)
        if task.owner_id != owner_id:
            raise TaskNotFoundError()
        return task

    async def _apply(self, task_id: str, patch: dict, min_progress: int | None = None) -> bool:
        patch = {**patch, "updated_at": self._clock().isoformat()}
        applied = await self._cas_update(
            keys=[task_key(task_id)],
            args=[json.dumps(patch), "" if min_progress is None else str(min_progress)],
        )
        return bool(applied)

    async def transition_to_completed(self, task_id: str, result_ref: str) -> bool:
        return await self._apply(
            task_id,
            {"status": TaskState.COMPLETED.value, "progress": 100, "result_ref": result_ref},
        )

    async def transition_to_failed(self, task_id: str, error_message: str, error_code: str) -> bool:
        return await self._apply(
            task_id,
            {"status": TaskState.FAILED.value, "error_message": error_message, "error_code": error_code},
        )

    async def set_progress(self, task_id: str, percent: int) -> bool:
        percent = _clamp_progress(percent)
        return await self._apply(task_id, {"progress": percent}, min_progress=percent)
