"""Per-mint task status registry."""

from __future__ import annotations

import threading
import time
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping

from ..errors import InvalidTransitionError
from ..utils import new_id, read_json, write_json


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


TERMINAL_STATUSES = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELED, TaskStatus.TIMEOUT}
)
_STATUS_RANK = {
    TaskStatus.PENDING: 0,
    TaskStatus.PROCESSING: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.FAILED: 2,
    TaskStatus.CANCELED: 2,
    TaskStatus.TIMEOUT: 2,
}


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, timezone.utc).isoformat()


@dataclass
class MintTask:
    task_id: str
    token_id: int | None
    breed: str | None = None
    buyer: str | None = None
    provider: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    message: str = ""
    history: list[dict[str, Any]] = field(default_factory=list)
    result: dict[str, Any] | None = None
    error_message: str | None = None
    created_at: float = 0.0
    updated_at: float = 0.0
    completed_at: float | None = None
    timeout_at: float | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_payload(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "tokenId": self.token_id,
            "breed": self.breed,
            "buyer": self.buyer,
            "provider": self.provider,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "history": deepcopy(self.history),
            "result": deepcopy(self.result),
            "error": self.error_message,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "completedAt": self.completed_at,
            "timeoutAt": self.timeout_at,
            "meta": deepcopy(self.meta),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "MintTask":
        try:
            status = TaskStatus(str(payload.get("status") or "pending"))
        except ValueError:
            status = TaskStatus.PENDING
        return cls(
            task_id=str(payload["taskId"]),
            token_id=payload.get("tokenId"),
            breed=payload.get("breed"),
            buyer=payload.get("buyer"),
            provider=payload.get("provider"),
            status=status,
            progress=int(payload.get("progress") or 0),
            message=str(payload.get("message") or ""),
            history=list(payload.get("history") or []),
            result=payload.get("result"),
            error_message=payload.get("error"),
            created_at=float(payload.get("createdAt") or 0.0),
            updated_at=float(payload.get("updatedAt") or 0.0),
            completed_at=payload.get("completedAt"),
            timeout_at=payload.get("timeoutAt"),
            meta=dict(payload.get("meta") or {}),
        )


class TaskRegistry:
    """Owns every MintTask; all mutation goes through ``update``."""

    def __init__(
        self,
        path: Path | None = None,
        *,
        default_timeout_s: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = path
        self.default_timeout_s = default_timeout_s
        self._clock = clock
        self._lock = threading.RLock()
        self._tasks: dict[str, MintTask] = {}
        self._dirty: set[str] = set()
        if path is not None:
            payload = read_json(path, {})
            if isinstance(payload, dict):
                for task_id, entry in payload.items():
                    if isinstance(entry, dict) and entry.get("taskId"):
                        self._tasks[task_id] = MintTask.from_payload(entry)

    def create(
        self,
        token_id: int | None,
        provider: str | None = None,
        meta: Mapping[str, Any] | None = None,
        *,
        breed: str | None = None,
        buyer: str | None = None,
        timeout_s: float | None = None,
    ) -> str:
        now = self._clock()
        task_id = new_id("task")
        timeout = timeout_s if timeout_s is not None else self.default_timeout_s
        task = MintTask(
            task_id=task_id,
            token_id=token_id,
            breed=breed,
            buyer=buyer,
            provider=provider,
            message="Task created",
            created_at=now,
            updated_at=now,
            timeout_at=now + timeout if timeout else None,
            meta=dict(meta or {}),
        )
        task.history.append(self._history_entry(task, "Task created", now))
        with self._lock:
            self._tasks[task_id] = task
            self._dirty.add(task_id)
        return task_id

    def update(
        self,
        task_id: str,
        *,
        status: TaskStatus | str | None = None,
        progress: int | None = None,
        message: str | None = None,
        result: Mapping[str, Any] | None = None,
        error_message: str | None = None,
        provider: str | None = None,
        meta: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise KeyError(task_id)
            now = self._clock()
            self._apply_timeout(task, now)
            if task.terminal:
                raise InvalidTransitionError(
                    f"Task {task_id} is {task.status.value}; no further updates are accepted."
                )
            if status is not None:
                target = TaskStatus(status)
                if target is TaskStatus.UNKNOWN or _STATUS_RANK[target] < _STATUS_RANK[task.status]:
                    raise InvalidTransitionError(
                        f"Task {task_id} cannot move from {task.status.value} to {target.value}."
                    )
                task.status = target
                if target in TERMINAL_STATUSES:
                    task.completed_at = now
            if progress is not None:
                task.progress = max(task.progress, min(100, max(0, int(progress))))
            if task.status is TaskStatus.COMPLETED:
                task.progress = 100
            if message is not None:
                task.message = message
            if result is not None:
                task.result = deepcopy(dict(result))
            if error_message is not None:
                task.error_message = error_message
            if provider is not None:
                task.provider = provider
            if meta:
                task.meta.update(meta)
            task.updated_at = now
            task.history.append(self._history_entry(task, message or task.message, now))
            self._dirty.add(task_id)
            return task.to_payload()

    def cancel(self, task_id: str, reason: str = "Canceled") -> dict[str, Any]:
        return self.update(task_id, status=TaskStatus.CANCELED, message=reason)

    def get(self, task_id: str) -> MintTask | None:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is not None:
                self._apply_timeout(task, self._clock())
            return deepcopy(task)

    def get_status(self, task_id: str, *, minimal: bool = False, include_history: bool = True) -> dict[str, Any]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return {
                    "taskId": task_id,
                    "status": TaskStatus.UNKNOWN.value,
                    "progress": 0,
                    "message": "Task not found or expired",
                }
            self._apply_timeout(task, self._clock())
            if minimal:
                return {
                    "taskId": task.task_id,
                    "status": task.status.value,
                    "progress": task.progress,
                    "message": task.message,
                }
            payload = task.to_payload()
        if not include_history:
            payload.pop("history", None)
        return payload

    def find_by_token(self, token_id: int) -> list[dict[str, Any]]:
        with self._lock:
            tasks = [task for task in self._tasks.values() if task.token_id == token_id]
            return [task.to_payload() for task in sorted(tasks, key=lambda t: t.created_at)]

    def metrics(self) -> dict[str, Any]:
        with self._lock:
            tasks = list(self._tasks.values())
        counts = {status.value: 0 for status in TaskStatus if status is not TaskStatus.UNKNOWN}
        durations: list[float] = []
        for task in tasks:
            counts[task.status.value] += 1
            if task.status is TaskStatus.COMPLETED and task.completed_at:
                durations.append(task.completed_at - task.created_at)
        return {
            "created": len(tasks),
            "active": counts["pending"] + counts["processing"],
            "completed": counts["completed"],
            "failed": counts["failed"],
            "canceled": counts["canceled"],
            "timeout": counts["timeout"],
            "averageCompletionSeconds": round(sum(durations) / len(durations), 3) if durations else 0.0,
        }

    def flush(self) -> None:
        if self.path is None:
            return
        with self._lock:
            if not self._dirty:
                return
            on_disk = read_json(self.path, {})
            merged = on_disk if isinstance(on_disk, dict) else {}
            for task_id in self._dirty:
                merged[task_id] = self._tasks[task_id].to_payload()
            write_json(self.path, merged)
            self._dirty.clear()

    def _apply_timeout(self, task: MintTask, now: float) -> None:
        if task.terminal or task.timeout_at is None or now < task.timeout_at:
            return
        task.status = TaskStatus.TIMEOUT
        task.message = "Task timed out"
        task.completed_at = now
        task.updated_at = now
        task.history.append(self._history_entry(task, task.message, now))
        self._dirty.add(task.task_id)

    @staticmethod
    def _history_entry(task: MintTask, note: str, now: float) -> dict[str, Any]:
        return {
            "time": _iso(now),
            "status": task.status.value,
            "progress": task.progress,
            "note": note,
        }
