"""Core data structures for batches of per-language translation tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from .languages import Language


class TaskState(Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.SUCCEEDED, TaskState.FAILED)


_STATE_RANK = {
    TaskState.PENDING: 0,
    TaskState.IN_FLIGHT: 1,
    TaskState.SUCCEEDED: 2,
    TaskState.FAILED: 2,
}


def can_transition(current: TaskState, new: TaskState) -> bool:
    """Task states only move forward; terminal states never change."""

    if current.is_terminal:
        return False
    return _STATE_RANK[new] > _STATE_RANK[current]


@dataclass(frozen=True)
class TranslationTask:
    """One target-language unit of work inside a batch."""

    language: Language
    generation: int
    state: TaskState = TaskState.PENDING
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def code(self) -> str:
        return self.language.code

    @property
    def is_settled(self) -> bool:
        return self.state.is_terminal


@dataclass
class Batch:
    """Tasks spawned by one submission, keyed by language code in selection order."""

    generation: int
    started_at: float
    tasks: Dict[str, TranslationTask] = field(default_factory=dict)
    elapsed_ms: Optional[float] = None
    detected_language: Optional[Language] = None

    @property
    def is_settled(self) -> bool:
        return all(task.is_settled for task in self.tasks.values())

    def snapshot(self) -> Tuple[TranslationTask, ...]:
        return tuple(self.tasks.values())


@dataclass(frozen=True)
class SessionStats:
    """Aggregate figures shown next to the translation results."""

    word_count: int
    char_count: int
    completed: int
    settled: int
    total: int
    elapsed_ms: Optional[float]

    @property
    def progress(self) -> float:
        if self.total == 0:
            return 0.0
        return self.settled / self.total
