from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Outcome(str, Enum):
    IMPORTED = 'imported'
    SKIPPED = 'skipped'
    FAILED = 'failed'


@dataclass(frozen=True)
class UpsertResult:
    outcome: Outcome
    reason: Optional[str] = None
    created: bool = False

    @classmethod
    def imported(cls, created: bool = False) -> 'UpsertResult':
        return cls(Outcome.IMPORTED, created=created)

    @classmethod
    def skipped(cls, reason: str) -> 'UpsertResult':
        return cls(Outcome.SKIPPED, reason)

    @classmethod
    def failed(cls, reason: str) -> 'UpsertResult':
        return cls(Outcome.FAILED, reason)
