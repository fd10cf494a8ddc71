from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List


@dataclass(frozen=True)
class MarkingOutcome:
    """Result of marking one class/period sheet."""

    key: str
    saved: int
    auto_on_leave: List[Any] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    overwritten: bool = False

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "saved": self.saved,
            "autoOnLeave": list(self.auto_on_leave),
            "warnings": list(self.warnings),
            "overwritten": self.overwritten,
        }
