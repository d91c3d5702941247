from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


CycleOutcome = Literal["ok", "scan_failed", "session_failed"]


@dataclass(frozen=True)
class PollConfig:
    # Everything the poll loop reads from configuration, resolved once at startup.
    refresh_rate_ms: int
    tag_prefix: str = "Dmg_"
    failure_threshold: int = 5
    call_timeout_ms: int = 0

    def __post_init__(self) -> None:
        if self.refresh_rate_ms <= 0:
            raise ValueError("refresh_rate_ms must be positive")
        if self.failure_threshold < 0:
            raise ValueError("failure_threshold must not be negative")

    @property
    def interval_s(self) -> float:
        return self.refresh_rate_ms / 1000.0


@dataclass(frozen=True)
class TagMatch:
    application: str
    num_tags: int


@dataclass
class CycleReport:
    outcome: CycleOutcome = "ok"
    discovered: list[str] = field(default_factory=list)
    invoked: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
