"""Data models for cluster members (pods) and watch events."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

PHASE_RUNNING = "Running"
MAX_PROGRESS = 100


class EventType(str, enum.Enum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class Member:
    """A single pod matched by the monitored label selector."""

    name: str
    namespace: str
    phase: str = "Unknown"
    ip_address: str | None = None
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.phase == PHASE_RUNNING

    def progress(self, label_key: str) -> int:
        """Last persisted ramp weight. Missing or non-numeric labels count as 0."""
        raw = self.labels.get(label_key)
        if raw is None:
            return 0
        try:
            value = int(raw)
        except ValueError:
            return 0
        return max(0, min(value, MAX_PROGRESS))


@dataclass(frozen=True)
class MembershipEvent:
    """One change notification from the membership watch."""

    type: EventType
    member: Member
