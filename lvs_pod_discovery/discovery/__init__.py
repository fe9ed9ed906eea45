"""Cluster membership package: collaborator Protocol and public exports."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import Member, MembershipEvent


@runtime_checkable
class MembershipClient(Protocol):
    """The four membership operations the daemon consumes."""

    def list_members(self, namespace: str, label_selector: str) -> list[Member]:
        """Return every pod currently matching the selector."""
        ...

    def watch_events(self, namespace: str, label_selector: str) -> Iterator[MembershipEvent]:
        """Yield add/modify/delete events for pods matching the selector."""
        ...

    def get_member(self, name: str, namespace: str) -> Member | None:
        """Return the named pod, or None when it does not exist."""
        ...

    def patch_labels(self, name: str, namespace: str, labels: dict[str, str]) -> None:
        """Merge the given labels into the pod's metadata."""
        ...
