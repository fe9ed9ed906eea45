"""Data models for LVS virtual services and their weighted real servers."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RealServer:
    """One backend behind a virtual service."""

    address: str
    port: int
    weight: int = 0

    @property
    def key(self) -> tuple[str, int]:
        """Identity key: (address, port)."""
        return (self.address, self.port)


@dataclass
class VirtualService:
    """An externally addressable load-balanced endpoint."""

    hostname: str
    port: int
    protocol: str = ""
    scheduler: str = ""
    backends: dict[tuple[str, int], RealServer] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return service_key(self.hostname, self.port)


def service_key(hostname: str, port: int) -> str:
    """Composite 'hostname:port' key of a virtual service."""
    return f"{hostname}:{port}"
