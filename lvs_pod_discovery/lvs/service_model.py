"""Authoritative in-memory model of the LVS configuration."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .models import RealServer, VirtualService

logger = logging.getLogger(__name__)


class ServiceModel:
    """Virtual services keyed by 'hostname:port', in file order.

    Not thread-safe on its own; ConfigStore serializes access.
    """

    def __init__(self, services: list[VirtualService] | None = None) -> None:
        self._services: dict[str, VirtualService] = {}
        for service in services or []:
            self.add_service(service)

    def add_service(self, service: VirtualService) -> None:
        """Insert or replace a whole virtual service."""
        self._services[service.key] = service

    def get(self, key: str) -> VirtualService | None:
        return self._services.get(key)

    def __iter__(self) -> Iterator[VirtualService]:
        return iter(list(self._services.values()))

    def __len__(self) -> int:
        return len(self._services)

    def __contains__(self, key: object) -> bool:
        return key in self._services

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServiceModel):
            return NotImplemented
        return self._services == other._services

    def __repr__(self) -> str:
        return f"ServiceModel({list(self._services.values())!r})"

    # ── Backend mutations ───────────────────────────────────────────

    def upsert_backend(self, service_key: str, backend: RealServer) -> None:
        """Replace the backend with the same (address, port) in place, or append it."""
        service = self._services.get(service_key)
        if service is None:
            raise KeyError(f"Unknown virtual service {service_key}")
        # Assigning an existing key keeps its position in the dict
        service.backends[backend.key] = backend

    def upsert_backend_all_services(self, backend: RealServer) -> None:
        """The backend pool is mirrored across every configured virtual service."""
        for key in self._services:
            self.upsert_backend(key, backend)

    def remove_backend(self, service_key: str, address: str) -> int:
        """Remove every backend with this address, whatever its port. Returns the count removed."""
        service = self._services.get(service_key)
        if service is None:
            return 0
        doomed = [key for key, backend in service.backends.items() if backend.address == address]
        for key in doomed:
            del service.backends[key]
        if doomed:
            logger.debug("Removed %d backend(s) %s from %s", len(doomed), address, service_key)
        return len(doomed)

    def remove_backend_all_services(self, address: str) -> int:
        return sum(self.remove_backend(key, address) for key in self._services)

    def addresses(self) -> set[str]:
        """Every backend address present in any virtual service."""
        return {
            backend.address
            for service in self._services.values()
            for backend in service.backends.values()
        }
