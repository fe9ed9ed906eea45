"""Keeps the LVS backend list in step with pod membership."""

from __future__ import annotations

import logging
import threading
import time

from ..config import KubernetesConfig, LVSConfig
from ..discovery import MembershipClient
from ..discovery.models import MAX_PROGRESS, EventType, MembershipEvent
from ..exceptions import MembershipQueryError, NoMembersError, PersistenceError
from .models import RealServer
from .ramp import RampController, RampRegistry
from .transaction import ConfigStore

logger = logging.getLogger(__name__)


class Reconciler:
    """Applies the startup snapshot and then reacts to the pod watch."""

    def __init__(
        self,
        store: ConfigStore,
        client: MembershipClient,
        ramp: RampController,
        registry: RampRegistry,
        lvs_config: LVSConfig,
        kube_config: KubernetesConfig,
    ):
        self._store = store
        self._client = client
        self._ramp = ramp
        self._registry = registry
        self._port = lvs_config.destination_port
        self._namespace = kube_config.namespace
        self._selector = kube_config.label_selector
        self._progress_label = kube_config.progress_label
        self._retry_seconds = kube_config.watch_retry_seconds

    # ── Startup snapshot ────────────────────────────────────────────

    def load_snapshot(self) -> int:
        """Upsert every current pod at its recorded progress and write the file once.

        Raises NoMembersError when the selector matches nothing.
        """
        start = time.monotonic()
        members = self._client.list_members(self._namespace, self._selector)
        logger.info(
            "There are %d pods in the cluster with label %s", len(members), self._selector,
            extra={"total_members": len(members)},
        )
        if not members:
            raise NoMembersError(
                f"No pods with label {self._selector} in namespace {self._namespace}; "
                "at least one must be running"
            )

        with self._store.transaction() as txn:
            for member in members:
                server = RealServer(
                    address=member.name,
                    port=self._port,
                    weight=member.progress(self._progress_label),
                )
                txn.model.upsert_backend_all_services(server)
            txn.mark_changed()

        logger.info(
            "Snapshot applied",
            extra={"total_members": len(members), "elapsed_seconds": round(time.monotonic() - start, 2)},
        )
        return len(members)

    # ── Steady state ────────────────────────────────────────────────

    def watch(self, stop: threading.Event) -> None:
        """Consume the pod watch until ``stop`` is set, re-opening it when it ends or fails.

        MalformedEventError propagates to the caller.
        """
        while not stop.is_set():
            try:
                for event in self._client.watch_events(self._namespace, self._selector):
                    if stop.is_set():
                        break
                    self.handle_event(event)
                logger.debug("Watch stream closed, reconnecting")
            except MembershipQueryError as exc:
                logger.warning("Watch failed: %s; reconnecting in %ds", exc, self._retry_seconds)
                stop.wait(self._retry_seconds)

    def handle_event(self, event: MembershipEvent) -> threading.Thread | None:
        """Dispatch one membership event. Returns the ramp thread if one was started."""
        member = event.member
        logger.debug(
            "Pod event %s for %s (phase %s)", event.type.value, member.name, member.phase,
            extra={"address": member.name, "event_type": event.type},
        )

        if event.type in (EventType.ADDED, EventType.MODIFIED):
            if not member.is_running:
                return None
            progress = member.progress(self._progress_label)
            if progress == MAX_PROGRESS:
                return None
            logger.info(
                "Detected pod %s at progress %d", member.name, progress,
                extra={"address": member.name, "event_type": event.type},
            )
            return self._ramp.trigger(member, progress)

        if event.type is EventType.DELETED:
            self._evict(member.name)
        return None

    def _evict(self, address: str) -> None:
        if self._registry.cancel(address):
            logger.info("Cancelled in-flight ramp for %s", address, extra={"address": address})

        try:
            with self._store.transaction() as txn:
                removed = txn.model.remove_backend_all_services(address)
                if removed:
                    txn.mark_changed()
        except PersistenceError as exc:
            logger.error("Removal of %s not written: %s", address, exc, extra={"address": address})
            return

        if not removed:
            logger.debug("Deleted pod %s had no backends", address, extra={"address": address})
            return

        logger.warning(
            "Connector deleted: %s (%d entries removed). Please avoid this! "
            "This is unexpected to your TCP clients",
            address, removed, extra={"address": address, "event_type": EventType.DELETED},
        )
