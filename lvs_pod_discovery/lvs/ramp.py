"""Gradual weight ramp-up for newly joined backends."""

from __future__ import annotations

import enum
import logging
import threading

from ..config import LVSConfig
from ..discovery import MembershipClient
from ..discovery.membership_gate import MembershipGate
from ..discovery.models import MAX_PROGRESS, Member
from ..exceptions import MembershipQueryError, PersistenceError
from .models import RealServer
from .transaction import ConfigStore

logger = logging.getLogger(__name__)


class RampState(enum.Enum):
    """Lifecycle of one ramp; attached to ramp log records as ``ramp_state``."""

    NOT_STARTED = "not_started"
    RAMPING = "ramping"
    DONE = "done"
    ABORTED = "aborted"


class RampRegistry:
    """Per-address table of in-flight ramps, each with its cancellation token."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: dict[str, threading.Event] = {}

    def try_start(self, address: str) -> threading.Event | None:
        """Claim the address. Returns a fresh cancel token, or None if a ramp is already running."""
        with self._lock:
            if address in self._active:
                return None
            token = threading.Event()
            self._active[address] = token
            return token

    def finish(self, address: str) -> None:
        with self._lock:
            self._active.pop(address, None)

    def cancel(self, address: str) -> bool:
        """Signal the ramp for ``address`` to stop. Returns whether one was running."""
        with self._lock:
            token = self._active.get(address)
        if token is None:
            return False
        token.set()
        return True

    def cancel_all(self) -> int:
        with self._lock:
            tokens = list(self._active.values())
        for token in tokens:
            token.set()
        return len(tokens)

    def is_active(self, address: str) -> bool:
        with self._lock:
            return address in self._active

    def __len__(self) -> int:
        with self._lock:
            return len(self._active)


class RampController:
    """Raises a backend's weight step by step until it reaches full weight.

    Each step re-checks that the pod still exists, records the new weight as
    a pod label (so a restarted daemon resumes where it stopped), upserts the
    backend into every virtual service and writes the config file.
    """

    def __init__(
        self,
        store: ConfigStore,
        client: MembershipClient,
        gate: MembershipGate,
        registry: RampRegistry,
        config: LVSConfig,
        progress_label: str = "progress",
    ):
        self._store = store
        self._client = client
        self._gate = gate
        self._registry = registry
        self._port = config.destination_port
        self._step = config.ramp_step
        self._sleep_time = config.sleep_time
        self._progress_label = progress_label

    def trigger(self, member: Member, progress: int) -> threading.Thread | None:
        """Start a ramp on a background thread unless one is already running for this pod."""
        cancel = self._registry.try_start(member.name)
        if cancel is None:
            logger.debug("Ramp already in progress for %s", member.name, extra={"address": member.name})
            return None

        thread = threading.Thread(
            target=self._run_claimed,
            args=(member, progress, cancel),
            name=f"ramp-{member.name}",
            daemon=True,
        )
        thread.start()
        return thread

    def run(self, member: Member, progress: int) -> RampState:
        """Ramp synchronously in the calling thread. Returns NOT_STARTED if another ramp owns the pod."""
        cancel = self._registry.try_start(member.name)
        if cancel is None:
            return RampState.NOT_STARTED
        return self._run_claimed(member, progress, cancel)

    def _run_claimed(self, member: Member, progress: int, cancel: threading.Event) -> RampState:
        try:
            state = self._ramp(member, progress, cancel)
        except Exception:
            logger.exception("Ramp for %s failed", member.name, extra={"address": member.name})
            state = RampState.ABORTED
        finally:
            self._registry.finish(member.name)
        logger.info(
            "Ramp for %s finished: %s", member.name, state.value,
            extra={"address": member.name, "ramp_state": state},
        )
        return state

    def _ramp(self, member: Member, progress: int, cancel: threading.Event) -> RampState:
        name = member.name
        weight = max(0, min(progress, MAX_PROGRESS))
        logger.info(
            "Starting ramp for %s at weight %d", name, weight,
            extra={"address": name, "weight": weight, "ramp_state": RampState.RAMPING},
        )

        while True:
            if cancel.is_set():
                logger.info("Ramp for %s cancelled", name, extra={"address": name})
                return RampState.ABORTED

            target = min(weight + self._step, MAX_PROGRESS)

            try:
                if not self._gate.exists(name, member.namespace):
                    logger.info("Pod %s disappeared, aborting ramp", name, extra={"address": name})
                    return RampState.ABORTED
                # A delete may land while the existence check is in flight
                if cancel.is_set():
                    logger.info("Ramp for %s cancelled", name, extra={"address": name})
                    return RampState.ABORTED
                self._client.patch_labels(name, member.namespace, {self._progress_label: str(target)})
            except MembershipQueryError as exc:
                logger.warning(
                    "Ramp step for %s skipped: %s; retrying in %ds",
                    name, exc, self._sleep_time, extra={"address": name},
                )
                if cancel.wait(self._sleep_time):
                    logger.info("Ramp for %s cancelled", name, extra={"address": name})
                    return RampState.ABORTED
                continue

            if not self._apply(RealServer(address=name, port=self._port, weight=target), cancel):
                logger.info("Ramp for %s cancelled", name, extra={"address": name})
                return RampState.ABORTED
            weight = target
            logger.info("Set weight of %s to %d", name, weight, extra={"address": name, "weight": weight})

            if weight >= MAX_PROGRESS:
                logger.info("Ramp for %s complete", name, extra={"address": name})
                return RampState.DONE

            if cancel.wait(self._sleep_time):
                logger.info("Ramp for %s cancelled", name, extra={"address": name})
                return RampState.ABORTED

    def _apply(self, server: RealServer, cancel: threading.Event) -> bool:
        """Upsert and persist. Returns False if cancelled before the model was touched."""
        try:
            with self._store.transaction() as txn:
                # Checked under the model lock so a concurrent eviction cannot be undone
                if cancel.is_set():
                    return False
                txn.model.upsert_backend_all_services(server)
                txn.mark_changed()
        except PersistenceError as exc:
            logger.error("Weight %d for %s not written: %s", server.weight, server.address, exc,
                         extra={"address": server.address, "weight": server.weight})
        return True
