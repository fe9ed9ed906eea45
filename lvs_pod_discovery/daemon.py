"""Process lifecycle: bootstrap, watch thread and signal handling."""

from __future__ import annotations

import logging
import signal
import threading
from types import FrameType

from .config import AppConfig
from .discovery import MembershipClient
from .discovery.kube_client import KubeClient
from .discovery.membership_gate import MembershipGate
from .exceptions import LvsSyncError, MalformedEventError
from .lvs.config_codec import load_config_file
from .lvs.ramp import RampController, RampRegistry
from .lvs.reconciler import Reconciler
from .lvs.transaction import ConfigStore

logger = logging.getLogger(__name__)


class Daemon:
    """load LVS file -> apply pod snapshot -> watch pods and ramp/evict backends."""

    def __init__(self, config: AppConfig, client: MembershipClient | None = None):
        self._config = config
        self._client: MembershipClient = client if client is not None else KubeClient(config.kubernetes)
        self._gate = MembershipGate(self._client)
        self._registry = RampRegistry()
        self._shutdown = threading.Event()
        self._resync = threading.Event()
        self._fatal: BaseException | None = None
        self._store: ConfigStore | None = None
        self._reconciler: Reconciler | None = None

    @property
    def store(self) -> ConfigStore | None:
        return self._store

    def bootstrap(self) -> None:
        """Load the LVS file through the gate and apply the startup snapshot."""
        lvs = self._config.lvs
        kube = self._config.kubernetes
        model = load_config_file(lvs.config_file_path, self._gate.for_namespace(kube.namespace))
        self._store = ConfigStore(model, lvs.config_file_path)
        ramp = RampController(
            self._store, self._client, self._gate, self._registry, lvs, kube.progress_label,
        )
        self._reconciler = Reconciler(self._store, self._client, ramp, self._registry, lvs, kube)
        self._reconciler.load_snapshot()

    def run_once(self) -> None:
        """Reconcile the file against the current pods and exit."""
        self.bootstrap()

    def run(self) -> None:
        """Run until a shutdown signal or a fatal watch error."""
        self._install_signal_handlers()
        self.bootstrap()

        watcher = threading.Thread(target=self._watch_loop, name="pod-watch", daemon=True)
        watcher.start()
        logger.info(
            "Daemon started, watching pods %s in %s",
            self._config.kubernetes.label_selector, self._config.kubernetes.namespace,
        )

        while not self._shutdown.wait(1.0):
            if self._resync.is_set():
                self._resync.clear()
                self._do_resync()

        cancelled = self._registry.cancel_all()
        if cancelled:
            logger.info("Cancelled %d in-flight ramp(s)", cancelled)
        stop_watch = getattr(self._client, "stop_watch", None)
        if stop_watch is not None:
            stop_watch()

        if self._fatal is not None:
            raise self._fatal
        logger.info("Daemon stopped")

    def stop(self) -> None:
        self._shutdown.set()

    def _watch_loop(self) -> None:
        try:
            self._reconciler.watch(self._shutdown)
        except MalformedEventError as exc:
            logger.critical("Malformed watch event, protocol mismatch with the API server: %s", exc)
            self._fatal = exc
        except Exception as exc:
            logger.exception("Pod watch crashed")
            self._fatal = exc
        finally:
            self._shutdown.set()

    def _do_resync(self) -> None:
        logger.info("Resynchronising with the current pod list")
        try:
            self._reconciler.load_snapshot()
        except LvsSyncError as exc:
            logger.error("Resync failed: %s", exc)

    def _install_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)
        signal.signal(signal.SIGHUP, self._handle_reload)

    def _handle_shutdown(self, signum: int, frame: FrameType | None) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, shutting down", sig_name)
        self._shutdown.set()

    def _handle_reload(self, signum: int, frame: FrameType | None) -> None:
        logger.info("Received SIGHUP, scheduling resync")
        self._resync.set()
