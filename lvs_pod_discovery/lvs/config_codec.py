"""Parser and writer for the line-oriented LVS configuration file.

Format::

    virtual = <hostname>:<port>
         protocol = <proto>
         scheduler = <name>
         real = <address>:<port> gate <weight>

One blank line terminates each virtual service record. Unrecognised lines
are ignored so the file may carry comments.
"""

from __future__ import annotations

import enum
import logging
import os
import re
import tempfile
from collections.abc import Callable
from pathlib import Path

from ..exceptions import LvsConfigError, PersistenceError
from .models import RealServer, VirtualService
from .service_model import ServiceModel

logger = logging.getLogger(__name__)

INDENT = " " * 5

_VIRTUAL_RE = re.compile(r"^virtual = (\S+)\s*$")
_HOST_PORT_RE = re.compile(r"^(\S+):(\d+)$")
_PROTOCOL_RE = re.compile(r"^\s*protocol = (\S+)\s*$")
_SCHEDULER_RE = re.compile(r"^\s*scheduler = (\S+)\s*$")
_REAL_RE = re.compile(r"^\s*real = (\S+):(\d+) gate (\d+)\s*$")

Gate = Callable[[str], bool]


class _State(enum.Enum):
    SEEKING_VIRTUAL = "seeking_virtual"
    IN_RECORD = "in_record"


class _Parser:
    """Two-state line parser. Every field is reset when a record is committed."""

    def __init__(self, gate: Gate | None):
        self._gate = gate
        self._model = ServiceModel()
        self._state = _State.SEEKING_VIRTUAL
        self._record: VirtualService | None = None

    def feed(self, line_number: int, line: str) -> None:
        if not line.strip():
            self._commit()
            return

        match = _VIRTUAL_RE.match(line)
        if match:
            # A new header without a separating blank line still closes the open record
            self._commit()
            self._record = self._start_record(line_number, match.group(1))
            self._state = _State.IN_RECORD
            return

        if self._state is not _State.IN_RECORD:
            return

        protocol = _PROTOCOL_RE.match(line)
        if protocol:
            self._record.protocol = protocol.group(1)
            return

        scheduler = _SCHEDULER_RE.match(line)
        if scheduler:
            self._record.scheduler = scheduler.group(1)
            return

        real = _REAL_RE.match(line)
        if real:
            self._add_real(real.group(1), int(real.group(2)), int(real.group(3)))

    def finish(self) -> ServiceModel:
        self._commit()
        return self._model

    @staticmethod
    def _start_record(line_number: int, value: str) -> VirtualService:
        host_port = _HOST_PORT_RE.match(value)
        if not host_port:
            raise LvsConfigError(f"virtual '{value}' is not <hostname>:<port>", line_number)
        return VirtualService(hostname=host_port.group(1), port=int(host_port.group(2)))

    def _add_real(self, address: str, port: int, weight: int) -> None:
        if self._gate is not None and not self._gate(address):
            logger.info(
                "Dropping real server %s:%d from %s, pod does not exist",
                address, port, self._record.key,
                extra={"address": address, "service": self._record.key},
            )
            return
        backend = RealServer(address=address, port=port, weight=weight)
        self._record.backends[backend.key] = backend

    def _commit(self) -> None:
        if self._state is _State.IN_RECORD and self._record is not None:
            self._model.add_service(self._record)
        self._record = None
        self._state = _State.SEEKING_VIRTUAL


def parse(text: str, gate: Gate | None = None) -> ServiceModel:
    """Parse LVS configuration text into a ServiceModel.

    ``gate`` is asked about every real server address; addresses it rejects
    are left out of the model.
    """
    parser = _Parser(gate)
    for line_number, line in enumerate(text.splitlines(), start=1):
        parser.feed(line_number, line)
    return parser.finish()


def serialize(model: ServiceModel) -> str:
    """Render the model in canonical form (5-space indent, blank line after each record)."""
    lines: list[str] = []
    for service in model:
        lines.append(f"virtual = {service.key}")
        lines.append(f"{INDENT}protocol = {service.protocol}")
        lines.append(f"{INDENT}scheduler = {service.scheduler}")
        for backend in service.backends.values():
            if not backend.address:
                continue
            lines.append(f"{INDENT}real = {backend.address}:{backend.port} gate {backend.weight}")
        lines.append("")
    return "".join(f"{line}\n" for line in lines)


def read_config_file(path: str | Path) -> str:
    """Read the base configuration. Failure here is fatal at startup."""
    try:
        return Path(path).read_text()
    except OSError as exc:
        raise LvsConfigError(f"Cannot read LVS configuration {path}: {exc}") from exc


def load_config_file(path: str | Path, gate: Gate | None = None) -> ServiceModel:
    model = parse(read_config_file(path), gate)
    logger.info("Loaded %d virtual service(s) from %s", len(model), path)
    return model


def write_config_file(path: str | Path, text: str) -> None:
    """Atomically replace ``path`` with ``text``.

    The content goes to a temporary file in the same directory, is fsynced,
    then renamed over the target, so readers see either the old or the new
    file, never a partial one.
    """
    path = Path(path)
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "w") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        if path.exists():
            os.chmod(tmp_name, path.stat().st_mode & 0o7777)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as exc:
        raise PersistenceError(f"Cannot write LVS configuration {path}: {exc}") from exc
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.debug("Could not remove temporary file %s", tmp_name, exc_info=True)
