"""Process and Process Control Block (PCB).

A process is one run of an application.  The PCB records which
application, the pid, the arena offset of its memory page, and where it
is in its lifecycle.

State machine::

    INACTIVE ──start──▶ ACTIVE ──program returns──▶ TERMINATED

A process runs at most once.  While ACTIVE it may be *suspended*: its
program yielded a ``ReadLine`` request and is parked until input
arrives.  The PCB holds that parked generator (the continuation) and
the pending request.
"""

from __future__ import annotations

from collections.abc import Generator
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aurora.devices import IODevice, ReadLine
    from aurora.memory.arena import ProcessMemory
    from aurora.process.application import Application


class ProcessStatus(StrEnum):
    """Lifecycle states of a process."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    TERMINATED = "terminated"


class DoubleStartError(RuntimeError):
    """Raise when activating a process that has already been started."""


class Process:
    """A simulated process (the Process Control Block).

    Transition methods enforce their source state: ``activate()`` on a
    process that is not INACTIVE raises ``DoubleStartError`` and
    ``terminate()`` on a process that is not ACTIVE raises RuntimeError.
    """

    def __init__(
        self,
        *,
        application: Application,
        pid: int,
        memory: ProcessMemory,
    ) -> None:
        """Create a process in the INACTIVE state.

        Args:
            application: The application this process runs.
            pid: Unique process identifier, assigned by the manager.
            memory: Capability over the process's arena page.

        """
        self._application = application
        self._pid = pid
        self._memory = memory
        self._status = ProcessStatus.INACTIVE
        self._io: IODevice | None = None
        self._continuation: Generator[ReadLine, str, int | None] | None = None
        self._pending: ReadLine | None = None
        self._exit_code: int | None = None
        self._error: str | None = None

    @property
    def application(self) -> Application:
        """Return the application this process runs."""
        return self._application

    @property
    def name(self) -> str:
        """Return the application name."""
        return self._application.name

    @property
    def pid(self) -> int:
        """Return the unique process identifier."""
        return self._pid

    @property
    def key(self) -> str:
        """Return the process-table key, ``name#pid``."""
        return f"{self._application.name}#{self._pid}"

    @property
    def memory(self) -> ProcessMemory:
        """Return the capability over this process's memory page."""
        return self._memory

    @property
    def memory_offset(self) -> int:
        """Return the fixed arena offset of this process's page."""
        return self._memory.offset

    @property
    def status(self) -> ProcessStatus:
        """Return the current lifecycle state."""
        return self._status

    @property
    def io(self) -> IODevice | None:
        """Return the I/O device the process was started with."""
        return self._io

    @property
    def pending(self) -> ReadLine | None:
        """Return the input request the process is parked on, if any."""
        return self._pending

    @property
    def waiting(self) -> bool:
        """Return True if the process is suspended waiting for input."""
        return self._status is ProcessStatus.ACTIVE and self._pending is not None

    @property
    def exit_code(self) -> int | None:
        """Return the exit code, or None while the process has not finished."""
        return self._exit_code

    @property
    def error(self) -> str | None:
        """Return the error message if the program raised, else None."""
        return self._error

    def activate(self, io: IODevice) -> None:
        """INACTIVE → ACTIVE.

        Raises:
            DoubleStartError: If the process was already started.

        """
        if self._status is not ProcessStatus.INACTIVE:
            msg = f"Process {self.key} cannot start: already {self._status}"
            raise DoubleStartError(msg)
        self._status = ProcessStatus.ACTIVE
        self._io = io

    def suspend(
        self,
        continuation: Generator[ReadLine, str, int | None],
        request: ReadLine,
    ) -> None:
        """Park the process on *request*, keeping *continuation* for resume."""
        if self._status is not ProcessStatus.ACTIVE:
            msg = f"Cannot suspend: process {self.key} is {self._status}"
            raise RuntimeError(msg)
        self._continuation = continuation
        self._pending = request

    def take_continuation(self) -> Generator[ReadLine, str, int | None]:
        """Remove and return the parked continuation.

        Raises:
            RuntimeError: If the process is not waiting for input.

        """
        if not self.waiting or self._continuation is None:
            msg = f"Process {self.key} is not waiting for input"
            raise RuntimeError(msg)
        continuation = self._continuation
        self._continuation = None
        self._pending = None
        return continuation

    def terminate(self, *, exit_code: int = 0, error: str | None = None) -> None:
        """ACTIVE → TERMINATED.

        Raises:
            RuntimeError: If the process is not active.

        """
        if self._status is not ProcessStatus.ACTIVE:
            msg = f"Cannot terminate: process {self.key} is {self._status}"
            raise RuntimeError(msg)
        self._status = ProcessStatus.TERMINATED
        self._exit_code = exit_code
        self._error = error
        self._continuation = None
        self._pending = None

    def __repr__(self) -> str:
        """Return ``Process(name#pid, status)``."""
        return f"Process({self.key}, {self._status})"
