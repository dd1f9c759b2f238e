"""Process manager — creation, single-shot execution, and lookup.

The manager is the only place processes come from.  Creating one takes
two allocations that always happen together: the next pid and the next
arena page.  Starting one runs its program *synchronously* until the
program either finishes or suspends on its first input request::

    process = manager.create_process(app)     # INACTIVE
    manager.start_process(process, [], io)    # ACTIVE, runs the program
    manager.resume(process, "some input")     # continue after a ReadLine

``start_process`` returning does not mean the program is done: a shell
suspends on its first prompt and stays ACTIVE until someone resumes it
with input.  Programs may themselves create and start processes through
the ``process`` service, which simply re-enters this manager.

The process table maps ``name#pid`` to every process that was ever
started.  Terminated processes stay in it for inspection but drop out
of ``get_running_processes()``.
"""

from __future__ import annotations

import inspect
from itertools import count
from typing import TYPE_CHECKING

from aurora.devices import ReadLine
from aurora.memory.arena import ProcessMemory
from aurora.process.pcb import Process, ProcessStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

    from aurora.devices import IODevice
    from aurora.logging import Logger
    from aurora.memory.arena import MemoryArena
    from aurora.process.application import Application
    from aurora.services import ServiceSet

_SOURCE = "process"

KILLED_EXIT_CODE = 143
"""Exit code of a process stopped by ``terminate_all`` (128 + SIGTERM)."""


class ProcessManager:
    """Create, start, resume, and look up processes.

    The manager needs the service set to hand to programs, but services
    are built *after* the manager (they wrap its operations).  It
    therefore takes a zero-argument callable that returns the current
    service set at start time.
    """

    def __init__(
        self,
        *,
        arena: MemoryArena,
        logger: Logger,
        services: Callable[[], ServiceSet],
    ) -> None:
        """Create a manager over *arena*.

        Args:
            arena: Where process memory pages are allocated.
            logger: Kernel log buffer.
            services: Returns the service set passed to every program.

        """
        self._arena = arena
        self._logger = logger
        self._services = services
        self._pid_counter = count(start=0)
        self._table: dict[str, Process] = {}
        self._created: list[Process] = []

    def create_process(self, application: Application) -> Process:
        """Allocate a pid and a memory page for *application*.

        The process is returned INACTIVE; nothing runs yet.
        """
        pid = next(self._pid_counter)
        offset = self._arena.allocate_page()
        process = Process(
            application=application,
            pid=pid,
            memory=ProcessMemory(self._arena, offset),
        )
        self._created.append(process)
        self._logger.debug(
            f"Created {process.key} (memory offset {offset})", source=_SOURCE, pid=pid
        )
        return process

    def start_process(self, process: Process, args: list[str], io: IODevice) -> None:
        """Run *process* until it finishes or first waits for input.

        Starting a process that is not INACTIVE is a no-op: a process
        runs at most once.  The ignored call is logged as a WARNING so
        it can be told apart from a real start.

        Raises:
            ValueError: If the process's application has no program.

        """
        if process.status is not ProcessStatus.INACTIVE:
            self._logger.warning(
                f"Double start ignored for {process.key} (status: {process.status})",
                source=_SOURCE,
                pid=process.pid,
            )
            return

        program = process.application.program
        if program is None:
            msg = f"No program loaded in application {process.application.name}"
            raise ValueError(msg)

        process.activate(io)
        self._logger.info(f"Started {process.key}", source=_SOURCE, pid=process.pid)
        try:
            result = program(process, self._services(), list(args), io)
        except Exception as e:  # noqa: BLE001
            self._fail(process, e)
        else:
            if inspect.isgenerator(result):
                self._advance(process, result, None)
            else:
                self._finish(process, result)
        self._table[process.key] = process

    def resume(self, process: Process, line: str) -> None:
        """Deliver *line* to a suspended process and run it to its next wait.

        Raises:
            RuntimeError: If the process is not waiting for input.

        """
        continuation = process.take_continuation()
        self._advance(process, continuation, line)

    def _advance(
        self,
        process: Process,
        continuation: Generator[ReadLine, str, int | None],
        line: str | None,
    ) -> None:
        """Step *continuation* to its next ReadLine or to completion."""
        try:
            request = next(continuation) if line is None else continuation.send(line)
        except StopIteration as stop:
            self._finish(process, stop.value)
        except Exception as e:  # noqa: BLE001
            self._fail(process, e)
        else:
            if not isinstance(request, ReadLine):
                request = ReadLine(prompt=str(request) if request is not None else "")
            process.suspend(continuation, request)

    def _finish(self, process: Process, result: object) -> None:
        exit_code = result if isinstance(result, int) else 0
        process.terminate(exit_code=exit_code)
        self._arena.release_page(process.memory_offset)
        self._logger.info(
            f"Terminated {process.key} (exit code {exit_code})", source=_SOURCE, pid=process.pid
        )

    def _fail(self, process: Process, error: Exception) -> None:
        process.terminate(exit_code=1, error=str(error))
        self._arena.release_page(process.memory_offset)
        self._logger.error(
            f"{process.key} crashed: {type(error).__name__}: {error}",
            source=_SOURCE,
            pid=process.pid,
        )

    def terminate_all(self, reason: str = "system shutdown") -> list[Process]:
        """Terminate every process that is still ACTIVE, newest first.

        A process parked on input has its generator closed, so its
        ``finally`` blocks run.  Each stopped process exits with
        ``KILLED_EXIT_CODE`` and *reason* as its error, and its page is
        released.

        Returns:
            The processes that were stopped.

        """
        stopped: list[Process] = []
        for process in sorted(self._created, key=lambda p: p.pid, reverse=True):
            if process.status is not ProcessStatus.ACTIVE:
                continue
            if process.waiting:
                continuation = process.take_continuation()
                try:
                    continuation.close()
                except Exception as e:  # noqa: BLE001
                    self._logger.error(
                        f"{process.key} failed to close: {type(e).__name__}: {e}",
                        source=_SOURCE,
                        pid=process.pid,
                    )
            process.terminate(exit_code=KILLED_EXIT_CODE, error=reason)
            self._arena.release_page(process.memory_offset)
            self._logger.info(f"Killed {process.key} ({reason})", source=_SOURCE, pid=process.pid)
            stopped.append(process)
        return stopped

    def get_running_processes(self) -> dict[str, Process]:
        """Return a snapshot of started processes that have not terminated."""
        return {
            key: process
            for key, process in self._table.items()
            if process.status is not ProcessStatus.TERMINATED
        }

    def get_process_table(self) -> dict[str, Process]:
        """Return a snapshot of every started process, terminated ones included."""
        return dict(self._table)

    def get_process_by_application_name(self, name: str) -> Process | None:
        """Return the first process in the table running application *name*.

        A plain linear scan over the table in insertion order.
        """
        for process in self._table.values():
            if process.application.name == name:
                return process
        return None

    def get_process(self, pid: int) -> Process | None:
        """Return the process with *pid*, started or not."""
        for process in self._created:
            if process.pid == pid:
                return process
        return None

    def waiting_processes(self) -> list[Process]:
        """Return every process currently parked on an input request."""
        return [p for p in self._created if p.waiting]

    def foreground(self) -> Process | None:
        """Return the waiting process that should receive the next line.

        The most recently created waiter wins, so a program started from
        the shell gets input before the shell does.
        """
        waiters = self.waiting_processes()
        if not waiters:
            return None
        return max(waiters, key=lambda p: p.pid)
