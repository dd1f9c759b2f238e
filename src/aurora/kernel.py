"""The kernel — boots Aurora and hands control to the first process.

The kernel owns every subsystem through one ``KernelContext`` and wires
them together in dependency order.  It has an explicit lifecycle:

    SHUTDOWN  →  BOOTING  →  RUNNING  →  SHUTTING_DOWN  →  SHUTDOWN

Boot sequence (order matters):
    0. Logger — capture events from the start.
    1. Memory arena — every process needs a page.
    2. Service registry — empty until step 5.
    3. Process manager — creates processes over the arena.
    4. Filesystem — reconstructed from storage, or initialised and
       provisioned with ``root/bin`` on first boot.  A corrupt stored
       record is kept under ``onfs:<id>.corrupt`` and a fresh
       filesystem is mounted in its place.
    5. Built-in services — registered, then frozen.
    6. Bootstrap process — the shell, started with the full service set.

After boot the kernel is driven by a *run loop* it does not own.  The
REPL, the web UI, or a test repeatedly asks which prompt to show
(``prompt()``) and delivers lines (``feed()``) to the foreground process
until nothing is waiting any more.

Storage and the application catalog are created with the kernel, not at
boot, so the filesystem survives a shutdown/boot cycle.  A boot that
fails part way is rolled back to SHUTDOWN.
"""

from __future__ import annotations

from enum import StrEnum
from time import monotonic
from typing import TYPE_CHECKING, TypeVar

from aurora.apps import SHELL_APP_ID, default_catalog
from aurora.context import KernelContext
from aurora.fs.appfile import APP_EXTENSION, ApplicationLoader, write_application_file
from aurora.fs.filesystem import CorruptFilesystemError, Filesystem, storage_key
from aurora.fs.storage import MemoryStorage
from aurora.logging import Logger, LogLevel
from aurora.memory.arena import MemoryArena
from aurora.process.manager import ProcessManager
from aurora.services import ServiceRegistry, ServiceSet
from aurora.syscalls import build_services

if TYPE_CHECKING:
    from aurora.devices import IODevice
    from aurora.fs.storage import Storage
    from aurora.process.application import Application, ApplicationCatalog
    from aurora.process.pcb import Process

T = TypeVar("T")

KERNEL_NAME = "Aurora"
KERNEL_VERSION = "0.1.0"
DEFAULT_FILESYSTEM_ID = "main"
BIN_DIRECTORY = "bin"
CORRUPT_SUFFIX = ".corrupt"
_SOURCE = "kernel"


class KernelState(StrEnum):
    """Represent the lifecycle phases of the kernel."""

    SHUTDOWN = "shutdown"
    BOOTING = "booting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


class Kernel:
    """The central coordinator of the system.

    Subsystems exist only while the kernel is booted; touching them in
    any other state raises RuntimeError.
    """

    def __init__(
        self,
        *,
        name: str = KERNEL_NAME,
        version: str = KERNEL_VERSION,
        filesystem_id: str = DEFAULT_FILESYSTEM_ID,
        storage: Storage | None = None,
        catalog: ApplicationCatalog | None = None,
        log_level: LogLevel = LogLevel.DEBUG,
        quiet: bool = False,
        recover_filesystem: bool = True,
    ) -> None:
        """Create a kernel in the SHUTDOWN state.

        Args:
            name: Kernel name shown by ``uname``.
            version: Kernel version.
            filesystem_id: Id of the filesystem mounted at boot.
            storage: Durable store for filesystem records
                (in-memory by default).
            catalog: Applications available to ``run`` and application
                files (the built-in set by default).
            log_level: Minimum level kept in the kernel log.
            quiet: If True, boot messages are not written to the device.
            recover_filesystem: If True, a corrupt stored filesystem is set
                aside and replaced with a fresh one; if False, boot fails.

        """
        self._name = name
        self._version = version
        self._filesystem_id = filesystem_id
        self._storage: Storage = storage if storage is not None else MemoryStorage()
        self._catalog = catalog if catalog is not None else default_catalog()
        self._log_level = log_level
        self._quiet = quiet
        self._recover_filesystem = recover_filesystem

        self._state = KernelState.SHUTDOWN
        self._boot_time: float | None = None
        self._boot_log: list[str] = []
        self._context: KernelContext | None = None
        self._registry: ServiceRegistry | None = None
        self._services: ServiceSet | None = None
        self._process_manager: ProcessManager | None = None
        self._filesystem: Filesystem | None = None
        self._loader: ApplicationLoader | None = None
        self._io: IODevice | None = None
        self._bootstrap: Process | None = None

    # -- Identity and state ------------------------------------------------------

    @property
    def name(self) -> str:
        """Return the kernel name."""
        return self._name

    @property
    def version(self) -> str:
        """Return the kernel version."""
        return self._version

    @property
    def state(self) -> KernelState:
        """Return the current kernel state."""
        return self._state

    @property
    def uptime(self) -> float:
        """Return seconds elapsed since boot, or 0.0 if not running."""
        if self._boot_time is None:
            return 0.0
        return monotonic() - self._boot_time

    @property
    def storage(self) -> Storage:
        """Return the durable store (kept across reboots)."""
        return self._storage

    @property
    def io(self) -> IODevice | None:
        """Return the device the kernel was booted with, if any."""
        return self._io

    def dmesg(self) -> list[str]:
        """Return the boot log."""
        return list(self._boot_log)

    # -- Subsystems --------------------------------------------------------------

    def _require_booted(self, subsystem: T | None, label: str) -> T:
        if subsystem is None:
            msg = f"Kernel is not booted (state: {self._state}); no {label}"
            raise RuntimeError(msg)
        return subsystem

    @property
    def context(self) -> KernelContext:
        """Return the kernel context."""
        return self._require_booted(self._context, "context")

    @property
    def registry(self) -> ServiceRegistry:
        """Return the service registry."""
        return self._require_booted(self._registry, "service registry")

    @property
    def process_manager(self) -> ProcessManager:
        """Return the process manager."""
        return self._require_booted(self._process_manager, "process manager")

    @property
    def filesystem(self) -> Filesystem:
        """Return the mounted filesystem."""
        return self._require_booted(self._filesystem, "filesystem")

    @property
    def loader(self) -> ApplicationLoader:
        """Return the application loader."""
        return self._require_booted(self._loader, "application loader")

    @property
    def bootstrap_process(self) -> Process | None:
        """Return the first process started at boot, if any."""
        return self._bootstrap

    def services(self) -> ServiceSet:
        """Return the frozen service set handed to processes."""
        return self._require_booted(self._services, "services")

    # -- Lifecycle ---------------------------------------------------------------

    def _boot_message(self, message: str) -> None:
        self._boot_log.append(message)
        if self._context is not None:
            self._context.logger.info(message, source=_SOURCE)
        if self._io is not None and not self._quiet:
            self._io.write(message + "\n")

    def boot(
        self,
        io: IODevice | None = None,
        *,
        bootstrap: Application | None = None,
        args: list[str] | None = None,
    ) -> None:
        """Transition SHUTDOWN → RUNNING and start the bootstrap process.

        If any step fails the kernel is torn down again and left in the
        SHUTDOWN state, so ``boot()`` can be retried.  The device is not
        disposed in that case.

        Args:
            io: Device for boot messages and the bootstrap process.  With
                no device the kernel boots without starting any process.
            bootstrap: Application to start first (the shell by default).
            args: Arguments for the bootstrap process.

        Raises:
            RuntimeError: If the kernel is not in the SHUTDOWN state.
            CorruptFilesystemError: If the stored filesystem is unreadable
                and recovery is disabled.

        """
        if self._state is not KernelState.SHUTDOWN:
            msg = f"Cannot boot: kernel is {self._state}, expected shutdown"
            raise RuntimeError(msg)

        self._state = KernelState.BOOTING
        self._boot_time = monotonic()
        self._io = io
        self._boot_log.clear()
        try:
            self._boot_sequence(io, bootstrap, args)
        except Exception:
            self._teardown()
            raise

    def _boot_sequence(
        self,
        io: IODevice | None,
        bootstrap: Application | None,
        args: list[str] | None,
    ) -> None:
        # 0. Logger
        logger = Logger(min_level=self._log_level)
        self._context = KernelContext(
            logger=logger,
            arena=MemoryArena(logger=logger),
            storage=self._storage,
            catalog=self._catalog,
        )
        self._boot_message(f"{self._name} kernel v{self._version} started")
        self._boot_message("[OK] Logger")

        # 1. Memory arena
        self._boot_message("[OK] Memory arena")

        # 2. Service registry
        self._registry = ServiceRegistry(logger=logger)
        self._boot_message("[OK] Service registry")

        # 3. Process manager
        self._process_manager = ProcessManager(
            arena=self._context.arena,
            logger=logger,
            services=self.services,
        )
        self._boot_message("[OK] Process manager")

        # 4. Filesystem
        self._filesystem, state = self._mount_filesystem()
        self._loader = ApplicationLoader(catalog=self._catalog, logger=logger)
        if state != "reconstructed":
            self._provision_filesystem(self._filesystem)
        self._boot_message(f"[OK] Filesystem {self._filesystem_id} ({state})")

        # 5. Built-in services
        for service in build_services(self):
            self._registry.register(service)
        self._registry.freeze_all()
        self._services = self._registry.services()
        self._boot_message(f"[OK] Services ({', '.join(self._registry.names())})")

        self._state = KernelState.RUNNING

        # 6. Bootstrap process
        if io is not None:
            app = bootstrap if bootstrap is not None else self._catalog.resolve(SHELL_APP_ID)
            process = self._process_manager.create_process(app)
            self._bootstrap = process
            self._boot_message(f"[OK] Bootstrap process {process.key}")
            self._process_manager.start_process(process, list(args or []), io)

    def _mount_filesystem(self) -> tuple[Filesystem, str]:
        """Load the stored filesystem, returning it with how it was obtained.

        A corrupt record is copied to ``<key>.corrupt`` and a fresh
        filesystem takes its place (unless recovery is disabled).
        """
        context = self.context
        key = storage_key(self._filesystem_id)
        stored = self._storage.get_item(key)
        try:
            fs = Filesystem.load(
                self._filesystem_id,
                storage=self._storage,
                directory=context.filesystems,
                logger=context.logger,
            )
        except CorruptFilesystemError as e:
            if not self._recover_filesystem or stored is None:
                raise
            quarantine = f"{key}{CORRUPT_SUFFIX}"
            self._storage.set_item(quarantine, stored)
            context.logger.error(
                f"Stored filesystem {self._filesystem_id} is corrupt ({e}); "
                f"kept as {quarantine}",
                source=_SOURCE,
            )
            fs = Filesystem(
                self._filesystem_id,
                storage=self._storage,
                directory=context.filesystems,
                logger=context.logger,
            )
            fs.init()
            return fs, "recovered"
        return fs, ("initialised" if stored is None else "reconstructed")

    def _provision_filesystem(self, fs: Filesystem) -> None:
        """Create ``root/bin`` with one application file per catalog entry."""
        bin_dir = fs.make_directory(fs.root, BIN_DIRECTORY)
        for app in self._catalog:
            write_application_file(fs, bin_dir, app)
        self.context.logger.info(
            f"Provisioned {BIN_DIRECTORY} with {len(self._catalog)} .{APP_EXTENSION} files",
            source=_SOURCE,
        )

    def shutdown(self) -> None:
        """Transition RUNNING → SHUTDOWN, tearing down in reverse order.

        Processes still running are terminated first (their parked
        programs are closed), then the filesystem is synced and the
        device disposed.

        Raises:
            RuntimeError: If the kernel is not in the RUNNING state.

        """
        if self._state is not KernelState.RUNNING:
            msg = f"Cannot shutdown: kernel is {self._state}, expected running"
            raise RuntimeError(msg)

        self._state = KernelState.SHUTTING_DOWN
        if self._process_manager is not None:
            self._process_manager.terminate_all()
        if self._filesystem is not None:
            self._filesystem.sync_to_storage()
        if self._io is not None:
            self._io.dispose()
        self._teardown()

    def _teardown(self) -> None:
        """Drop every subsystem and return to SHUTDOWN."""
        self._bootstrap = None
        self._services = None
        if self._registry is not None:
            self._registry.clear()
        self._registry = None
        self._loader = None
        if self._context is not None:
            self._context.filesystems.clear()
        self._filesystem = None
        self._process_manager = None
        self._context = None
        self._io = None
        self._boot_time = None
        self._state = KernelState.SHUTDOWN

    # -- Run loop ----------------------------------------------------------------

    @property
    def running(self) -> bool:
        """Return True while the kernel runs and some process awaits input."""
        if self._state is not KernelState.RUNNING or self._process_manager is None:
            return False
        return self._process_manager.foreground() is not None

    def foreground(self) -> Process | None:
        """Return the process that will receive the next line, if any."""
        if self._process_manager is None:
            return None
        return self._process_manager.foreground()

    def prompt(self) -> str:
        """Return the prompt of the foreground process ("" if none)."""
        process = self.foreground()
        if process is None or process.pending is None:
            return ""
        return process.pending.prompt

    def feed(self, line: str) -> Process:
        """Deliver *line* to the foreground process and run it to its next wait.

        Returns:
            The process that received the line.

        Raises:
            RuntimeError: If the kernel is not running or nothing is waiting.

        """
        if self._state is not KernelState.RUNNING:
            msg = f"Kernel is not running (state: {self._state})"
            raise RuntimeError(msg)
        process = self.foreground()
        if process is None:
            msg = "No process is waiting for input"
            raise RuntimeError(msg)
        self.process_manager.resume(process, line)
        return process
