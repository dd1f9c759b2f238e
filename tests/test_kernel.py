"""Tests for the kernel.

The kernel builds every subsystem in order, freezes the built-in
services, starts the shell, and is then driven line by line through
``prompt()`` and ``feed()``.
"""

from collections.abc import Generator

import pytest

from aurora.apps import default_catalog
from aurora.devices import BufferedDevice, DeviceState, IODevice, ReadLine
from aurora.fs.appfile import is_application_file
from aurora.fs.filesystem import CorruptFilesystemError, storage_key
from aurora.fs.storage import MemoryStorage
from aurora.kernel import CORRUPT_SUFFIX, Kernel, KernelState
from aurora.logging import LogLevel
from aurora.process.application import Application
from aurora.process.manager import KILLED_EXIT_CODE
from aurora.process.pcb import Process, ProcessStatus
from aurora.services import ServiceSet

SERVICE_NAMES = ["memory", "log", "process", "fs", "apps", "clock", "kernel"]
CORRUPT_RECORD = "{not json"


def _booted(storage: MemoryStorage | None = None) -> tuple[Kernel, BufferedDevice]:
    kernel = Kernel(storage=storage)
    device = BufferedDevice()
    kernel.boot(device)
    return kernel, device


class TestKernelInitialisation:
    """Verify a freshly created kernel."""

    def test_initial_state_is_shutdown(self) -> None:
        """A new kernel starts in the SHUTDOWN state."""
        assert Kernel().state is KernelState.SHUTDOWN

    def test_no_uptime_before_boot(self) -> None:
        """Uptime is zero before boot."""
        expected_uptime = 0.0
        assert Kernel().uptime == expected_uptime

    def test_subsystems_unavailable_before_boot(self) -> None:
        """Touching a subsystem before boot is an error."""
        kernel = Kernel()
        with pytest.raises(RuntimeError, match="not booted"):
            _ = kernel.filesystem
        with pytest.raises(RuntimeError, match="not booted"):
            kernel.services()


class TestKernelBoot:
    """Verify the boot sequence."""

    def test_boot_transitions_to_running(self) -> None:
        """Booting moves the kernel to RUNNING."""
        kernel = Kernel()
        kernel.boot()
        assert kernel.state is KernelState.RUNNING

    def test_boot_twice_raises(self) -> None:
        """Booting a running kernel is an error."""
        kernel = Kernel()
        kernel.boot()
        with pytest.raises(RuntimeError, match="Cannot boot"):
            kernel.boot()

    def test_boot_log_order(self) -> None:
        """Subsystems come up in dependency order."""
        kernel = Kernel()
        kernel.boot()
        log = kernel.dmesg()
        assert log[0] == "Aurora kernel v0.1.0 started"
        order = ["[OK] Logger", "[OK] Memory arena", "[OK] Service registry", "[OK] Process manager"]
        assert [line for line in log if line in order] == order
        assert any(line.startswith("[OK] Filesystem main") for line in log)
        assert log.index("[OK] Process manager") < next(
            i for i, line in enumerate(log) if line.startswith("[OK] Services")
        )

    def test_services_are_registered_and_frozen(self) -> None:
        """All built-in services exist and are frozen."""
        kernel = Kernel()
        kernel.boot()
        assert kernel.registry.names() == SERVICE_NAMES
        assert list(kernel.services()) == SERVICE_NAMES
        assert all(service.frozen for service in kernel.registry)

    def test_first_boot_provisions_bin(self) -> None:
        """The first boot creates root/bin with one app file per catalog entry."""
        kernel = Kernel()
        kernel.boot()
        bin_dir = kernel.filesystem.get_item_by_path("root/bin")
        assert bin_dir is not None
        names = [child.full_name for child in bin_dir.children]  # type: ignore[attr-defined]
        assert names == ["shell.app", "echo.app", "greet.app", "count.app"]
        assert all(is_application_file(child) for child in bin_dir.children)  # type: ignore[attr-defined]

    def test_boot_without_device_starts_nothing(self) -> None:
        """Without a device no process is started."""
        kernel = Kernel()
        kernel.boot()
        assert kernel.bootstrap_process is None
        assert not kernel.running

    def test_boot_with_device_starts_shell(self) -> None:
        """The shell is the first process and waits for input."""
        kernel, device = _booted()
        shell = kernel.bootstrap_process
        assert shell is not None
        assert shell.key == "shell#0"
        assert shell.waiting
        assert kernel.running
        assert kernel.prompt() == "root $ "
        assert "Aurora kernel v0.1.0 started" in device.output
        assert "Type 'help' for commands." in device.output

    def test_quiet_boot_hides_boot_messages(self) -> None:
        """Quiet kernels keep boot messages off the device."""
        kernel = Kernel(quiet=True)
        device = BufferedDevice()
        kernel.boot(device)
        assert "[OK]" not in device.output
        assert "[OK] Logger" in kernel.dmesg()

    def test_custom_bootstrap(self) -> None:
        """Any catalog application can be the bootstrap process."""
        kernel = Kernel()
        device = BufferedDevice()
        kernel.boot(device, bootstrap=default_catalog().resolve("greet"), args=["Ada"])
        assert "Hello, Ada!" in device.output
        assert kernel.bootstrap_process is not None
        assert kernel.bootstrap_process.status is ProcessStatus.TERMINATED
        assert not kernel.running

    def test_log_level_is_applied(self) -> None:
        """The kernel log drops entries below its minimum level."""
        kernel = Kernel(log_level=LogLevel.WARNING)
        kernel.boot()
        assert kernel.context.logger.filter(source="kernel") == []


class TestRunLoop:
    """Verify prompt/feed driving."""

    def test_feed_runs_a_command(self) -> None:
        """A line reaches the shell and its output reaches the device."""
        kernel, device = _booted()
        device.drain()
        kernel.feed("pwd")
        assert device.drain() == "root\n"

    def test_exit_stops_the_loop(self) -> None:
        """After ``exit`` nothing waits any more."""
        kernel, device = _booted()
        shell = kernel.feed("exit")
        assert "Goodbye." in device.output
        assert shell.status is ProcessStatus.TERMINATED
        assert shell.exit_code == 0
        assert not kernel.running
        assert kernel.prompt() == ""

    def test_feed_with_nothing_waiting_raises(self) -> None:
        """Feeding when no process waits is an error."""
        kernel = Kernel()
        kernel.boot()
        with pytest.raises(RuntimeError, match="No process is waiting"):
            kernel.feed("ls")

    def test_feed_when_not_running_raises(self) -> None:
        """Feeding a shut-down kernel is an error."""
        with pytest.raises(RuntimeError, match="not running"):
            Kernel().feed("ls")

    def test_child_becomes_foreground(self) -> None:
        """A program run from the shell receives input before the shell."""
        kernel, device = _booted()
        kernel.feed("run greet")
        assert kernel.prompt() == "What is your name? "
        kernel.feed("Grace")
        assert "Hello, Grace!" in device.output
        assert kernel.prompt() == "root $ "


class TestShutdownAndReboot:
    """Verify teardown and persistence across reboots."""

    def test_shutdown(self) -> None:
        """Shutdown returns to SHUTDOWN and disposes the device."""
        kernel, device = _booted()
        kernel.shutdown()
        assert kernel.state is KernelState.SHUTDOWN
        assert device.status is DeviceState.DISPOSED
        assert kernel.uptime == 0.0

    def test_shutdown_when_not_running_raises(self) -> None:
        """Shutting down a stopped kernel is an error."""
        with pytest.raises(RuntimeError, match="Cannot shutdown"):
            Kernel().shutdown()

    def test_filesystem_survives_reboot(self) -> None:
        """Files written before shutdown are there after the next boot."""
        kernel, _ = _booted()
        kernel.feed("write notes.txt remember me")
        kernel.shutdown()

        kernel.boot(BufferedDevice())
        notes = kernel.filesystem.get_item_by_path("root/notes.txt")
        assert notes is not None
        assert notes.to_dict()["content"] == "remember me"
        assert any("(reconstructed)" in line for line in kernel.dmesg())

    def test_storage_is_shared_between_kernels(self) -> None:
        """A second kernel on the same storage sees the same tree."""
        storage = MemoryStorage()
        first, _ = _booted(storage)
        first.feed("mkdir projects")
        second, _ = _booted(storage)
        assert second.filesystem.get_item_by_path("root/projects") is not None
        assert storage.get_item(storage_key("main")) is not None

    def test_shutdown_stops_waiting_processes(self) -> None:
        """Processes still parked on input are terminated and closed."""
        kernel, _ = _booted()
        closed: list[str] = []

        def waiter(
            _process: Process,
            _services: ServiceSet,
            _args: list[str],
            io: IODevice,
        ) -> Generator[ReadLine, str, None]:
            try:
                yield io.read_line("? ")
            finally:
                closed.append("waiter")

        child = kernel.process_manager.create_process(Application("waiter", "1.0", waiter))
        kernel.process_manager.start_process(child, [], BufferedDevice())
        shell = kernel.bootstrap_process
        assert shell is not None
        assert child.waiting

        kernel.shutdown()

        assert closed == ["waiter"]
        for process in (child, shell):
            assert process.status is ProcessStatus.TERMINATED
            assert process.exit_code == KILLED_EXIT_CODE
            assert process.error == "system shutdown"
            assert not process.waiting


class TestCorruptFilesystem:
    """A damaged stored filesystem never leaves the kernel stuck."""

    def test_corrupt_record_is_set_aside(self) -> None:
        """Boot mounts a fresh filesystem and keeps the bad record."""
        storage = MemoryStorage()
        storage.set_item(storage_key("main"), CORRUPT_RECORD)
        kernel, device = _booted(storage)

        assert kernel.state is KernelState.RUNNING
        assert kernel.running
        assert kernel.filesystem.get_item_by_path("root/bin/echo") is not None
        assert storage.get_item(storage_key("main") + CORRUPT_SUFFIX) == CORRUPT_RECORD
        assert "(recovered)" in device.output
        errors = kernel.context.logger.filter(min_level=LogLevel.ERROR, source="kernel")
        assert len(errors) == 1
        assert "corrupt" in errors[0].message

    def test_strict_boot_fails_and_rolls_back(self) -> None:
        """Without recovery the error surfaces and the kernel can boot again."""
        storage = MemoryStorage()
        storage.set_item(storage_key("main"), CORRUPT_RECORD)
        kernel = Kernel(storage=storage, recover_filesystem=False)
        device = BufferedDevice()

        with pytest.raises(CorruptFilesystemError):
            kernel.boot(device)
        assert kernel.state is KernelState.SHUTDOWN
        assert kernel.uptime == 0.0
        assert device.status is DeviceState.READY
        with pytest.raises(RuntimeError, match="not booted"):
            _ = kernel.filesystem

        storage.remove_item(storage_key("main"))
        kernel.boot(device)
        assert kernel.state is KernelState.RUNNING
        kernel.shutdown()
        assert kernel.state is KernelState.SHUTDOWN
