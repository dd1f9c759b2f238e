"""Built-in services — the gateway between programs and the kernel.

Programs never import the kernel.  Everything they can do arrives as a
``ServiceSet`` argument: a handful of named, versioned, frozen services
whose capabilities are plain callables bound to kernel subsystems.

=========  ===========================================================
service    capabilities
=========  ===========================================================
memory     read, write, page
log        write, log, tail
process    create, start, resume, running, table, by_name, get
fs         get_item_by_path, get_path_by_item, root, filesystem_id,
           add_child, remove_child, make_directory, make_file,
           write_content, append_content, clear_content
apps       load, load_record, save, catalog, resolve
clock      now, time, uptime
kernel     kernel_name, kernel_version, identity, boot_log
=========  ===========================================================

Every capability is synchronous.  The only way a program waits is by
yielding an input request from its I/O device, which is not a service.
"""

from __future__ import annotations

from datetime import UTC, datetime
from time import time
from typing import TYPE_CHECKING, Any

from aurora.fs.appfile import write_application_file
from aurora.logging import LogLevel
from aurora.memory.arena import read_process_memory, write_process_memory
from aurora.services import Service

if TYPE_CHECKING:
    from collections.abc import Iterable

    from aurora.fs.nodes import Directory
    from aurora.kernel import Kernel
    from aurora.process.application import Application
    from aurora.process.pcb import Process

SERVICE_VERSION = "1.0.0"


def _memory_service(_kernel: Kernel) -> Service:
    def page(process: Process) -> list[Any]:
        process.memory.sync_from_global()
        return process.memory.shadow

    return Service(
        "memory",
        SERVICE_VERSION,
        {"read": read_process_memory, "write": write_process_memory, "page": page},
    )


def _log_service(kernel: Kernel) -> Service:
    logger = kernel.context.logger

    def write(text: str) -> None:
        if kernel.io is not None:
            kernel.io.write(text)

    def log(message: str, *, level: str = "info", pid: int | None = None) -> None:
        try:
            severity = LogLevel[level.upper()]
        except KeyError:
            names = ", ".join(lvl.name.lower() for lvl in LogLevel)
            msg = f"Unknown log level '{level}' (expected one of: {names})"
            raise ValueError(msg) from None
        logger.log(severity, message, source="user", pid=pid)

    def tail(count: int = 10) -> list[str]:
        return [str(entry) for entry in logger.tail(count)]

    return Service("log", SERVICE_VERSION, {"write": write, "log": log, "tail": tail})


def _process_service(kernel: Kernel) -> Service:
    manager = kernel.process_manager
    return Service(
        "process",
        SERVICE_VERSION,
        {
            "create": manager.create_process,
            "start": manager.start_process,
            "resume": manager.resume,
            "running": manager.get_running_processes,
            "table": manager.get_process_table,
            "by_name": manager.get_process_by_application_name,
            "get": manager.get_process,
        },
    )


def _fs_service(kernel: Kernel) -> Service:
    fs = kernel.filesystem
    return Service(
        "fs",
        SERVICE_VERSION,
        {
            "get_item_by_path": fs.get_item_by_path,
            "get_path_by_item": fs.get_path_by_item,
            "root": lambda: fs.root,
            "filesystem_id": lambda: fs.id,
            "add_child": fs.add_child,
            "remove_child": fs.remove_child,
            "make_directory": fs.make_directory,
            "make_file": fs.make_file,
            "write_content": fs.write_content,
            "append_content": fs.append_content,
            "clear_content": fs.clear_content,
        },
    )


def _apps_service(kernel: Kernel) -> Service:
    loader = kernel.loader
    catalog = kernel.context.catalog

    def save(directory: Directory, app: Application, args: Iterable[str] = ()) -> Any:
        return write_application_file(kernel.filesystem, directory, app, args=args)

    return Service(
        "apps",
        SERVICE_VERSION,
        {
            "load": loader.load,
            "load_record": loader.load_record,
            "save": save,
            "catalog": catalog.identifiers,
            "resolve": catalog.resolve,
        },
    )


def _clock_service(kernel: Kernel) -> Service:
    return Service(
        "clock",
        SERVICE_VERSION,
        {
            "now": lambda: datetime.now(UTC),
            "time": time,
            "uptime": lambda: kernel.uptime,
        },
    )


def _kernel_service(kernel: Kernel) -> Service:
    return Service(
        "kernel",
        kernel.version,
        {
            "kernel_name": lambda: kernel.name,
            "kernel_version": lambda: kernel.version,
            "identity": lambda: f"{kernel.name} kernel v{kernel.version}",
            "boot_log": kernel.dmesg,
        },
    )


def build_services(kernel: Kernel) -> list[Service]:
    """Return the built-in services in registration order."""
    builders = (
        _memory_service,
        _log_service,
        _process_service,
        _fs_service,
        _apps_service,
        _clock_service,
        _kernel_service,
    )
    return [build(kernel) for build in builders]
