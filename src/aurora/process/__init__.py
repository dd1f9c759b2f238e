"""Process subsystem — applications, PCBs, and the process manager.

Re-exports public symbols so callers can write::

    from aurora.process import Application, ProcessManager
"""

from aurora.process.application import (
    Application,
    ApplicationCatalog,
    Program,
    UnknownApplicationError,
)
from aurora.process.manager import ProcessManager
from aurora.process.pcb import DoubleStartError, Process, ProcessStatus

__all__ = [
    "Application",
    "ApplicationCatalog",
    "DoubleStartError",
    "Process",
    "ProcessManager",
    "ProcessStatus",
    "Program",
    "UnknownApplicationError",
]
