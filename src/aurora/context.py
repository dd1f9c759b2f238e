"""Kernel context — the shared state every subsystem is built with.

There are no module-level registries in Aurora.  The kernel creates one
``KernelContext`` at boot and passes the parts each subsystem needs to
its constructor: the log buffer, the memory arena, the filesystem
directory, the durable storage, and the application catalog.
"""

from dataclasses import dataclass, field

from aurora.fs.filesystem import FilesystemDirectory
from aurora.fs.storage import MemoryStorage, Storage
from aurora.logging import Logger
from aurora.memory.arena import MemoryArena
from aurora.process.application import ApplicationCatalog


@dataclass
class KernelContext:
    """Everything the kernel owns and lends to its subsystems."""

    logger: Logger = field(default_factory=Logger)
    arena: MemoryArena = field(default_factory=MemoryArena)
    filesystems: FilesystemDirectory = field(default_factory=FilesystemDirectory)
    storage: Storage = field(default_factory=MemoryStorage)
    catalog: ApplicationCatalog = field(default_factory=ApplicationCatalog)
