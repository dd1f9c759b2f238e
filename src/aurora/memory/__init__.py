"""Memory subsystem — the shared arena and per-process windows.

Re-exports public symbols so callers can write::

    from aurora.memory import MemoryArena, ProcessMemory
"""

from aurora.memory.arena import (
    MemoryArena,
    ProcessMemory,
    read_process_memory,
    write_process_memory,
)

__all__ = [
    "MemoryArena",
    "ProcessMemory",
    "read_process_memory",
    "write_process_memory",
]
