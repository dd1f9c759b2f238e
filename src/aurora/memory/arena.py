"""Memory arena — the shared store behind every process's memory window.

The arena is a growable list of **pages**.  Each page is a list of
arbitrary Python values (slots).  Creating a process allocates exactly
one page; the page's index in the arena is the process's *offset*.

A process never sees the arena directly.  It receives a
``ProcessMemory`` capability: the fixed offset plus a handle to the
arena's read/write operations.  The capability keeps a private shadow
copy of the page so programs can inspect their memory cheaply, and it
syncs the shadow to the arena on every write.

Pages are never compacted.  Offsets are handed out monotonically and
never reused, so a stale offset can only ever reach its own (possibly
released) page, never another process's.

Out-of-range access never raises.  Reads answer None; a write to an
unallocated offset or a negative index is dropped, logged at WARNING,
and reported by returning False.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from aurora.logging import Logger
    from aurora.process.pcb import Process

_SOURCE = "memory"


class MemoryArena:
    """An ordered, growable sequence of memory pages."""

    def __init__(self, *, logger: Logger | None = None) -> None:
        """Create an empty arena with no pages."""
        self._pages: list[list[Any]] = []
        self._logger = logger

    def _reject(self, message: str) -> bool:
        if self._logger is not None:
            self._logger.warning(f"Write ignored: {message}", source=_SOURCE)
        return False

    @property
    def page_count(self) -> int:
        """Return how many pages have ever been allocated."""
        return len(self._pages)

    def allocate_page(self) -> int:
        """Append an empty page and return its offset.

        Offsets increase by one on every call and are never reused.
        """
        self._pages.append([])
        return len(self._pages) - 1

    def read_slot(self, offset: int, index: int) -> Any:
        """Return the content of a slot, or None when out of range.

        No error is raised for an unknown *offset* or *index*: reading
        memory nobody wrote is simply empty.
        """
        if not 0 <= offset < len(self._pages):
            return None
        page = self._pages[offset]
        if not 0 <= index < len(page):
            return None
        return page[index]

    def write_slot(self, offset: int, index: int, content: Any) -> bool:
        """Store *content* in a slot, growing the page as needed.

        Gaps created by writing past the end of the page are padded
        with None.  Returns False (and stores nothing) when *offset* was
        never allocated or *index* is negative.
        """
        if not 0 <= offset < len(self._pages):
            return self._reject(f"no page at offset {offset}")
        if index < 0:
            return self._reject(f"negative slot index {index} at offset {offset}")
        page = self._pages[offset]
        if index >= len(page):
            page.extend([None] * (index + 1 - len(page)))
        page[index] = content
        return True

    def page(self, offset: int) -> list[Any]:
        """Return a copy of the page at *offset* (empty if unknown)."""
        if not 0 <= offset < len(self._pages):
            return []
        return list(self._pages[offset])

    def load_page(self, offset: int, slots: list[Any]) -> bool:
        """Replace the whole page at *offset* with *slots*.

        Returns False (and changes nothing) for an unallocated offset.
        """
        if not 0 <= offset < len(self._pages):
            return self._reject(f"no page at offset {offset}")
        self._pages[offset] = list(slots)
        return True

    def release_page(self, offset: int) -> None:
        """Empty the page at *offset* without giving the offset back.

        Called when a process terminates.  Releasing an unknown offset
        is a no-op.
        """
        if 0 <= offset < len(self._pages):
            self._pages[offset] = []


class ProcessMemory:
    """A process-scoped window onto one arena page.

    Holds the process's offset, a handle to the arena, and a private
    shadow copy of the page.  ``write`` updates the shadow and pushes it
    to the arena immediately; ``read`` pulls from the arena first so
    the shadow never serves stale data.
    """

    def __init__(self, arena: MemoryArena, offset: int) -> None:
        """Bind a capability to *offset* in *arena*."""
        self._arena = arena
        self._offset = offset
        self._shadow: list[Any] = arena.page(offset)

    @property
    def offset(self) -> int:
        """Return the fixed arena offset this capability is bound to."""
        return self._offset

    @property
    def shadow(self) -> list[Any]:
        """Return a copy of the private shadow page."""
        return list(self._shadow)

    def read(self, index: int) -> Any:
        """Return the slot at *index*, or None if it was never written."""
        self.sync_from_global()
        if not 0 <= index < len(self._shadow):
            return None
        return self._shadow[index]

    def write(self, index: int, content: Any) -> bool:
        """Write *content* at *index* and sync the page to the arena.

        A negative *index* is ignored (logged by the arena); the return
        value says whether the write landed.
        """
        if index < 0:
            return self._arena.write_slot(self._offset, index, content)
        self.sync_from_global()
        if index >= len(self._shadow):
            self._shadow.extend([None] * (index + 1 - len(self._shadow)))
        self._shadow[index] = content
        return self.sync_to_global()

    def sync_to_global(self) -> bool:
        """Push the shadow page into the arena."""
        return self._arena.load_page(self._offset, self._shadow)

    def sync_from_global(self) -> None:
        """Refresh the shadow page from the arena."""
        self._shadow = self._arena.page(self._offset)


def read_process_memory(process: Process, index: int) -> Any:
    """Read slot *index* of *process*'s memory window."""
    return process.memory.read(index)


def write_process_memory(process: Process, index: int, content: Any) -> bool:
    """Write *content* into slot *index* of *process*'s memory window."""
    return process.memory.write(index, content)
