"""Line-oriented text I/O devices.

Every process is started with one I/O device.  The device is the only
way a program talks to the outside world: it writes text and asks for
lines of input.

Asking for input does not block.  ``read_line(prompt)`` returns a
``ReadLine`` request and the program **yields** it::

    name = yield io.read_line("Your name? ")

The process manager parks the program at that ``yield`` and hands
control back to whoever is driving the system (the REPL, the web UI, a
test).  When the driver has a line, it resumes the program and the line
becomes the value of the ``yield`` expression.  Local state (loop
counters, the current directory) survives the suspension because it
lives in the generator frame.

This module provides:

**IODevice** (Protocol) — ``write``, ``read_line``, ``clear``, ``dispose``.

**Concrete devices**:
    - ``BufferedDevice``: collects output in memory (tests, web UI).
    - ``ConsoleDevice``: prints output to stdout (terminal REPL).
    - ``NullDevice``: discards output.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, TextIO


class DeviceState(StrEnum):
    """The operational state of a device."""

    READY = "ready"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class ReadLine:
    """A program's request for one line of input.

    Attributes:
        prompt: Text shown to the user while the program waits.

    """

    prompt: str = ""


class DeviceDisposedError(RuntimeError):
    """Raise when writing to a device that has been disposed."""


class IODevice(Protocol):
    """Interface that every I/O device must satisfy."""

    @property
    def status(self) -> DeviceState:
        """Return the current device state."""
        ...  # pragma: no cover

    def write(self, text: str) -> None:
        """Emit *text* (no newline is added)."""
        ...  # pragma: no cover

    def read_line(self, prompt: str = "") -> ReadLine:
        """Return a suspension request for one line of input."""
        ...  # pragma: no cover

    def clear(self) -> None:
        """Clear whatever the device is displaying."""
        ...  # pragma: no cover

    def dispose(self) -> None:
        """Release the device; further writes fail."""
        ...  # pragma: no cover


class _BaseDevice:
    """Shared state handling for the concrete devices."""

    def __init__(self) -> None:
        self._status = DeviceState.READY

    @property
    def status(self) -> DeviceState:
        """Return the current device state."""
        return self._status

    def _require_ready(self) -> None:
        if self._status is DeviceState.DISPOSED:
            msg = "Device has been disposed"
            raise DeviceDisposedError(msg)

    def read_line(self, prompt: str = "") -> ReadLine:
        """Return a suspension request for one line of input."""
        self._require_ready()
        return ReadLine(prompt=prompt)

    def dispose(self) -> None:
        """Mark the device as disposed."""
        self._status = DeviceState.DISPOSED


class BufferedDevice(_BaseDevice):
    """Collect everything written into an in-memory buffer.

    ``drain()`` returns the pending output and empties the buffer, which
    is how the web UI and the tests read what a program printed.
    """

    def __init__(self) -> None:
        """Create a device with an empty buffer."""
        super().__init__()
        self._chunks: list[str] = []
        self._clears = 0

    @property
    def output(self) -> str:
        """Return everything written since the last drain or clear."""
        return "".join(self._chunks)

    @property
    def clear_count(self) -> int:
        """Return how many times the device was cleared."""
        return self._clears

    def write(self, text: str) -> None:
        """Append *text* to the buffer."""
        self._require_ready()
        self._chunks.append(text)

    def clear(self) -> None:
        """Drop buffered output."""
        self._chunks.clear()
        self._clears += 1

    def drain(self) -> str:
        """Return buffered output and empty the buffer."""
        text = self.output
        self._chunks.clear()
        return text


class ConsoleDevice(_BaseDevice):
    """Write program output straight to a text stream (stdout by default)."""

    _CLEAR_SCREEN = "\033[2J\033[H"

    def __init__(self, stream: TextIO | None = None) -> None:
        """Create a console bound to *stream*."""
        super().__init__()
        self._stream = stream if stream is not None else sys.stdout

    def write(self, text: str) -> None:
        """Write *text* and flush."""
        self._require_ready()
        self._stream.write(text)
        self._stream.flush()

    def clear(self) -> None:
        """Clear the terminal with an ANSI escape sequence."""
        self.write(self._CLEAR_SCREEN)


class NullDevice(_BaseDevice):
    """Discard all output."""

    def write(self, text: str) -> None:
        """Absorb *text* silently."""
        self._require_ready()

    def clear(self) -> None:
        """Nothing to clear."""
