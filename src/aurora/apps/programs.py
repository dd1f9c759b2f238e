"""Small built-in programs.

``echo`` finishes in one call.  ``greet`` and ``count`` are generators:
they suspend on input and keep their locals (the running total, the
lines seen so far) across every resume.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

    from aurora.devices import IODevice, ReadLine
    from aurora.process.pcb import Process
    from aurora.services import ServiceSet


def echo(_process: Process, _services: ServiceSet, args: list[str], io: IODevice) -> int:
    """Write the arguments back, separated by spaces."""
    io.write(" ".join(args) + "\n")
    return 0


def greet(
    _process: Process,
    _services: ServiceSet,
    args: list[str],
    io: IODevice,
) -> Generator[ReadLine, str, int]:
    """Ask for a name (unless given one) and say hello."""
    name = " ".join(args)
    if not name:
        name = (yield io.read_line("What is your name? ")).strip()
    io.write(f"Hello, {name or 'stranger'}!\n")
    return 0


def count(
    process: Process,
    services: ServiceSet,
    _args: list[str],
    io: IODevice,
) -> Generator[ReadLine, str, int]:
    """Add up numbers, one per line, until an empty line.

    The running total is also kept in slot 0 of the process's memory.
    """
    total = 0
    lines = 0
    while True:
        line = (yield io.read_line(f"[{lines}] number> ")).strip()
        if not line:
            break
        try:
            total += int(line)
        except ValueError:
            io.write(f"Not a number: {line}\n")
            continue
        lines += 1
        services.memory.write(process, 0, total)
    io.write(f"Total of {lines} number(s): {total}\n")
    return 0
