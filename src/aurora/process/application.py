"""Applications and the application catalog.

An **application** is what a process runs: a name, a version, and a
*program*.  A program is a plain callable::

    def program(process, services, args, io) -> int | None | Generator

A program that never needs input just does its work and returns (the
return value is the exit code, ``None`` meaning 0).  A program that
needs input is a generator: it yields ``io.read_line(prompt)`` requests
and receives each line back as the value of the ``yield``.

The **catalog** maps stable identifiers (``"echo"``, ``"shell"``) to
applications that are linked into the package.  Application files on
the virtual filesystem store only such an identifier, so turning a file
back into something runnable is a lookup, never an ``eval``.
"""

from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from aurora.devices import IODevice, ReadLine
    from aurora.process.pcb import Process
    from aurora.services import ServiceSet

ProgramResult: TypeAlias = "int | None | Generator[ReadLine, str, int | None]"
Program: TypeAlias = "Callable[[Process, ServiceSet, list[str], IODevice], ProgramResult]"


class Application:
    """A named, versioned program.

    The program is set exactly once, either at construction or later
    through ``set_program``; after that the application is immutable.
    """

    def __init__(
        self,
        name: str,
        version: str,
        program: Program | None = None,
        *,
        app_id: str | None = None,
    ) -> None:
        """Create an application.

        Args:
            name: Human-readable name (also used for process-table keys).
            version: Free-form version string.
            program: The executable payload, if already known.
            app_id: Catalog identifier used when the app is saved to a file.

        """
        self._name = name
        self._version = version
        self._program: Program | None = program
        self._app_id = app_id

    @property
    def name(self) -> str:
        """Return the application name."""
        return self._name

    @property
    def version(self) -> str:
        """Return the application version."""
        return self._version

    @property
    def program(self) -> Program | None:
        """Return the program, or None if none has been set."""
        return self._program

    @property
    def app_id(self) -> str | None:
        """Return the catalog identifier, or None for ad-hoc applications."""
        return self._app_id

    def set_program(self, program: Program) -> None:
        """Attach the program.

        Raises:
            RuntimeError: If a program is already set.

        """
        if self._program is not None:
            msg = f"Application {self._name} already has a program"
            raise RuntimeError(msg)
        self._program = program

    def __repr__(self) -> str:
        """Return ``Application(name@version)``."""
        return f"Application({self._name}@{self._version})"


class UnknownApplicationError(KeyError):
    """Raise when an identifier is not in the catalog."""


class ApplicationCatalog:
    """Identifier → application registry of statically linked programs."""

    def __init__(self) -> None:
        """Create an empty catalog."""
        self._apps: dict[str, Application] = {}

    def register(self, app: Application, *, app_id: str | None = None) -> str:
        """Add *app* under *app_id* (or its own ``app_id``, or its name).

        Returns:
            The identifier the application is stored under.

        """
        key = app_id or app.app_id or app.name
        if app.app_id is None:
            app = Application(app.name, app.version, app.program, app_id=key)
        self._apps[key] = app
        return key

    def resolve(self, app_id: str) -> Application:
        """Return the application registered under *app_id*.

        Raises:
            UnknownApplicationError: If nothing is registered under it.

        """
        try:
            return self._apps[app_id]
        except KeyError:
            msg = f"Unknown application identifier: {app_id}"
            raise UnknownApplicationError(msg) from None

    def find(self, name: str) -> Application | None:
        """Return the first application whose name is *name*."""
        for app in self._apps.values():
            if app.name == name:
                return app
        return None

    def identifiers(self) -> list[str]:
        """Return every registered identifier in registration order."""
        return list(self._apps)

    def __contains__(self, app_id: object) -> bool:
        """Return True if *app_id* is registered."""
        return app_id in self._apps

    def __iter__(self) -> Iterator[Application]:
        """Iterate over registered applications."""
        return iter(list(self._apps.values()))

    def __len__(self) -> int:
        """Return the number of registered applications."""
        return len(self._apps)


def describe(app: Application) -> dict[str, Any]:
    """Return a plain summary of *app* (used by ``ps`` and ``apps``)."""
    return {"name": app.name, "version": app.version, "app_id": app.app_id}
