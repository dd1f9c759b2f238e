"""The bootstrap shell — Aurora's first process.

The kernel starts this program at boot with the full service set.  It
is a generator: it prints a prompt, yields an input request, and
interprets the line it is resumed with.  All of its state (the current
directory, whether ``exit`` was typed) lives in a ``ShellSession`` on
the generator's frame, so it survives every suspension.

The shell talks to the kernel only through services.  ``run`` spawns a
child process through the ``process`` service; if the child waits for
input it becomes the foreground process until it finishes.

Design choices (same as any command interpreter):
    - **Handlers return strings.**  The loop writes them to the device,
      which keeps every handler testable on its own.
    - **Command dispatch via a dict**, one method per command.
"""

from __future__ import annotations

import shlex
from collections.abc import Callable
from typing import TYPE_CHECKING, TypeAlias

from aurora.fs.appfile import InvalidApplicationRecordError, is_application_file
from aurora.fs.filesystem import ROOT_MARKER
from aurora.fs.nodes import Directory, File
from aurora.process.application import UnknownApplicationError
from aurora.process.pcb import ProcessStatus

if TYPE_CHECKING:
    from collections.abc import Generator

    from aurora.devices import IODevice, ReadLine
    from aurora.fs.nodes import Node
    from aurora.process.application import Application
    from aurora.process.pcb import Process
    from aurora.services import ServiceSet

_Handler: TypeAlias = Callable[[list[str]], str]

CWD_SLOT = 0
"""Memory slot where the shell mirrors its current directory."""

_BIN = "bin"


class ShellSession:
    """Interpreter state and command handlers for one shell process."""

    def __init__(self, process: Process, services: ServiceSet, io: IODevice) -> None:
        """Create a session rooted at ``root``."""
        self._process = process
        self._services = services
        self._io = io
        self._cwd = ROOT_MARKER
        self.exited = False
        self._services.memory.write(process, CWD_SLOT, self._cwd)

        self._commands: dict[str, _Handler] = {
            "help": self._cmd_help,
            "ls": self._cmd_ls,
            "cd": self._cmd_cd,
            "pwd": self._cmd_pwd,
            "cat": self._cmd_cat,
            "mkdir": self._cmd_mkdir,
            "touch": self._cmd_touch,
            "write": self._cmd_write,
            "append": self._cmd_append,
            "truncate": self._cmd_truncate,
            "rm": self._cmd_rm,
            "ps": self._cmd_ps,
            "run": self._cmd_run,
            "apps": self._cmd_apps,
            "install": self._cmd_install,
            "mem": self._cmd_mem,
            "uname": self._cmd_uname,
            "date": self._cmd_date,
            "log": self._cmd_log,
            "clear": self._cmd_clear,
            "exit": self._cmd_exit,
        }

    @property
    def cwd(self) -> str:
        """Return the current directory path."""
        return self._cwd

    @property
    def commands(self) -> list[str]:
        """Return the available command names, sorted."""
        return sorted(self._commands)

    def prompt(self) -> str:
        """Return the prompt shown while waiting for a command."""
        return f"{self._cwd} $ "

    def execute(self, line: str) -> str:
        """Parse and run one command line, returning its output."""
        try:
            words = shlex.split(line)
        except ValueError as e:
            return f"Error: {e}"
        if not words:
            return ""
        name, args = words[0], words[1:]
        handler = self._commands.get(name)
        if handler is None:
            return f"Unknown command: {name}"
        return handler(args)

    # -- Path helpers ------------------------------------------------------------

    def _lookup(self, path: str) -> Node | None:
        return self._services.fs.get_item_by_path(path, cwd=self._cwd)

    def _split_parent(self, path: str) -> tuple[Directory | None, str]:
        """Return ``(parent directory, last segment)`` for a new node path."""
        head, _, last = path.rstrip("/").rpartition("/")
        if not last:
            return None, ""
        parent_path = head if head else ("/" if path.startswith("/") else ".")
        parent = self._lookup(parent_path)
        return (parent if isinstance(parent, Directory) else None), last

    def _open_file(self, path: str, *, create: bool) -> File | str:
        node = self._lookup(path)
        if isinstance(node, File):
            return node
        if node is not None:
            return f"Error: is a directory: {path}"
        if not create:
            return f"Error: not found: {path}"
        parent, leaf = self._split_parent(path)
        if parent is None:
            return f"Error: parent directory not found: {path}"
        name, dot, extension = leaf.rpartition(".")
        if not dot or not name:
            name, extension = leaf, ""
        try:
            return self._services.fs.make_file(parent, name, extension)
        except ValueError as e:
            return f"Error: {e}"

    # -- Commands ----------------------------------------------------------------

    def _cmd_help(self, _args: list[str]) -> str:
        """List available commands."""
        return "Commands: " + ", ".join(self.commands)

    def _cmd_ls(self, args: list[str]) -> str:
        """List a directory (the current one by default)."""
        path = args[0] if args else "."
        node = self._lookup(path)
        if node is None:
            return f"Error: not found: {path}"
        if isinstance(node, File):
            return node.full_name
        assert isinstance(node, Directory)  # noqa: S101
        return "\n".join(
            f"{child.full_name}/" if isinstance(child, Directory) else child.full_name
            for child in node.children
        )

    def _cmd_cd(self, args: list[str]) -> str:
        """Change the current directory."""
        target = args[0] if args else ROOT_MARKER
        node = self._lookup(target)
        if not isinstance(node, Directory):
            return f"Error: not a directory: {target}"
        path = self._services.fs.get_path_by_item(node)
        if path is None:  # pragma: no cover
            return f"Error: not found: {target}"
        self._cwd = path
        self._services.memory.write(self._process, CWD_SLOT, path)
        return ""

    def _cmd_pwd(self, _args: list[str]) -> str:
        """Print the current directory."""
        return self._cwd

    def _cmd_cat(self, args: list[str]) -> str:
        """Print a file's content."""
        if not args:
            return "Usage: cat <path>"
        opened = self._open_file(args[0], create=False)
        if isinstance(opened, str):
            return opened
        return opened.content

    def _cmd_mkdir(self, args: list[str]) -> str:
        """Create a directory."""
        if not args:
            return "Usage: mkdir <path>"
        if self._lookup(args[0]) is not None:
            return f"Error: already exists: {args[0]}"
        parent, name = self._split_parent(args[0])
        if parent is None:
            return f"Error: parent directory not found: {args[0]}"
        try:
            self._services.fs.make_directory(parent, name)
        except ValueError as e:
            return f"Error: {e}"
        return ""

    def _cmd_touch(self, args: list[str]) -> str:
        """Create an empty file if it does not exist."""
        if not args:
            return "Usage: touch <path>"
        opened = self._open_file(args[0], create=True)
        return opened if isinstance(opened, str) else ""

    def _cmd_write(self, args: list[str]) -> str:
        """Replace a file's content (creating the file if needed)."""
        if len(args) < 2:  # noqa: PLR2004
            return "Usage: write <path> <text>"
        opened = self._open_file(args[0], create=True)
        if isinstance(opened, str):
            return opened
        self._services.fs.write_content(opened, " ".join(args[1:]))
        return ""

    def _cmd_append(self, args: list[str]) -> str:
        """Append a line to a file (creating the file if needed)."""
        if len(args) < 2:  # noqa: PLR2004
            return "Usage: append <path> <text>"
        opened = self._open_file(args[0], create=True)
        if isinstance(opened, str):
            return opened
        prefix = "\n" if opened.content else ""
        self._services.fs.append_content(opened, prefix + " ".join(args[1:]))
        return ""

    def _cmd_truncate(self, args: list[str]) -> str:
        """Empty a file."""
        if not args:
            return "Usage: truncate <path>"
        opened = self._open_file(args[0], create=False)
        if isinstance(opened, str):
            return opened
        self._services.fs.clear_content(opened)
        return ""

    def _cmd_rm(self, args: list[str]) -> str:
        """Remove a file, or a directory (non-empty ones need ``-r``)."""
        recursive = "-r" in args
        paths = [a for a in args if a != "-r"]
        if not paths:
            return "Usage: rm [-r] <path>"
        node = self._lookup(paths[0])
        if node is None:
            return f"Error: not found: {paths[0]}"
        if node is self._services.fs.root():
            return "Error: cannot remove the root directory"
        if isinstance(node, Directory) and node.children and not recursive:
            return f"Error: directory not empty: {paths[0]}"
        path = self._services.fs.get_path_by_item(node)
        parent = self._lookup(path.rpartition("/")[0]) if path else None
        if not isinstance(parent, Directory):  # pragma: no cover
            return f"Error: not found: {paths[0]}"
        self._services.fs.remove_child(parent, node)
        if path is not None and (self._cwd == path or self._cwd.startswith(path + "/")):
            self._cwd = ROOT_MARKER
            self._services.memory.write(self._process, CWD_SLOT, self._cwd)
        return ""

    def _cmd_ps(self, _args: list[str]) -> str:
        """List every process that has been started."""
        lines = ["PID  NAME         STATUS      OFFSET"]
        for process in self._services.process.table().values():
            lines.append(
                f"{process.pid:<4} {process.name:<12} {process.status!s:<11} "
                f"{process.memory_offset}"
            )
        return "\n".join(lines)

    def _resolve_program(self, target: str) -> tuple[Application, list[str]] | str:
        node = self._lookup(target)
        if node is None and "/" not in target:
            node = self._lookup(f"{ROOT_MARKER}/{_BIN}/{target}")
        if is_application_file(node):
            try:
                record, app = self._services.apps.load_record(node)
            except InvalidApplicationRecordError as e:
                return f"Error: {e}"
            return app, list(record.args)
        if node is not None:
            return f"Error: not an application: {target}"
        try:
            return self._services.apps.resolve(target), []
        except UnknownApplicationError:
            return f"Unknown application: {target}"

    def _cmd_run(self, args: list[str]) -> str:
        """Run an application file or a catalog application."""
        if not args:
            return "Usage: run <app> [args...]"
        resolved = self._resolve_program(args[0])
        if isinstance(resolved, str):
            return resolved
        app, stored_args = resolved
        child = self._services.process.create(app)
        try:
            self._services.process.start(child, stored_args + args[1:], self._io)
        except ValueError as e:
            return f"Error: {e}"
        if child.status is ProcessStatus.TERMINATED and child.exit_code:
            reason = f": {child.error}" if child.error else ""
            return f"[{child.key} exited with code {child.exit_code}{reason}]"
        return ""

    def _cmd_apps(self, _args: list[str]) -> str:
        """List the applications linked into the system."""
        return "\n".join(self._services.apps.catalog())

    def _cmd_install(self, args: list[str]) -> str:
        """Save a catalog application as an ``.app`` file."""
        if not args:
            return "Usage: install <app> [directory]"
        try:
            app = self._services.apps.resolve(args[0])
        except UnknownApplicationError:
            return f"Unknown application: {args[0]}"
        target = args[1] if len(args) > 1 else "."
        directory = self._lookup(target)
        if not isinstance(directory, Directory):
            return f"Error: not a directory: {target}"
        saved = self._services.apps.save(directory, app)
        return f"Installed {self._services.fs.get_path_by_item(saved)}"

    def _cmd_mem(self, args: list[str]) -> str:
        """Read or write this shell's memory: ``mem read <i>`` / ``mem write <i> <v>``."""
        usage = "Usage: mem read <index> | mem write <index> <value>"
        if len(args) < 2 or args[0] not in {"read", "write"}:  # noqa: PLR2004
            return usage
        try:
            index = int(args[1])
        except ValueError:
            return f"Error: invalid index '{args[1]}'"
        if args[0] == "read":
            value = self._services.memory.read(self._process, index)
            return "" if value is None else str(value)
        if len(args) < 3:  # noqa: PLR2004
            return usage
        if not self._services.memory.write(self._process, index, " ".join(args[2:])):
            return f"Error: cannot write slot {index}"
        return ""

    def _cmd_uname(self, _args: list[str]) -> str:
        """Print the kernel identity."""
        return self._services.kernel.identity()

    def _cmd_date(self, _args: list[str]) -> str:
        """Print the current UTC time."""
        return self._services.clock.now().isoformat(timespec="seconds")

    def _cmd_log(self, args: list[str]) -> str:
        """Show the most recent kernel log entries."""
        try:
            count = int(args[0]) if args else 10
        except ValueError:
            return f"Error: invalid count '{args[0]}'"
        return "\n".join(self._services.log.tail(count))

    def _cmd_clear(self, _args: list[str]) -> str:
        """Clear the terminal."""
        self._io.clear()
        return ""

    def _cmd_exit(self, _args: list[str]) -> str:
        """Leave the shell."""
        self.exited = True
        return "Goodbye."


def shell(
    process: Process,
    services: ServiceSet,
    _args: list[str],
    io: IODevice,
) -> Generator[ReadLine, str, int]:
    """Run the interactive command loop until ``exit``."""
    session = ShellSession(process, services, io)
    io.write(f"{services.kernel.identity()}. Type 'help' for commands.\n")
    while not session.exited:
        line = yield io.read_line(session.prompt())
        output = session.execute(line)
        if output:
            io.write(output + "\n")
    return 0
