"""Interactive REPL (Read-Eval-Print Loop) for Aurora.

The REPL is the terminal run loop.  It boots the kernel through the
system loader on a ``ConsoleDevice`` and then repeats:

    1. **Read** — show the foreground process's prompt and read a line.
    2. **Eval** — hand the line to ``kernel.feed()``; the process runs
       until it waits again, writing its output straight to the console.
    3. **Loop** — until no process is waiting any more (the shell exited).

The helpers (``format_boot_log``, ``build_prompt``, ``complete_command``)
are pure and testable.  ``run()`` is the I/O entrypoint.
"""

import readline

from aurora.apps.shell import ShellSession
from aurora.bootloader import SystemLoader
from aurora.devices import ConsoleDevice
from aurora.kernel import Kernel, KernelState

_BANNER_WIDTH = 38


def format_banner() -> str:
    """Return the banner printed before the boot messages."""
    border = "=" * _BANNER_WIDTH
    return f"\n  {border}\n            Aurora\n     A simulated operating system\n  {border}\n"


def format_boot_log(boot_log: list[str]) -> str:
    """Format boot messages for display, one indented line each.

    Args:
        boot_log: Boot messages from the system loader and kernel.

    Returns:
        A banner followed by the messages.

    """
    body = "\n".join(f"  {msg}" for msg in boot_log)
    return format_banner() + "\n" + body + "\n"


def build_prompt(kernel: Kernel) -> str:
    """Return the prompt of the process waiting for input.

    Falls back to ``aurora $ `` when the kernel is not running or the
    waiting process did not ask for a prompt.
    """
    if kernel.state is not KernelState.RUNNING:
        return "aurora $ "
    return kernel.prompt() or "> "


def command_names() -> list[str]:
    """Return the shell's command names, sorted."""
    return sorted(
        name.removeprefix("_cmd_") for name in dir(ShellSession) if name.startswith("_cmd_")
    )


def complete_command(text: str, state: int) -> str | None:
    """Complete a shell command name for readline.

    Returns the *state*-th candidate starting with *text*, or None when
    there are no more candidates.
    """
    matches = [name for name in command_names() if name.startswith(text)]
    return matches[state] if state < len(matches) else None


def run() -> None:
    """Boot Aurora and run the interactive REPL.

    This is the ``aurora`` console entry point.  It handles:
    - The boot chain (POST → kernel image → kernel boot → shell).
    - The read-feed loop.
    - Graceful handling of Ctrl+C and Ctrl+D.
    - Clean shutdown.
    """
    readline.set_completer(complete_command)
    readline.set_completer_delims(" \t")
    readline.parse_and_bind("tab: complete")

    print(format_banner())  # noqa: T201
    loader = SystemLoader()
    kernel = loader.boot(ConsoleDevice())

    try:
        while kernel.running:
            try:
                line = input(build_prompt(kernel))
            except EOFError:
                # Ctrl+D: graceful exit
                print()  # noqa: T201
                break
            kernel.feed(line)

    except KeyboardInterrupt:
        # Ctrl+C: graceful exit
        print("\nInterrupted.")  # noqa: T201

    finally:
        if kernel.state is KernelState.RUNNING:
            kernel.shutdown()
        print("System halted.")  # noqa: T201
