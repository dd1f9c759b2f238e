"""Applications linked into Aurora.

Re-exports the programs and builds the default catalog::

    from aurora.apps import default_catalog
"""

from aurora.apps.programs import count, echo, greet
from aurora.apps.shell import ShellSession, shell
from aurora.process.application import Application, ApplicationCatalog

SHELL_APP_ID = "shell"

__all__ = [
    "SHELL_APP_ID",
    "ShellSession",
    "count",
    "default_catalog",
    "echo",
    "greet",
    "shell",
]


def default_catalog() -> ApplicationCatalog:
    """Return a catalog holding the shell and the small built-in programs."""
    catalog = ApplicationCatalog()
    catalog.register(Application("shell", "0.1.0", shell, app_id=SHELL_APP_ID))
    catalog.register(Application("echo", "1.0.0", echo, app_id="echo"))
    catalog.register(Application("greet", "1.0.0", greet, app_id="greet"))
    catalog.register(Application("count", "1.0.0", count, app_id="count"))
    return catalog
