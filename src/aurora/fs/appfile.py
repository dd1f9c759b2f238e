"""Application files — persisting an application as a file.

An application file is an ordinary ``File`` with the ``app`` extension
whose content is one JSON record::

    {"name": "echo", "version": "1.0.0", "exec": "echo", "args": ["hi"]}

``exec`` is the identifier of a program in the ``ApplicationCatalog``
(or ``null`` for an application saved without one).  It is never
program text.

Turning a record back into something runnable is the job of
``ApplicationLoader`` and nothing else.  Generic filesystem loading
never does it: reconstructing a tree only rebuilds files, and a file
only becomes an application when a caller explicitly asks the loader.
The loader logs every attempt, and a bad record fails that one call
with ``InvalidApplicationRecordError``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

from aurora.fs.nodes import File, Node
from aurora.process.application import Application, UnknownApplicationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from aurora.fs.filesystem import Filesystem
    from aurora.fs.nodes import Directory
    from aurora.logging import Logger
    from aurora.process.application import ApplicationCatalog

APP_EXTENSION = "app"
_REQUIRED_FIELDS = ("name", "version", "exec")
_SOURCE = "apploader"


class InvalidApplicationRecordError(ValueError):
    """Raise when a stored application record cannot be turned into an app."""


@dataclass(frozen=True)
class ApplicationRecord:
    """The decoded content of an application file."""

    name: str
    version: str
    exec: str | None
    args: tuple[str, ...] = ()


def is_application_file(node: Node | None) -> bool:
    """Return True if *node* is a file with the ``app`` extension."""
    return isinstance(node, File) and node.extension == APP_EXTENSION


def encode_application(app: Application, args: Iterable[str] = ()) -> str:
    """Return the JSON record for *app* (its identifier, never its code)."""
    record = {
        "name": app.name,
        "version": app.version,
        "exec": app.app_id,
        "args": list(args),
    }
    return json.dumps(record)


def decode_application_record(content: str) -> ApplicationRecord:
    """Parse and validate an application record.

    Raises:
        InvalidApplicationRecordError: On bad JSON, a missing field, or a
            field of the wrong type.

    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        msg = f"Application record is not valid JSON: {e}"
        raise InvalidApplicationRecordError(msg) from e
    if not isinstance(data, dict):
        msg = "Application record must be a JSON object"
        raise InvalidApplicationRecordError(msg)

    missing = [name for name in _REQUIRED_FIELDS if name not in data]
    if missing:
        msg = f"Application record is missing field(s): {', '.join(missing)}"
        raise InvalidApplicationRecordError(msg)

    name, version, exec_id = data["name"], data["version"], data["exec"]
    args = data.get("args", [])
    if not isinstance(name, str) or not isinstance(version, str):
        msg = "Application record name and version must be strings"
        raise InvalidApplicationRecordError(msg)
    if exec_id is not None and not isinstance(exec_id, str):
        msg = "Application record exec must be an identifier or null"
        raise InvalidApplicationRecordError(msg)
    if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
        msg = "Application record args must be a list of strings"
        raise InvalidApplicationRecordError(msg)
    return ApplicationRecord(name=name, version=version, exec=exec_id, args=tuple(args))


class ApplicationLoader:
    """The one place stored application records become runnable apps.

    Programs are resolved through the catalog of linked-in applications.
    Every load is written to the kernel log: INFO on success, ERROR on
    failure.
    """

    def __init__(self, *, catalog: ApplicationCatalog, logger: Logger) -> None:
        """Create a loader resolving identifiers through *catalog*."""
        self._catalog = catalog
        self._logger = logger

    def load_record(self, source: Node | str) -> tuple[ApplicationRecord, Application]:
        """Decode *source* and resolve its program.

        Args:
            source: An application file, or raw record content.

        Raises:
            InvalidApplicationRecordError: If the record is malformed, the
                node is not a file, or the identifier is unknown.

        """
        label = source.full_name if isinstance(source, Node) else "<record>"
        try:
            if isinstance(source, Node):
                if not isinstance(source, File):
                    msg = f"{source.name} is a directory, not an application file"
                    raise InvalidApplicationRecordError(msg)
                content = source.content
            else:
                content = source
            record = decode_application_record(content)
            app = self._resolve(record)
        except InvalidApplicationRecordError as e:
            self._logger.error(f"Rejected application {label}: {e}", source=_SOURCE)
            raise
        self._logger.info(
            f"Loaded application {record.name} v{record.version} from {label} "
            f"(exec: {record.exec})",
            source=_SOURCE,
        )
        return record, app

    def load(self, source: Node | str) -> Application:
        """Return the runnable application described by *source*."""
        _record, app = self.load_record(source)
        return app

    def _resolve(self, record: ApplicationRecord) -> Application:
        if record.exec is None:
            return Application(record.name, record.version)
        try:
            linked = self._catalog.resolve(record.exec)
        except UnknownApplicationError as e:
            msg = f"Unknown application identifier: {record.exec}"
            raise InvalidApplicationRecordError(msg) from e
        if linked.version != record.version:
            self._logger.warning(
                f"Record {record.name} v{record.version} runs {record.exec} v{linked.version}",
                source=_SOURCE,
            )
        return Application(record.name, record.version, linked.program, app_id=record.exec)


def write_application_file(
    fs: Filesystem,
    directory: Directory,
    app: Application,
    *,
    args: Iterable[str] = (),
    name: str | None = None,
) -> File:
    """Save *app* as ``<name>.app`` inside *directory*."""
    return fs.make_file(directory, name or app.name, APP_EXTENSION, encode_application(app, args))
