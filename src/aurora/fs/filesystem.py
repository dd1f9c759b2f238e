"""ONFS — the Aurora virtual filesystem.

A filesystem is an id plus one root ``Directory`` called ``root``.
Paths are written from that root marker::

    root                    → the root directory
    root/docs/welcome.txt   → a file
    /docs/welcome           → same file (a leading "/" means "root/",
                              and a file may be named without extension)

Lookup walks the tree one segment at a time and gives up with ``None``
the moment a segment is missing.  The reverse, ``get_path_by_item``,
searches the tree for a node by identity and rebuilds its path.

Durability:
    Every mutation (adding or removing a child, writing, appending, or
    clearing file content) serializes the *whole* tree and stores it
    under ``onfs:<id>``.  Loading reads that record back and rebuilds
    live nodes from the plain data (``reconstruct``), preserving child
    order and content exactly.

Owner lookup:
    Filesystems register themselves in a ``FilesystemDirectory`` owned
    by the kernel.  Nodes keep only the filesystem id and ask the
    directory for their owner when they need it.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from aurora.fs.nodes import Directory, File, Node, NodeType

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from aurora.devices import IODevice
    from aurora.fs.storage import Storage
    from aurora.logging import Logger

ROOT_MARKER = "root"
SEPARATOR = "/"
_SEPARATORS = re.compile(r"[\\/]")
_SOURCE = "fs"


class NotFoundError(FileNotFoundError):
    """Raise when a path does not resolve (only from ``require_item``)."""


class CorruptFilesystemError(ValueError):
    """Raise when a stored filesystem graph cannot be rebuilt."""


def storage_key(filesystem_id: str) -> str:
    """Return the storage key for the filesystem called *filesystem_id*."""
    return f"onfs:{filesystem_id}"


def split_path(path: str, *, cwd: str | None = None) -> list[str]:
    """Turn *path* into the list of segments below the root.

    Absolute forms (``root/...``, ``/...``) ignore *cwd*.  Anything
    else is relative to *cwd* (itself an absolute path) or to the root.
    ``.`` segments are dropped and ``..`` climbs one level (never above
    the root).

    Examples::

        split_path("root/a/b")           → ["a", "b"]
        split_path("/a/b")               → ["a", "b"]
        split_path("c", cwd="root/a")    → ["a", "c"]
        split_path("../x", cwd="/a/b")   → ["a", "x"]

    """
    stripped = path.strip()
    parts = [p for p in _SEPARATORS.split(stripped) if p]
    if stripped.startswith(("/", "\\")):
        raw = parts
    elif parts and parts[0] == ROOT_MARKER:
        raw = parts[1:]
    elif cwd is not None:
        raw = split_path(cwd) + parts
    else:
        raw = parts

    segments: list[str] = []
    for part in raw:
        if part == ".":
            continue
        if part == "..":
            if segments:
                segments.pop()
            continue
        segments.append(part)
    return segments


class FilesystemDirectory:
    """The kernel's id → filesystem table."""

    def __init__(self) -> None:
        """Create an empty directory."""
        self._filesystems: dict[str, Filesystem] = {}

    def register(self, filesystem: Filesystem) -> None:
        """Make *filesystem* resolvable by its id (replacing any previous one)."""
        self._filesystems[filesystem.id] = filesystem

    def unregister(self, filesystem_id: str) -> None:
        """Forget the filesystem with *filesystem_id* (no-op if unknown)."""
        self._filesystems.pop(filesystem_id, None)

    def get(self, filesystem_id: str) -> Filesystem | None:
        """Return the filesystem with *filesystem_id*, or None."""
        return self._filesystems.get(filesystem_id)

    def owner_of(self, node: Node) -> Filesystem | None:
        """Return the filesystem *node* claims to belong to."""
        if node.filesystem_id is None:
            return None
        return self.get(node.filesystem_id)

    def ids(self) -> list[str]:
        """Return every registered filesystem id."""
        return list(self._filesystems)

    def clear(self) -> None:
        """Forget every filesystem."""
        self._filesystems.clear()


class Filesystem:
    """A rooted, path-addressable, self-persisting tree of nodes."""

    def __init__(
        self,
        filesystem_id: str,
        *,
        storage: Storage,
        directory: FilesystemDirectory | None = None,
        logger: Logger | None = None,
        root: Directory | None = None,
    ) -> None:
        """Create a filesystem and register it in *directory*.

        The tree is not persisted until the first mutation or an
        explicit ``init()`` / ``sync_to_storage()``.

        Args:
            filesystem_id: Identifier, also used for the storage key.
            storage: Where the serialized tree is kept.
            directory: The id → filesystem table nodes resolve through.
                A private one is created when omitted.
            logger: Kernel log buffer.
            root: An existing root directory (used by ``reconstruct``).

        """
        self._id = filesystem_id
        self._storage = storage
        self._directory = directory if directory is not None else FilesystemDirectory()
        self._logger = logger
        self._root = root if root is not None else Directory(ROOT_MARKER)
        self._attach(self._root)
        self._directory.register(self)

    # -- Identity ----------------------------------------------------------------

    @property
    def id(self) -> str:
        """Return the filesystem id."""
        return self._id

    @property
    def root(self) -> Directory:
        """Return the root directory."""
        return self._root

    @property
    def directory(self) -> FilesystemDirectory:
        """Return the filesystem directory this filesystem is registered in."""
        return self._directory

    @property
    def storage_key(self) -> str:
        """Return the key the tree is persisted under."""
        return storage_key(self._id)

    def _log(self, message: str) -> None:
        if self._logger is not None:
            self._logger.debug(message, source=_SOURCE)

    # -- Lifecycle ---------------------------------------------------------------

    def init(self, io: IODevice | None = None) -> None:
        """Replace the tree with an empty root and persist it."""
        self._detach(self._root)
        self._root = Directory(ROOT_MARKER)
        self._attach(self._root)
        self.sync_to_storage()
        if self._logger is not None:
            self._logger.info(f"Initialised filesystem {self._id}", source=_SOURCE)
        if io is not None:
            io.write(f"ONFS {self._id}: initialised empty filesystem\n")

    @classmethod
    def reconstruct(
        cls,
        graph: Mapping[str, Any],
        filesystem_id: str,
        *,
        storage: Storage,
        directory: FilesystemDirectory | None = None,
        logger: Logger | None = None,
    ) -> Filesystem:
        """Rebuild a live filesystem from a plain stored graph.

        *graph* is the record written by ``sync_to_storage`` (or any
        mapping with a ``"root"`` entry).  Every directory-shaped node
        becomes a ``Directory`` and every file-shaped node a ``File``,
        recursively, in stored order.

        Raises:
            CorruptFilesystemError: If the graph is not a valid tree.

        """
        if "root" not in graph:
            msg = f"Stored filesystem {filesystem_id} has no root"
            raise CorruptFilesystemError(msg)
        root = _build_node(graph["root"], path=ROOT_MARKER)
        if not isinstance(root, Directory):
            msg = "Stored filesystem root is not a directory"
            raise CorruptFilesystemError(msg)
        fs = cls(filesystem_id, storage=storage, directory=directory, logger=logger, root=root)
        fs._log(f"Reconstructed filesystem {filesystem_id}")
        return fs

    @classmethod
    def load(
        cls,
        filesystem_id: str,
        *,
        storage: Storage,
        directory: FilesystemDirectory | None = None,
        logger: Logger | None = None,
        io: IODevice | None = None,
    ) -> Filesystem:
        """Reconstruct the stored filesystem, or initialise a fresh one.

        Raises:
            CorruptFilesystemError: If a stored record exists but is unreadable.

        """
        text = storage.get_item(storage_key(filesystem_id))
        if text is None:
            fs = cls(filesystem_id, storage=storage, directory=directory, logger=logger)
            fs.init(io)
            return fs
        try:
            graph = json.loads(text)
        except json.JSONDecodeError as e:
            msg = f"Stored filesystem {filesystem_id} is not valid JSON: {e}"
            raise CorruptFilesystemError(msg) from e
        if not isinstance(graph, dict):
            msg = f"Stored filesystem {filesystem_id} is not a record"
            raise CorruptFilesystemError(msg)
        return cls.reconstruct(
            graph, filesystem_id, storage=storage, directory=directory, logger=logger
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize the tree structurally."""
        return {"id": self._id, "root": self._root.to_dict()}

    def sync_to_storage(self) -> None:
        """Serialize the whole tree and store it under ``onfs:<id>``."""
        self._storage.set_item(self.storage_key, json.dumps(self.to_dict(), indent=2))
        self._log(f"Synced filesystem {self._id} to storage")

    # -- Lookup ------------------------------------------------------------------

    def get_item_by_path(self, path: str, *, cwd: str | None = None) -> Node | None:
        """Return the node at *path*, or None if any segment is missing."""
        current: Node = self._root
        for segment in split_path(path, cwd=cwd):
            if not isinstance(current, Directory):
                return None
            child = current.find(segment)
            if child is None:
                return None
            current = child
        return current

    def require_item(self, path: str, *, cwd: str | None = None) -> Node:
        """Return the node at *path*.

        Raises:
            NotFoundError: If the path does not resolve.

        """
        node = self.get_item_by_path(path, cwd=cwd)
        if node is None:
            msg = f"Path not found: {path}"
            raise NotFoundError(msg)
        return node

    def get_path_by_item(self, node: Node) -> str | None:
        """Return the path of *node*, or None if it is not in this tree."""
        if node is self._root:
            return ROOT_MARKER
        trail = _find_trail(self._root, node)
        if trail is None:
            return None
        return SEPARATOR.join([ROOT_MARKER, *trail])

    def walk(self) -> Iterator[tuple[str, Node]]:
        """Yield ``(path, node)`` for every node, depth first, root first."""
        yield from _walk(self._root, ROOT_MARKER)

    # -- Structural mutation -----------------------------------------------------

    def add_child(self, directory: Directory, node: Node) -> None:
        """Append *node* to *directory* and persist.

        Adding a node that is already a child is a no-op.

        Raises:
            ValueError: If *directory* belongs to another filesystem, or
                if *node* is a directory containing *directory*.

        """
        self._require_owned(directory)
        if isinstance(node, Directory) and any(n is directory for n in node.iter_tree()):
            msg = f"Cannot add {node.name} inside itself"
            raise ValueError(msg)
        if not directory.insert(node):
            return
        self._attach(node)
        self._log(f"Added {node.full_name} to {directory.name}")
        self.sync_to_storage()

    def remove_child(self, directory: Directory, node: Node) -> None:
        """Remove *node* from *directory* and persist.

        Removing a node that is not a child is a no-op.
        """
        self._require_owned(directory)
        if not directory.discard(node):
            return
        if self.get_path_by_item(node) is None:
            self._detach(node)
        self._log(f"Removed {node.full_name} from {directory.name}")
        self.sync_to_storage()

    def make_directory(self, parent: Directory, name: str) -> Directory:
        """Create a directory called *name* inside *parent*."""
        new = Directory(name)
        self.add_child(parent, new)
        return new

    def make_file(
        self,
        parent: Directory,
        name: str,
        extension: str = "",
        content: str = "",
    ) -> File:
        """Create a file inside *parent*."""
        new = File(name, extension, content)
        self.add_child(parent, new)
        return new

    # -- Content mutation --------------------------------------------------------

    def write_content(self, file: Node, content: str) -> None:
        """Replace *file*'s content and persist."""
        target = self._require_file(file)
        target.set_content(content)
        self.sync_to_storage()

    def append_content(self, file: Node, content: str) -> None:
        """Append to *file*'s content and persist."""
        target = self._require_file(file)
        target.set_content(target.content + content)
        self.sync_to_storage()

    def clear_content(self, file: Node) -> None:
        """Empty *file*'s content and persist."""
        target = self._require_file(file)
        target.set_content("")
        self.sync_to_storage()

    # -- Helpers -----------------------------------------------------------------

    def _require_owned(self, directory: Directory) -> None:
        if directory.filesystem_id != self._id:
            msg = f"Directory {directory.name} does not belong to filesystem {self._id}"
            raise ValueError(msg)

    @staticmethod
    def _require_file(node: Node) -> File:
        if not isinstance(node, File):
            msg = f"Is a directory: {node.name}"
            raise IsADirectoryError(msg)
        return node

    def _attach(self, node: Node) -> None:
        targets = node.iter_tree() if isinstance(node, Directory) else iter([node])
        for n in targets:
            n.attach(self._id, self._directory)

    @staticmethod
    def _detach(node: Node) -> None:
        targets = node.iter_tree() if isinstance(node, Directory) else iter([node])
        for n in targets:
            n.detach()


def _find_trail(directory: Directory, target: Node) -> list[str] | None:
    """Depth-first identity search; return the segments leading to *target*."""
    for child in directory.children:
        if child is target:
            return [child.full_name]
        if isinstance(child, Directory):
            below = _find_trail(child, target)
            if below is not None:
                return [child.full_name, *below]
    return None


def _walk(node: Node, path: str) -> Iterator[tuple[str, Node]]:
    yield path, node
    if isinstance(node, Directory):
        for child in node.children:
            yield from _walk(child, f"{path}{SEPARATOR}{child.full_name}")


def _build_node(data: object, *, path: str) -> Node:
    """Turn one plain stored node (and its subtree) into a live node."""
    if not isinstance(data, dict):
        msg = f"Stored node at {path} is not a record"
        raise CorruptFilesystemError(msg)
    name = data.get("name")
    if not isinstance(name, str):
        msg = f"Stored node at {path} has no name"
        raise CorruptFilesystemError(msg)

    tag = data.get("type")
    if tag is None:
        tag = NodeType.DIRECTORY if "children" in data else NodeType.FILE
    if tag == NodeType.DIRECTORY:
        children = data.get("children", [])
        if not isinstance(children, list):
            msg = f"Stored directory at {path} has malformed children"
            raise CorruptFilesystemError(msg)
        try:
            directory = Directory(name)
        except ValueError as e:
            msg = f"Stored directory at {path}: {e}"
            raise CorruptFilesystemError(msg) from e
        for i, child in enumerate(children):
            directory.insert(_build_node(child, path=f"{path}{SEPARATOR}[{i}]"))
        return directory
    if tag == NodeType.FILE:
        extension = data.get("extension", "")
        content = data.get("content", "")
        if not isinstance(extension, str) or not isinstance(content, str):
            msg = f"Stored file at {path} has malformed fields"
            raise CorruptFilesystemError(msg)
        try:
            return File(name, extension, content)
        except ValueError as e:
            msg = f"Stored file at {path}: {e}"
            raise CorruptFilesystemError(msg) from e
    msg = f"Stored node at {path} has unknown type {tag!r}"
    raise CorruptFilesystemError(msg)
