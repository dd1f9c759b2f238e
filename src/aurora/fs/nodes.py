"""Filesystem nodes — directories and files.

ONFS is a plain tree.  A ``Directory`` holds an ordered list of child
nodes; a ``File`` holds a name, an extension, and a text ``content``.
There are no inodes: a node *is* its tree position, and two nodes with
the same name are still two different nodes (lookup by path finds the
first one).

Names are single path segments: never empty, never ``.`` or ``..``, and
free of separators, so every node has a path that leads back to it.

Each node remembers which filesystem it belongs to by **id**, not by
reference.  The id is resolved through the kernel's filesystem
directory whenever a node needs its owner, for example when
``directory.add_child(...)`` must persist the change.  A node that is
not attached to any filesystem simply mutates itself locally.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

    from aurora.fs.filesystem import Filesystem, FilesystemDirectory


_SEPARATOR_CHARS = frozenset("/\\")
_RESERVED_NAMES = frozenset({"", ".", ".."})


def check_segment(text: str, *, what: str = "name") -> str:
    """Return *text* if it can stand alone as one path segment.

    A segment is a non-empty string other than ``.`` or ``..`` with no
    separator and no surrounding whitespace, so the path built from it
    always resolves back to the same node.

    Raises:
        ValueError: If *text* is not a valid segment.

    """
    if (
        text in _RESERVED_NAMES
        or text != text.strip()
        or any(char in _SEPARATOR_CHARS for char in text)
    ):
        msg = f"Invalid node {what}: {text!r}"
        raise ValueError(msg)
    return text


class NodeType(StrEnum):
    """The type tag written into serialized nodes."""

    DIRECTORY = "directory"
    FILE = "file"


class Node:
    """Behaviour shared by directories and files."""

    node_type: NodeType

    def __init__(self, name: str) -> None:
        """Create a detached node called *name*.

        Raises:
            ValueError: If *name* is not a valid path segment.

        """
        self._name = check_segment(name)
        self._filesystem_id: str | None = None
        self._registry: FilesystemDirectory | None = None

    @property
    def name(self) -> str:
        """Return the node name."""
        return self._name

    @property
    def full_name(self) -> str:
        """Return the name used as a path segment."""
        return self._name

    @property
    def filesystem_id(self) -> str | None:
        """Return the id of the owning filesystem, or None when detached."""
        return self._filesystem_id

    def owner(self) -> Filesystem | None:
        """Resolve the owning filesystem through the filesystem directory."""
        if self._filesystem_id is None or self._registry is None:
            return None
        return self._registry.get(self._filesystem_id)

    def attach(self, filesystem_id: str, registry: FilesystemDirectory) -> None:
        """Record *filesystem_id* as this node's owner."""
        self._filesystem_id = filesystem_id
        self._registry = registry

    def detach(self) -> None:
        """Forget the owning filesystem."""
        self._filesystem_id = None
        self._registry = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize the node structurally (no owner handle)."""
        raise NotImplementedError  # pragma: no cover


class Directory(Node):
    """A directory: an ordered list of child nodes."""

    node_type = NodeType.DIRECTORY

    def __init__(self, name: str, children: list[Node] | None = None) -> None:
        """Create a directory, optionally pre-populated with *children*."""
        super().__init__(name)
        self._children: list[Node] = []
        for child in children or []:
            self.insert(child)

    @property
    def children(self) -> list[Node]:
        """Return a copy of the child list, in insertion order."""
        return list(self._children)

    def contains(self, node: Node) -> bool:
        """Return True if *node* (by identity) is a direct child."""
        return any(child is node for child in self._children)

    def find(self, segment: str) -> Node | None:
        """Return the first child matching the path *segment*.

        Directories match on their name; files match on their name or
        on ``name.extension``.
        """
        for child in self._children:
            if child.name == segment or child.full_name == segment:
                return child
        return None

    def names(self) -> list[str]:
        """Return child path segments in order."""
        return [child.full_name for child in self._children]

    def insert(self, node: Node) -> bool:
        """Append *node* locally; return False if it was already a child."""
        if self.contains(node):
            return False
        self._children.append(node)
        return True

    def discard(self, node: Node) -> bool:
        """Remove *node* locally; return False if it was not a child."""
        for i, child in enumerate(self._children):
            if child is node:
                del self._children[i]
                return True
        return False

    def add_child(self, node: Node) -> None:
        """Add *node*, persisting through the owning filesystem if any."""
        owner = self.owner()
        if owner is None:
            self.insert(node)
        else:
            owner.add_child(self, node)

    def remove_child(self, node: Node) -> None:
        """Remove *node*, persisting through the owning filesystem if any."""
        owner = self.owner()
        if owner is None:
            self.discard(node)
        else:
            owner.remove_child(self, node)

    def iter_tree(self) -> Iterator[Node]:
        """Yield this directory and every descendant, depth first."""
        yield self
        for child in self._children:
            if isinstance(child, Directory):
                yield from child.iter_tree()
            else:
                yield child

    def to_dict(self) -> dict[str, Any]:
        """Serialize the directory and its subtree."""
        return {
            "type": self.node_type.value,
            "name": self._name,
            "children": [child.to_dict() for child in self._children],
        }

    def __repr__(self) -> str:
        """Return ``Directory(name, N children)``."""
        return f"Directory({self._name!r}, {len(self._children)} children)"


class File(Node):
    """A text file with a name and an extension."""

    node_type = NodeType.FILE

    def __init__(self, name: str, extension: str = "", content: str = "") -> None:
        """Create a detached file.

        Raises:
            ValueError: If *name* or a non-empty *extension* is not a
                valid path segment.

        """
        super().__init__(name)
        self._extension = check_segment(extension, what="extension") if extension else ""
        self._content = content

    @property
    def extension(self) -> str:
        """Return the extension (without the dot)."""
        return self._extension

    @property
    def full_name(self) -> str:
        """Return ``name.extension``, or just the name without an extension."""
        return f"{self._name}.{self._extension}" if self._extension else self._name

    @property
    def content(self) -> str:
        """Return the file content."""
        return self._content

    def set_content(self, content: str) -> None:
        """Replace the content locally, without persisting."""
        self._content = content

    def write(self, content: str) -> None:
        """Replace the content, persisting through the owner if any."""
        owner = self.owner()
        if owner is None:
            self._content = content
        else:
            owner.write_content(self, content)

    def append(self, content: str) -> None:
        """Append to the content, persisting through the owner if any."""
        owner = self.owner()
        if owner is None:
            self._content += content
        else:
            owner.append_content(self, content)

    def clear(self) -> None:
        """Empty the content, persisting through the owner if any."""
        owner = self.owner()
        if owner is None:
            self._content = ""
        else:
            owner.clear_content(self)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the file."""
        return {
            "type": self.node_type.value,
            "name": self._name,
            "extension": self._extension,
            "content": self._content,
        }

    def __repr__(self) -> str:
        """Return ``File(name.ext, N chars)``."""
        return f"File({self.full_name!r}, {len(self._content)} chars)"
