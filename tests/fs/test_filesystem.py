"""Tests for ONFS, the virtual filesystem.

Paths start at the ``root`` marker.  Every mutation, content edits
included, rewrites the whole tree under ``onfs:<id>`` in storage, and
loading rebuilds live nodes from that record.
"""

import json

import pytest

from aurora.devices import BufferedDevice
from aurora.fs.filesystem import (
    CorruptFilesystemError,
    Filesystem,
    FilesystemDirectory,
    NotFoundError,
    split_path,
    storage_key,
)
from aurora.fs.nodes import Directory, File
from aurora.fs.storage import MemoryStorage

FS_ID = "test"


def _fs(storage: MemoryStorage | None = None) -> Filesystem:
    fs = Filesystem(FS_ID, storage=storage if storage is not None else MemoryStorage())
    fs.init()
    return fs


def _stored(storage: MemoryStorage) -> dict:
    text = storage.get_item(storage_key(FS_ID))
    assert text is not None
    return json.loads(text)


def _sample(fs: Filesystem) -> tuple[Directory, File]:
    docs = fs.make_directory(fs.root, "docs")
    welcome = fs.make_file(docs, "welcome", "txt", "hello")
    return docs, welcome


class TestSplitPath:
    """Verify path parsing."""

    @pytest.mark.parametrize(
        ("path", "cwd", "expected"),
        [
            ("root", None, []),
            ("root/a/b", None, ["a", "b"]),
            ("/a/b", None, ["a", "b"]),
            ("\\a\\b", None, ["a", "b"]),
            ("c", "root/a", ["a", "c"]),
            ("../x", "root/a/b", ["a", "x"]),
            ("./c", "root/a", ["a", "c"]),
            ("/a", "root/z", ["a"]),
            ("..", "root", []),
        ],
    )
    def test_split(self, path: str, cwd: str | None, expected: list[str]) -> None:
        """Absolute, relative, dot and dot-dot forms all resolve."""
        assert split_path(path, cwd=cwd) == expected


class TestLookup:
    """Verify path → node and node → path."""

    def test_root(self) -> None:
        """``root`` and ``/`` resolve to the root directory."""
        fs = _fs()
        assert fs.get_item_by_path("root") is fs.root
        assert fs.get_item_by_path("/") is fs.root

    def test_nested_file(self) -> None:
        """A file is found with or without its extension."""
        fs = _fs()
        _, welcome = _sample(fs)
        assert fs.get_item_by_path("root/docs/welcome.txt") is welcome
        assert fs.get_item_by_path("/docs/welcome") is welcome

    def test_missing_segment_returns_none(self) -> None:
        """Unresolvable paths give None, not an exception."""
        fs = _fs()
        _sample(fs)
        assert fs.get_item_by_path("root/nope/welcome") is None
        assert fs.get_item_by_path("root/docs/welcome.txt/deeper") is None

    def test_relative_to_cwd(self) -> None:
        """Relative paths resolve from the given directory."""
        fs = _fs()
        _, welcome = _sample(fs)
        assert fs.get_item_by_path("welcome.txt", cwd="root/docs") is welcome

    def test_require_item_raises(self) -> None:
        """require_item turns a miss into NotFoundError."""
        fs = _fs()
        with pytest.raises(NotFoundError):
            fs.require_item("root/missing")
        with pytest.raises(FileNotFoundError):
            fs.require_item("root/missing")

    def test_path_round_trip(self) -> None:
        """Every node's path looks the same node back up."""
        fs = _fs()
        _sample(fs)
        for path, node in fs.walk():
            assert fs.get_path_by_item(node) == path
            assert fs.get_item_by_path(path) is node

    @pytest.mark.parametrize("name", ["root", "a.b", "...", "with space", "x-y", "bin"])
    def test_unusual_names_round_trip(self, name: str) -> None:
        """Names with dots, spaces or the root marker still resolve."""
        fs = _fs()
        outer = fs.make_directory(fs.root, name)
        inner = fs.make_file(outer, name, "txt")
        for node in (outer, inner):
            path = fs.get_path_by_item(node)
            assert path is not None
            assert fs.get_item_by_path(path) is node

    def test_invalid_name_is_rejected_before_insertion(self) -> None:
        """A name that could not round-trip never reaches the tree."""
        fs = _fs()
        with pytest.raises(ValueError, match="Invalid node name"):
            fs.make_directory(fs.root, "..")
        assert fs.root.children == []

    def test_path_of_foreign_node_is_none(self) -> None:
        """A node outside the tree has no path."""
        assert _fs().get_path_by_item(File("stray")) is None

    def test_duplicate_names_resolve_to_first(self) -> None:
        """With two same-named children, lookup finds the first."""
        fs = _fs()
        first = fs.make_file(fs.root, "dup")
        fs.make_file(fs.root, "dup")
        assert fs.get_item_by_path("root/dup") is first


class TestPersistence:
    """Every mutation is written to storage."""

    def test_init_persists_empty_root(self) -> None:
        """Init stores an empty root under the scoped key."""
        storage = MemoryStorage()
        _fs(storage)
        assert _stored(storage) == {
            "id": FS_ID,
            "root": {"type": "directory", "name": "root", "children": []},
        }

    def test_init_reports_to_device(self) -> None:
        """Init can announce itself on a device."""
        device = BufferedDevice()
        Filesystem(FS_ID, storage=MemoryStorage()).init(device)
        assert "initialised" in device.output

    def test_add_child_syncs(self) -> None:
        """Adding a node rewrites the stored tree."""
        storage = MemoryStorage()
        fs = _fs(storage)
        _sample(fs)
        docs = _stored(storage)["root"]["children"][0]
        assert docs["name"] == "docs"
        assert docs["children"][0]["content"] == "hello"

    def test_remove_child_syncs(self) -> None:
        """Removing a node rewrites the stored tree."""
        storage = MemoryStorage()
        fs = _fs(storage)
        docs, _ = _sample(fs)
        fs.remove_child(fs.root, docs)
        assert _stored(storage)["root"]["children"] == []
        assert docs.filesystem_id is None

    def test_removed_path_no_longer_resolves(self) -> None:
        """After removal the old path is a miss and siblings stay reachable."""
        fs = _fs()
        docs, welcome = _sample(fs)
        sibling = fs.make_file(docs, "other", "txt")
        fs.remove_child(docs, welcome)
        assert fs.get_item_by_path("root/docs/welcome.txt") is None
        assert fs.get_item_by_path("root/docs/other.txt") is sibling

    def test_content_edits_sync(self) -> None:
        """Write, append and clear are all persisted."""
        storage = MemoryStorage()
        fs = _fs(storage)
        _, welcome = _sample(fs)

        def stored_content() -> str:
            return _stored(storage)["root"]["children"][0]["children"][0]["content"]

        fs.write_content(welcome, "one")
        assert stored_content() == "one"
        fs.append_content(welcome, " two")
        assert stored_content() == "one two"
        fs.clear_content(welcome)
        assert stored_content() == ""

    def test_node_methods_persist_through_owner(self) -> None:
        """Editing an attached node goes through its filesystem."""
        storage = MemoryStorage()
        fs = _fs(storage)
        docs, welcome = _sample(fs)
        welcome.write("via node")
        docs.add_child(File("extra"))
        stored = _stored(storage)["root"]["children"][0]["children"]
        assert stored[0]["content"] == "via node"
        assert stored[1]["name"] == "extra"

    def test_editing_a_directory_raises(self) -> None:
        """Content operations need a file."""
        fs = _fs()
        with pytest.raises(IsADirectoryError):
            fs.write_content(fs.root, "x")

    def test_adding_twice_is_a_no_op(self) -> None:
        """A node already in the directory is not added again."""
        fs = _fs()
        docs, _ = _sample(fs)
        fs.add_child(fs.root, docs)
        assert fs.root.children == [docs]

    def test_cannot_add_into_foreign_directory(self) -> None:
        """Directories of another filesystem are rejected."""
        fs = _fs()
        with pytest.raises(ValueError, match="does not belong"):
            fs.add_child(Directory("stray"), File("f"))

    def test_cannot_add_directory_inside_itself(self) -> None:
        """A directory cannot become its own descendant."""
        fs = _fs()
        docs, _ = _sample(fs)
        with pytest.raises(ValueError, match="inside itself"):
            fs.add_child(docs, docs)


class TestReconstruct:
    """Loading rebuilds an isomorphic live tree."""

    def test_round_trip_preserves_order_and_content(self) -> None:
        """The reloaded tree serializes identically and is live."""
        storage = MemoryStorage()
        fs = _fs(storage)
        docs, _ = _sample(fs)
        fs.make_file(docs, "b", "md", "second")
        fs.make_directory(fs.root, "empty")

        reloaded = Filesystem.load(FS_ID, storage=storage, directory=FilesystemDirectory())

        assert reloaded.to_dict() == fs.to_dict()
        assert [p for p, _ in reloaded.walk()] == [p for p, _ in fs.walk()]
        node = reloaded.get_item_by_path("root/docs/b.md")
        assert isinstance(node, File)
        assert node.owner() is reloaded

    def test_reconstructed_tree_keeps_persisting(self) -> None:
        """Mutations after reload are written back."""
        storage = MemoryStorage()
        _sample(_fs(storage))
        reloaded = Filesystem.load(FS_ID, storage=storage)
        welcome = reloaded.require_item("root/docs/welcome.txt")
        welcome.write("updated")  # type: ignore[union-attr]
        assert _stored(storage)["root"]["children"][0]["children"][0]["content"] == "updated"

    def test_reconstruct_infers_missing_type_tags(self) -> None:
        """Untagged nodes are typed by whether they have children."""
        graph = {"root": {"name": "root", "children": [{"name": "f", "content": "x"}]}}
        fs = Filesystem.reconstruct(graph, FS_ID, storage=MemoryStorage())
        assert isinstance(fs.get_item_by_path("root/f"), File)

    def test_load_initialises_when_absent(self) -> None:
        """Loading an unknown id creates and stores an empty tree."""
        storage = MemoryStorage()
        fs = Filesystem.load(FS_ID, storage=storage)
        assert fs.root.children == []
        assert storage.get_item(storage_key(FS_ID)) is not None

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "[]",
            json.dumps({"id": FS_ID}),
            json.dumps({"root": {"type": "file", "name": "root"}}),
            json.dumps({"root": {"type": "directory", "name": "root", "children": [{}]}}),
            json.dumps({"root": {"type": "socket", "name": "root"}}),
            json.dumps(
                {"root": {"type": "directory", "name": "root", "children": [{"name": ".."}]}}
            ),
            json.dumps({"root": {"type": "directory", "name": "a/b", "children": []}}),
        ],
    )
    def test_corrupt_records_raise(self, text: str) -> None:
        """Unreadable records raise CorruptFilesystemError."""
        storage = MemoryStorage()
        storage.set_item(storage_key(FS_ID), text)
        with pytest.raises(CorruptFilesystemError):
            Filesystem.load(FS_ID, storage=storage)


class TestFilesystemDirectory:
    """Owner lookup goes through the id table, not a global."""

    def test_filesystems_register_themselves(self) -> None:
        """A filesystem is resolvable by id in its directory."""
        directory = FilesystemDirectory()
        fs = Filesystem("a", storage=MemoryStorage(), directory=directory)
        assert directory.get("a") is fs
        assert directory.owner_of(fs.root) is fs
        assert directory.ids() == ["a"]

    def test_unregistered_owner_is_none(self) -> None:
        """Once the id is forgotten, nodes have no owner."""
        directory = FilesystemDirectory()
        fs = Filesystem("a", storage=MemoryStorage(), directory=directory)
        directory.unregister("a")
        assert fs.root.owner() is None

    def test_two_filesystems_are_independent(self) -> None:
        """Separate ids persist under separate keys."""
        storage = MemoryStorage()
        directory = FilesystemDirectory()
        a = Filesystem("a", storage=storage, directory=directory)
        b = Filesystem("b", storage=storage, directory=directory)
        a.make_file(a.root, "only-in-a")
        b.sync_to_storage()
        assert set(storage.keys()) == {"onfs:a", "onfs:b"}
        assert b.get_item_by_path("root/only-in-a") is None
