"""End-to-end scenarios across the arena, services, processes, and ONFS."""

import json

import pytest

from aurora.devices import BufferedDevice
from aurora.fs.filesystem import Filesystem, FilesystemDirectory, storage_key
from aurora.fs.nodes import Directory, File
from aurora.fs.storage import MemoryStorage
from aurora.kernel import Kernel
from aurora.process.application import Application
from aurora.services import FrozenServiceError

PROCESS_COUNT = 5


class TestPersistAndReconstruct:
    """Scenario: a file written before persisting is there after reconstruction."""

    def test_welcome_file(self) -> None:
        """``root/welcome`` reads back "hi" from the reconstructed tree."""
        storage = MemoryStorage()
        fs = Filesystem("scenario", storage=storage)
        fs.init()
        fs.add_child(fs.root, File("welcome", "txt", "hi"))
        fs.sync_to_storage()

        graph = json.loads(storage.get_item(storage_key("scenario")) or "{}")
        rebuilt = Filesystem.reconstruct(
            graph, "scenario", storage=storage, directory=FilesystemDirectory()
        )

        welcome = rebuilt.get_item_by_path("root/welcome")
        assert isinstance(welcome, File)
        assert welcome.content == "hi"

    def test_deep_mixed_tree(self) -> None:
        """Nesting depth and file/directory mixes survive the round trip."""
        storage = MemoryStorage()
        fs = Filesystem("deep", storage=storage)
        fs.init()
        parent: Directory = fs.root
        for depth in range(4):
            fs.make_file(parent, f"f{depth}", "txt", f"level {depth}")
            parent = fs.make_directory(parent, f"d{depth}")
            fs.make_file(parent, "tail", content="x" * depth)

        rebuilt = Filesystem.load("deep", storage=storage, directory=FilesystemDirectory())
        assert rebuilt.to_dict() == fs.to_dict()


class TestMemoryIsolation:
    """Scenario: one process's write never reaches another's page."""

    def test_p0_write_does_not_leak(self) -> None:
        """P1 reads nothing at the index P0 wrote."""
        kernel = Kernel()
        kernel.boot()
        services = kernel.services()
        app = Application("worker", "1.0")
        p0 = services.process.create(app)
        p1 = services.process.create(app)

        services.memory.write(p0, 0, "x")

        assert services.memory.read(p0, 0) == "x"
        assert services.memory.read(p1, 0) is None

    def test_pids_and_offsets_move_together(self) -> None:
        """Pids and offsets both increase strictly, one offset per pid."""
        kernel = Kernel()
        kernel.boot()
        app = Application("worker", "1.0")
        processes = [kernel.process_manager.create_process(app) for _ in range(PROCESS_COUNT)]
        pids = [p.pid for p in processes]
        offsets = [p.memory_offset for p in processes]
        assert pids == sorted(set(pids))
        assert offsets == sorted(set(offsets))
        assert len(dict(zip(pids, offsets, strict=True))) == PROCESS_COUNT


class TestFrozenServices:
    """Scenario: tampering with a frozen service fails and changes nothing."""

    def test_mutation_rejected(self) -> None:
        """Every mutation path raises and the table stays the same."""
        kernel = Kernel()
        kernel.boot()
        memory = kernel.services().memory
        before = dict(memory.capabilities)

        with pytest.raises(FrozenServiceError):
            memory.capabilities["read"] = lambda *_: "forged"
        with pytest.raises(FrozenServiceError):
            memory.provide("extra", lambda: None)

        assert dict(memory.capabilities) == before


class TestSingleRun:
    """Scenario: starting a process again before it finishes does not rerun it."""

    def test_body_runs_once(self) -> None:
        """The second start is ignored while the first run is suspended."""
        runs: list[int] = []

        def program(_process, _services, _args, io):  # noqa: ANN001, ANN202
            runs.append(1)
            yield io.read_line("waiting> ")

        kernel = Kernel()
        kernel.boot()
        services = kernel.services()
        process = services.process.create(Application("once", "1.0", program))
        device = BufferedDevice()

        services.process.start(process, [], device)
        services.process.start(process, [], device)

        assert runs == [1]
        assert process.waiting
