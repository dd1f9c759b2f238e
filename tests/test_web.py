"""Tests for the browser terminal.

The web UI exposes the kernel run loop over HTTP.  Tests use
``pytest.importorskip`` so they are skipped when Flask is not installed.
"""

from __future__ import annotations

from typing import Any

import pytest

flask = pytest.importorskip("flask")

from aurora.bootloader import KernelImage  # noqa: E402
from aurora.fs.storage import MemoryStorage  # noqa: E402
from aurora.web.app import create_app  # noqa: E402

HTTP_OK = 200
HTTP_BAD_REQUEST = 400


def _create_client(**kwargs: Any) -> Any:
    """Create a test client from a fresh app."""
    app = create_app(**kwargs)
    app.config["TESTING"] = True
    return app.test_client()


class TestAppCreation:
    """Verify the app factory and landing page."""

    def test_create_app_returns_flask(self) -> None:
        """create_app returns a Flask application."""
        assert isinstance(create_app(), flask.Flask)

    def test_index_shows_boot_output(self) -> None:
        """GET / renders the boot output and the first prompt."""
        response = _create_client().get("/")
        assert response.status_code == HTTP_OK
        assert response.content_type.startswith("text/html")
        assert b"AuroraSysLoader v0.1.0" in response.data
        assert b"root $ " in response.data


class TestExecute:
    """Verify the command endpoint."""

    def test_missing_command(self) -> None:
        """A body without ``command`` is rejected."""
        response = _create_client().post("/api/execute", json={})
        assert response.status_code == HTTP_BAD_REQUEST

    @pytest.mark.parametrize(
        "body",
        [{"command": 5}, {"command": None}, {"command": ["ls"]}, ["pwd"], "pwd", 7],
    )
    def test_malformed_body_is_rejected(self, body: object) -> None:
        """Non-object bodies and non-string commands get a 400, not a crash."""
        client = _create_client()
        response = client.post("/api/execute", json=body)
        assert response.status_code == HTTP_BAD_REQUEST
        assert "error" in response.get_json()
        data = client.post("/api/execute", json={"command": "pwd"}).get_json()
        assert data["output"] == "root\n"
        assert data["halted"] is False

    def test_command_output_and_prompt(self) -> None:
        """A command returns what the shell printed and the next prompt."""
        client = _create_client()
        client.post("/api/execute", json={"command": "mkdir docs"})
        data = client.post("/api/execute", json={"command": "cd docs"}).get_json()
        assert data == {"output": "", "prompt": "root/docs $ ", "halted": False}
        data = client.post("/api/execute", json={"command": "pwd"}).get_json()
        assert data["output"] == "root/docs\n"

    def test_interactive_program(self) -> None:
        """Input requests from a child program are answered through the API."""
        client = _create_client()
        data = client.post("/api/execute", json={"command": "run greet"}).get_json()
        assert data["prompt"] == "What is your name? "
        data = client.post("/api/execute", json={"command": "Ada"}).get_json()
        assert data["output"] == "Hello, Ada!\n"
        assert data["prompt"] == "root $ "

    def test_exit_halts(self) -> None:
        """Exit halts the system and later commands report it."""
        client = _create_client()
        data = client.post("/api/execute", json={"command": "exit"}).get_json()
        assert data["halted"] is True
        assert "Goodbye." in data["output"]
        data = client.post("/api/execute", json={"command": "ls"}).get_json()
        assert data == {"output": "System halted.", "prompt": "", "halted": True}

    def test_storage_is_used(self) -> None:
        """Writes land in the storage the app was created with."""
        storage = MemoryStorage()
        client = _create_client(storage=storage, image=KernelImage(filesystem_id="web"))
        client.post("/api/execute", json={"command": "write hi.txt hello"})
        stored = storage.get_item("onfs:web")
        assert stored is not None
        assert "hello" in stored


class TestStatus:
    """Verify the status endpoint."""

    def test_status_running(self) -> None:
        """Status lists the shell while the system runs."""
        data = _create_client().get("/api/status").get_json()
        assert data["running"] is True
        assert data["processes"] == [{"pid": 0, "name": "shell", "status": "active"}]

    def test_status_after_exit(self) -> None:
        """Status reports a halted system."""
        client = _create_client()
        client.post("/api/execute", json={"command": "exit"})
        data = client.get("/api/status").get_json()
        assert data == {"running": False, "uptime": 0.0, "processes": []}
