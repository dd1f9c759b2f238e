"""Flask application factory for the Aurora web terminal.

The ``create_app`` function boots a kernel on a ``BufferedDevice`` and
returns a Flask app with three endpoints:

- ``GET /`` — render the terminal page with the boot output.
- ``POST /api/execute`` — feed one line to the foreground process and
  return whatever it printed.
- ``GET /api/status`` — return the running state and process list.
"""

from __future__ import annotations

from flask import Flask, Response, jsonify, render_template, request

from aurora.bootloader import KernelImage, SystemLoader
from aurora.devices import BufferedDevice
from aurora.fs.storage import Storage
from aurora.kernel import KernelState

_HTTP_BAD_REQUEST = 400


def create_app(*, image: KernelImage | None = None, storage: Storage | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        image: Kernel image to boot (the default image if omitted).
        storage: Durable store for the filesystem (in-memory if omitted).

    Returns:
        A configured Flask application ready to serve.

    """
    io = BufferedDevice()
    kernel = SystemLoader(image=image, storage=storage).boot(io)
    boot_output = io.drain()

    app = Flask(__name__)

    def halt() -> None:
        if kernel.state is KernelState.RUNNING:
            kernel.shutdown()

    @app.route("/")
    def index() -> str:  # pyright: ignore[reportUnusedFunction]
        """Render the terminal page."""
        return render_template("index.html", boot_log=boot_output, prompt=kernel.prompt())

    @app.route("/api/execute", methods=["POST"])
    def execute() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Feed a line to the foreground process and return JSON output.

        Expects JSON body: ``{"command": "..."}``
        A body that is not an object with a string ``command`` gets a
        400 and never reaches the kernel.

        Returns:
            JSON with ``output``, ``prompt`` and ``halted`` fields.

        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or "command" not in data:
            return jsonify({"error": "Missing 'command' field"}), _HTTP_BAD_REQUEST
        command = data["command"]
        if not isinstance(command, str):
            return jsonify({"error": "'command' must be a string"}), _HTTP_BAD_REQUEST

        if not kernel.running:
            halt()
            return jsonify({"output": "System halted.", "prompt": "", "halted": True})

        kernel.feed(command)
        output = io.drain()

        if not kernel.running:
            halt()
            return jsonify({"output": output + "System halted.", "prompt": "", "halted": True})

        return jsonify({"output": output, "prompt": kernel.prompt(), "halted": False})

    @app.route("/api/status")
    def status() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return system status for polling.

        Returns:
            JSON with ``running``, ``uptime`` and ``processes`` fields.

        """
        if kernel.state is not KernelState.RUNNING:
            return jsonify({"running": False, "uptime": 0.0, "processes": []})
        processes = [
            {"pid": p.pid, "name": p.name, "status": str(p.status)}
            for p in kernel.process_manager.get_process_table().values()
        ]
        return jsonify({"running": kernel.running, "uptime": kernel.uptime, "processes": processes})

    return app


def main() -> None:
    """Run the web terminal development server.

    This is the ``aurora-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080)
