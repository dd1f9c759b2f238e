"""System loader — POST, kernel image, and kernel boot.

Before the shell prompt appears, Aurora goes through a short boot chain:

    Firmware POST → System loader → Kernel → Userspace

The loader prints its own banner, checks that storage is usable, reads
the **kernel image** (the boot configuration: kernel name and version,
which filesystem to mount, where to keep it), and then boots the kernel
on the terminal device.  The kernel image is an optional JSON file::

    {
        "name": "Aurora",
        "version": "0.1.0",
        "filesystem_id": "main",
        "storage_path": "~/.aurora",
        "boot_args": {"quiet": "1", "recover": "1"}
    }

Without a file, an in-memory default image is used.  ``recover`` (on by
default) lets the kernel replace a corrupt stored filesystem with a
fresh one; with it off, a corrupt filesystem is a boot error.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from aurora.devices import DeviceState
from aurora.fs.storage import FileStorage, MemoryStorage, Storage
from aurora.kernel import DEFAULT_FILESYSTEM_ID, KERNEL_NAME, KERNEL_VERSION, Kernel

if TYPE_CHECKING:
    from aurora.devices import IODevice

LOADER_NAME = "AuroraSysLoader"
LOADER_VERSION = "0.1.0"
_FALSE_VALUES = frozenset({"", "0", "false", "no", "off"})


class BootStage(StrEnum):
    """Represent the current phase of the boot chain."""

    FIRMWARE = "firmware"
    LOADER = "loader"
    KERNEL = "kernel"
    USERSPACE = "userspace"


@dataclass(frozen=True)
class PostResult:
    """Capture the outcome of the Power-On Self-Test."""

    storage_ok: bool
    device_ok: bool
    messages: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        """Return True only if every check passed."""
        return self.storage_ok and self.device_ok


@dataclass(frozen=True)
class KernelImage:
    """The boot configuration handed from the loader to the kernel."""

    name: str = KERNEL_NAME
    version: str = KERNEL_VERSION
    filesystem_id: str = DEFAULT_FILESYSTEM_ID
    storage_path: str | None = None
    boot_args: dict[str, str] = field(default_factory=lambda: {})  # noqa: PIE807

    def _flag(self, key: str, *, default: bool) -> bool:
        value = self.boot_args.get(key)
        if value is None:
            return default
        return value.strip().lower() not in _FALSE_VALUES

    @property
    def quiet(self) -> bool:
        """Return True if the ``quiet`` boot argument is set."""
        return self._flag("quiet", default=False)

    @property
    def recover_filesystem(self) -> bool:
        """Return False if the ``recover`` boot argument switches recovery off."""
        return self._flag("recover", default=True)


class BootError(RuntimeError):
    """Raise when the boot chain cannot continue."""


class SystemLoader:
    """Run the boot chain and return a running kernel.

    Usage::

        loader = SystemLoader()
        kernel = loader.boot(ConsoleDevice())

    """

    def __init__(
        self,
        *,
        kernel_image_path: Path | None = None,
        image: KernelImage | None = None,
        storage: Storage | None = None,
    ) -> None:
        """Create a loader.

        Args:
            kernel_image_path: JSON kernel image to read at boot.
            image: An in-memory image (used when no path is given).
            storage: Override the storage the image would select.

        """
        self._kernel_image_path = kernel_image_path
        self._image = image
        self._storage = storage
        self._stage = BootStage.FIRMWARE
        self._boot_log: list[str] = []
        self._kernel: Kernel | None = None

    @property
    def stage(self) -> BootStage:
        """Return the current boot stage."""
        return self._stage

    @property
    def boot_log(self) -> list[str]:
        """Return the loader's own messages."""
        return list(self._boot_log)

    @property
    def kernel(self) -> Kernel | None:
        """Return the booted kernel, or None before boot completes."""
        return self._kernel

    def _say(self, io: IODevice | None, message: str) -> None:
        self._boot_log.append(message)
        if io is not None:
            io.write(message + "\n")

    def boot(self, io: IODevice | None = None) -> Kernel:
        """Run POST, load the kernel image, and boot the kernel on *io*.

        Raises:
            BootError: If POST fails, the kernel image cannot be read, or
                the kernel cannot mount its filesystem.

        """
        self._stage = BootStage.FIRMWARE
        image = self.load_kernel_image()
        storage = self._select_storage(image)
        post = self._run_post(storage, io)
        if not post.passed:
            msg = "POST failed: " + ", ".join(post.messages)
            raise BootError(msg)
        self._say(io, f"{LOADER_NAME} v{LOADER_VERSION}")
        for message in post.messages:
            self._say(io, f"[POST] {message}")

        self._stage = BootStage.LOADER
        self._say(io, f"Loading kernel {image.name} (version {image.version})")
        kernel = Kernel(
            name=image.name,
            version=image.version,
            filesystem_id=image.filesystem_id,
            storage=storage,
            quiet=image.quiet,
            recover_filesystem=image.recover_filesystem,
        )

        self._stage = BootStage.KERNEL
        try:
            kernel.boot(io)
        except (OSError, ValueError) as e:
            msg = f"Kernel boot failed: {e}"
            raise BootError(msg) from e
        self._kernel = kernel

        self._stage = BootStage.USERSPACE
        return kernel

    def load_kernel_image(self) -> KernelImage:
        """Read the kernel image file, or fall back to the in-memory image.

        Raises:
            BootError: If the image file cannot be read or parsed, or a
                field has the wrong type.

        """
        if self._kernel_image_path is None:
            return self._image if self._image is not None else KernelImage()
        try:
            data = json.loads(self._kernel_image_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            msg = f"Cannot load kernel image: {e}"
            raise BootError(msg) from e
        if not isinstance(data, dict):
            msg = "Cannot load kernel image: not a JSON object"
            raise BootError(msg)

        storage_path = data.get("storage_path")
        if storage_path is not None and not isinstance(storage_path, str):
            msg = "Cannot load kernel image: 'storage_path' must be a string"
            raise BootError(msg)
        boot_args = data.get("boot_args", {})
        if not isinstance(boot_args, dict):
            msg = "Cannot load kernel image: 'boot_args' must be an object"
            raise BootError(msg)
        for key, value in boot_args.items():
            if not isinstance(value, str | int | float | bool):
                msg = f"Cannot load kernel image: boot argument '{key}' must be a scalar"
                raise BootError(msg)

        return KernelImage(
            name=_image_field(data, "name", KERNEL_NAME),
            version=_image_field(data, "version", KERNEL_VERSION),
            filesystem_id=_image_field(data, "filesystem_id", DEFAULT_FILESYSTEM_ID),
            storage_path=storage_path,
            boot_args={str(k): str(v) for k, v in boot_args.items()},
        )

    def _select_storage(self, image: KernelImage) -> Storage:
        if self._storage is not None:
            return self._storage
        if image.storage_path is None:
            return MemoryStorage()
        try:
            return FileStorage(Path(image.storage_path).expanduser())
        except OSError as e:
            msg = f"Cannot open storage at {image.storage_path}: {e}"
            raise BootError(msg) from e

    @staticmethod
    def _run_post(storage: Storage, io: IODevice | None) -> PostResult:
        """Check that storage answers and that the device is usable."""
        messages: list[str] = []
        try:
            storage.keys()
        except OSError as e:
            storage_ok = False
            messages.append(f"Storage: {e} ... FAIL")
        else:
            storage_ok = True
            messages.append(f"Storage: {type(storage).__name__} ... OK")

        device_ok = io is None or io.status is DeviceState.READY
        label = "none" if io is None else type(io).__name__
        messages.append(f"Device: {label} ... " + ("OK" if device_ok else "FAIL"))
        return PostResult(storage_ok=storage_ok, device_ok=device_ok, messages=tuple(messages))


def _image_field(data: dict[str, object], key: str, default: str) -> str:
    """Return the non-empty string *key* from an image record, or *default*."""
    value = data.get(key, default)
    if not isinstance(value, str) or not value:
        msg = f"Cannot load kernel image: '{key}' must be a non-empty string"
        raise BootError(msg)
    return value
