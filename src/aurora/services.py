"""Service registry — named, versioned capability bundles.

A **service** is the only way a process reaches the kernel.  Each one is
a small table of plain callables (its *capabilities*) under a name and a
version: ``fs.get_item_by_path``, ``process.create``, ``memory.read``...

The kernel registers its built-in services during boot and then
**freezes** them.  A frozen capability table rejects every mutation
with ``FrozenServiceError`` and stays exactly as it was, so a process
cannot swap out ``fs.get_item_by_path`` for something else and fool the
next process that calls it.

Processes receive the whole registry as a ``ServiceSet``: a read-only
mapping that also allows attribute access::

    services.fs.get_item_by_path("root/bin")
    services["memory"].read(process, 0)
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from aurora.logging import Logger

Capability: TypeAlias = Callable[..., Any]


class FrozenServiceError(RuntimeError):
    """Raise when code tries to mutate a frozen service."""


class CapabilityTable(Mapping[str, Capability]):
    """A mapping of capability names to callables that can be sealed.

    Names in *reserved* are refused with ValueError: they would be
    shadowed by the owning service's own attributes.
    """

    def __init__(
        self,
        owner: str,
        capabilities: Mapping[str, Capability] | None = None,
        *,
        reserved: frozenset[str] = frozenset(),
    ) -> None:
        """Create a table for service *owner* with initial *capabilities*."""
        self._owner = owner
        self._reserved = reserved
        self._items: dict[str, Capability] = {}
        for name, capability in (capabilities or {}).items():
            self._check_name(name)
            self._items[name] = capability
        self._frozen = False

    @property
    def frozen(self) -> bool:
        """Return True once the table has been sealed."""
        return self._frozen

    def freeze(self) -> None:
        """Seal the table against further mutation."""
        self._frozen = True

    def _check_mutable(self, action: str, name: str) -> None:
        if self._frozen:
            msg = f"Cannot {action} capability '{name}': service '{self._owner}' is frozen"
            raise FrozenServiceError(msg)

    def _check_name(self, name: str) -> None:
        if not name or name.startswith("_") or name in self._reserved:
            msg = f"Invalid capability name '{name}' for service '{self._owner}'"
            raise ValueError(msg)

    def __getitem__(self, name: str) -> Capability:
        """Return the capability called *name*."""
        return self._items[name]

    def __setitem__(self, name: str, capability: Capability) -> None:
        """Add or replace a capability (only while unfrozen)."""
        self._check_mutable("set", name)
        self._check_name(name)
        self._items[name] = capability

    def __delitem__(self, name: str) -> None:
        """Remove a capability (only while unfrozen)."""
        self._check_mutable("delete", name)
        del self._items[name]

    def __iter__(self) -> Iterator[str]:
        """Iterate over capability names in insertion order."""
        return iter(self._items)

    def __len__(self) -> int:
        """Return the number of capabilities."""
        return len(self._items)


class Service:
    """A named, versioned bundle of capabilities.

    Capabilities are reachable as attributes (``service.read(...)``) or
    through ``service.capabilities["read"]``.  After ``freeze()`` the
    table and the service's own attributes are read-only.

    A capability may not share a name with the service's own members
    (``name``, ``version``, ``freeze``...).
    """

    _RESERVED = frozenset({"name", "version", "capabilities", "frozen", "provide", "freeze"})

    def __init__(
        self,
        name: str,
        version: str,
        capabilities: Mapping[str, Capability] | None = None,
    ) -> None:
        """Create an unfrozen service.

        Args:
            name: Registry key (e.g. "fs").
            version: Free-form version string.
            capabilities: Initial capability table.

        Raises:
            ValueError: If a capability name collides with a service member.

        """
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_version", version)
        table = CapabilityTable(name, capabilities, reserved=self._RESERVED)
        object.__setattr__(self, "_capabilities", table)

    @property
    def name(self) -> str:
        """Return the service name."""
        return self._name

    @property
    def version(self) -> str:
        """Return the service version."""
        return self._version

    @property
    def capabilities(self) -> CapabilityTable:
        """Return the capability table."""
        return self._capabilities

    @property
    def frozen(self) -> bool:
        """Return True once the service has been frozen."""
        return self._capabilities.frozen

    def provide(self, name: str, capability: Capability) -> None:
        """Add a capability to an unfrozen service.

        Raises:
            FrozenServiceError: If the service is frozen.
            ValueError: If *name* collides with a service member.

        """
        self._capabilities[name] = capability

    def freeze(self) -> None:
        """Make the service immutable."""
        self._capabilities.freeze()

    def __getattr__(self, name: str) -> Capability:
        """Look unknown attributes up in the capability table."""
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._capabilities[name]
        except KeyError:
            msg = f"Service '{self._name}' has no capability '{name}'"
            raise AttributeError(msg) from None

    def __setattr__(self, name: str, value: Any) -> None:
        """Route attribute assignment into the capability table."""
        self.provide(name, value)

    def __delattr__(self, name: str) -> None:
        """Route attribute deletion into the capability table."""
        del self._capabilities[name]

    def __repr__(self) -> str:
        """Return ``Service(name@version, N capabilities)``."""
        state = ", frozen" if self.frozen else ""
        return f"Service({self._name}@{self._version}, {len(self._capabilities)} capabilities{state})"


class ServiceSet(Mapping[str, Service]):
    """Read-only view of the registered services handed to processes."""

    def __init__(self, services: Mapping[str, Service]) -> None:
        """Snapshot *services* into a read-only set."""
        self._services = dict(services)

    def __getitem__(self, name: str) -> Service:
        """Return the service called *name*."""
        return self._services[name]

    def __iter__(self) -> Iterator[str]:
        """Iterate over service names in registration order."""
        return iter(self._services)

    def __len__(self) -> int:
        """Return the number of services."""
        return len(self._services)

    def __getattr__(self, name: str) -> Service:
        """Allow ``services.fs`` as shorthand for ``services["fs"]``."""
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._services[name]
        except KeyError:
            msg = f"No service named '{name}'"
            raise AttributeError(msg) from None


class ServiceRegistry:
    """Name → service mapping in registration order.

    Registering a name twice replaces the earlier service (last write
    wins).  The registry itself is only consulted at boot; afterwards
    processes hold a ``ServiceSet`` snapshot.
    """

    def __init__(self, *, logger: Logger | None = None) -> None:
        """Create an empty registry."""
        self._services: dict[str, Service] = {}
        self._logger = logger

    def register(self, service: Service) -> None:
        """Insert *service* under its name, replacing any previous entry."""
        replaced = service.name in self._services
        self._services[service.name] = service
        if self._logger is not None:
            verb = "Replaced" if replaced else "Registered"
            self._logger.info(f"{verb} service {service.name} v{service.version}", source="services")

    def get(self, name: str) -> Service | None:
        """Return the service called *name*, or None."""
        return self._services.get(name)

    def names(self) -> list[str]:
        """Return service names in registration order."""
        return list(self._services)

    def freeze(self, service: Service) -> None:
        """Freeze one service."""
        service.freeze()
        if self._logger is not None:
            self._logger.debug(f"Froze service {service.name}", source="services")

    def freeze_all(self) -> None:
        """Freeze every registered service."""
        for service in self._services.values():
            self.freeze(service)

    def services(self) -> ServiceSet:
        """Return a read-only snapshot of the registered services."""
        return ServiceSet(self._services)

    def clear(self) -> None:
        """Forget every service (used at shutdown)."""
        self._services.clear()

    def __iter__(self) -> Iterator[Service]:
        """Iterate over services in registration order."""
        return iter(list(self._services.values()))

    def __len__(self) -> int:
        """Return the number of registered services."""
        return len(self._services)

    def __contains__(self, name: object) -> bool:
        """Return True if a service with *name* is registered."""
        return name in self._services
