"""Service abstraction consumed by host applications.

Hosts describe their services with a `ServiceCollection` and talk to the
resulting `ServiceProvider` / `ServiceScope` objects only through the protocols
below, never through a concrete container.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, MutableSequence
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import Any, Protocol, TypeVar, overload, runtime_checkable

from . import _messages as messages
from ._errors import ServiceNotRegisteredError


T = TypeVar("T")
TBuilder = TypeVar("TBuilder")


class ServiceLifetime(Enum):
    SINGLETON = "singleton"
    SCOPED = "scoped"
    TRANSIENT = "transient"


@runtime_checkable
class ServiceProvider(Protocol):
    def get_service(self, service_type: Any) -> object | None: ...


@runtime_checkable
class ServiceScope(Protocol):
    """A lifetime boundary; closing it disposes what its provider created."""

    @property
    def service_provider(self) -> ServiceProvider: ...

    def close(self) -> None: ...

    async def aclose(self) -> None: ...

    def __enter__(self) -> ServiceScope: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...


@runtime_checkable
class ServiceScopeFactory(Protocol):
    def create_scope(self) -> ServiceScope: ...


@runtime_checkable
class ServiceProviderIsService(Protocol):
    def is_service(self, service_type: Any) -> bool: ...


class ServiceProviderFactory(Protocol[TBuilder]):
    """Entry point a host uses to swap in its container of choice."""

    def create_builder(self, services: ServiceCollection) -> TBuilder: ...

    def create_service_provider(self, builder: TBuilder) -> ServiceProvider: ...


@dataclass(frozen=True)
class ServiceDescriptor:
    """Describes one service: its type, lifetime and how to build it.

    Exactly one of ``implementation_type``, ``implementation_factory`` or
    ``implementation_instance`` is set. Factories are called with the
    `ServiceProvider` of the scope that activates the service.
    """

    service_type: Any
    lifetime: ServiceLifetime
    implementation_type: type | None = None
    implementation_factory: Callable[[ServiceProvider], object] | None = None
    implementation_instance: object | None = None

    def __post_init__(self) -> None:
        provided = [
            self.implementation_type is not None,
            self.implementation_factory is not None,
            self.implementation_instance is not None,
        ]
        if sum(provided) != 1:
            msg = messages.DESCRIPTOR_NEEDS_ONE_IMPLEMENTATION
            raise ValueError(msg)

        if self.implementation_instance is not None and self.lifetime is not ServiceLifetime.SINGLETON:
            msg = messages.INSTANCE_MUST_BE_SINGLETON
            raise ValueError(msg)

    @classmethod
    def describe(
        cls,
        service_type: Any,
        implementation: type | Callable[[ServiceProvider], object] | None,
        lifetime: ServiceLifetime,
    ) -> ServiceDescriptor:
        # Classes are implementation types, other callables are factories
        implementation = service_type if implementation is None else implementation
        if isinstance(implementation, type):
            return cls(service_type, lifetime, implementation_type=implementation)
        if not callable(implementation):
            msg = messages.IMPLEMENTATION_NOT_CALLABLE.format(implementation=implementation)
            raise ValueError(msg)
        return cls(service_type, lifetime, implementation_factory=implementation)

    @classmethod
    def singleton(cls, service_type: Any, implementation: Any = None) -> ServiceDescriptor:
        return cls.describe(service_type, implementation, ServiceLifetime.SINGLETON)

    @classmethod
    def scoped(cls, service_type: Any, implementation: Any = None) -> ServiceDescriptor:
        return cls.describe(service_type, implementation, ServiceLifetime.SCOPED)

    @classmethod
    def transient(cls, service_type: Any, implementation: Any = None) -> ServiceDescriptor:
        return cls.describe(service_type, implementation, ServiceLifetime.TRANSIENT)

    @classmethod
    def instance(cls, service_type: Any, instance: object) -> ServiceDescriptor:
        return cls(service_type, ServiceLifetime.SINGLETON, implementation_instance=instance)


class ServiceCollection(MutableSequence[ServiceDescriptor]):
    """Ordered list of service descriptors.

    The ``add_*`` helpers return the collection so registrations can be chained:

        services = ServiceCollection().add_scoped(UnitOfWork).add_singleton(Clock, SystemClock)
    """

    def __init__(self, descriptors: list[ServiceDescriptor] | None = None) -> None:
        self._descriptors: list[ServiceDescriptor] = list(descriptors or [])

    @overload
    def __getitem__(self, index: int) -> ServiceDescriptor: ...

    @overload
    def __getitem__(self, index: slice) -> ServiceCollection: ...

    def __getitem__(self, index: int | slice) -> ServiceDescriptor | ServiceCollection:
        if isinstance(index, slice):
            return ServiceCollection(self._descriptors[index])
        return self._descriptors[index]

    def __setitem__(self, index: Any, value: Any) -> None:
        self._descriptors[index] = value

    def __delitem__(self, index: int | slice) -> None:
        del self._descriptors[index]

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[ServiceDescriptor]:
        return iter(self._descriptors)

    def insert(self, index: int, value: ServiceDescriptor) -> None:
        self._descriptors.insert(index, value)

    def add(self, descriptor: ServiceDescriptor) -> ServiceCollection:
        self.append(descriptor)
        return self

    def add_singleton(self, service_type: Any, implementation: Any = None) -> ServiceCollection:
        return self.add(ServiceDescriptor.singleton(service_type, implementation))

    def add_scoped(self, service_type: Any, implementation: Any = None) -> ServiceCollection:
        return self.add(ServiceDescriptor.scoped(service_type, implementation))

    def add_transient(self, service_type: Any, implementation: Any = None) -> ServiceCollection:
        return self.add(ServiceDescriptor.transient(service_type, implementation))

    def add_instance(self, service_type: Any, instance: object) -> ServiceCollection:
        return self.add(ServiceDescriptor.instance(service_type, instance))

    def try_add(self, descriptor: ServiceDescriptor) -> bool:
        """Add the descriptor unless its service type is already described."""
        if self.contains(descriptor.service_type):
            return False
        self.append(descriptor)
        return True

    def contains(self, service_type: Any) -> bool:
        return any(d.service_type == service_type for d in self._descriptors)

    def remove_all(self, service_type: Any) -> ServiceCollection:
        self._descriptors = [d for d in self._descriptors if d.service_type != service_type]
        return self


@overload
def get_required_service(provider: ServiceProvider, service_type: type[T]) -> T: ...


@overload
def get_required_service(provider: ServiceProvider, service_type: Any) -> object: ...


def get_required_service(provider: ServiceProvider, service_type: Any) -> object:
    """Resolve a service, raising `ServiceNotRegisteredError` when nothing is registered."""
    required = getattr(provider, "get_required_service", None)
    if callable(required):
        return required(service_type)

    service = provider.get_service(service_type)
    if service is None:
        type_name = getattr(service_type, "__name__", repr(service_type))
        raise ServiceNotRegisteredError(service_type, messages.SERVICE_NOT_REGISTERED.format(type_name=type_name))
    return service


def create_scope(provider: ServiceProvider) -> ServiceScope:
    """Create a scope through the provider's `ServiceScopeFactory`."""
    return get_required_service(provider, ServiceScopeFactory).create_scope()
