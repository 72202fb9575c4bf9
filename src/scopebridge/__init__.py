"""Service-provider adapter for a lightweight lifetime-scoped container.

This package lets applications written against a small service abstraction
(`ServiceCollection`, `ServiceProvider`, `ServiceScope`) run on a container with
nested lifetime scopes, constructor injection and disposal tracking.

Exports:
- `Container`: DI container and root lifetime scope supporting type/factory registration
  and resolution.
- `LifetimeScope`: nested scope created with `Container.begin_lifetime_scope()`; disposing
  it disposes every instance it activated and every scope nested in it.
- `Lifetime`: Enum for controlling object lifetimes (singleton, scoped or transient).
- `ContainerServiceProvider`, `ContainerServiceScope`, `ContainerServiceScopeFactory`:
  the service abstraction implemented over a lifetime scope.
- `ContainerServiceProviderFactory`, `ChildLifetimeScopeServiceProviderFactory`: build
  providers from a host's `ServiceCollection`.
- `populate`: register a `ServiceCollection` on a container or lifetime scope.
"""

from ._container import Container, Lifetime, LifetimeScope
from ._errors import DisposalError, ObjectDisposedError, ResolutionError, ServiceNotRegisteredError
from ._factory import (
    ChildLifetimeScopeConfigurationAdapter,
    ChildLifetimeScopeServiceProviderFactory,
    ContainerServiceProviderFactory,
)
from ._population import populate
from ._provider import ContainerServiceProvider, ContainerServiceScope, ContainerServiceScopeFactory


__all__ = [
    "ChildLifetimeScopeConfigurationAdapter",
    "ChildLifetimeScopeServiceProviderFactory",
    "Container",
    "ContainerServiceProvider",
    "ContainerServiceProviderFactory",
    "ContainerServiceScope",
    "ContainerServiceScopeFactory",
    "DisposalError",
    "Lifetime",
    "LifetimeScope",
    "ObjectDisposedError",
    "ResolutionError",
    "ServiceNotRegisteredError",
    "populate",
]
