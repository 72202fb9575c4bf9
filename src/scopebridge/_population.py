from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from . import _messages as messages
from ._container import Lifetime
from ._provider import ContainerServiceProvider, ContainerServiceScopeFactory
from .abstractions import (
    ServiceDescriptor,
    ServiceLifetime,
    ServiceProvider,
    ServiceProviderIsService,
    ServiceScopeFactory,
)


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from ._container import Container


_LIFETIMES = {
    ServiceLifetime.SINGLETON: Lifetime.SINGLETON,
    ServiceLifetime.SCOPED: Lifetime.SCOPED,
    ServiceLifetime.TRANSIENT: Lifetime.TRANSIENT,
}


def populate(container: Container, services: Iterable[ServiceDescriptor]) -> None:
    """Register the adapter services and every service descriptor on a container or lifetime scope.

    Resolving `ServiceProvider` (or `ServiceProviderIsService`) returns a new provider
    over the resolving lifetime scope; `ServiceScopeFactory` creates scopes under it.
    Neither is disposed by the container. Later descriptors for the same service type
    replace earlier ones.
    """
    container.register(
        ServiceProvider,
        factory=ContainerServiceProvider,
        lifetime=Lifetime.TRANSIENT,
        externally_owned=True,
    )
    container.register(
        ServiceProviderIsService,
        factory=ContainerServiceProvider,
        lifetime=Lifetime.TRANSIENT,
        externally_owned=True,
    )
    container.register(
        ServiceScopeFactory,
        factory=ContainerServiceScopeFactory,
        lifetime=Lifetime.TRANSIENT,
        externally_owned=True,
    )

    count = 0
    for descriptor in services:
        _register(container, descriptor)
        count += 1

    logger.debug("Populated %s %#x with %d service descriptors", type(container).__name__, id(container), count)


def _register(container: Container, descriptor: ServiceDescriptor) -> None:
    lifetime = _LIFETIMES[descriptor.lifetime]

    if descriptor.implementation_instance is not None:
        # Instances handed over by the host stay owned by the host
        container.register_instance(
            descriptor.service_type,
            descriptor.implementation_instance,
            replace=True,
            externally_owned=True,
        )
    elif descriptor.implementation_factory is not None:
        container.register(
            descriptor.service_type,
            factory=_provider_factory(descriptor.implementation_factory),
            lifetime=lifetime,
        )
    else:
        container.register(descriptor.service_type, descriptor.implementation_type, lifetime=lifetime)


def _provider_factory(factory: Callable[[ServiceProvider], object]) -> Callable[..., object]:
    def activate(scope: Container, **overrides: Any) -> object:
        if overrides:
            msg = messages.FACTORY_OVERRIDES_UNSUPPORTED.format(
                factory=getattr(factory, "__qualname__", repr(factory)),
                names=", ".join(sorted(overrides)),
            )
            raise TypeError(msg)
        return factory(scope.resolve(ServiceProvider))

    return activate
