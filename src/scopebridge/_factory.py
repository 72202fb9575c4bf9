from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ._container import Container
from ._population import populate
from ._provider import ContainerServiceProvider
from .abstractions import ServiceCollection, ServiceProviderFactory


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._container import LifetimeScope


class ContainerServiceProviderFactory(ServiceProviderFactory[Container]):
    """Builds a root `ContainerServiceProvider` from a host's service collection.

    `configure` runs after the collection was populated, so container registrations
    made there override the host's descriptors.
    """

    def __init__(self, configure: Callable[[Container], None] | None = None) -> None:
        self._configure = configure

    def create_builder(self, services: ServiceCollection) -> Container:
        container = Container()
        populate(container, services)
        if self._configure is not None:
            self._configure(container)
        return container

    def create_service_provider(self, builder: Container) -> ContainerServiceProvider:
        logger.debug("Creating root service provider over container %#x", id(builder))
        return ContainerServiceProvider(builder)


class ChildLifetimeScopeConfigurationAdapter:
    """Collects the host's services and container configuration for a child lifetime scope."""

    def __init__(self, services: ServiceCollection) -> None:
        self.services = services
        self.configuration_actions: list[Callable[[Container], None]] = []

    def add(self, action: Callable[[Container], None]) -> ChildLifetimeScopeConfigurationAdapter:
        self.configuration_actions.append(action)
        return self


class ChildLifetimeScopeServiceProviderFactory(ServiceProviderFactory[ChildLifetimeScopeConfigurationAdapter]):
    """Serves a host from a child lifetime scope of an existing container.

    Singletons registered on the root container are shared with the host; the host's
    own descriptors live in, and are disposed with, the child scope.
    """

    def __init__(
        self,
        root_scope: Container | Callable[[], Container],
        configure: Callable[[Container], None] | None = None,
    ) -> None:
        self._root_scope = root_scope
        self._configure = configure

    def create_builder(self, services: ServiceCollection) -> ChildLifetimeScopeConfigurationAdapter:
        adapter = ChildLifetimeScopeConfigurationAdapter(services)
        if self._configure is not None:
            adapter.add(self._configure)
        return adapter

    def create_service_provider(self, builder: ChildLifetimeScopeConfigurationAdapter) -> ContainerServiceProvider:
        root = self._root_scope if isinstance(self._root_scope, Container) else self._root_scope()

        def configure(scope: LifetimeScope) -> None:
            populate(scope, builder.services)
            for action in builder.configuration_actions:
                action(scope)

        return ContainerServiceProvider(root.begin_lifetime_scope(configure))
