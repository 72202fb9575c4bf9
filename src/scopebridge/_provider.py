from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from . import _messages as messages
from ._errors import ServiceNotRegisteredError
from .abstractions import ServiceProvider, ServiceProviderIsService, ServiceScope, ServiceScopeFactory


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from types import TracebackType

    from ._container import Container


class ContainerServiceProvider(ServiceProvider, ServiceProviderIsService):
    """Service provider backed by a container lifetime scope.

    Every call is forwarded to the lifetime scope; disposing the provider disposes
    the scope, and a disposed scope makes every call raise `ObjectDisposedError`.
    """

    def __init__(self, lifetime_scope: Container) -> None:
        self._lifetime_scope = lifetime_scope

    @property
    def lifetime_scope(self) -> Container:
        return self._lifetime_scope

    def get_service(self, service_type: Any) -> object | None:
        return self._lifetime_scope.resolve_optional(service_type)

    def get_required_service(self, service_type: Any) -> object:
        if not self._lifetime_scope.is_registered(service_type):
            type_name = getattr(service_type, "__name__", repr(service_type))
            raise ServiceNotRegisteredError(service_type, messages.SERVICE_NOT_REGISTERED.format(type_name=type_name))
        return self._lifetime_scope.resolve(service_type)

    def is_service(self, service_type: Any) -> bool:
        return self._lifetime_scope.is_registered(service_type)

    def close(self) -> None:
        self._lifetime_scope.close()

    async def aclose(self) -> None:
        await self._lifetime_scope.aclose()

    def __enter__(self) -> ContainerServiceProvider:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    async def __aenter__(self) -> ContainerServiceProvider:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


class ContainerServiceScope(ServiceScope):
    """Service scope owning one provider over a child lifetime scope.

    Closing the scope closes its provider and the other way round; either way the
    underlying lifetime scope is disposed once.
    """

    def __init__(self, lifetime_scope: Container) -> None:
        self._service_provider = ContainerServiceProvider(lifetime_scope)

    @property
    def service_provider(self) -> ContainerServiceProvider:
        return self._service_provider

    def close(self) -> None:
        self._service_provider.close()

    async def aclose(self) -> None:
        await self._service_provider.aclose()

    def __enter__(self) -> ContainerServiceScope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    async def __aenter__(self) -> ContainerServiceScope:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


class ContainerServiceScopeFactory(ServiceScopeFactory):
    def __init__(self, lifetime_scope: Container) -> None:
        self._lifetime_scope = lifetime_scope

    def create_scope(self) -> ContainerServiceScope:
        """Begin a child lifetime scope and wrap it as a service scope."""
        scope = ContainerServiceScope(self._lifetime_scope.begin_lifetime_scope())
        logger.debug("Created service scope %#x", id(scope))
        return scope
