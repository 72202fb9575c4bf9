import unittest
from typing import Protocol, runtime_checkable

import pytest

from scopebridge import Container, Lifetime, LifetimeScope


class TestContainerScopeBehavior(unittest.TestCase):
    parent: Container
    scope: LifetimeScope

    def setUp(self):
        self.parent = Container()
        self.scope = self.parent.begin_lifetime_scope()

    def test_scope_registration_overrides_parent_registration(self):
        class Service: ...

        parent_instance = Service()
        scope_instance = Service()

        self.parent.register(
            Service,
            factory=lambda c: parent_instance,
            lifetime=Lifetime.SINGLETON,
        )

        self.scope.register(
            Service,
            factory=lambda c: scope_instance,
            lifetime=Lifetime.SINGLETON,
        )
        resolved = self.scope.resolve(Service)

        assert resolved is scope_instance
        assert self.parent.resolve(Service) is parent_instance

    def test_scope_resolves_from_parent_when_not_registered_locally(self):
        class Service: ...

        instance = Service()

        self.parent.register(
            Service,
            factory=lambda c: instance,
            lifetime=Lifetime.SINGLETON,
        )

        resolved = self.scope.resolve(Service)

        assert resolved is instance

    def test_scope_registering_invalid_runtime_checkable_protocol_raises_type_error(self):
        @runtime_checkable
        class SupportsFoo(Protocol):
            def foo(self) -> int: ...

        class BadImpl: ...

        with pytest.raises(TypeError):
            self.scope.register(
                SupportsFoo,
                impl=BadImpl,
                lifetime=Lifetime.TRANSIENT,
            )

    def test_begin_lifetime_scope_configure_adds_scope_local_registrations(self):
        nested = self.scope.begin_lifetime_scope(lambda s: s.register("name", factory=lambda _: "nested"))

        assert nested.resolve("name") == "nested"
        assert not self.scope.is_registered("name")

    def test_container_token_resolves_to_resolving_scope(self):
        class NeedsScope:
            def __init__(self, scope: Container):
                self.scope = scope

        assert self.parent.resolve(Container) is self.parent
        assert self.scope.resolve(Container) is self.scope
        assert self.scope.resolve(NeedsScope).scope is self.scope

    def test_scope_factory_receives_resolving_scope(self):
        seen = []
        self.parent.register("value", factory=lambda c: seen.append(c) or len(seen), lifetime=Lifetime.TRANSIENT)

        self.scope.resolve("value")

        assert seen == [self.scope]

    def test_lifetime_scope_cannot_be_created_directly(self):
        with pytest.raises(RuntimeError):
            LifetimeScope(self.parent)

    def test_parent_property_returns_enclosing_scope(self):
        nested = self.scope.begin_lifetime_scope()

        assert nested.parent is self.scope
        assert self.scope.parent is self.parent


def test_is_registered_looks_through_parent_scopes():
    root = Container()
    root.register("db", factory=lambda _: object())
    scope = root.begin_lifetime_scope().begin_lifetime_scope()

    assert scope.is_registered("db")
    assert scope.is_registered(Container)
    assert not scope.is_registered("cache")


def test_resolve_optional_returns_none_when_not_registered():
    class Unregistered: ...

    root = Container()

    assert root.resolve_optional(Unregistered) is None
    assert root.resolve_optional("missing") is None


def test_resolve_optional_resolves_registered_token():
    class Service: ...

    root = Container()
    root.register(Service, Service)

    assert isinstance(root.resolve_optional(Service), Service)
