import unittest

from scopebridge import Container, Lifetime, populate
from scopebridge.abstractions import ServiceCollection


class Session:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class Handler:
    def __init__(self, session: Session, retries: int = 3, *args, **kwargs):
        self.session = session
        self.retries = retries
        self.args = args
        self.kwargs = kwargs


class LoggingHandler(Handler):
    # Inherits Handler.__init__ with *args/**kwargs
    ...


class NamedHandler(Handler):
    def __init__(self, session: Session, name: str, **kwargs):
        super().__init__(session, **kwargs)
        self.name = name


class TestVariadicInjectionInLifetimeScopes(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()
        self.cont.register(Session, Session, lifetime=Lifetime.SCOPED)

    def test_inherited_variadic_constructor_gets_scoped_dependency(self):
        with self.cont.begin_lifetime_scope() as scope:
            handler = scope.resolve(LoggingHandler)

            assert handler.session is scope.resolve(Session)
            assert handler.retries == 3
            assert handler.args == ()
            assert handler.kwargs == {}

        assert handler.session.closed

    def test_each_scope_injects_its_own_scoped_dependency(self):
        first = self.cont.begin_lifetime_scope().resolve(LoggingHandler)
        second = self.cont.begin_lifetime_scope().resolve(LoggingHandler)

        assert first.session is not second.session

    def test_unmatched_overrides_flow_through_variadic_kwargs(self):
        scope = self.cont.begin_lifetime_scope()

        handler = scope.resolve(NamedHandler, name="orders", timeout=5)

        assert handler.name == "orders"
        assert handler.kwargs == {"timeout": 5}
        assert handler.retries == 3
        assert handler.session is scope.resolve(Session)

    def test_scope_local_registration_of_variadic_class(self):
        scope = self.cont.begin_lifetime_scope(
            lambda s: s.register(Handler, LoggingHandler, lifetime=Lifetime.SCOPED),
        )

        handler = scope.resolve(Handler)

        assert isinstance(handler, LoggingHandler)
        assert handler is scope.resolve(Handler)
        assert not self.cont.is_registered(Handler)

    def test_populated_variadic_implementation_resolves_per_scope(self):
        populate(self.cont, ServiceCollection().add_scoped(Handler, LoggingHandler))

        with self.cont.begin_lifetime_scope() as first, self.cont.begin_lifetime_scope() as second:
            one, two = first.resolve(Handler), second.resolve(Handler)

            assert one is first.resolve(Handler)
            assert one is not two
            assert one.session is first.resolve(Session)
