from __future__ import annotations

import inspect
import logging
import threading
import typing
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    ParamSpec,
    Protocol,
    TypeVar,
    cast,
    get_type_hints,
    overload,
)

from . import _messages as messages
from ._errors import DisposalError, ObjectDisposedError, ResolutionError


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping
    from types import TracebackType

    T = TypeVar("T")
    # Parameter spec for factories
    P = ParamSpec("P")

    Token = type[T] | str


class Lifetime(Enum):
    SINGLETON = "singleton"
    SCOPED = "scoped"
    TRANSIENT = "transient"


@dataclass
class Registration:
    factory: Callable[..., object] | None
    impl: type | None
    lifetime: Lifetime
    cached_instance: object | None = None  # cached singleton
    externally_owned: bool = False


class Container:
    """Minimal DI container and root lifetime scope.

    - register types or factories
    - resolve with constructor injection
    - lifetimes: singleton / scoped / transient
    - nested lifetime scopes, each disposing the instances it activated.

    The container is itself a lifetime scope: scoped services resolved from it
    live as long as the container does.
    """

    def __init__(self) -> None:
        self._registrations: dict[Any, Registration] = {}
        self._lock = threading.RLock()
        self._parent: Container | None = None
        self._scoped_instances: dict[Any, object] = {}
        self._owned: list[object] = []
        self._children: list[LifetimeScope] = []
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    @overload
    def register(
        self,
        token: type[T],
        impl: type[T],
        *,
        factory: None = ...,
        lifetime: Lifetime = Lifetime.SINGLETON,
        externally_owned: bool = False,
    ) -> None: ...

    @overload
    def register(
        self,
        token: type[T],
        impl: None = ...,
        *,
        factory: Callable[P, T],
        lifetime: Lifetime = Lifetime.SINGLETON,
        externally_owned: bool = False,
    ) -> None: ...

    @overload
    def register(
        self,
        token: str,
        impl: type | None = ...,
        *,
        factory: Callable[..., Any] | None = ...,
        lifetime: Lifetime = Lifetime.SINGLETON,
        externally_owned: bool = False,
    ) -> None: ...

    def register(
        self,
        token: Token[T],
        impl: type | None = None,
        *,
        factory: Callable[..., Any] | None = None,
        lifetime: Lifetime = Lifetime.SINGLETON,
        externally_owned: bool = False,
    ) -> None:
        """Register a concrete type or a factory for a token.

        Factories are called with the lifetime scope that activates the instance.
        Instances of ``externally_owned`` registrations are never disposed by the
        container.

        Example:
          container.register(IFoo, FooImpl)
          container.register("db", factory=create_db, lifetime=Lifetime.SCOPED)

        """
        if impl is not None and factory is not None:
            msg = "Provide either `impl` or `factory`, not both."
            raise ValueError(msg)

        if impl is None and factory is None:
            msg = "Either `impl` or `factory` must be provided."
            raise ValueError(msg)

        if impl is not None:  # noqa: SIM102
            # Only validate type tokens. Non-type tokens (like strings) cannot validate statically.
            if inspect.isclass(token):
                self._validate_impl(cls=token, impl=impl)

        with self._lock:
            self._check_not_disposed()
            self._registrations[token] = Registration(
                factory=factory,
                impl=impl,
                lifetime=lifetime,
                externally_owned=externally_owned,
            )

    def register_instance(
        self,
        token: Token[T],
        instance: object,
        *,
        replace: bool = False,
        externally_owned: bool = False,
    ) -> None:
        """Register a pre-built instance (always singleton).

        Unless ``externally_owned`` is set, the instance is disposed together with
        the scope it was registered in.
        """
        if inspect.isclass(token):
            # Non-type tokens (like strings): cannot validate statically.
            self._validate_impl(cls=token, impl=type(instance))

        # Registration
        with self._lock:
            self._check_not_disposed()
            if not replace and token in self._registrations:
                msg = f"Token {token!r} is already registered. Pass replace=True to overwrite."
                raise KeyError(msg)
            self._registrations[token] = Registration(
                factory=None,
                impl=None,
                lifetime=Lifetime.SINGLETON,
                cached_instance=instance,
                externally_owned=externally_owned,
            )
            if not externally_owned:
                self._track(instance)

    def is_registered(self, token: object) -> bool:
        """Whether the token resolves without auto-wiring, in this scope or an ancestor."""
        with self._lock:
            self._check_not_disposed()
            return token is Container or self._lookup(token)[0] is not None

    @overload
    def resolve(self, token: type[T], **overrides: Any) -> T: ...

    @overload
    def resolve(self, token: str, **overrides: Any) -> object: ...

    def resolve(self, token: Token[T], **overrides: Any) -> object:
        """Resolve the token to an instance.

        - The `Container` token resolves to the resolving scope itself.
        - If a registration exists here or in a parent scope: use it (factory/impl)
          and honour its lifetime.
        - If no registration and token is a concrete class: attempt auto-wiring by type hints.
        `overrides` lets you explicitly supply constructor args.
        """
        with self._lock:
            self._check_not_disposed()

            if token is Container:
                return self

            reg, owner = self._lookup(token)

            if reg is None:
                if not inspect.isclass(token):
                    msg = f"No registration found for token: {token!r}"
                    raise KeyError(msg)
                # If no registration found and token is a class type, try auto-wiring
                instance = self._construct(token, **overrides)
                self._check_resolved(token, None, instance)
                self._track(instance)
                return instance

            if reg.lifetime == Lifetime.SINGLETON:
                # Return cached singleton if present, otherwise the owning scope builds it
                if reg.cached_instance is None:
                    owner._check_not_disposed()  # noqa: SLF001
                    reg.cached_instance = owner._activate(token, reg, **overrides)  # noqa: SLF001
                return reg.cached_instance

            if reg.lifetime == Lifetime.SCOPED:
                if token not in self._scoped_instances:
                    self._scoped_instances[token] = self._activate(token, reg, **overrides)
                return self._scoped_instances[token]

            return self._activate(token, reg, **overrides)

    def resolve_optional(self, token: Token[T], **overrides: Any) -> object | None:
        """Resolve the token, or return None when nothing is registered for it."""
        with self._lock:
            if not self.is_registered(token):
                return None
            return self.resolve(token, **overrides)

    def _activate(self, token: Token[T], reg: Registration, **overrides: Any) -> object:
        # Build instance either via factory or constructor
        if reg.factory:
            instance = reg.factory(self, **overrides)
        elif reg.impl:
            instance = self._construct(reg.impl, **overrides)
        else:
            msg = f"Registration for token {token!r} has neither a factory nor an implementation"
            raise ResolutionError(msg)

        self._check_resolved(token, reg, instance)

        if not reg.externally_owned:
            self._track(instance)
        return instance

    def _check_resolved(self, token: Token[T], reg: Registration | None, instance: object) -> None:
        if not inspect.isclass(token):
            return

        if self._is_protocol(token):
            try:
                self._validate_protocol_impl(proto_cls=token, impl=type(instance))
            except TypeError as e:
                msg = f"Resolved instance {type(instance).__name__} does not conform to protocol {token.__name__}"
                raise TypeError(msg) from e

            if self._is_runtime_checkable_protocol(token) and not isinstance(instance, token):
                # can use 'isinstance' with runtime checkable protocols
                msg = f"Resolved instance {type(instance).__name__} does not implement runtime protocol {token.__name__}"
                raise TypeError(msg)

        elif reg and reg.factory and not isinstance(instance, token):
            # factory path; impl path was validated with issubclass at register time,
            # and auto-wiring constructs the token class itself.
            msg = f"Resolved instance {type(instance).__name__} is not an instance of {token.__name__}"
            raise TypeError(msg)

    def _lookup(self, token: object) -> tuple[Registration | None, Container]:
        scope: Container | None = self
        while scope is not None:
            reg = scope._registrations.get(token)  # noqa: SLF001
            if reg is not None:
                return reg, scope
            scope = scope._parent  # noqa: SLF001
        return None, self

    def _construct(self, cls: type[T], **overrides: Any) -> T:
        return Constructor(self).construct(cls, **overrides)

    def resolve_param(
        self,
        cls: type[T],
        name: str,
        p: inspect.Parameter,
        bound: inspect.BoundArguments,
        hints: dict[str, Any],
    ) -> Any:
        """Resolving param.

        Resolution precedence:
        1. explicit override
        2. type-based registration
        3. name-based registration
        4. default
        5. error.
        """
        # Skip var-positional/var-keyword here; filled only by explicit extras
        if p.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            return inspect.Signature.empty

        # 0) already explicitly bound
        if name in bound.arguments:
            return bound.arguments[name]

        has_name_registration = self._lookup(name)[0] is not None

        # 1) type-based
        ann = hints.get(name, inspect.Signature.empty)
        if ann is not inspect.Signature.empty:
            try_type = False
            if (
                self._lookup(ann)[0] is not None
                or (inspect.isclass(ann) and getattr(ann, "__module__", "") != "builtins")
            ):
                try_type = True

            if try_type:
                try:
                    return self.resolve(ann)
                except KeyError:
                    if has_name_registration:
                        return self.resolve(name)

        # 2) name-based
        if has_name_registration:
            return self.resolve(name)

        # 3) default
        if p.default is not inspect.Parameter.empty:
            return p.default

        # 4) error
        ann_repr = getattr(ann, "__name__", repr(ann)) if ann is not inspect.Signature.empty else "no-annotation"
        msg = (
            f"Cannot satisfy constructor parameter '{name}' for {cls.__name__}'. "
            f"No override/registration/default found (annotation: {ann_repr})."
        )
        raise ResolutionError(msg)

    def begin_lifetime_scope(self, configure: Callable[[LifetimeScope], None] | None = None) -> LifetimeScope:
        """Create a nested lifetime scope.

        The scope prefers its own registrations and falls back to its parents.
        `configure` receives the new scope and may add scope-local registrations.
        """
        with self._lock:
            self._check_not_disposed()
            scope = LifetimeScope(self, _from_parent=True)
            self._children.append(scope)

        if configure is not None:
            configure(scope)

        logger.debug("Began lifetime scope %#x under %s %#x", id(scope), type(self).__name__, id(self))
        return scope

    def close(self) -> None:
        """Dispose child scopes, then every owned instance in reverse activation order.

        Calling it again has no effect. When a child scope or an owned instance fails to
        dispose (or can only be disposed asynchronously), the rest are still disposed and
        the first error is raised afterwards.
        """
        disposal = self._begin_disposal()
        if disposal is None:
            return
        children, owned = disposal

        errors: list[Exception] = []
        for child in reversed(children):
            try:
                child.close()
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        async_only: list[object] = []
        for instance in reversed(owned):
            close = _sync_disposer(instance)
            if close is None:
                async_only.append(instance)
                continue
            try:
                close()
            except Exception as e:  # noqa: BLE001
                logger.warning("Closing %s raised %r", type(instance).__name__, e)
                errors.append(e)

        if async_only:
            msg = messages.ASYNC_ONLY_DISPOSABLE.format(type_name=type(async_only[0]).__name__)
            errors.append(DisposalError(msg))

        if errors:
            raise errors[0]

    async def aclose(self) -> None:
        """Dispose asynchronously, preferring each instance's async disposal path.

        Failures are collected like in `close`; the first one is raised once everything
        else has been disposed.
        """
        disposal = self._begin_disposal()
        if disposal is None:
            return
        children, owned = disposal

        errors: list[Exception] = []
        for child in reversed(children):
            try:
                await child.aclose()
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        for instance in reversed(owned):
            try:
                aclose = _async_disposer(instance)
                if aclose is not None:
                    await aclose()
                    continue
                close = _sync_disposer(instance)
                if close is not None:
                    close()
            except Exception as e:  # noqa: BLE001
                logger.warning("Closing %s raised %r", type(instance).__name__, e)
                errors.append(e)

        if errors:
            raise errors[0]

    def _begin_disposal(self) -> tuple[list[LifetimeScope], list[object]] | None:
        with self._lock:
            if self._disposed:
                return None
            self._disposed = True

            children, self._children = self._children, []
            owned, self._owned = self._owned, []
            self._scoped_instances.clear()

            parent = self._parent
            if parent is not None and self in parent._children:  # noqa: SLF001
                parent._children.remove(self)  # noqa: SLF001

        logger.debug(
            "Disposing %s %#x (%d child scopes, %d owned instances)",
            type(self).__name__,
            id(self),
            len(children),
            len(owned),
        )
        return children, owned

    def _track(self, instance: object) -> None:
        if _is_disposable(instance):
            self._owned.append(instance)

    def _check_not_disposed(self) -> None:
        scope: Container | None = self
        while scope is not None:
            if scope._disposed:  # noqa: SLF001
                name = type(self).__name__
                raise ObjectDisposedError(name, messages.SCOPE_DISPOSED.format(name=name))
            scope = scope._parent  # noqa: SLF001

    def __enter__(self) -> Container:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    async def __aenter__(self) -> Container:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _is_protocol(self, tp: type) -> bool:
        """Detect whether 'tp' is a typing.Protocol subclass (safe)."""
        raise NotImplementedError

    def _is_runtime_checkable_protocol(self, tp: type) -> bool:
        if not self._is_protocol(tp):
            return False

        try:
            isinstance(None, tp)
        except TypeError:
            return False
        else:
            return True

    def _validate_impl(self, cls: type, impl: type) -> None:
        """Validate that 'impl' implements 'cls' when cls is a class/protocol.

        - For normal classes/ABCs: require issubclass(impl, token).
        - For Protocols: avoid issubclass/isinstance unless runtime-checkable.
          Check nominal via MRO; otherwise perform structural conformance.

        Raise ValueError when a non-type cls is passed.
        """
        if not inspect.isclass(cls):
            msg = "Non-type tokens (like strings): cannot validate statically"
            raise ValueError(msg)

        # If token is a normal class or ABC, enforce subclassing strictly
        if not self._is_protocol(cls):
            if not issubclass(impl, cls):
                msg = f"Implementation {impl.__name__} must be a subclass of {cls.__name__}"
                raise TypeError(msg)
            return

        self._validate_protocol_impl(cls, impl)

    def _validate_protocol_impl(self, proto_cls: type, impl: type) -> None:
        # Try nominal conformance without issubclass
        if proto_cls in getattr(impl, "__mro__", ()):
            return

        # Otherwise, check structural conformance
        self._validate_protocol_structural_conformance(proto_cls, impl)

    def _validate_protocol_structural_conformance(self, proto_cls: type, impl: type) -> None:  # noqa: C901
        """Best-effort structural conformance: presence + basic callable arity + return type checks."""
        missing: list[str] = []
        signature_mismatches: list[str] = []

        try:
            proto_hints = get_type_hints(proto_cls, include_extras=True)
        except (TypeError, NameError):
            proto_hints = {}

        # Attributes required by annotations
        for name in proto_hints:
            if name.startswith("_"):
                continue
            if not hasattr(impl, name):
                missing.append(name)

        for name, proto_attr in proto_cls.__dict__.items():
            if name.startswith("_") or not inspect.isfunction(proto_attr):
                continue

            if not hasattr(impl, name):
                missing.append(name)
                continue

            impl_attr = getattr(impl, name)
            if not callable(impl_attr):
                signature_mismatches.append(f"{name}: not Callable on {impl.__name__}")
                continue

            try:
                proto_sig = inspect.signature(proto_attr)
                impl_sig = inspect.signature(impl_attr)

                proto_params = [p for p in proto_sig.parameters.values() if p.name != "self"]
                impl_params = [p for p in impl_sig.parameters.values() if p.name != "self"]

                if _positional_arity(impl_params) < _positional_arity(proto_params):
                    signature_mismatches.append(
                        f"{name}: impl has fewer required positional params "
                        f"({_positional_arity(impl_params)}) than protocol "
                        f"({_positional_arity(proto_params)})"
                    )

                proto_ret = proto_sig.return_annotation
                impl_ret = impl_sig.return_annotation

                if (
                    proto_ret is not inspect.Signature.empty
                    and impl_ret is not inspect.Signature.empty
                    and proto_ret is not Any
                    and impl_ret is not Any
                    and not _is_return_type_compatible(impl_ret, proto_ret)
                ):
                    signature_mismatches.append(
                        f"{name}: return type {impl_ret!r} is not compatible with "
                        f"protocol return type {proto_ret!r}"
                    )

            except Exception as e:  # noqa: BLE001
                signature_mismatches.append(f"{name}: unable to compare signatures ({e})")

        if missing or signature_mismatches:
            msgs = []
            if missing:
                msgs.append(f"missing members: {', '.join(missing)}")
            if signature_mismatches:
                msgs.append(f"signature mismatches: {', '.join(signature_mismatches)}")

            msg = (
                f"Implementation {impl.__name__} does not structurally conform to protocol "
                f"{proto_cls.__name__}: {'; '.join(msgs)}"
            )
            raise TypeError(msg)


def _positional_arity(params: list[inspect.Parameter]) -> int:
    return sum(
        1
        for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and p.default is inspect.Parameter.empty
    )


def _is_return_type_compatible(impl_ret: object, proto_ret: object) -> bool:
    # Exact match
    if impl_ret == proto_ret:
        return True

    # Handle class-based covariance
    if isinstance(impl_ret, type) and isinstance(proto_ret, type):
        return issubclass(impl_ret, proto_ret)

    # Everything else (Union, Protocol, TypeVar, string annotations, etc.) -> conservative failure
    return False


def _sync_disposer(instance: object) -> Callable[[], object] | None:
    close = getattr(instance, "close", None)
    if callable(close) and not inspect.iscoroutinefunction(close):
        return close
    return None


def _async_disposer(instance: object) -> Callable[[], Awaitable[object]] | None:
    aclose = getattr(instance, "aclose", None)
    if callable(aclose):
        return aclose
    close = getattr(instance, "close", None)
    if close is not None and inspect.iscoroutinefunction(close):
        return close
    return None


def _is_disposable(instance: object) -> bool:
    # Classes expose 'close' as a plain function; only instances are tracked.
    if inspect.isclass(instance):
        return False
    return _sync_disposer(instance) is not None or _async_disposer(instance) is not None


class LifetimeScope(Container):
    """A nested lifetime scope that looks up in itself first, then falls back to its parent.

    Scoped services get one instance per lifetime scope. Useful for per-request/per-test
    lifetimes without altering root registrations. Disposing the parent disposes the scope.
    """

    def __init__(self, parent: Container, *, _from_parent: bool = False) -> None:
        if not _from_parent:
            msg = messages.SCOPE_FROM_PARENT_ONLY
            raise RuntimeError(msg)
        super().__init__()
        self._parent = parent
        # One lock per scope tree
        self._lock = parent._lock  # noqa: SLF001

    @property
    def parent(self) -> Container:
        return cast("Container", self._parent)


class Constructor:
    def __init__(self, resolver: Container) -> None:
        self._resolver = resolver

    def construct(self, cls: type[T], **overrides: Any) -> T:
        if "__init__" not in cls.__dict__:
            return cls()

        sig = inspect.signature(cls)
        params = sig.parameters

        overrides = overrides or {}
        overrides.pop("self", None)  # never allow passing 'self'

        kw_overrides, posonly_overrides = self._split_positional_only(overrides, params)

        bound = self._bind_explicit(sig, kw_overrides, cls)

        self._inject_positional_only(bound, posonly_overrides)

        self._fill_missing_arguments(cls, sig, bound)

        args, kwargs = self._materialize_call(sig, bound)
        return cls(*args, **kwargs)

    def _materialize_call(
        self, sig: inspect.Signature, bound: inspect.BoundArguments
    ) -> tuple[list[Any], dict[str, Any]]:
        params = sig.parameters
        args, kwargs = [], {}

        for name, p in params.items():
            if p.kind is p.POSITIONAL_ONLY:
                args.append(bound.arguments[name])
            elif p.kind is p.VAR_POSITIONAL:
                args.extend(tuple(bound.arguments.get(name, ())))
            elif p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY):
                kwargs[name] = bound.arguments[name]
            elif p.kind is p.VAR_KEYWORD:
                kwargs.update(bound.arguments.get(name, {}))

        return args, kwargs

    def _fill_missing_arguments(self, cls: type[T], sig: inspect.Signature, bound: inspect.BoundArguments) -> None:
        hints = _get_init_type_hints(cls)

        for name, p in sig.parameters.items():
            if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
                continue

            if name not in bound.arguments:
                value = self._resolver.resolve_param(cls, name, p, bound, hints)
                if value is not inspect.Signature.empty:
                    bound.arguments[name] = value

    def _inject_positional_only(self, bound: inspect.BoundArguments, posonly_overrides: dict[str, Any]) -> None:
        for name, value in posonly_overrides.items():
            bound.arguments[name] = value

    def _split_positional_only(
        self,
        overrides: dict[str, Any],
        params: Mapping[str, inspect.Parameter],
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        pos_only = {name for name, p in params.items() if p.kind is inspect.Parameter.POSITIONAL_ONLY}

        return (
            {k: v for k, v in overrides.items() if k not in pos_only},
            {k: v for k, v in overrides.items() if k in pos_only},
        )

    def _bind_explicit(self, sig: inspect.Signature, kw: dict[str, Any], cls: type[T]) -> inspect.BoundArguments:
        try:
            return sig.bind_partial(**kw)
        except TypeError as e:
            msg = f"Overrides don't match {cls.__name__} signature: {e}"
            raise TypeError(msg) from e


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def _is_protocol_3_13(self: Any, tp: type) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

    Container._is_protocol = _is_protocol_3_13  # type: ignore[method-assign] # noqa: SLF001
else:

    def _is_protocol_legacy(self: Any, tp: type) -> bool:
        """Detect whether 'tp' is a typing.Protocol subclass (safe)."""
        return inspect.isclass(tp) and getattr(tp, "_is_protocol", False) and tp is not Protocol

    Container._is_protocol = _is_protocol_legacy  # type: ignore[method-assign] # noqa: SLF001


def _get_init_type_hints(cls: type[T]) -> dict[str, Any]:
    try:
        init = inspect.getattr_static(cls, "__init__")
        hints = get_type_hints(init)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)
        hints = {}

    return hints
