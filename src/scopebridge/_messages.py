"""Exception message strings."""

SCOPE_DISPOSED = (
    "Instances cannot be resolved and nested lifetimes cannot be created from this "
    "{name} as it (or one of its parent scopes) has already been disposed."
)

ASYNC_ONLY_DISPOSABLE = (
    "A synchronous close has been attempted, but the tracked object of type "
    "'{type_name}' only supports asynchronous disposal. Use 'aclose()' or 'async with' "
    "to dispose of the scope."
)

SERVICE_NOT_REGISTERED = "No service for type '{type_name}' has been registered."

SCOPE_FROM_PARENT_ONLY = "LifetimeScope instances must be created via Container.begin_lifetime_scope()"

DESCRIPTOR_NEEDS_ONE_IMPLEMENTATION = (
    "A service descriptor needs exactly one of 'implementation_type', "
    "'implementation_factory' or 'implementation_instance'."
)

INSTANCE_MUST_BE_SINGLETON = "Instance descriptors are always singletons."

IMPLEMENTATION_NOT_CALLABLE = (
    "Implementation {implementation!r} is neither a class nor a factory. Pass an "
    "implementation class or a callable taking a service provider."
)

FACTORY_OVERRIDES_UNSUPPORTED = "Services built by provider factory '{factory}' cannot take overrides: {names}"
