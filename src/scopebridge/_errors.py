from __future__ import annotations


class ResolutionError(RuntimeError):
    pass


class ObjectDisposedError(RuntimeError):
    """Raised when a disposed scope or provider is used."""

    def __init__(self, object_name: str, msg: str) -> None:
        super().__init__(msg)
        self.object_name = object_name


class DisposalError(RuntimeError):
    pass


class ServiceNotRegisteredError(LookupError):
    """Raised by required-service lookups when nothing is registered for the type."""

    def __init__(self, service_type: object, msg: str) -> None:
        super().__init__(msg)
        self.service_type = service_type
