import unittest
from typing import Protocol
from unittest.mock import MagicMock

from scopebridge import ContainerServiceProviderFactory
from scopebridge.abstractions import ServiceCollection, create_scope, get_required_service


class Contains:  # noqa: PLW1641
    def __init__(self, substring):
        self.substring = substring

    def __repr__(self):
        return f"Contains({self.substring!r})"

    def __eq__(self, other):
        return isinstance(other, str) and self.substring in other


class PaymentClient(Protocol):
    def charge(self, order_id: str, amount_cents: int) -> None: ...


class InfoLogger(Protocol):
    def info(self, msg: object, *args: object) -> None: ...


class NullLogger:
    def info(self, msg: object, *args: object) -> None:
        pass


class StripeSdk:
    def __init__(self):
        self.closed = False

    def pay(self, amount_usd: float, reference: str) -> bool:
        return True

    def close(self):
        self.closed = True


class StripeAdapter:
    def __init__(self, sdk: StripeSdk, logger: InfoLogger, usd_per_cent: float = 0.01) -> None:
        self._logger = logger
        self._sdk = sdk
        self._usd_per_cent = usd_per_cent

    def charge(self, order_id: str, amount_cents: int) -> None:
        self._logger.info("adapting to stripe sdk api")
        amount_usd = amount_cents * self._usd_per_cent
        ok = self._sdk.pay(amount_usd, reference=order_id)
        if not ok:
            msg = "Stripe payment failed"
            raise RuntimeError(msg)


class TestWiringAdapterThroughServiceCollection(unittest.TestCase):
    def setUp(self):
        self.stripe_sdk = StripeSdk()
        self.stripe_sdk.pay = MagicMock(wraps=self.stripe_sdk.pay)
        self.logger = NullLogger()
        self.logger.info = MagicMock(wraps=self.logger.info)

        services = (
            ServiceCollection()
            .add_scoped(PaymentClient, lambda provider: StripeAdapter(
                get_required_service(provider, StripeSdk),
                get_required_service(provider, InfoLogger),
                usd_per_cent=0.0125,
            ))
            .add_instance(StripeSdk, self.stripe_sdk)
            .add_instance(InfoLogger, self.logger)
        )
        factory = ContainerServiceProviderFactory()
        self.provider = factory.create_service_provider(factory.create_builder(services))

    def test_adapter_calls_adaptee(self):
        with create_scope(self.provider) as scope:
            client = get_required_service(scope.service_provider, PaymentClient)
            client.charge("order-123", 5000)

        assert self.stripe_sdk.pay.call_count == 1
        assert self.stripe_sdk.pay.call_args[0][0] == 0.0125 * 5000
        assert self.stripe_sdk.pay.call_args[1]["reference"] == "order-123"

        assert self.logger.info.call_args[0][0] == Contains("stripe sdk")

    def test_host_owned_instances_survive_provider_disposal(self):
        self.provider.close()

        assert not self.stripe_sdk.closed


class TestAutoWiringAdapterThroughServiceCollection(unittest.TestCase):
    def setUp(self):
        services = ServiceCollection().add_scoped(PaymentClient, StripeAdapter).add_singleton(InfoLogger, NullLogger)
        factory = ContainerServiceProviderFactory()
        self.provider = factory.create_service_provider(factory.create_builder(services))

    def test_adaptee_is_auto_wired_and_disposed_with_its_scope(self):
        with create_scope(self.provider) as scope:
            client = get_required_service(scope.service_provider, PaymentClient)
            client.charge("order-123", 5000)
            sdk = client._sdk

        assert isinstance(sdk, StripeSdk)
        assert sdk.closed
