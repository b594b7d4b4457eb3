"""Tests for order placement, amendment and payment."""

import json

import httpx
import pytest

from conftest import Recorder

from tableside.core.exceptions import EmptyBasket, OrderNotFound, PaymentError
from tableside.models.order import OrderStatus
from tableside.services.orders import confirm_payment, place_order, serialize_order, start_checkout
from tableside.services.payments import StripeCheckout


def stripe_gateway(handler):
    return StripeCheckout(
        secret_key="sk_test_123",
        api_base="https://stripe.test/v1",
        transport=httpx.MockTransport(handler),
    )


class TestPlaceOrder:
    def test_prices_lines_from_menu(self, store, registry, menu):
        order = place_order(store, registry, customer_id=5, basket={1: 2, 2: 1}, table_id=5)

        assert order.status == OrderStatus.PENDING
        assert order.paid is False
        assert [(i.menu_item_id, i.quantity, i.unit_price) for i in order.items] == [
            (1, 2, 6.5),
            (2, 1, 9.25),
        ]
        assert order.total_price == 22.25

    def test_announces_on_dashboard(self, store, registry, menu, recorder):
        registry.subscribe("dashboard:orders", recorder)

        place_order(store, registry, customer_id=5, basket={3: 1})

        assert recorder.payloads == [None]

    def test_skips_unknown_and_unavailable_items(self, store, registry, menu):
        order = place_order(store, registry, customer_id=5, basket={1: 1, 4: 2, 99: 3})

        assert [i.menu_item_id for i in order.items] == [1]

    def test_rejects_empty_basket(self, store, registry, menu, recorder):
        registry.subscribe("dashboard:orders", recorder)

        with pytest.raises(EmptyBasket):
            place_order(store, registry, customer_id=5, basket={1: 0})

        assert recorder.count == 0

    def test_serialize_order(self, store, registry, menu):
        order = place_order(store, registry, customer_id=5, basket={2: 3})

        out = serialize_order(order)

        assert out.items[0].name == "Tacos"
        assert out.items[0].quantity == 3
        assert out.total_price == 27.75


class TestStore:
    def test_replace_order_items(self, store, make_order):
        order = make_order(order_id=42)

        updated = store.replace_order_items(42, {2: 2, 3: 1})

        assert sorted((i.menu_item_id, i.quantity) for i in updated.items) == [(2, 2), (3, 1)]
        assert updated.total_price == 22.5

    def test_list_orders_filters_by_status(self, store, make_order):
        make_order(order_id=1)
        make_order(order_id=2, status=OrderStatus.COOKING)

        assert [o.id for o in store.list_orders(OrderStatus.COOKING)] == [2]
        assert len(store.list_orders()) == 2

    def test_get_order_missing(self, store, menu):
        with pytest.raises(OrderNotFound):
            store.get_order(123)


class TestPayments:
    @pytest.mark.asyncio
    async def test_start_checkout_sends_stripe_prices(self, store, make_order, menu):
        make_order(order_id=42)
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = request.content.decode()
            return httpx.Response(200, json={"id": "cs_1", "url": "https://checkout.test/cs_1"})

        url = await start_checkout(store, stripe_gateway(handler), 42)

        assert url == "https://checkout.test/cs_1"
        assert seen["path"] == "/v1/checkout/sessions"
        assert "line_items%5B0%5D%5Bprice%5D=price_nachos" in seen["body"]
        assert "line_items%5B0%5D%5Bquantity%5D=2" in seen["body"]

    @pytest.mark.asyncio
    async def test_checkout_failure_raises_payment_error(self, store, make_order):
        make_order(order_id=42)
        gateway = stripe_gateway(lambda request: httpx.Response(400, json={"error": {}}))

        with pytest.raises(PaymentError):
            await start_checkout(store, gateway, 42)

    @pytest.mark.asyncio
    async def test_unconfigured_gateway(self, store, make_order):
        make_order(order_id=42)

        with pytest.raises(PaymentError):
            await start_checkout(store, StripeCheckout(secret_key=""), 42)

    @pytest.mark.asyncio
    async def test_confirm_payment_marks_paid_once(self, store, registry, make_order, recorder):
        make_order(order_id=42)
        registry.subscribe("dashboard:orders", recorder)
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(200, json={"id": "cs_1", "payment_intent": "pi_42"})

        gateway = stripe_gateway(handler)
        order = await confirm_payment(store, registry, gateway, 42, "cs_1")
        again = await confirm_payment(store, registry, gateway, 42, "cs_1")

        assert order.paid is True
        assert order.payment_id == "pi_42"
        assert again.payment_id == "pi_42"
        assert calls == ["/v1/checkout/sessions/cs_1"]
        assert recorder.count == 1


class TestAmendmentPayload:
    def test_basket_updates_are_json_encoded(self, registry):
        from tableside.services import notifications

        received = Recorder()
        registry.subscribe("menu:notifications:5", received)

        notifications.basket_suggestion(registry, 5, {3: 2, 4: 0})

        payload = json.loads(received.payloads[0])
        assert payload["type"] == "update-basket"
        assert json.loads(payload["basketUpdates"]) == [{"menuItemId": 3, "quantity": 2}]
