"""Inbound payload normalization."""

import pydantic
import pytest

from reco_engine.api.v1.schemas.events import CartIn, OrderIn, ProductIn, ViewIn
from reco_engine.domain.models.events import CartEventType

from conftest import SHOP


@pytest.mark.parametrize(
    "payload",
    [
        {"product_id": "p1", "shop_domain": SHOP, "session_id": "s1", "user_id": "u1"},
        {"productId": "p1", "shopDomain": SHOP, "sessionId": "s1", "userId": "u1"},
        {"id": "p1", "shop": SHOP, "clientId": "s1", "customerId": "u1"},
    ],
)
def test_view_field_variants(payload):
    view = ViewIn.model_validate(payload).to_domain()
    assert (view.product_id, view.shop_domain, view.session_id, view.user_id) == ("p1", SHOP, "s1", "u1")


def test_view_blank_user_becomes_none():
    view = ViewIn.model_validate({"productId": "p1", "shop": SHOP, "sessionId": "s1", "userId": ""}).to_domain()
    assert view.user_id is None


def test_view_carries_product_attributes():
    body = ViewIn.model_validate({
        "productId": "p1", "shop": SHOP, "sessionId": "s1",
        "product": {"title": "Shoe", "productType": "Boot"},
    })
    attrs = body.product_attrs()
    assert attrs.present_fields() == {"title": "Shoe", "type": "Boot"}


def test_view_without_product_has_no_attributes():
    body = ViewIn.model_validate({"productId": "p1", "shop": SHOP, "sessionId": "s1"})
    assert body.product_attrs() is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("ADD", CartEventType.ADD),
        ("remove", CartEventType.REMOVE),
        ("product_added_to_cart", CartEventType.ADD),
        ("product_removed_from_cart", CartEventType.REMOVE),
    ],
)
def test_cart_event_type_names(raw, expected):
    body = CartIn.model_validate({"productId": "a", "shop": SHOP, "sessionId": "s", "eventType": raw})
    assert body.to_domain().event_type is expected


def test_cart_rejects_unknown_event_type():
    with pytest.raises(pydantic.ValidationError):
        CartIn.model_validate({"productId": "a", "shop": SHOP, "sessionId": "s", "eventType": "checkout"})


def test_cart_rejects_zero_quantity():
    with pytest.raises(pydantic.ValidationError):
        CartIn.model_validate({"productId": "a", "shop": SHOP, "sessionId": "s", "quantity": 0})


def test_product_tags_from_comma_string():
    body = ProductIn.model_validate({"id": "p", "shop": SHOP, "tags": " a, b ,,a "})
    assert body.to_attrs().tags == ["a", "b"]


def test_product_rejects_negative_price():
    with pytest.raises(pydantic.ValidationError):
        ProductIn.model_validate({"id": "p", "shop": SHOP, "price": -1})


def test_order_to_domain():
    body = OrderIn.model_validate({
        "id": "o1", "shop": SHOP, "sessionId": "s1", "customerId": "u1", "totalPrice": 30,
        "items": [{"id": "a", "price": 10, "title": "Ay"}, {"productId": "b", "quantity": 2, "price": 10}],
    })

    order, items, attrs = body.to_domain()

    assert (order.order_id, order.user_id, order.total_price) == ("o1", "u1", 30)
    assert [(i.order_id, i.product_id, i.quantity) for i in items] == [("o1", "a", 1), ("o1", "b", 2)]
    assert attrs[0].present_fields() == {"title": "Ay", "price": 10}


def test_order_needs_items():
    with pytest.raises(pydantic.ValidationError):
        OrderIn.model_validate({"id": "o1", "shop": SHOP, "sessionId": "s1", "items": []})
