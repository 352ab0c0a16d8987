# tests/test_checkout.py
import threading
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import pytest

from shopapi.models import Product
from shopsdk.cart import Cart
from shopsdk.checkout import EmptyCartError, build_order_message, checkout, whatsapp_url
from shopsdk.storage import MemoryStorage

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def filled_cart():
    cart = Cart(MemoryStorage())
    cart.add(Product(id="a" * 24, name="Mug", price=4.5, category="Home & Kitchen",
                     created_at=NOW, updated_at=NOW), 2)
    cart.add(Product(id="b" * 24, name="Book", price=12, category="Books",
                     created_at=NOW, updated_at=NOW))
    return cart


def test_order_message():
    message = build_order_message(filled_cart())
    assert "*1. Mug*" in message
    assert "Price: $4.50 x 2 = $9.00" in message
    assert "*2. Book*" in message
    assert "TOTAL: $21.00" in message
    assert message.endswith("Please process my order! I want to buy these products.")


def test_whatsapp_url_encodes_message():
    url = whatsapp_url("+1 (234) 567-890", "a & b\nc")
    parsed = urlparse(url)
    assert parsed.netloc == "wa.me"
    assert parsed.path == "/1234567890"
    assert parse_qs(parsed.query)["text"] == ["a & b\nc"]


def test_checkout_clears_cart_and_hands_off():
    cart = filled_cart()
    cart.open()
    opened = []
    done = threading.Event()

    def opener(url):
        opened.append(url)
        done.set()

    url = checkout(cart, "555", opener=opener)
    assert cart.is_empty()
    assert cart.is_open is False
    assert done.wait(2)
    assert opened == [url]
    assert "TOTAL" in parse_qs(urlparse(url).query)["text"][0]


def test_checkout_failure_to_open_is_not_raised():
    done = threading.Event()

    def opener(url):
        done.set()
        raise RuntimeError("no browser")

    checkout(filled_cart(), opener=opener)
    assert done.wait(2)


def test_empty_cart_cannot_check_out():
    with pytest.raises(EmptyCartError):
        checkout(Cart(MemoryStorage()), opener=lambda url: None)
