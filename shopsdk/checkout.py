# shopsdk/checkout.py
import logging
import threading
import webbrowser
from typing import Callable, Optional
from urllib.parse import quote

from .cart import Cart

logger = logging.getLogger(__name__)

DEFAULT_WHATSAPP_NUMBER = "1234567890"


class EmptyCartError(Exception):
    pass


def _money(value: float) -> str:
    return f"{value:.2f}"


def build_order_message(cart: Cart) -> str:
    lines = ["🛒 *ORDER SUMMARY*", ""]
    for index, item in enumerate(cart.items, start=1):
        lines.append(f"*{index}. {item.product.name}*")
        lines.append(
            f"   Price: ${_money(item.product.price)} x {item.quantity} = ${_money(item.line_total)}"
        )
        lines.append("")
    lines.append(f"💰 *TOTAL: ${_money(cart.total())}*")
    lines.append("")
    lines.append("Please process my order! I want to buy these products.")
    return "\n".join(lines)


def whatsapp_url(number: str, message: str) -> str:
    digits = "".join(ch for ch in number if ch.isdigit())
    return f"https://wa.me/{digits}?text={quote(message, safe='')}"


def checkout(cart: Cart, number: str = DEFAULT_WHATSAPP_NUMBER,
             opener: Optional[Callable[[str], object]] = None) -> str:
    """Compose the order message, clear the cart and hand off to WhatsApp.

    The hand-off runs on a daemon thread and is not waited on. Returns the
    deep link that was opened.
    """
    if cart.is_empty():
        raise EmptyCartError("Your cart is empty!")

    url = whatsapp_url(number, build_order_message(cart))
    cart.clear()
    cart.close()

    opener = opener or webbrowser.open
    threading.Thread(target=_open_quietly, args=(opener, url), daemon=True).start()
    return url


def _open_quietly(opener, url: str) -> None:
    try:
        opener(url)
    except Exception as exc:
        logger.warning("Could not open %s: %s", url, exc)
