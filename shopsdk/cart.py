# shopsdk/cart.py
import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from shopapi.models import Product

logger = logging.getLogger(__name__)

CART_KEY = "cartItems"


@dataclass
class LineItem:
    product: Product  # snapshot taken when the item was added
    quantity: int

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


class Cart:
    """Client-side cart, persisted to ``storage`` after every change.

    Prices are the ones captured at add time; nothing is re-checked
    against the store.
    """

    def __init__(self, storage, key: str = CART_KEY):
        self.storage = storage
        self.key = key
        self.items: List[LineItem] = []
        self.is_open = False
        self._load()

    # ---------------------------
    # Persistence
    # ---------------------------
    def _load(self) -> None:
        raw = self.storage.get(self.key)
        if not raw:
            return
        try:
            data = json.loads(raw)
            self.items = [
                LineItem(Product.model_validate(entry["product"]), int(entry["quantity"]))
                for entry in data
            ]
        except (ValueError, TypeError, KeyError, ValidationError) as exc:
            logger.warning("Discarding unreadable saved cart: %s", exc)
            self.items = []
            self.storage.remove(self.key)
            return
        self.items = [item for item in self.items if item.quantity > 0]

    def _save(self) -> None:
        data = [
            {"product": item.product.model_dump(mode="json", by_alias=True), "quantity": item.quantity}
            for item in self.items
        ]
        self.storage.set(self.key, json.dumps(data))

    # ---------------------------
    # Mutations
    # ---------------------------
    def _find(self, product_id: str) -> Optional[LineItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def add(self, product: Product, quantity: int = 1) -> None:
        if quantity <= 0:
            return
        item = self._find(product.id)
        if item:
            item.quantity += quantity
        else:
            self.items.append(LineItem(product.model_copy(), quantity))
        self._save()

    def remove(self, product_id: str) -> None:
        before = len(self.items)
        self.items = [item for item in self.items if item.product_id != product_id]
        if len(self.items) != before:
            self._save()

    def set_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(product_id)
            return
        item = self._find(product_id)
        if item:
            item.quantity = quantity
            self._save()

    def clear(self) -> None:
        self.items = []
        self.storage.remove(self.key)

    # ---------------------------
    # Derived values
    # ---------------------------
    def total(self) -> float:
        return sum(item.line_total for item in self.items)

    def count(self) -> int:
        return sum(item.quantity for item in self.items)

    def is_empty(self) -> bool:
        return not self.items

    # Cart panel
    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    def toggle(self) -> None:
        self.is_open = not self.is_open
