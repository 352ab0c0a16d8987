# shopapi/models.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

CATEGORIES = (
    "Electronics",
    "Clothing",
    "Books",
    "Home & Kitchen",
    "Sports",
    "Other",
)

DEFAULT_IMAGE = "https://placehold.co/300x300?text=No+Image"
NAME_MAX_LENGTH = 100


class ApiModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------
# Write schemas
# ---------------------------
class ProductUpdate(BaseModel):
    """Partial update: only the fields that were sent are applied."""

    name: Optional[str] = None
    price: Optional[float] = Field(None, allow_inf_nan=False)
    category: Optional[str] = None
    image: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _trim_name(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("Product name is required")
            if len(value) > NAME_MAX_LENGTH:
                raise ValueError(f"Product name cannot exceed {NAME_MAX_LENGTH} characters")
        return value

    @field_validator("price")
    @classmethod
    def _non_negative(cls, value):
        if value is not None and value < 0:
            raise ValueError("Price cannot be negative")
        return value

    @field_validator("category")
    @classmethod
    def _known_category(cls, value):
        if value is not None and value not in CATEGORIES:
            raise ValueError(f"{value} is not a valid category")
        return value

    @field_validator("image", mode="before")
    @classmethod
    def _blank_image(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class ProductIn(ProductUpdate):
    @model_validator(mode="before")
    @classmethod
    def _require_fields(cls, data: Any):
        if isinstance(data, dict):
            for field in ("name", "price", "category"):
                value = data.get(field)
                if value is None or (isinstance(value, str) and not value.strip()):
                    raise ValueError(f"Product {field} is required")
        return data


class LoginIn(BaseModel):
    email: str = ""
    password: str = ""


# ---------------------------
# Read schemas
# ---------------------------
class Product(ApiModel):
    id: str
    name: str
    price: float
    category: str
    image: str = DEFAULT_IMAGE
    created_at: datetime
    updated_at: datetime


class ProductPage(ApiModel):
    products: List[Product]
    total_pages: int
    current_page: int
    total_products: int
    has_next: bool
    has_prev: bool


class TokenOut(BaseModel):
    token: str


class VerifyOut(BaseModel):
    valid: bool


class MessageOut(BaseModel):
    message: str


# ---------------------------
# Helpers
# ---------------------------
def product_from_doc(doc: Dict[str, Any]) -> Product:
    return Product(
        id=str(doc["_id"]),
        name=doc["name"],
        price=doc["price"],
        category=doc["category"],
        image=doc.get("image") or DEFAULT_IMAGE,
        created_at=doc["created_at"],
        updated_at=doc["updated_at"],
    )


def describe_validation_error(errors: List[Dict[str, Any]]) -> str:
    """Reduce a pydantic error list to a single human-readable message."""
    if not errors:
        return "Invalid request"
    err = errors[0]
    if err.get("type") == "value_error" and err.get("ctx", {}).get("error"):
        return str(err["ctx"]["error"])
    loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
    msg = err.get("msg", "Invalid value")
    return f"{loc}: {msg}" if loc else msg
