# shopapi/logic.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError

from .database import parse_object_id
from .errors import NotFound, ValidationError
from .images import ImageIngestor, UploadedImage
from .models import (
    DEFAULT_IMAGE, Product, ProductIn, ProductPage, ProductUpdate,
    describe_validation_error, product_from_doc,
)
from .query import ProductQuery, run_query

# Product operations, independent of the HTTP layer.

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _object_id(product_id: str) -> ObjectId:
    oid = parse_object_id(product_id)
    if oid is None:
        raise ValidationError("Invalid product id")
    return oid


def _validate(model, fields: Dict[str, Any]):
    try:
        return model.model_validate(fields)
    except PydanticValidationError as exc:
        raise ValidationError(describe_validation_error(exc.errors())) from exc


# Read endpoints
def list_products_logic(store, q: ProductQuery) -> ProductPage:
    return run_query(store, q)


def get_product_logic(store, product_id: str) -> Product:
    doc = store.get(_object_id(product_id))
    if doc is None:
        raise NotFound()
    return product_from_doc(doc)


def _fresh_upload(image: Optional[str], requested: Optional[str]) -> Optional[str]:
    """``image`` when it was stored from this request's upload rather than typed in."""
    return image if image and image != requested else None


def _unreferenced(store, url: Optional[str]) -> Optional[str]:
    """``url`` when no stored product points at it any more, else None."""
    if not url:
        return None
    try:
        in_use = store.count({"image": url})
    except Exception as exc:
        logger.warning("Keeping image %s, could not check whether it is in use: %s", url, exc)
        return None
    if in_use:
        logger.info("Keeping image %s, still used by %d product(s)", url, in_use)
        return None
    return url


# Admin endpoints
def create_product_logic(store, images: ImageIngestor, fields: Dict[str, Any],
                         upload: Optional[UploadedImage] = None) -> Product:
    body = _validate(ProductIn, fields)
    image = images.new_image(upload, body.image)
    fresh = _fresh_upload(image, body.image)
    now = _now()
    doc = {
        "name": body.name,
        "price": body.price,
        "category": body.category,
        "image": image or DEFAULT_IMAGE,
        "created_at": now,
        "updated_at": now,
    }
    try:
        saved = store.insert(doc)
    except Exception:
        images.discard(fresh)
        raise
    logger.info("Created product %s (%s)", saved["_id"], body.name)
    return product_from_doc(saved)


def update_product_logic(store, images: ImageIngestor, product_id: str, fields: Dict[str, Any],
                         upload: Optional[UploadedImage] = None) -> Tuple[Product, Optional[str]]:
    """Apply a partial update. Returns the product and the image URL nothing uses any more."""
    body = _validate(ProductUpdate, fields)
    oid = _object_id(product_id)
    existing = store.get(oid)
    if existing is None:
        raise NotFound()

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    changes.pop("image", None)
    replaced: Optional[str] = None
    new_image = images.new_image(upload, body.image)
    fresh = _fresh_upload(new_image, body.image)
    if new_image is not None:
        changes["image"] = new_image
        old_image = existing.get("image")
        if old_image and old_image != new_image and old_image != images.placeholder:
            replaced = old_image
    changes["updated_at"] = _now()

    try:
        saved = store.update(oid, changes)
    except Exception:
        images.discard(fresh)
        raise
    if saved is None:
        # deleted between the read and the write
        images.discard(fresh)
        raise NotFound()
    logger.info("Updated product %s: %s", product_id, ", ".join(sorted(changes)))
    return product_from_doc(saved), _unreferenced(store, replaced)


def delete_product_logic(store, product_id: str) -> Optional[str]:
    """Delete a product. Returns its image URL when no other product shares it."""
    doc = store.delete(_object_id(product_id))
    if doc is None:
        raise NotFound()
    logger.info("Deleted product %s", product_id)
    return _unreferenced(store, doc.get("image"))
