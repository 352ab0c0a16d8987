# shopapi/database.py
import functools
import logging
import re
import threading
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from .errors import StoreError

# Product and admin stores. The in-memory stores are the default when no
# MongoDB URI is configured; both speak the same MongoDB-shaped queries.

logger = logging.getLogger(__name__)

Sort = List[Tuple[str, int]]


# ---------------------------
# In-memory stores (process lifetime)
# ---------------------------
def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for field, cond in query.items():
        value = doc.get(field)
        if isinstance(cond, dict) and "$regex" in cond:
            flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
            if not isinstance(value, str) or not re.search(cond["$regex"], value, flags):
                return False
        elif value != cond:
            return False
    return True


class InMemoryProductStore:
    def __init__(self):
        self._docs: Dict[ObjectId, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            doc = dict(doc)
            doc.setdefault("_id", ObjectId())
            self._docs[doc["_id"]] = doc
            return dict(doc)

    def get(self, oid: ObjectId) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._docs.get(oid)
            return dict(doc) if doc else None

    def update(self, oid: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._docs.get(oid)
            if doc is None:
                return None
            doc.update(changes)
            return dict(doc)

    def delete(self, oid: ObjectId) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._docs.pop(oid, None)

    def find(self, query: Dict[str, Any], sort: Sort, skip: int, limit: int) -> List[Dict[str, Any]]:
        with self._lock:
            out = [dict(d) for d in self._docs.values() if _matches(d, query)]
        # apply the least significant key first; sorted() is stable
        for field, direction in reversed(sort):
            out.sort(key=lambda d: d[field], reverse=direction < 0)
        return out[skip:skip + limit]

    def count(self, query: Dict[str, Any]) -> int:
        with self._lock:
            return sum(1 for d in self._docs.values() if _matches(d, query))


class InMemoryAdminStore:
    def __init__(self):
        self._admins: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            admin = self._admins.get(_normalize_email(email))
            return dict(admin) if admin else None

    def upsert(self, email: str, password_hash: str) -> None:
        key = _normalize_email(email)
        with self._lock:
            self._admins[key] = {"email": key, "password_hash": password_hash}


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# ---------------------------
# MongoDB stores
# ---------------------------
def _translate_errors(fn):
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except PyMongoError as exc:
            logger.error("MongoDB error in %s: %s", fn.__name__, exc)
            raise StoreError() from exc
    return wrapper


class MongoProductStore:
    def __init__(self, db):
        self.collection = db["products"]

    @_translate_errors
    def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    @_translate_errors
    def get(self, oid: ObjectId) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"_id": oid})

    @_translate_errors
    def update(self, oid: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.collection.find_one_and_update(
            {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )

    @_translate_errors
    def delete(self, oid: ObjectId) -> Optional[Dict[str, Any]]:
        return self.collection.find_one_and_delete({"_id": oid})

    @_translate_errors
    def find(self, query: Dict[str, Any], sort: Sort, skip: int, limit: int) -> List[Dict[str, Any]]:
        return list(self.collection.find(query).sort(sort).skip(skip).limit(limit))

    @_translate_errors
    def count(self, query: Dict[str, Any]) -> int:
        return self.collection.count_documents(query)

    def ensure_indexes(self) -> None:
        self.collection.create_index([("created_at", -1)])
        self.collection.create_index([("category", 1), ("price", 1)])


class MongoAdminStore:
    def __init__(self, db):
        self.collection = db["admins"]

    @_translate_errors
    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"email": _normalize_email(email)})

    @_translate_errors
    def upsert(self, email: str, password_hash: str) -> None:
        key = _normalize_email(email)
        self.collection.update_one(
            {"email": key}, {"$set": {"email": key, "password_hash": password_hash}}, upsert=True
        )


def connect_mongo(uri: str, db_name: str) -> Tuple[MongoProductStore, MongoAdminStore]:
    client = MongoClient(uri, tz_aware=True)
    db = client[db_name]
    products = MongoProductStore(db)
    try:
        products.ensure_indexes()
    except PyMongoError as exc:
        logger.warning("Unable to ensure product indexes: %s", exc)
    logger.info("Using MongoDB database %r", db_name)
    return products, MongoAdminStore(db)


def parse_object_id(value: str) -> Optional[ObjectId]:
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)
