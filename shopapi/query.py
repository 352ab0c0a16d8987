# shopapi/query.py
"""Product listing: filter parameters -> store query, sort, page window.

Lenient by design: an unknown category matches nothing, an unknown sort key
falls back to newest first, and a page past the end is simply empty.
"""
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .errors import QueryFailed
from .models import ProductPage, product_from_doc

logger = logging.getLogger(__name__)

ASCENDING = 1
DESCENDING = -1

SORTS: Dict[str, List[Tuple[str, int]]] = {
    "price_low": [("price", ASCENDING)],
    "price_high": [("price", DESCENDING)],
    "name": [("name", ASCENDING)],
}
DEFAULT_SORT = [("created_at", DESCENDING)]

SORT_LABELS = {
    "price_low": "Price: Low to High",
    "price_high": "Price: High to Low",
    "name": "Name: A to Z",
}

ALL_CATEGORIES = "all"


@dataclass
class ProductQuery:
    search: Optional[str] = None
    category: Optional[str] = None
    sort: Optional[str] = None
    page: int = 1
    limit: int = 10


def build_filter(search: Optional[str], category: Optional[str]) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if search and search.strip():
        query["name"] = {"$regex": re.escape(search.strip()), "$options": "i"}
    if category and category != ALL_CATEGORIES:
        query["category"] = category
    return query


def build_sort(sort: Optional[str]) -> List[Tuple[str, int]]:
    # _id breaks ties so page windows stay stable between requests
    return SORTS.get(sort or "", DEFAULT_SORT) + [("_id", DESCENDING)]


def page_window(page: int, limit: int) -> Tuple[int, int]:
    return (page - 1) * limit, limit


def count_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit)


def run_query(store, q: ProductQuery) -> ProductPage:
    query = build_filter(q.search, q.category)
    sort = build_sort(q.sort)
    skip, limit = page_window(q.page, q.limit)
    try:
        docs = store.find(query, sort, skip, limit)
        total = store.count(query)
    except Exception as exc:
        logger.exception("Product query failed: %r", q)
        raise QueryFailed() from exc

    total_pages = count_pages(total, q.limit)
    return ProductPage(
        products=[product_from_doc(d) for d in docs],
        total_pages=total_pages,
        current_page=q.page,
        total_products=total,
        has_next=q.page < total_pages,
        has_prev=q.page > 1,
    )
