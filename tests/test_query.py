# tests/test_query.py
import math
from datetime import datetime, timedelta, timezone

import pytest

from shopapi.database import InMemoryProductStore
from shopapi.errors import QueryFailed
from shopapi.query import (
    DEFAULT_SORT, ProductQuery, build_filter, build_sort, count_pages, page_window, run_query,
)

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def seeded_store(n=23):
    store = InMemoryProductStore()
    categories = ["Books", "Sports", "Other"]
    for i in range(n):
        ts = BASE + timedelta(minutes=i)
        store.insert({
            "name": f"Product {i:02d}",
            "price": float((i * 7) % 11),
            "category": categories[i % 3],
            "image": "x",
            "created_at": ts,
            "updated_at": ts,
        })
    return store


def test_build_filter():
    assert build_filter(None, None) == {}
    assert build_filter("", "all") == {}
    assert build_filter("  ", "") == {}
    assert build_filter("a.b", "Books") == {
        "name": {"$regex": r"a\.b", "$options": "i"},
        "category": "Books",
    }


def test_build_sort_falls_back_to_newest():
    assert build_sort("price_low")[0] == ("price", 1)
    assert build_sort("price_high")[0] == ("price", -1)
    assert build_sort("name")[0] == ("name", 1)
    assert build_sort(None)[0] == DEFAULT_SORT[0]
    assert build_sort("cheapest")[0] == DEFAULT_SORT[0]


def test_page_window_and_count():
    assert page_window(1, 10) == (0, 10)
    assert page_window(3, 4) == (8, 4)
    assert count_pages(0, 5) == 0
    assert count_pages(10, 5) == 2
    assert count_pages(11, 5) == 3


@pytest.mark.parametrize("limit", [1, 4, 5, 23, 50])
def test_page_sizes_and_totals(limit):
    store = seeded_store()
    total_pages = math.ceil(23 / limit)
    seen = []
    for page in range(1, total_pages + 2):
        result = run_query(store, ProductQuery(page=page, limit=limit))
        assert result.total_pages == total_pages
        assert result.total_products == 23
        assert len(result.products) <= limit
        assert result.has_prev == (page > 1)
        assert result.has_next == (page < total_pages)
        seen.extend(p.id for p in result.products)
    assert len(seen) == len(set(seen)) == 23


@pytest.mark.parametrize("sort,field,reverse", [
    ("price_low", "price", False),
    ("price_high", "price", True),
    ("name", "name", False),
    (None, "created_at", True),
])
def test_sort_is_monotonic(sort, field, reverse):
    result = run_query(seeded_store(), ProductQuery(sort=sort, limit=100))
    values = [getattr(p, field) for p in result.products]
    assert values == sorted(values, reverse=reverse)


def test_search_and_category_combine():
    result = run_query(seeded_store(), ProductQuery(search="product 1", category="Sports", limit=100))
    assert {p.name for p in result.products} == {"Product 10", "Product 13", "Product 16", "Product 19"}


def test_unknown_category_is_empty_not_error():
    result = run_query(seeded_store(), ProductQuery(category="Garden"))
    assert result.products == []
    assert result.total_pages == 0
    assert result.has_next is False


def test_store_failure_becomes_query_failed():
    class Down:
        def find(self, *args):
            raise RuntimeError("socket closed")

    with pytest.raises(QueryFailed):
        run_query(Down(), ProductQuery())
