from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from pymongo import ASCENDING, DESCENDING

from queries import MAX_INT64, NEWEST_FIRST, InvalidQueryError, ProductQuery, list_products


@pytest.fixture
def products():
    collection = mongomock.MongoClient()["shop"]["products"]
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    rows = [
        ("a", "dresses", 30),
        ("b", "shoes", 80),
        ("c", "dresses", 10),
        ("d", "dresses", 50),
        ("e", "bags", 20),
        ("f", "dresses", 40),
    ]
    for i, (title, category, price) in enumerate(rows):
        collection.insert_one(
            {"title": title, "category": category, "price": price, "created_at": base + timedelta(days=i)}
        )
    return collection


class TestProductQuery:
    def test_defaults(self):
        query = ProductQuery.from_params()
        assert query.page == 1
        assert query.limit is None
        assert query.filter == {}
        assert query.sort_order == NEWEST_FIRST
        assert query.skip == 0
        assert query.total_pages(17) == 1

    def test_category_filter_is_exact_match(self):
        assert ProductQuery.from_params(category="dresses").filter == {"category": "dresses"}

    def test_empty_values_count_as_absent(self):
        query = ProductQuery.from_params(page="", limit="", category="", sort="")
        assert query.page == 1
        assert query.limit is None
        assert query.filter == {}
        assert query.sort_order == NEWEST_FIRST

    @pytest.mark.parametrize(
        "sort, expected",
        [
            ("asc", [("price", ASCENDING), ("_id", ASCENDING)]),
            ("desc", [("price", DESCENDING), ("_id", DESCENDING)]),
            ("cheapest", [("price", DESCENDING), ("_id", DESCENDING)]),
        ],
    )
    def test_sort_order(self, sort, expected):
        assert ProductQuery.from_params(sort=sort).sort_order == expected

    def test_pagination_window(self):
        query = ProductQuery.from_params(page="3", limit="4")
        assert query.skip == 8
        assert query.total_pages(9) == 3
        assert query.total_pages(12) == 3
        assert query.total_pages(13) == 4
        assert query.total_pages(0) == 0

    @pytest.mark.parametrize("field", ["page", "limit"])
    @pytest.mark.parametrize("raw", ["0", "-2", "abc", "1.5"])
    def test_rejects_non_positive_integers(self, field, raw):
        with pytest.raises(InvalidQueryError):
            ProductQuery.from_params(**{field: raw})


class TestListProducts:
    def test_without_limit_returns_everything_newest_first(self, products):
        envelope = list_products(products, ProductQuery.from_params())
        assert envelope["success"] is True
        assert envelope["message"] == "Products retrieved successfully"
        assert [p["title"] for p in envelope["products"]] == ["f", "e", "d", "c", "b", "a"]
        assert envelope["totalProducts"] == 6
        assert envelope["totalPages"] == 1
        assert envelope["currentPage"] == 1

    def test_documents_are_serialized(self, products):
        product = list_products(products, ProductQuery.from_params())["products"][0]
        assert "_id" not in product
        assert isinstance(product["id"], str)
        assert isinstance(product["created_at"], str)

    def test_count_uses_the_same_filter(self, products):
        query = ProductQuery.from_params(category="dresses", limit="2")
        envelope = list_products(products, query)
        assert envelope["totalProducts"] == products.count_documents({"category": "dresses"}) == 4
        assert envelope["totalPages"] == 2
        assert all(p["category"] == "dresses" for p in envelope["products"])

    def test_page_window_under_price_sort(self, products):
        query = ProductQuery.from_params(category="dresses", sort="asc", limit="2", page="2")
        envelope = list_products(products, query)
        assert [p["price"] for p in envelope["products"]] == [40, 50]
        assert envelope["currentPage"] == 2

    def test_descending_price(self, products):
        envelope = list_products(products, ProductQuery.from_params(sort="desc", limit="3"))
        assert [p["price"] for p in envelope["products"]] == [80, 50, 40]
        assert envelope["totalPages"] == 2

    def test_page_past_the_end_is_empty(self, products):
        envelope = list_products(products, ProductQuery.from_params(limit="5", page="4"))
        assert envelope["products"] == []
        assert envelope["totalProducts"] == 6
        assert envelope["totalPages"] == 2

    def test_unknown_category(self, products):
        envelope = list_products(products, ProductQuery.from_params(category="hats", limit="10"))
        assert envelope["products"] == []
        assert envelope["totalProducts"] == 0
        assert envelope["totalPages"] == 0


class TestInt64Bounds:
    def test_largest_limit_is_accepted(self):
        assert ProductQuery.from_params(limit=str(MAX_INT64)).limit == MAX_INT64

    @pytest.mark.parametrize("field", ["page", "limit"])
    def test_values_past_int64_are_rejected(self, field):
        with pytest.raises(InvalidQueryError):
            ProductQuery.from_params(**{field: str(MAX_INT64 + 1)})

    def test_skip_past_int64_is_rejected(self):
        with pytest.raises(InvalidQueryError, match="page is out of range"):
            ProductQuery.from_params(page=str(2**62), limit="4")
