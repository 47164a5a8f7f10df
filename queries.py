"""
Product listing queries

Turns the raw ``page``/``limit``/``category``/``sort`` query parameters into a Mongo
filter, a sort order and an optional skip/limit window, and builds the paginated
response envelope.

Without ``sort`` products come back newest first. ``sort=asc`` orders by ascending
price and any other value by descending price. ``_id`` always breaks ties so that
consecutive pages never overlap.
"""
import math
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

from database import serialize_doc

SortOrder = List[Tuple[str, int]]

NEWEST_FIRST: SortOrder = [("created_at", DESCENDING), ("_id", DESCENDING)]
PRICE_ASC: SortOrder = [("price", ASCENDING), ("_id", ASCENDING)]
PRICE_DESC: SortOrder = [("price", DESCENDING), ("_id", DESCENDING)]


class InvalidQueryError(ValueError):
    pass


# largest value BSON can encode for skip/limit
MAX_INT64 = 2**63 - 1


def _positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        raise InvalidQueryError(f"{name} must be a positive integer")
    if value < 1 or value > MAX_INT64:
        raise InvalidQueryError(f"{name} must be a positive integer")
    return value


def _present(raw: Optional[str]) -> Optional[str]:
    # empty query values behave as if they were never sent
    return raw if raw else None


class ProductQuery(BaseModel):
    page: int = 1
    limit: Optional[int] = None
    category: Optional[str] = None
    sort: Optional[str] = None

    @classmethod
    def from_params(
        cls,
        page: Optional[str] = None,
        limit: Optional[str] = None,
        category: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> "ProductQuery":
        page = _present(page)
        limit = _present(limit)
        query = cls(
            page=_positive_int("page", page) if page is not None else 1,
            limit=_positive_int("limit", limit) if limit is not None else None,
            category=_present(category),
            sort=_present(sort),
        )
        if query.skip > MAX_INT64:
            raise InvalidQueryError("page is out of range")
        return query

    @property
    def filter(self) -> Dict[str, Any]:
        if self.category is None:
            return {}
        return {"category": self.category}

    @property
    def sort_order(self) -> SortOrder:
        if self.sort is None:
            return NEWEST_FIRST
        return PRICE_ASC if self.sort == "asc" else PRICE_DESC

    @property
    def skip(self) -> int:
        if self.limit is None:
            return 0
        return (self.page - 1) * self.limit

    def total_pages(self, total: int) -> int:
        if self.limit is None:
            return 1
        return math.ceil(total / self.limit)


def find_products(collection: Collection, query: ProductQuery) -> List[Dict[str, Any]]:
    cursor = collection.find(query.filter).sort(query.sort_order)
    if query.limit is not None:
        cursor = cursor.skip(query.skip).limit(query.limit)
    return [serialize_doc(doc) for doc in cursor]


def list_products(collection: Collection, query: ProductQuery) -> Dict[str, Any]:
    """Run the listing and the matching count, and wrap both in the response envelope."""
    products = find_products(collection, query)
    total = collection.count_documents(query.filter)
    return {
        "success": True,
        "message": "Products retrieved successfully",
        "products": products,
        "totalProducts": total,
        "totalPages": query.total_pages(total),
        "currentPage": query.page,
    }
