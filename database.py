"""
MongoDB access

The Store bundles the client with the two collections the API uses. One Store is
built per application and handed to route handlers through FastAPI dependencies.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import HTTPException, Request
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

logger = logging.getLogger(__name__)

USERS = "users"
PRODUCTS = "products"


class Store:
    def __init__(self, client: MongoClient, database_name: str):
        self.client = client
        self.db: Database = client[database_name]
        self.users: Collection = self.db[USERS]
        self.products: Collection = self.db[PRODUCTS]

    def ensure_indexes(self) -> None:
        """Create the unique email index and the indexes behind product listing."""
        self.users.create_index([("email", ASCENDING)], unique=True, name="email_unique")
        self.products.create_index([("category", ASCENDING)], name="category")
        self.products.create_index([("created_at", DESCENDING)], name="created_at")
        self.products.create_index([("price", ASCENDING)], name="price")
        logger.info("Indexes ensured on %s", self.db.name)

    def close(self) -> None:
        self.client.close()


def connect(uri: str, database_name: str) -> Store:
    client = MongoClient(uri, serverSelectionTimeoutMS=5000, tz_aware=True)
    logger.info("MongoDB client created for database %s", database_name)
    return Store(client, database_name)


def get_store(request: Request) -> Store:
    return request.app.state.store


def create_document(collection: Collection, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a document stamped with created_at/updated_at and return it with its _id."""
    now = datetime.now(timezone.utc)
    doc = {**data, "created_at": now, "updated_at": now}
    result = collection.insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def to_object_id(id_str: str, label: str = "id") -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail=f"Invalid {label}")
    return ObjectId(id_str)


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
        elif isinstance(v, datetime):
            doc[k] = v.isoformat()
    return doc
