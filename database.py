"""
Database helpers

Thin wrappers around pymongo used by the services. The database handle is
created once from Settings and passed around explicitly.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings
from errors import PersistenceError

logger = logging.getLogger(__name__)

PRODUCTS = "product"
ORDERS = "order"
HERO_CONTENT = "hero_content"
DASHBOARD_STATS = "dashboard_stats"


def get_database(settings: Settings) -> Database:
    client = MongoClient(settings.database_url, tz_aware=True)
    return client[settings.database_name]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a single document and return its id as a string."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = dict(data)
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_object_id(id_str: str) -> Optional[ObjectId]:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        return None


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
    return doc


def as_query_datetime(value: datetime) -> datetime:
    """MongoDB stores naive UTC datetimes; range filters use the same form."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@contextmanager
def persistence_errors(message: str):
    """Re-raise driver failures as a PersistenceError carrying a generic message."""
    try:
        yield
    except PyMongoError as e:
        logger.error("%s: %s", message, e)
        raise PersistenceError(message) from e
