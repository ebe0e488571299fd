"""
Product catalog.

Photos arrive as staged uploads and are pushed to the media store one by one;
a photo whose upload fails stays on local disk and is referenced by its
/uploads/ path instead.
"""

import logging
import math
from typing import List, Optional

from pymongo import DESCENDING
from pymongo.database import Database

from config import Settings
from database import PRODUCTS, create_document, get_documents, persistence_errors, serialize_doc, to_object_id
from errors import NotFoundError, ValidationError
from media_store import StoredMedia, discard_media, store_staged_file
from schemas import Product
from uploads import StagedFile, discard_staged

logger = logging.getLogger(__name__)


def split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_price(value) -> Optional[float]:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


class CatalogService:
    def __init__(self, db: Database, media_store, settings: Settings):
        self.db = db
        self.media_store = media_store
        self.settings = settings

    @property
    def products(self):
        return self.db[PRODUCTS]

    def _upload_photos(self, staged: List[StagedFile]) -> List[StoredMedia]:
        return [store_staged_file(self.media_store, item, "image") for item in staged]

    def _discard_uploaded(self, photos: List[StoredMedia]):
        for photo in photos:
            if photo.is_remote:
                discard_media(self.media_store, self.settings, photo.url)

    def list_products(self) -> List[dict]:
        with persistence_errors("Error fetching products"):
            docs = get_documents(self.db, PRODUCTS, {}, sort=[("createdAt", DESCENDING)])
        return [serialize_doc(d) for d in docs]

    def get_product(self, product_id: str) -> dict:
        oid = to_object_id(product_id)
        with persistence_errors("Error fetching product"):
            doc = self.products.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFoundError("Product not found")
        return serialize_doc(doc)

    def create_product(
        self,
        name: Optional[str],
        price,
        category: Optional[str],
        staged: List[StagedFile],
        description: Optional[str] = None,
        colors: Optional[str] = None,
        sizes: Optional[str] = None,
    ) -> dict:
        photos = []
        try:
            price_value = parse_price(price)
            if not (name and name.strip()) or price_value is None or not (category and category.strip()) or not staged:
                raise ValidationError("All fields including photos are required")

            photos = self._upload_photos(staged)
            product = Product(
                name=name.strip(),
                description=(description or "").strip(),
                price=price_value,
                category=category.strip(),
                colors=split_list(colors),
                sizes=split_list(sizes),
                photos=[p.url for p in photos],
            )
            with persistence_errors("Error creating product"):
                product_id = create_document(self.db, PRODUCTS, product)
        except Exception:
            discard_staged(staged)
            self._discard_uploaded(photos)
            raise

        local = sum(1 for p in photos if not p.is_remote)
        if local:
            logger.warning("Product %s stored with %d local photo(s)", product_id, local)
        return self.get_product(product_id)

    def update_product(
        self,
        product_id: str,
        staged: List[StagedFile],
        name: Optional[str] = None,
        price=None,
        category: Optional[str] = None,
        description: Optional[str] = None,
        colors: Optional[str] = None,
        sizes: Optional[str] = None,
    ) -> dict:
        photos = []
        try:
            oid = to_object_id(product_id)
            with persistence_errors("Error updating product"):
                exists = oid is not None and self.products.count_documents({"_id": oid}, limit=1) > 0
            if not exists:
                raise NotFoundError("Product not found")

            updates = {}
            if name is not None:
                if not name.strip():
                    raise ValidationError("Name cannot be empty")
                updates["name"] = name.strip()
            if price is not None:
                price_value = parse_price(price)
                if price_value is None:
                    raise ValidationError("Price must be a positive number")
                updates["price"] = price_value
            if category is not None:
                if not category.strip():
                    raise ValidationError("Category cannot be empty")
                updates["category"] = category.strip()
            if description is not None:
                updates["description"] = description.strip()
            if colors is not None:
                updates["colors"] = split_list(colors)
            if sizes is not None:
                updates["sizes"] = split_list(sizes)
            # Old photos are left in place; they are only removed on delete
            if staged:
                photos = self._upload_photos(staged)
                updates["photos"] = [p.url for p in photos]

            if updates:
                with persistence_errors("Error updating product"):
                    self.products.update_one({"_id": oid}, {"$set": updates})
        except Exception:
            discard_staged(staged)
            self._discard_uploaded(photos)
            raise
        return self.get_product(product_id)

    def delete_product(self, product_id: str) -> dict:
        product = self.get_product(product_id)

        with persistence_errors("Error deleting product"):
            self.products.delete_one({"_id": to_object_id(product_id)})

        for url in product.get("photos") or []:
            discard_media(self.media_store, self.settings, url)
        return {"message": "Product deleted successfully"}
