"""
Hero content: promotional banners with a single image or video each.
"""

import logging
from typing import List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from config import Settings
from database import (
    HERO_CONTENT,
    create_document,
    get_documents,
    persistence_errors,
    serialize_doc,
    to_object_id,
    utcnow,
)
from errors import NotFoundError, ValidationError
from media_store import StoredMedia, discard_media, store_staged_file
from schemas import MEDIA_TYPES, HeroContent
from uploads import StagedFile, discard_staged

logger = logging.getLogger(__name__)

DISPLAY_ORDER = [("order", ASCENDING), ("createdAt", DESCENDING)]


def infer_media_type(staged: StagedFile, explicit: Optional[str] = None) -> str:
    if explicit:
        if explicit not in MEDIA_TYPES:
            raise ValidationError("Invalid media type")
        return explicit
    content_type = staged.content_type or ""
    if content_type.startswith("video/"):
        return "video"
    if content_type.startswith("image/"):
        return "image"
    raise ValidationError("Invalid file type")


def parse_order(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_active(value: Optional[str]) -> bool:
    return value != "false"


class HeroContentService:
    def __init__(self, db: Database, media_store, settings: Settings):
        self.db = db
        self.media_store = media_store
        self.settings = settings

    @property
    def collection(self):
        return self.db[HERO_CONTENT]

    def list_active(self) -> List[dict]:
        with persistence_errors("Error fetching hero content"):
            docs = get_documents(self.db, HERO_CONTENT, {"isActive": True}, sort=DISPLAY_ORDER)
        return [serialize_doc(d) for d in docs]

    def list_all(self) -> List[dict]:
        with persistence_errors("Error fetching hero content"):
            docs = get_documents(self.db, HERO_CONTENT, {}, sort=DISPLAY_ORDER)
        logger.info("Fetched %d hero content items for admin", len(docs))
        return [serialize_doc(d) for d in docs]

    def _find(self, hero_id: str) -> dict:
        oid = to_object_id(hero_id)
        with persistence_errors("Error fetching hero content"):
            doc = self.collection.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFoundError("Hero content not found")
        return doc

    def _discard_uploaded(self, media: Optional[StoredMedia]):
        if media is not None and media.is_remote:
            discard_media(self.media_store, self.settings, media.url)

    def get(self, hero_id: str) -> dict:
        return serialize_doc(self._find(hero_id))

    def create(
        self,
        title: Optional[str],
        subtitle: Optional[str],
        staged: Optional[StagedFile],
        button_text: Optional[str] = None,
        theme: Optional[str] = None,
        order=None,
        is_active: Optional[str] = None,
        media_type: Optional[str] = None,
    ) -> dict:
        media = None
        try:
            if not (title and title.strip()) or not (subtitle and subtitle.strip()) or staged is None:
                raise ValidationError("Title, subtitle and media file are required")
            final_type = infer_media_type(staged, media_type)
            media = store_staged_file(self.media_store, staged, final_type)

            hero = HeroContent(
                title=title.strip(),
                subtitle=subtitle.strip(),
                button_text=button_text or "Shop Now",
                theme=theme or "light",
                order=parse_order(order),
                media_type=final_type,
                media_url=media.url,
                is_active=parse_active(is_active),
            )
            with persistence_errors("Error creating hero content"):
                hero_id = create_document(self.db, HERO_CONTENT, hero)
        except Exception:
            discard_staged([staged] if staged else [])
            self._discard_uploaded(media)
            raise
        return self.get(hero_id)

    def update(
        self,
        hero_id: str,
        staged: Optional[StagedFile] = None,
        title: Optional[str] = None,
        subtitle: Optional[str] = None,
        button_text: Optional[str] = None,
        theme: Optional[str] = None,
        order=None,
        is_active: Optional[str] = None,
        media_type: Optional[str] = None,
    ) -> dict:
        media = None
        try:
            current = self._find(hero_id)
            updates = {"updatedAt": utcnow()}
            if title and title.strip():
                updates["title"] = title.strip()
            if subtitle and subtitle.strip():
                updates["subtitle"] = subtitle.strip()
            if button_text:
                updates["buttonText"] = button_text
            if theme:
                updates["theme"] = theme
            if order not in (None, ""):
                updates["order"] = parse_order(order)
            if is_active is not None:
                updates["isActive"] = parse_active(is_active)

            if staged is not None:
                final_type = infer_media_type(staged, media_type)
                media = store_staged_file(self.media_store, staged, final_type)
                updates["mediaType"] = final_type
                updates["mediaUrl"] = media.url
            elif media_type:
                if media_type not in MEDIA_TYPES:
                    raise ValidationError("Invalid media type")
                updates["mediaType"] = media_type

            with persistence_errors("Error updating hero content"):
                self.collection.update_one({"_id": current["_id"]}, {"$set": updates})
        except Exception:
            discard_staged([staged] if staged else [])
            self._discard_uploaded(media)
            raise

        # The previous file goes only once its remote replacement is on the record
        old_url = current.get("mediaUrl")
        if media is not None and media.is_remote and old_url and self.media_store.is_remote(old_url):
            discard_media(self.media_store, self.settings, old_url)

        logger.info("Hero content updated: %s", hero_id)
        return self.get(hero_id)

    def delete(self, hero_id: str) -> dict:
        current = self._find(hero_id)
        with persistence_errors("Error deleting hero content"):
            self.collection.delete_one({"_id": current["_id"]})
        discard_media(self.media_store, self.settings, current.get("mediaUrl"))
        logger.info("Hero content deleted: %s", hero_id)
        return {"message": "Hero content deleted successfully"}
