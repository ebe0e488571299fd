"""
Remote media hosting (Cloudinary) with local fallback.

Uploading a staged file yields either a RemoteUrl (hosted on Cloudinary) or a
LocalPath (the staged copy served from /uploads/) when the remote upload
fails. Both keep the string that ends up in the database in `.url`.
"""

import logging
import os
from typing import Union

import cloudinary
import cloudinary.api
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from pydantic import BaseModel

from config import Settings, mask_secret
from errors import UploadError
from uploads import StagedFile

logger = logging.getLogger(__name__)

REMOTE_HOST_MARKER = "cloudinary.com"
LOCAL_PREFIX = "/uploads/"


class RemoteUrl(BaseModel):
    url: str
    is_remote: bool = True


class LocalPath(BaseModel):
    url: str
    is_remote: bool = False


StoredMedia = Union[RemoteUrl, LocalPath]


class CloudinaryMediaStore:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.folder = settings.cloudinary_folder
        self.configured = settings.media_store_configured
        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            secure=True,
        )

    def log_status(self):
        logger.info("Cloud name: %s", self.settings.cloudinary_cloud_name)
        logger.info("API key: %s", mask_secret(self.settings.cloudinary_api_key))
        logger.info("API secret: %s", mask_secret(self.settings.cloudinary_api_secret))
        if self.configured:
            logger.info("Cloudinary configured successfully")
        else:
            logger.warning("Cloudinary configuration incomplete, uploads will be kept locally")

    def is_remote(self, url: str) -> bool:
        return REMOTE_HOST_MARKER in (url or "")

    def upload(self, local_path: str, kind: str = "auto") -> str:
        if not self.configured:
            raise UploadError("Cloudinary not configured")
        logger.info("Uploading to Cloudinary: %s", local_path)
        try:
            result = cloudinary.uploader.upload(
                local_path,
                resource_type=kind,
                folder=self.folder,
                quality="auto",
                fetch_format="auto",
            )
        except (CloudinaryError, OSError) as e:
            raise UploadError(str(e)) from e
        url = result.get("secure_url")
        if not url:
            raise UploadError("Cloudinary response has no secure_url")
        logger.info("Cloudinary upload successful: %s", url)
        return url

    def public_id(self, url: str) -> str:
        filename = url.rstrip("/").split("/")[-1]
        return f"{self.folder}/{filename.split('.')[0]}"

    def delete(self, url: str) -> None:
        public_id = self.public_id(url)
        resource_type = "video" if "/video/upload/" in url else "image"
        try:
            result = cloudinary.uploader.destroy(public_id, resource_type=resource_type)
        except CloudinaryError as e:
            logger.error("Error deleting from Cloudinary %s: %s", public_id, e)
            return
        logger.info("Deleted from Cloudinary: %s (%s)", public_id, result.get("result"))

    def ping(self) -> dict:
        if not self.configured:
            raise UploadError("Cloudinary not configured - check your .env file")
        try:
            return cloudinary.api.ping()
        except CloudinaryError as e:
            raise UploadError(f"Cloudinary authentication failed: {e}") from e


def store_staged_file(store, staged: StagedFile, kind: str = "image") -> StoredMedia:
    """Push a staged file to the media store, keeping it locally if that fails."""
    try:
        url = store.upload(staged.path, kind)
    except UploadError as e:
        logger.error("Cloudinary upload error, using local storage for %s: %s", staged.filename, e)
        return LocalPath(url=staged.public_path)

    if os.path.exists(staged.path):
        os.remove(staged.path)
    return RemoteUrl(url=url)


def discard_media(store, settings: Settings, url: str) -> None:
    """Best-effort removal of a stored media reference, remote or local."""
    if not url:
        return
    if store.is_remote(url):
        try:
            store.delete(url)
        except UploadError as e:
            logger.error("Could not delete remote media %s: %s", url, e)
    elif url.startswith(LOCAL_PREFIX):
        path = os.path.join(settings.uploads_dir, os.path.basename(url))
        if os.path.exists(path):
            try:
                os.remove(path)
                logger.info("Deleted local media: %s", path)
            except OSError as e:
                logger.error("Could not delete local media %s: %s", path, e)
