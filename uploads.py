"""
Staging of multipart uploads on local disk.

Every uploaded file is written under the uploads directory first. The copy is
either pushed to the media store (and removed) or kept as the local fallback.
"""

import logging
import os
import random
import time
from dataclasses import dataclass
from typing import List, Optional

from fastapi import UploadFile

from config import Settings
from errors import UploadLimitError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
ALLOWED_PREFIXES = ("image/", "video/")


@dataclass
class StagedFile:
    path: str
    filename: str
    content_type: str
    size: int

    @property
    def public_path(self) -> str:
        return f"/uploads/{self.filename}"


def _unique_name(original: str) -> str:
    original = os.path.basename(original or "upload")
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9 - 1)}-{original}"


def _is_allowed(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.startswith(ALLOWED_PREFIXES)


def stage_file(upload: UploadFile, settings: Settings) -> StagedFile:
    if not _is_allowed(upload.content_type):
        raise UploadLimitError("Only image and video files are allowed!")

    os.makedirs(settings.uploads_dir, exist_ok=True)
    filename = _unique_name(upload.filename)
    path = os.path.join(settings.uploads_dir, filename)
    size = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = upload.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > settings.max_file_size:
                    break
                out.write(chunk)
    except Exception:
        if os.path.exists(path):
            os.remove(path)
        raise

    if size > settings.max_file_size:
        os.remove(path)
        raise UploadLimitError(f"File too large. Maximum size is {settings.max_file_size // (1024 * 1024)}MB.")

    return StagedFile(path=path, filename=filename, content_type=upload.content_type, size=size)


def stage_files(files: Optional[List[UploadFile]], settings: Settings, max_files: Optional[int] = None) -> List[StagedFile]:
    # Browsers send an empty part when no file was picked
    files = [f for f in (files or []) if f is not None and f.filename]
    max_files = max_files or settings.max_files
    if len(files) > max_files:
        raise UploadLimitError(f"Too many files. Maximum is {max_files} files.")

    staged = []
    try:
        for upload in files:
            staged.append(stage_file(upload, settings))
    except Exception:
        discard_staged(staged)
        raise
    return staged


def discard_staged(staged: List[StagedFile]) -> None:
    for item in staged:
        if os.path.exists(item.path):
            try:
                os.remove(item.path)
            except OSError as e:
                logger.warning("Could not remove staged file %s: %s", item.path, e)
