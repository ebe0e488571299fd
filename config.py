"""
Application settings

All configuration is read once from the environment (and an optional .env
file) into a Settings object, which is then handed to the database factory,
the media store and the services at startup.
"""

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "https://mcashop.netlify.app",
]

MAX_FILE_SIZE = 50 * 1024 * 1024
MAX_FILES = 10


class Settings(BaseModel):
    database_url: str = Field("mongodb://localhost:27017", description="MongoDB connection string")
    database_name: str = Field("mca_shop", description="MongoDB database name")
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    cloudinary_folder: str = "mca_shop"
    public_dir: str = "public"
    app_env: str = Field("production", description="development | production")
    cors_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    port: int = 5410
    log_level: str = "INFO"
    max_file_size: int = MAX_FILE_SIZE
    max_files: int = MAX_FILES

    @property
    def uploads_dir(self) -> str:
        return os.path.join(self.public_dir, "uploads")

    @property
    def media_store_configured(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret)

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        origins = os.getenv("CORS_ORIGINS")
        values = {
            "database_url": os.getenv("DATABASE_URL"),
            "database_name": os.getenv("DATABASE_NAME"),
            "cloudinary_cloud_name": os.getenv("CLOUDINARY_CLOUD_NAME"),
            "cloudinary_api_key": os.getenv("CLOUDINARY_API_KEY"),
            "cloudinary_api_secret": os.getenv("CLOUDINARY_API_SECRET"),
            "cloudinary_folder": os.getenv("CLOUDINARY_FOLDER"),
            "public_dir": os.getenv("PUBLIC_DIR"),
            "app_env": os.getenv("APP_ENV"),
            "port": os.getenv("PORT"),
            "log_level": os.getenv("LOG_LEVEL"),
        }
        if origins:
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
        # Unset variables fall back to the field defaults
        return cls(**{k: v for k, v in values.items() if v is not None})


def mask_secret(value: Optional[str]) -> str:
    if not value:
        return "NOT SET"
    return "***" + value[-4:]
