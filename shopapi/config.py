# shopapi/config.py
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Settings are read from the environment once, at app creation.

DEFAULT_JWT_SECRET = "secret-key"


class Settings(BaseModel):
    mongodb_uri: Optional[str] = None
    mongodb_db: str = "storefront"
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_expires_hours: int = Field(24, ge=1)
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    upload_dir: str = "public/uploads"
    upload_url_prefix: str = "/uploads"
    max_upload_bytes: int = Field(5 * 1024 * 1024, ge=1)
    default_page_size: int = Field(10, ge=1, le=100)
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        env = os.environ
        values = {
            "mongodb_uri": env.get("MONGODB_URI") or None,
            "mongodb_db": env.get("MONGODB_DB", "storefront"),
            "jwt_secret": env.get("JWT_SECRET", DEFAULT_JWT_SECRET),
            "jwt_expires_hours": env.get("JWT_EXPIRES_HOURS", 24),
            "admin_email": env.get("ADMIN_EMAIL") or None,
            "admin_password": env.get("ADMIN_PASSWORD") or None,
            "upload_dir": env.get("UPLOAD_DIR", "public/uploads"),
            "upload_url_prefix": env.get("UPLOAD_URL_PREFIX", "/uploads").rstrip("/"),
            "max_upload_bytes": env.get("MAX_UPLOAD_BYTES", 5 * 1024 * 1024),
            "default_page_size": env.get("DEFAULT_PAGE_SIZE", 10),
            "cors_origins": [o.strip() for o in env.get("CORS_ORIGINS", "*").split(",") if o.strip()],
            "log_level": env.get("LOG_LEVEL", "INFO").upper(),
        }
        return cls(**values)
