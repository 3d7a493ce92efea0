"""Environment-driven settings for the storefront service."""

import logging
import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Document store settings
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "mongo")
    MONGO_URL: str = os.getenv("MONGO_URL", "mongodb://localhost:27017")
    MONGO_DB: str = os.getenv("MONGO_DB", "storefront")
    STORE_TIMEOUT_SECONDS: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))

    # Redis / cache settings
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CACHE_ENABLED: bool = os.getenv("CACHE_ENABLED", "true").lower() == "true"
    CACHE_TIMEOUT_SECONDS: float = float(os.getenv("CACHE_TIMEOUT_SECONDS", "2"))
    PRODUCT_LIST_TTL_SECONDS: int = int(os.getenv("PRODUCT_LIST_TTL_SECONDS", "300"))
    PRODUCT_DETAIL_TTL_SECONDS: int = int(
        os.getenv("PRODUCT_DETAIL_TTL_SECONDS", "600")
    )
    SEARCH_TTL_SECONDS: int = int(os.getenv("SEARCH_TTL_SECONDS", "300"))
    SEARCH_RESULT_LIMIT: int = int(os.getenv("SEARCH_RESULT_LIMIT", "50"))

    # Per-user recent activity lists
    RECENT_SEARCHES_MAX: int = int(os.getenv("RECENT_SEARCHES_MAX", "10"))
    RECENTLY_VIEWED_MAX: int = int(os.getenv("RECENTLY_VIEWED_MAX", "20"))
    RECENT_ACTIVITY_TTL_SECONDS: int = int(
        os.getenv("RECENT_ACTIVITY_TTL_SECONDS", str(30 * 24 * 60 * 60))
    )

    # Auth
    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    @property
    def is_production(self) -> bool:
        """Return True when running in production."""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def uses_memory_store(self) -> bool:
        """Return True when the in-process document store is selected."""
        return self.STORE_BACKEND.lower() == "memory"

    def __init__(self):
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=self.log_level,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
        logging.getLogger(__name__).debug(
            "Settings loaded: environment=%s store=%s cache_enabled=%s",
            self.ENVIRONMENT,
            self.STORE_BACKEND,
            self.CACHE_ENABLED,
        )


# Create a global settings instance for import
settings = Settings()
