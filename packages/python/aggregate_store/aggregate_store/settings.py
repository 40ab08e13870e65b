"""Configuration for the aggregate store.

Applications can build their own ``StoreSettings`` and hand it to
``AggregateManager.from_settings``; otherwise the module-level ``settings``
instance is used, which reads its defaults from the environment.
"""

import os

from pydantic import BaseModel, Field


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class StoreSettings(BaseModel):
    """Connection settings for the MongoDB-backed store gateway."""

    uri: str = Field(
        default_factory=lambda: os.getenv("AGGREGATE_STORE_URI", "mongodb://localhost:27017")
    )
    db_name: str = Field(default_factory=lambda: os.getenv("AGGREGATE_STORE_DB", "aggregates"))
    collection: str = Field(
        default_factory=lambda: os.getenv("AGGREGATE_STORE_COLLECTION", "aggregates")
    )
    timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("AGGREGATE_STORE_TIMEOUT_MS", "10000"))
    )
    close_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("AGGREGATE_STORE_CLOSE_TIMEOUT", "10"))
    )
    create_ttl_index: bool = Field(
        default_factory=lambda: _env_flag("AGGREGATE_STORE_TTL_INDEX", "true")
    )


settings = StoreSettings()
