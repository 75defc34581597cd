"""
Centralized settings management using pydantic-settings.

All environment variables and configuration values are defined here.
Use get_settings() to access the singleton settings instance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Supabase-backed storage requires:
        - SUPABASE_URL: Supabase project URL
        - SUPABASE_SERVICE_KEY: Supabase service role key

    Optional environment variables:
        - STORAGE_BACKEND: "supabase" (default) or "memory"
        - OPENAI_API_KEY: enables embeddings and intent routing
        - HOST / PORT: Server binding
        - ENVIRONMENT: Environment name (development, staging, production)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Server Configuration
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    workers: int = Field(default=4, description="Number of uvicorn workers")

    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ],
        description="Allowed CORS origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # ==========================================================================
    # Storage
    # ==========================================================================
    storage_backend: str = Field(
        default="supabase",
        description="Storage backend for catalog/events/profiles: 'supabase' or 'memory'"
    )

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("supabase", "memory"):
            raise ValueError("storage_backend must be 'supabase' or 'memory'")
        return v

    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_key: str = Field(default="", description="Supabase service role key")
    vector_search_rpc: str = Field(
        default="match_catalog_items",
        description="pgvector RPC used for nearest-neighbor catalog search"
    )

    # ==========================================================================
    # OpenAI (embeddings + intent routing)
    # ==========================================================================
    openai_api_key: str = Field(default="", description="OpenAI API key")
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model used for style vectors"
    )
    embedding_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for a single embedding call (seconds)"
    )
    intent_model: str = Field(
        default="gpt-4o",
        description="Chat model used by the intent router"
    )
    intent_router_enabled: bool = Field(
        default=True,
        description="Enable LLM intent classification (falls back to home_feed)"
    )
    intent_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for the intent classification call (seconds)"
    )

    # ==========================================================================
    # Feed pipeline
    # ==========================================================================
    retrieval_timeout_seconds: float = Field(
        default=2.0,
        description="Upper bound for the vector search call before falling back to trending"
    )
    vendor_lookup_timeout_seconds: float = Field(
        default=1.5,
        description="Upper bound for each vendor trust lookup"
    )
    vendor_lookup_max_workers: int = Field(
        default=8,
        description="Thread pool size for vendor trust fan-out"
    )
    mix_home_feed: bool = Field(
        default=True,
        description="Interleave item types in the home and trending feeds"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.

    Returns:
        Settings: The application settings instance
    """
    env_file = Path(__file__).parent.parent.parent / ".env"
    if env_file.exists():
        os.environ.setdefault("ENV_FILE", str(env_file))

    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "environment": "testing",
        "debug": True,
        "storage_backend": "memory",
        "openai_api_key": "",
    }
    test_defaults.update(overrides)

    return Settings(**test_defaults)
