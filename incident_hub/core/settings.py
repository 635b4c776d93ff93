"""
Core settings and environment variables for Incident Hub.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="allow",  # Unknown env vars must not crash startup
    )

    # Application
    APP_NAME: str = "Incident Hub"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Frontend URLs allowed to access this API
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON
    INCIDENTS_COLLECTION: str = "incidents"

    # In-memory store for local development and tests (no Firebase credentials)
    USE_MOCK_DB: bool = False

    # Salt for hashing voter IPs in log lines
    IP_HASH_SALT: str = "incident_hub_ip_salt"

    # Media
    MEDIA_LIMIT: int = 20
    MAX_MEDIA_SIZE_BYTES: int = 50 * 1024 * 1024

    # Verification score age decay (unresolved incidents lose credibility over time)
    SCORE_DECAY_GRACE_DAYS: float = 7.0
    SCORE_DECAY_POINTS_PER_DAY: float = 1.0
    SCORE_DECAY_MAX_PENALTY: float = 20.0

    # Geospatial search
    DEFAULT_SEARCH_RADIUS_METERS: float = 5000.0
    MAX_SEARCH_RADIUS_METERS: float = 50000.0
    DUPLICATE_PROXIMITY_METERS: float = 100.0

    # Optional JSON file: [{"name": "...", "polygon": [[lng, lat], ...]}, ...]
    SERVICE_AREAS_PATH: Optional[str] = None

    @property
    def cors_origins_list(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
