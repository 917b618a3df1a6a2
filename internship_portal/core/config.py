"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "internship_portal"

    # Internship tracks (students pick one at onboarding)
    tracks: List[str] = [
        "Data Analysis",
        "Web Development",
        "Mobile Application Development",
    ]

    # Identity provider tokens
    identity_jwt_secret: str = "change-this-secret"
    identity_jwt_algorithm: str = "HS256"
    identity_jwt_audience: str = ""
    staff_role_claim: str = "role"
    staff_role_value: str = "staff"

    # Leaderboard
    leaderboard_cache_ttl_seconds: int = 300
    leaderboard_cache_max_entries: int = 1000
    min_response_seconds: int = 1
    max_response_seconds: int = 24 * 60 * 60

    # Google Drive (file hosting)
    drive_upload_url: str = "https://www.googleapis.com/upload/drive/v3/files"
    drive_api_url: str = "https://www.googleapis.com/drive/v3/files"
    drive_access_token: str = ""
    drive_timeout_seconds: float = 30.0
    max_upload_mb: int = 10

    # App
    debug: bool = True
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
