# /scanrules/config.py
from __future__ import annotations

import os

from pydantic import BaseModel


class Settings(BaseModel):
    API_KEY: str | None = os.getenv("API_KEY")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Host counting cap used when the settings store has no usable value
    MAX_HOSTS: int = int(os.getenv("MAX_HOSTS", "4095"))

    # Settings store: "static" (MAX_HOSTS above) or "redis" (hash SETTINGS_KEY)
    SETTINGS_BACKEND: str = os.getenv("SETTINGS_BACKEND", "static")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    SETTINGS_KEY: str = os.getenv("SETTINGS_KEY", "meta")


settings = Settings()
