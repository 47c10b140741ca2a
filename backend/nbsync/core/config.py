from typing import List
import os

from dotenv import load_dotenv

load_dotenv(override=False)


class Settings:
    """Engine settings loaded from environment variables."""

    def __init__(self):
        # Notebook REST API (sessions, persistence, one-shot cell runs)
        self.API_URL = os.getenv("NBSYNC_API_URL", "http://localhost:4000/api").rstrip("/")
        self.HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

        # Autosave debounce
        self.AUTOSAVE_DELAY_MS = int(os.getenv("AUTOSAVE_DELAY_MS", "300"))

        # Collaboration hub
        self.ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173")
        self.NOTEBOOK_STORAGE_DIR = os.getenv("NOTEBOOK_STORAGE_DIR", "backend/data/notebooks")

        # Application
        self.APP_TITLE = "Notebook Sync"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.DEBUG = os.getenv("DEBUG", "false").lower() == "true"

    @property
    def autosave_delay(self) -> float:
        return self.AUTOSAVE_DELAY_MS / 1000.0

    @property
    def ws_base_url(self) -> str:
        if self.API_URL.startswith("https://"):
            return "wss://" + self.API_URL[len("https://"):]
        if self.API_URL.startswith("http://"):
            return "ws://" + self.API_URL[len("http://"):]
        return self.API_URL

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]


settings = Settings()
