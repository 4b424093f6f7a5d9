# botpanel/config/settings.py
import os
import logging
from dotenv import load_dotenv
from typing import Optional

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


class Settings:
    """Process settings loaded from environment variables.

    Bot behaviour (prefix, auto reconnect, proxy, ...) is not configured here;
    it lives in the persisted BotConfig and is edited from the dashboard.
    """

    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "botpanel.db")
    SCRIPTS_DIR: str = os.getenv("SCRIPTS_DIR", "scripts")

    HTTP_HOST: str = os.getenv("HTTP_HOST", "0.0.0.0")
    HTTP_PORT: int = int(os.getenv("HTTP_PORT", "8000"))

    # Empty means the dashboard API is open
    API_KEY: Optional[str] = os.getenv("API_KEY") or None

    RESTART_SETTLE_SECONDS: float = float(os.getenv("RESTART_SETTLE_SECONDS", "2"))

    # Logging level
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def __init__(self):
        if not self.API_KEY:
            logger.warning("API_KEY is not set. The dashboard API accepts unauthenticated requests.")

        logger.info("Settings loaded.")
        logger.info(f"Database Path: {self.DATABASE_PATH}")
        logger.info(f"Scripts Dir: {self.SCRIPTS_DIR}")
        logger.info(f"Log Level: {self.LOG_LEVEL}")


# Single instance of settings to be imported by other modules
settings = Settings()
