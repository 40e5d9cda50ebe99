import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env
BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")


class Settings:
    APP_NAME: str = "MASH"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    REPLICATE_API_BASE: str = os.getenv("REPLICATE_API_BASE", "https://api.replicate.com/v1")

    IMAGE_MODEL: str = os.getenv("IMAGE_MODEL", "bytedance/seedream-4")
    VIDEO_MODEL: str = os.getenv("VIDEO_MODEL", "wan-video/wan-2.2-i2v-fast")

    POLL_INTERVAL: float = 1.0  # seconds
    IMAGE_MAX_ATTEMPTS: int = 180
    VIDEO_MAX_ATTEMPTS: int = 300

    DEFAULT_RETRY_AFTER: int = 3  # seconds, when the provider gives no hint
    HTTP_TIMEOUT: float = 60.0

    MAX_REFERENCE_IMAGES: int = 4
    MAX_BODY_BYTES: int = 50 * 1024 * 1024

    def api_token(self) -> str | None:
        # Looked up per request, a missing token is not a startup error
        return os.getenv("REPLICATE_API_TOKEN")


settings = Settings()
