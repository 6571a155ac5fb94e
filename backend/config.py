"""Application settings loaded from environment variables."""
import logging
import os
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

FAILURE_POLICIES = ("propagate", "fallback")


class Settings:
    """
    Runtime configuration for the production logger.

    Every value comes from the environment (or a local .env file) with a
    default suitable for running on a shop-floor workstation.
    """

    def __init__(self) -> None:
        # Vision provider
        self.claude_api_key: str = os.getenv("CLAUDE_API_KEY", "")
        self.vision_api_url: str = os.getenv(
            "VISION_API_URL", "https://api.anthropic.com/v1/messages"
        )
        self.vision_model: str = os.getenv("VISION_MODEL", "claude-3-opus-20240229")
        self.vision_max_tokens: int = int(os.getenv("VISION_MAX_TOKENS", "1000"))
        self.vision_timeout: float = float(os.getenv("VISION_TIMEOUT", "60"))

        # "propagate" returns a 500 when extraction fails, "fallback" logs the
        # fixed sample reading instead
        self.on_extraction_failure: str = (
            os.getenv("ON_EXTRACTION_FAILURE", "propagate").strip().lower()
        )

        # Server
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "3000"))
        self.upload_dir: str = os.getenv("UPLOAD_DIR", "./uploads")

    def validate(self) -> None:
        """Refuse to start with a configuration that cannot serve captures."""
        if not self.claude_api_key:
            raise RuntimeError(
                "CLAUDE_API_KEY missing; refusing to start without a vision API key. "
                "Please configure CLAUDE_API_KEY environment variable."
            )
        if self.on_extraction_failure not in FAILURE_POLICIES:
            raise RuntimeError(
                f"ON_EXTRACTION_FAILURE must be one of {FAILURE_POLICIES}, "
                f"got {self.on_extraction_failure!r}"
            )

    @property
    def use_fallback(self) -> bool:
        return self.on_extraction_failure == "fallback"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get application settings (created once per process)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
