import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database (in-memory ledger store when unset)
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Identity provider tokens
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    # Shared key the identity provider presents on account hooks (X-Identity-Key)
    IDENTITY_HOOK_KEY: Optional[str] = None

    # Generation provider (Groq)
    GROQ_API_KEY: Optional[str] = None
    AI_TIMEOUT_SECONDS: float = 60.0
    AI_WEATHER_MODEL: str = "llama-3.1-8b-instant"
    AI_WEATHER_MAX_TOKENS: int = 500
    AI_WEATHER_TEMPERATURE: float = 0.7
    AI_CHAT_MODEL: str = "llama-3.3-70b-versatile"
    AI_CHAT_MAX_TOKENS: int = 800
    AI_CHAT_TEMPERATURE: float = 0.8
    AI_RESEARCH_MODEL: str = "llama-3.3-70b-versatile"
    AI_RESEARCH_MAX_TOKENS: int = 2000
    AI_RESEARCH_TEMPERATURE: float = 0.7
    AI_INSIGHTS_MODEL: str = "llama-3.1-8b-instant"
    # Must cover the whole 30-item JSON array; truncated output is unparseable
    AI_INSIGHTS_MAX_TOKENS: int = 3000
    AI_INSIGHTS_TEMPERATURE: float = 0.9

    # Ledger store
    LEDGER_COMMIT_RETRIES: int = 5

    # HTTP
    CORS_ORIGINS: str = "http://localhost:3000,https://www.marinova.in,https://marinova.in"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("marinova")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "JWT_SECRET",
        "GROQ_API_KEY",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
