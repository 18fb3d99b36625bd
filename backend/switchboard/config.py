from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

_env_path = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_env_path),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATABASE_URL: str
    ENCRYPTION_KEY: str
    AUTH_URL: str
    AUTH_API_KEY: str = ""
    AUTH_TIMEOUT_SECONDS: float = 5.0
    MESSAGE_LOG_LIMIT: int = 100
    ENFORCE_SOURCE_OWNERSHIP: bool = True
    CORS_ALLOW_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ALLOW_ORIGINS.split(",") if o.strip()]


settings = Settings()
