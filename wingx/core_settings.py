from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    SERVICE_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "wingx"
    POSTGRES_USER: str = "wingx"
    POSTGRES_PASSWORD: str = "wingx"
    # Full SQLAlchemy URL; takes precedence over the POSTGRES_* parts
    DATABASE_URL: Optional[str] = None

    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24

    # Comma separated e-mail lists used to assign roles at registration
    ADMIN_EMAILS: str = ""
    STORE_EMAILS: str = ""

    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_TOKENINFO_URL: str = "https://oauth2.googleapis.com/tokeninfo"

    IMAGEKIT_PUBLIC_KEY: str = ""
    IMAGEKIT_PRIVATE_KEY: str = ""
    IMAGEKIT_URL_ENDPOINT: str = ""
    IMAGEKIT_UPLOAD_URL: str = "https://upload.imagekit.io/api/v1/files/upload"
    IMAGEKIT_AUTH_URL: str = "http://localhost:8000/api/auth/imagekit"
    IMAGEKIT_FOLDER: str = "/catalogo"
    IMAGEKIT_TOKEN_TTL_SEC: int = 600

    FEED_POLL_INTERVAL_SEC: float = 2.0
    SESSION_SWEEP_INTERVAL_SEC: float = 60.0
    HTTP_TIMEOUT_SEC: float = 10.0

    WHATSAPP_BASE_URL: str = "https://wa.me"
    PHONE_COUNTRY_CODE: str = "58"

    class Config:
        env_file = ".env"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @staticmethod
    def _email_list(raw: str) -> set[str]:
        return {e.strip().lower() for e in raw.split(",") if e.strip()}

    @property
    def admin_emails(self) -> set[str]:
        return self._email_list(self.ADMIN_EMAILS)

    @property
    def store_emails(self) -> set[str]:
        return self._email_list(self.STORE_EMAILS)

@lru_cache
def get_settings() -> Settings:
    return Settings()
