# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar, Optional
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SESSION_SECRET: str = "my-secret-key"
    SESSION_ALGORITHM: str = "HS256"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24  # 1 day
    DATABASE_URL: str = "sqlite:///./fireparts.db"

    NODE_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Email delivery (SendGrid v3 API)
    SENDGRID_API_KEY: Optional[str] = None
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3/mail/send"
    MAIL_FROM: str = "noreply@firefireparts.com"
    MAIL_FROM_NAME: str = "Fire Parts Supply"
    SUPPORT_EMAIL: str = "support@firefireparts.com"

    # Public URL used to build registration links in invitation emails
    BASE_URL: str = "http://localhost:5000"
    FRONTEND_URL: Optional[str] = None

    INVITATION_TTL_DAYS: int = 7
    MAX_INVITATIONS_PER_DAY: int = 50
    MAX_EMAILS_PER_HOUR: int = 5

    class Config:
        env_file: ClassVar[str] = str(env_path)

    @property
    def is_production(self) -> bool:
        return self.NODE_ENV == "production"

settings = Settings()
