from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Course Progress API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3000",
    ]

    # Database Configuration
    DATABASE_HOST: Optional[str] = None
    DATABASE_PORT: str = "5432"
    DATABASE_USER: Optional[str] = None
    DATABASE_PASSWORD: Optional[str] = None
    DATABASE_NAME: Optional[str] = None

    DATABASE_URL: str = "sqlite:///./app.db"
    TEST_DATABASE_URL: Optional[str] = None

    def __init__(self, **data):
        super().__init__(**data)
        if self.DATABASE_HOST:
            self.DATABASE_URL = (
                f'postgresql://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}'
                f'@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}'
            )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Progress tracking
    AUTO_COMPLETE_THRESHOLD: Decimal = Decimal("0.90")
    PROGRESS_MAX_RETRIES: int = 2

    # Vimeo
    VIMEO_API_BASE_URL: str = "https://api.vimeo.com"
    VIMEO_ACCESS_TOKEN: Optional[str] = None
    VIMEO_WEBHOOK_SECRET: Optional[str] = None

    VIDEO_STATUS_MAX_TRIES: int = 5
    VIDEO_STATUS_BACKOFF_SECONDS: List[int] = [60, 120, 300]
    VIDEO_STATUS_RECHECK_SECONDS: int = 180
    VIDEO_STATUS_INITIAL_DELAY_SECONDS: int = 120

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
