from typing import Optional

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Use Pydantic BaseSettings for robust settings management
# Pydantic will automatically read from environment variables.
# Missing required values raise at import time, so the app refuses to start.
class Settings(BaseSettings):
    # Core App Settings
    PROJECT_NAME: str = "Caption Upload API"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    HOST: str = "0.0.0.0"
    PORT: int = 1323
    LOG_LEVEL: str = "INFO"

    # Object Store (S3 or any S3-compatible endpoint)
    BUCKET_NAME: str
    AWS_REGION: str
    AWS_ACCESS_KEY_ID: str
    AWS_SECRET_ACCESS_KEY: str
    S3_ENDPOINT_URL: Optional[str] = None
    STORE_HOST: str = "s3.amazonaws.com"

    # Existence polling after copy/delete
    WAIT_DELAY_SECONDS: int = 5
    WAIT_MAX_ATTEMPTS: int = 6

    # Replicate Configuration
    REPLICATE_API_TOKEN: str
    REPLICATE_MODEL_IDENTIFIER: str
    PREDICTION_POLL_SECONDS: float = 1.0

    # Pipeline behaviour
    REQUEST_TIMEOUT_SECONDS: Optional[float] = None
    BATCH_FAIL_FAST: bool = False

settings = Settings()
