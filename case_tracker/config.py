"""
Configuration settings for the Case Tracker
"""
from typing import Optional
from pydantic_settings import BaseSettings
from pathlib import Path


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Case Tracker"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Paths
    BASE_DIR: Path = Path(__file__).parent.parent
    RECORDS_DIR: Path = BASE_DIR / "records"
    ARTIFACTS_DIR: Path = BASE_DIR / "artifacts"

    # Record settings
    RECORD_FORMAT: str = "markdown"  # markdown | json

    # Browser settings
    BROWSER_HEADLESS: bool = True
    BROWSER_TIMEOUT: int = 30000  # ms

    # Execution settings
    STEP_TIMEOUT: Optional[float] = None  # seconds, None waits for the driver
    CONTINUE_PAST_INDEPENDENT: bool = False
    RETRY_POLICY: str = "fresh_pass"  # fresh_pass | in_place
    CAPTURE_ARTIFACTS: bool = False
    MAX_CONCURRENT_CASES: int = 2

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()

# Ensure directories exist
settings.RECORDS_DIR.mkdir(parents=True, exist_ok=True)
settings.ARTIFACTS_DIR.mkdir(parents=True, exist_ok=True)
