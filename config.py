"""
Application configuration using environment variables
"""
from pydantic_settings import BaseSettings
from typing import Optional, List
from dotenv import load_dotenv

# Load .env file
load_dotenv()


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = ""
    DATA_DIR: str = "./data"

    # App settings
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS Configuration
    ALLOWED_ORIGINS: str = "*"  # Comma-separated list, e.g., "https://app.example.com,https://admin.example.com"

    # ==========================================================================
    # LANGUAGE MODEL
    # ==========================================================================

    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_TIMEOUT_SECONDS: float = 30.0

    # Follow-up diagnosis sampling
    DIAGNOSIS_TEMPERATURE: float = 0.7
    DIAGNOSIS_MAX_TOKENS: int = 2500

    # First-pass workbook diagnosis sampling
    WORKBOOK_DIAGNOSIS_TEMPERATURE: float = 0.5
    WORKBOOK_DIAGNOSIS_MAX_TOKENS: int = 4000

    # ==========================================================================
    # FOLLOW-UP CADENCE
    # ==========================================================================

    FOLLOWUP_DAYS_MIN: int = 7
    FOLLOWUP_DAYS_MAX: int = 14
    LOW_RATING_THRESHOLD: int = 2  # ratings <= threshold trigger a pillar follow-up

    # How many recent submissions are inspected per recommendation request
    RECOMMENDATION_SUBMISSION_LIMIT: int = 10
    WORKSHEET_RECOMMENDATION_LIMIT: int = 5

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse ALLOWED_ORIGINS into a list"""
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()
