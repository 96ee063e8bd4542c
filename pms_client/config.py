from pydantic_settings import BaseSettings
from typing import Dict, Optional
from pydantic import Field

from pms_client.utils.months import MonthRange, parse_month_range

class Settings(BaseSettings):
    # Single GAS-style web app endpoint; routes travel in the API_PATH_PARAM query param.
    API_BASE_URL: str = Field("https://script.google.com/macros/s/YOUR_DEPLOYMENT_ID/exec")
    API_PATH_PARAM: Optional[str] = Field("path")

    CACHE_DATABASE_URL: str = Field("sqlite+aiosqlite:///./pms_cache.db")

    REQUEST_TIMEOUT_SECONDS: float = Field(30.0)
    MAX_RETRIES: int = Field(3, ge=0)
    RETRY_BASE_DELAY_SECONDS: float = Field(1.0, ge=0)

    SESSION_TIMEOUT_MINUTES: float = Field(480)
    LOGIN_LOCKOUT_MINUTES: float = Field(15)
    MAX_LOGIN_ATTEMPTS: int = Field(5, ge=1)
    ACTIVITY_LOG_LIMIT: int = Field(100, ge=0)

    # Calendar fallback when no admin time-window config is known ("start-end", inclusive)
    GOAL_SETTING_MONTHS: str = Field("8-9")
    MID_YEAR_MONTHS: str = Field("11-12")
    YEAR_END_MONTHS: str = Field("1-3")
    COMPETENCY_MONTHS: str = Field("12-1")

    model_config = {
        "env_file": ".env",
        "env_prefix": "PMS_",
        "extra": "allow",
    }

    @property
    def session_timeout_seconds(self) -> float:
        return self.SESSION_TIMEOUT_MINUTES * 60

    @property
    def lockout_seconds(self) -> float:
        return self.LOGIN_LOCKOUT_MINUTES * 60

    @property
    def window_ranges(self) -> Dict[str, MonthRange]:
        """
        Returns the calendar fallback ranges keyed by window name
        ("goal_setting", "mid_year", "year_end", "competency").
        """
        return {
            "goal_setting": parse_month_range(self.GOAL_SETTING_MONTHS),
            "mid_year": parse_month_range(self.MID_YEAR_MONTHS),
            "year_end": parse_month_range(self.YEAR_END_MONTHS),
            "competency": parse_month_range(self.COMPETENCY_MONTHS),
        }

settings = Settings()
