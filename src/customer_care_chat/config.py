"""Configuration settings for the customer care chat"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Abuse filter
    max_token_repeats: int = 3
    max_message_length: int = 500
    caps_min_length: int = 10

    # Session history
    recent_window_hours: int = 24

    # Request handling
    request_timeout: float = 30.0
    max_concurrent_requests: int = 10

    # Complaints assembled from chat
    complaint_title_length: int = 60
    default_category: str = "other"
    default_priority: str = "medium"
    responder_id: str = "customer-care-assistant"

    class Config:
        env_prefix = "CARE_CHAT_"
        env_file = ".env"
        case_sensitive = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
