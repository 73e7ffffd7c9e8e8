"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = "ridesafe"
    debug: bool = False
    database_url: str = "sqlite:///./ridesafe.db"

    # JWT
    jwt_secret: str = "change-me-in-production-use-openssl-rand-hex-32"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Twilio SMS
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""

    # Expo push
    expo_push_url: str = "https://exp.host/--/api/v2/push/send"
    expo_access_token: str = ""
    push_enabled: bool = True

    # Dispatch
    channel_timeout_seconds: float = 10.0
    dispatch_max_workers: int = 8
    maps_link_template: str = "https://maps.google.com/?q={latitude},{longitude}"
    sender_app_label: str = "ShareMyRide"


settings = Settings()
