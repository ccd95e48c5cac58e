from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Shop
    business_name: str = "Walk-in & Appointments"
    shop_timezone: str = "America/New_York"

    # Queue estimates
    default_service_minutes: int = 30
    upcoming_hours_ahead: int = 3     # Look-ahead for the walk-in board

    # Waitlist reconciliation
    waitlist_auto_notify: bool = True
    waitlist_max_offers: int = 3      # Matches notified per freed slot
    offer_expiry_hours: float = 2     # Notified entries expire after this long

    # Server
    server_base_url: str = "http://localhost:8000"
    port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
