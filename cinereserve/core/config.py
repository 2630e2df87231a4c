from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "CineReserve API"
    LOG_LEVEL: str = "INFO"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    # Showtime dates/times are wall-clock in this zone
    THEATER_TIMEZONE: str = "Asia/Kolkata"

    # Booking lifecycle
    MAX_SEATS_PER_BOOKING: int = 10
    PAYMENT_METHODS: list[str] = ["card", "wallet", "upi", "netbanking"]
    BOOKING_HOLD_MINUTES: int = 30
    EXPIRY_SWEEP_INTERVAL_MINUTES: int = 10
    CANCELLATION_CUTOFF_MINUTES: int = 0  # 0 = cancellable until the show starts
    # [min hours before show, refund percent], checked top-down
    REFUND_TIERS: list[tuple[float, int]] = [(48, 100), (2, 50), (0, 0)]
    REMINDER_WINDOW_HOURS: int = 3

    # Pricing policy
    CITY_PRICE_MULTIPLIERS: dict[str, float] = {
        "Mumbai": 1.3,
        "Delhi": 1.2,
        "Bengaluru": 1.25,
        "Hyderabad": 1.15,
        "Sonipat": 0.9,
        "Samalkha": 0.85,
    }
    DEFAULT_CITY_MULTIPLIER: float = 1.0

    # Payment collaborator
    PAYMENT_SANDBOX: bool = True  # If True, intents are minted locally instead of calling PAYMENT_API_URL
    PAYMENT_API_URL: str = ""
    PAYMENT_API_KEY: str = ""
    PAYMENT_CURRENCY: str = "INR"
    PAYMENT_WEBHOOK_SECRET: str = ""  # Required; webhook bodies must carry a matching X-Signature

    # Demo showtimes kept in memory for sandbox flows
    SANDBOX_SHOWTIMES_ENABLED: bool = False

    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 25
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "bookings@cinereserve.local"

    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = ""

    CLIENT_BASE_URL: str = ""  # e.g. https://cinereserve.example, used in emails


settings = Settings()
