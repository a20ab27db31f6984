"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.03.00"

    # Database (Postgres in production; SQLite file for local runs)
    DATABASE_URL: str = "sqlite:///./trainkit.db"

    # Admin session token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 8

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Automated reminder sweep (cron caller sends X-Cron-Secret)
    CRON_SECRET: str = ""

    # Outbound SMTP
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_SECURE: bool = False  # True = implicit TLS (port 465), False = STARTTLS
    SMTP_TIMEOUT_SECONDS: int = 30
    EMAIL_FROM_ADDRESS: str = "noreply@trainkit.local"
    EMAIL_FROM_NAME: str = ""  # Falls back to the tenant name

    # Branding fallbacks when a tenant has no contact details
    COMPANY_NAME: str = "ACME Training Centre"
    COMPANY_PHONE: str = "01234 567890"
    COMPANY_EMAIL: str = "bookings@acmetraining.co.uk"
    COMPANY_WEBSITE: str = "www.acmetraining.co.uk"

    # Certification policy
    # None = certifications without an expiry date never expire.
    # An integer applies a default validity (years after certification date).
    DEFAULT_VALIDITY_YEARS: int | None = None

    # Per-achievement processing claim so overlapping sweeps don't double-send
    REMINDER_CLAIM_TTL_MINUTES: int = 15

    # Where attached certificate files live (relative paths are resolved here)
    CERTIFICATE_UPLOAD_ROOT: str = "./uploads"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 60

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def smtp_configured(self) -> bool:
        """SMTP needs a host and credentials before anything can be sent."""
        return bool(self.SMTP_HOST and self.SMTP_USER and self.SMTP_PASSWORD)


settings = Settings()
