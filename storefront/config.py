from pydantic_settings import BaseSettings
from typing import Optional
from urllib.parse import quote_plus

class Settings(BaseSettings):
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_db: str = "storefront"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"
    DATABASE_URL: Optional[str] = None

    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    base_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:5173"

    # razorpay | shiprocket | sandbox
    PAYMENT_PROVIDER: str = "sandbox"
    CURRENCY: str = "INR"

    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""

    SHIPROCKET_BASE_URL: str = "https://apiv2.shiprocket.in"
    SHIPROCKET_EMAIL: str = ""
    SHIPROCKET_PASSWORD: str = ""
    SHIPROCKET_API_KEY: str = ""
    SHIPROCKET_API_SECRET: str = ""
    PICKUP_PINCODE: str = "110001"
    # pickup address nickname registered in the Shiprocket panel
    SHIPROCKET_PICKUP_LOCATION: str = "Primary"

    TAX_RATE: float = 0.05
    FLAT_SHIPPING_COST: float = 0.0
    PAYMENT_EXPIRY_HOURS: int = 48

    ADMIN_KEY_HASH: str = ""
    ADMIN_MAX_LOGIN_ATTEMPTS: int = 5
    ADMIN_LOGIN_WINDOW_SECONDS: int = 15 * 60

    @property
    def database_url(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL
        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"

settings = Settings()
