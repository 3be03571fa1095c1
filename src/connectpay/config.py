from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    STRIPE_SECRET_KEY: str = ""
    STRIPE_PUBLISHABLE_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    APP_URL: str = "http://localhost:3000"
    FRONTEND_APP_URL: str = "http://localhost:8080"
    APP_NAME: str = "FlutterFlow Marketplace"

    # Connect defaults
    CONNECT_ACCOUNT_TYPE: str = "standard"
    PLATFORM_FEE_PERCENT: float = 10
    DEFAULT_COUNTRY: str = "BR"
    DEFAULT_BUSINESS_TYPE: str = "individual"
    DEFAULT_CURRENCY: str = "brl"

    CHECKOUT_SESSION_TTL_MINUTES: int = 30
    MAX_DOCUMENT_BYTES: int = 10 * 1024 * 1024
    SEED_DEMO_PRODUCTS: bool = True

    CORS_ORIGIN: str = "*"
    APP_ENV: str = "development"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
