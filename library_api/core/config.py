from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str
    JWT_SECRET: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12
    LOG_LEVEL: str = "INFO"
    SLOW_REQUEST_THRESHOLD_MS: int = 1000  # 1 second

    # Borrowing rules
    LOAN_PERIOD_DAYS: int = 14
    RECENT_ACTIVITY_LIMIT: int = 10

    # Bootstrap account created on startup when missing
    BUILTIN_ADMIN_EMAIL: str = "admin@library.com"
    BUILTIN_ADMIN_PASSWORD: str = "admin123"

    class Config:
        env_file = ".env"


settings = Settings()
