from decouple import config, Csv

class Settings:
    # Database Configuration
    DATABASE_URL: str = config("DATABASE_URL", default="sqlite:///./titipin.db")

    # Security Configuration
    SECRET_KEY: str = config("SECRET_KEY", default="your-secret-key-here-change-in-production")
    ALGORITHM: str = config("ALGORITHM", default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = config("ACCESS_TOKEN_EXPIRE_MINUTES", default=60 * 24, cast=int)

    # CORS Configuration
    CORS_ORIGINS: list = config(
        "CORS_ORIGINS",
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:3001",
        cast=Csv()
    )

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = config("RATE_LIMIT_ENABLED", default=True, cast=bool)
    RATE_LIMIT_CALLS: int = config("RATE_LIMIT_CALLS", default=100, cast=int)
    RATE_LIMIT_PERIOD: int = config("RATE_LIMIT_PERIOD", default=60, cast=int)

    # Marketplace Configuration
    PLATFORM_COMMISSION_PERCENT: int = config("PLATFORM_COMMISSION_PERCENT", default=0, cast=int)
    MIN_WITHDRAWAL_AMOUNT: int = config("MIN_WITHDRAWAL_AMOUNT", default=50000, cast=int)
    MAX_MESSAGE_LENGTH: int = config("MAX_MESSAGE_LENGTH", default=2000, cast=int)

    # Environment
    ENVIRONMENT: str = config("ENVIRONMENT", default="development")
    DEBUG: bool = config("DEBUG", default=True, cast=bool)

    # Logging
    LOG_LEVEL: str = config("LOG_LEVEL", default="INFO")

settings = Settings()
