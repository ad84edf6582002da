from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./quotes.db"
    COMPANY_NAME: str = "Precision Machining"
    QUOTE_NUMBER_PREFIX: str = "Q"
    DEFAULT_EXPIRATION_DAYS: int = 14

    # Auth
    JWT_SECRET: str = ""  # required in production; auth fails with 500 while unset
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_EXPIRE_MINUTES: int = 60

    # Calculator slider ranges, enforced when a calculation is saved
    DEFAULT_COMPLEXITY_MULTIPLIER: float = 2.15
    COMPLEXITY_MULTIPLIER_MIN: float = 1.15
    COMPLEXITY_MULTIPLIER_MAX: float = 3.15
    DEFAULT_TOLERANCE_MULTIPLIER: float = 1.0
    TOLERANCE_MULTIPLIER_MIN: float = 0.75
    TOLERANCE_MULTIPLIER_MAX: float = 2.0
    # Suggested multiplier for loose tolerances (>= 0.010"). Older calculator used 0.95.
    LOOSE_TOLERANCE_MULTIPLIER: float = 0.75

    class Config:
        env_file = ".env"


settings = Settings()
