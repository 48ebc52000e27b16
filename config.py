import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg:///forum")
    SESSION_SECRET = os.getenv("SESSION_SECRET", "change-me-in-production")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    SIGNIN_RATE_LIMIT = os.getenv("SIGNIN_RATE_LIMIT", "10/minute")
    COMMENT_RATE_LIMIT = os.getenv("COMMENT_RATE_LIMIT", "30/minute")


settings = Settings()
