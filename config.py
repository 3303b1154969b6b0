# config.py
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Flask configuration variables."""

    # General Config
    SECRET_KEY = os.environ.get("SECRET_KEY", "a_default_secret_key_for_dev")
    DEBUG = os.environ.get("FLASK_DEBUG", "False").lower() in ("true", "1", "t")

    # Redis
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # Encryption (Fernet key for stored portal passwords)
    ENCRYPTION_KEY = os.environ.get("ENCRYPTION_KEY")
    if not ENCRYPTION_KEY:
        raise ValueError("ENCRYPTION_KEY environment variable is not set.")

    # Admin / Secrets
    ADMIN_SECRET = os.environ.get(
        "ADMIN_SECRET", "default_admin_secret"
    )  # For admin endpoints

    # Local sessions (signed cookie issued at sign-in)
    LOCAL_SESSION_LIFETIME_DAYS = int(
        os.environ.get("LOCAL_SESSION_LIFETIME_DAYS", "365")
    )
    SESSION_COOKIE_NAME = "sessionName"
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Schools served by this instance. JSON list, see DEFAULT_SCHOOLS for the shape.
    SCHOOLS_FILE = os.environ.get("SCHOOLS_FILE")
    DEFAULT_SCHOOLS = [
        {
            "id": 1,
            "name": "Школа №1 (тестовый сервер)",
            "website": "https://netschool.example.edu",
            "type": "01",
            "permission": True,
            "auth": {
                "CID": "2",
                "SID": "1",
                "PID": "-1",
                "CN": "1",
                "SFT": "2",
                "SCID": "1",
            },
        },
    ]

    # Scraping Config
    VERIFY_SSL = os.environ.get("VERIFY_SSL", "True").lower() == "true"
    DEFAULT_REQUEST_TIMEOUT = int(
        os.environ.get("DEFAULT_REQUEST_TIMEOUT", "15")
    )  # Per request to the portal (seconds)
    DEFAULT_MAX_RETRIES = 3

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    API_LOG_KEY = "api_logs"
    MAX_LOG_ENTRIES = 5000


# Create a singleton instance for easy access
config = Config()
