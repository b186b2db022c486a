import os
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent  # -> project root

# Load .env explicitly from project root
load_dotenv(BASE_DIR / ".env")


class Settings:
    PROJECT_NAME = "Roflexi Backend"

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./roflexi.db")
    ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()

    FIREBASE_CREDENTIALS_FILE = os.getenv("FIREBASE_CREDENTIALS_FILE")
    FIREBASE_WEB_API_KEY = os.getenv("FIREBASE_WEB_API_KEY")

    PHONE_COUNTRY_CODE = os.getenv("PHONE_COUNTRY_CODE", "+40")
    MAX_PROFILE_IMAGE_BYTES = int(os.getenv("MAX_PROFILE_IMAGE_BYTES", 5 * 1024 * 1024))
    SERVICE_AREA_HALF_SIDE_KM = float(os.getenv("SERVICE_AREA_HALF_SIDE_KM", 2))

    IMAGE_STORAGE_BACKEND = os.getenv("IMAGE_STORAGE_BACKEND", "local").lower()
    UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")

    HANDOFF_CODE_TTL_SECONDS = int(os.getenv("HANDOFF_CODE_TTL_SECONDS", 300))
    REQUEST_ID_TTL_SECONDS = int(os.getenv("REQUEST_ID_TTL_SECONDS", 3600))

    # Client-side knobs
    API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:3000").rstrip("/")
    SUBMIT_TIMEOUT_SECONDS = float(os.getenv("SUBMIT_TIMEOUT_SECONDS", 15))
    NOTIFICATION_TTL_SECONDS = float(os.getenv("NOTIFICATION_TTL_SECONDS", 3))

    VALIDATION_LOCALE = os.getenv("VALIDATION_LOCALE", "en")
    CLIENT_LOCALE = os.getenv("CLIENT_LOCALE", "ro")

    cors_origins = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


settings = Settings()
