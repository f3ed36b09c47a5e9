import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./quotd_dispatch.db")

# Firebase Configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Google Maps (Distance Matrix + Geocoding)
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")
TRAVEL_TIME_TIMEOUT_SECONDS = float(os.getenv("TRAVEL_TIME_TIMEOUT_SECONDS", "8.0"))

# Shared secret the external scheduler sends as "Authorization: Bearer <secret>"
CRON_SECRET = os.getenv("CRON_SECRET")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Quotd <noreply@quotd.app>")
