"""
Runtime settings for the HotelFlow API.

Values come from the environment (optionally a local .env file).
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


ENV = os.getenv("ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 10000))

# MongoDB
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "hotelflow")

# Local API tokens
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", 7))

# Supabase (credential verification only)
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

# Mistral chat assistant
MISTRAL_API_KEY = os.getenv("MISTRAL_API_KEY")
MISTRAL_API_URL = os.getenv("MISTRAL_API_URL", "https://api.mistral.ai/v1/chat/completions")
MISTRAL_MODEL = os.getenv("MISTRAL_MODEL", "mistral-small-latest")
MISTRAL_TIMEOUT = float(os.getenv("MISTRAL_TIMEOUT", 15))

FRONTEND_URL = os.getenv("FRONTEND_URL")
CORS_ORIGINS = [
    origin
    for origin in ["http://localhost:3000", "http://localhost:3001", FRONTEND_URL]
    if origin
]

# Completed ticket housekeeping
TICKET_CLEANUP_ENABLED = _flag("TICKET_CLEANUP_ENABLED", "true")
TICKET_CLEANUP_INTERVAL_MINUTES = int(os.getenv("TICKET_CLEANUP_INTERVAL_MINUTES", 60))
TICKET_RETENTION_DAYS = int(os.getenv("TICKET_RETENTION_DAYS", 30))
