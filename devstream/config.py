import os
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


# MongoDB connection; in-memory storage when unset
MONGO_URL = os.environ.get('MONGO_URL') or None
DB_NAME = os.environ.get('DB_NAME', 'devstream')

CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')

# AI assistant
GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY') or None
GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-1.5-flash-latest')

# Sessions
SESSION_TTL_DAYS = int(os.environ.get('SESSION_TTL_DAYS', '7'))
SESSION_COOKIE = "session_token"
COOKIE_SECURE = _flag('COOKIE_SECURE', 'true')

SEED_ADMIN = _flag('SEED_ADMIN', 'true')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
