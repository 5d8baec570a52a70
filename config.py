# config.py

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent

# ---------- DATABASE ----------
DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{BASE_DIR / 'orders.db'}")

# ---------- GOOGLE ----------
# OAuth client used by the browser to request a Sheets access token.
GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID", "")
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# ---------- SERVER ----------
SECRET_KEY = os.environ.get("SECRET_KEY", "dev")
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "5000"))
DEBUG = os.environ.get("DEBUG", "").lower() in ("1", "true", "yes")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def validate_config():
    """Return a list of missing required config keys."""
    missing = []
    if not GOOGLE_CLIENT_ID:
        missing.append("GOOGLE_CLIENT_ID")
    return missing
