"""Runtime settings, read once from the environment (and a local .env file)."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

APP_ROOT = Path(__file__).resolve().parent

SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")

# Local users (Flask-Login sessions)
DATABASE_PATH = Path(os.environ.get("DATABASE_PATH", str(APP_ROOT / "fitgenius.db")))

# Document store: Supabase when configured, otherwise a local SQLite file
DOCUMENT_DB_PATH = Path(os.environ.get("DOCUMENT_DB_PATH", str(APP_ROOT / "documents.db")))
SUPABASE_URL = os.environ.get("SUPABASE_URL") or ""
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY") or ""
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or ""
SUPABASE_DOCUMENTS_TABLE = os.environ.get("SUPABASE_DOCUMENTS_TABLE", "documents")

# Chat assistant
CHAT_PROVIDER = os.environ.get("CHAT_PROVIDER", "openai").lower()
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY") or ""
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
GROQ_API_KEY = os.environ.get("GROQ_API_KEY") or ""
GROQ_MODEL = os.environ.get("GROQ_MODEL", "llama-3.3-70b-versatile")
CHAT_MAX_TOKENS = int(os.environ.get("CHAT_MAX_TOKENS", 600))

# "Today" for the weekly plan is evaluated in this zone
TIMEZONE = os.environ.get("TIMEZONE", "UTC")

# Avatar
AVATAR_SUBDOMAIN = os.environ.get("AVATAR_SUBDOMAIN", "fitgenius")
AVATAR_CACHE_DIR = Path(os.environ.get("AVATAR_CACHE_DIR", str(APP_ROOT / "avatar_images")))
RPM_API_KEY = os.environ.get("RPM_API_KEY") or ""

PORT = int(os.environ.get("PORT", 5000))
