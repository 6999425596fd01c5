# backend/config.py
# Environment-aware configuration for the CrowdFund backend

import os
import sys
from typing import Literal, Optional

from dotenv import load_dotenv

# Local .env (same file the frontend tooling reads)
load_dotenv()

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# Server
PORT = int(os.environ.get("PORT", "3010"))

# Data backend: "supabase" (hosted) or "sqlite" (local dev / tests)
DATA_BACKEND: Literal["supabase", "sqlite"] = os.environ.get("DATA_BACKEND", "supabase").strip().lower()  # type: ignore
IS_SUPABASE = (DATA_BACKEND == "supabase")
IS_SQLITE = (DATA_BACKEND == "sqlite")


def _first_env(*names: str) -> str:
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return ""


# Hosted data service (VITE_ names kept for existing .env files)
SUPABASE_URL = _first_env("SUPABASE_URL", "VITE_SUPABASE_URL")
SUPABASE_ANON_KEY = _first_env("SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY")
# Optional: verify access tokens locally instead of calling the auth API
SUPABASE_JWT_SECRET = os.environ.get("SUPABASE_JWT_SECRET", "").strip()

# Local store
DATABASE_PATH = os.environ.get("DATABASE_PATH", "crowdfund.db")

# JWT for locally issued sessions (sqlite mode)
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
ALGORITHM = "HS256"
TOKEN_AUDIENCE = "authenticated"
ACCESS_TOKEN_MINUTES = int(os.environ.get("ACCESS_TOKEN_MINUTES", "60"))

# CORS origins (expand for staging/prod)
CORS_ORIGINS = [
    "http://localhost:8501",  # Streamlit default
    "http://127.0.0.1:8501",
]

_extra_origins = os.environ.get("CORS_ORIGINS", "")
if _extra_origins and not IS_DEV:
    CORS_ORIGINS.extend(o.strip() for o in _extra_origins.split(",") if o.strip())


def missing_required_env() -> list:
    """Names of required variables that are unset for the configured backend."""
    if not IS_SUPABASE:
        return []
    missing = []
    if not SUPABASE_URL:
        missing.append("SUPABASE_URL")
    if not SUPABASE_ANON_KEY:
        missing.append("SUPABASE_ANON_KEY")
    return missing


def require_env_or_exit(missing: Optional[list] = None) -> None:
    """
    Halt the process when the hosted data service is not configured.
    This is the only fatal error in the application.
    """
    missing = missing_required_env() if missing is None else missing
    if not missing:
        return
    print("[CONFIG] Missing required environment variables:", file=sys.stderr)
    print("[CONFIG] SUPABASE_URL and SUPABASE_ANON_KEY must be set (environment or .env file)", file=sys.stderr)
    print(f"[CONFIG] Unset: {', '.join(missing)}", file=sys.stderr)
    sys.exit(1)


print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Data backend: {'Supabase (hosted)' if IS_SUPABASE else 'SQLite (local dev)'}")
