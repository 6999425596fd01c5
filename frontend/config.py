# frontend/config.py
# Environment-aware configuration for the CrowdFund frontend

import os
from typing import Literal

# Environment detection - normalize to lowercase
_raw_env = os.environ.get("ENV", "local").lower()
ENV: Literal["local", "staging", "production"] = _raw_env if _raw_env in ("local", "staging", "production") else "local"  # type: ignore

# Environment flag (using normalized ENV)
IS_LOCAL = (ENV == "local")

IS_DEV = IS_LOCAL

LOCAL_BACKEND_URL = "http://127.0.0.1:3010"


def validate_api_url(url: str, env: str) -> None:
    """
    Validate API base URL according to environment security rules.

    Raises:
        ValueError: If URL violates security constraints for the environment
    """
    if not url:
        raise ValueError("API base URL cannot be empty")

    # Production/staging must use HTTPS and never localhost
    if env in ("staging", "production"):
        if not url.startswith("https://"):
            raise ValueError(f"Production/staging must use HTTPS. Got: {url}")
        if "127.0.0.1" in url or "localhost" in url:
            raise ValueError(f"Production/staging cannot use localhost URLs. Got: {url}")


def get_api_base_url() -> str:
    """
    Get API base URL.

    Priority:
    1. BACKEND_URL environment variable
    2. Local dev default (http://127.0.0.1:3010) ONLY if ENV == "local"
    3. Raise error if production/staging with no configured URL

    Returns:
        Validated API base URL with trailing slash removed
    """
    backend_url = os.environ.get("BACKEND_URL", "").strip()
    if backend_url:
        url = backend_url.rstrip("/")
        validate_api_url(url, ENV)
        return url

    if ENV == "local":
        return LOCAL_BACKEND_URL

    raise RuntimeError(
        f"Backend URL not configured for {ENV.upper()} environment. "
        f"Set BACKEND_URL to the CrowdFund backend (HTTPS)."
    )


# Every backend call carries a timeout (seconds)
REQUEST_TIMEOUT = int(os.environ.get("REQUEST_TIMEOUT", "20"))

ENABLE_DEBUG_UI = IS_DEV

print(f"[CONFIG] Environment: {ENV}")
try:
    print(f"[CONFIG] Backend URL: {get_api_base_url()}")
except (RuntimeError, ValueError) as e:
    # api_client resolves the URL per call and surfaces the same error to the page
    print(f"[CONFIG] CRITICAL: {e}")
