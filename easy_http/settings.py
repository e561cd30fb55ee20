# settings.py
import os
from dotenv import load_dotenv

# Load .env once at startup
load_dotenv()

VERSION = "0.1.0"


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


# Response limits
MAX_RESPONSE_BODY_SIZE = int(os.getenv("EASY_HTTP_MAX_RESPONSE_BODY_SIZE", str(1 * 1024 * 1024)))
MAX_REDIRECT_COUNT = int(os.getenv("EASY_HTTP_MAX_REDIRECT_COUNT", "5"))

# Milliseconds; 0 disables the limit
MAX_CONNECTION_TIME = int(os.getenv("EASY_HTTP_MAX_CONNECTION_TIME", "60000"))

ALLOW_LOCAL = _env_flag("EASY_HTTP_ALLOW_LOCAL", "1")

USER_AGENT = os.getenv(
    "EASY_HTTP_USER_AGENT",
    f"Mozilla/5.0 (Python; easy-http-request) EasyHttpRequest/{VERSION}",
)

LOG_LEVEL = os.getenv("EASY_HTTP_LOG_LEVEL", "INFO")
