import os
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).parent
DATA_PATH = Path(os.getenv("DATA_PATH", BASE_DIR / "data" / "blog.json"))

# Site metadata
SITE_TITLE = "bareblog"
SITE_DESCRIPTION = "bareblog description"

# Auth / session
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ADMIN_USER = os.getenv("ADMIN_USER", "admin@bareblog.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "bareblog123")
TOKEN_COOKIE_NAME = "token"
TOKEN_COOKIE_SECURE = os.getenv("TOKEN_COOKIE_SECURE", "0") == "1"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
