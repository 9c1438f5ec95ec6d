"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    HOST                 — Interface the HTTP listener binds to (default: 0.0.0.0)
    PORT                 — HTTP listener port (default: 3400)
    REPORTS_DIR          — Directory holding persisted reports (default: ./reports)
    REPORT_PREFIX        — Filename prefix of persisted reports (default: lighthouse-report)
    CHROME_PATH          — Explicit Chrome/Chromium binary, skips auto-discovery
    LIGHTHOUSE_PATH      — Lighthouse CLI executable (default: lighthouse)
    DEFAULT_LOCALE       — Locale used when a request does not pass one (default: en)
    CORS_ALLOW_ORIGINS   — Comma-separated allowed origins (default: *)
    LOG_DIR              — Directory for dated log files (default: logs)
    LOG_LEVEL            — Root log level name (default: INFO)

Timeout Philosophy:
    Browser startup time varies wildly under load, so the session manager
    polls the DevTools endpoint every CHROME_POLL_INTERVAL seconds until
    CHROME_READY_TIMEOUT elapses instead of sleeping a fixed amount.

    AUDIT_TIMEOUT caps a whole Lighthouse run. MAX_WAIT_FOR_FCP and
    MAX_WAIT_FOR_LOAD are handed to Lighthouse itself (milliseconds) and are
    kept generous so slow target sites still produce a report.
"""
import os
from dotenv import load_dotenv

load_dotenv()

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3400))

# Report storage
REPORTS_DIR = os.getenv("REPORTS_DIR", os.path.join(os.getcwd(), "reports"))
REPORT_PREFIX = os.getenv("REPORT_PREFIX", "lighthouse-report")

# Browser
CHROME_PATH = os.getenv("CHROME_PATH") or None
CHROME_READY_TIMEOUT = float(os.getenv("CHROME_READY_TIMEOUT", 60))
CHROME_POLL_INTERVAL = float(os.getenv("CHROME_POLL_INTERVAL", 0.5))
CHROME_KILL_TIMEOUT = float(os.getenv("CHROME_KILL_TIMEOUT", 5))

# Scoring engine
LIGHTHOUSE_PATH = os.getenv("LIGHTHOUSE_PATH", "lighthouse")
AUDIT_TIMEOUT = float(os.getenv("AUDIT_TIMEOUT", 180))
MAX_WAIT_FOR_FCP = int(os.getenv("MAX_WAIT_FOR_FCP", 60_000))
MAX_WAIT_FOR_LOAD = int(os.getenv("MAX_WAIT_FOR_LOAD", 90_000))
DEFAULT_LOCALE = os.getenv("DEFAULT_LOCALE", "en")

# HTTP surface
CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
    if origin.strip()
]

# Logging
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
