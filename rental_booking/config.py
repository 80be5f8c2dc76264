import os
import secrets

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

# Minimum lead time before check-in inside which a reservation can no longer be
# cancelled. Product has not settled between 24h and 48h; see DESIGN.md.
CANCELLATION_LEAD_HOURS = int(os.getenv("CANCELLATION_LEAD_HOURS", "24"))

PENDING_TIMEOUT_MINUTES = int(os.getenv("PENDING_TIMEOUT_MINUTES", "30"))
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "300"))

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD").upper()
DEFAULT_PAYMENT_METHOD = os.getenv("DEFAULT_PAYMENT_METHOD", "credit_card")

MAX_STAY_DAYS = int(os.getenv("MAX_STAY_DAYS", "1080"))

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))

GUEST_TOKEN_SECRET = os.getenv("GUEST_TOKEN_SECRET", "")
if not GUEST_TOKEN_SECRET:
    if not DEBUG:
        raise ValueError("GUEST_TOKEN_SECRET must be set in the environment")
    # Tokens issued in debug mode stop verifying when the process restarts
    GUEST_TOKEN_SECRET = secrets.token_hex(32)
