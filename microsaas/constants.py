"""Centralized application constants — single source of truth for hardcoded values."""

# --- Session ---
COOKIE_NAME = "microsaas_session"

# --- Auth ---
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
EMAIL_VERIFICATION_TTL = 86400  # seconds (1 day)
PASSWORD_RESET_TTL = 3600  # seconds (1 hour)

# --- Billing ---
ENTITLED_STATUSES = frozenset({"active", "trialing"})
SUBSCRIPTION_STATUSES = (
    "active",
    "trialing",
    "past_due",
    "canceled",
    "incomplete",
    "incomplete_expired",
    "unpaid",
)
DEFAULT_TRIAL_DAYS = 14

# --- Posts demo ---
RECENT_POSTS_WINDOW_MINUTES = 2
