"""
Centralized configuration for the fleet timerboard.

All settings come from environment variables (loaded from .env / .env.local
by the entry points). Helpers return typed values with sensible defaults.
"""

import os


def is_dev_mode() -> bool:
    """Check if running in development mode (--dev flag or DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_production() -> bool:
    """Check if running on Railway (production environment)."""
    return bool(os.environ.get("RAILWAY_ENVIRONMENT"))


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_app_url() -> str:
    """Public URL of the web app, where OAuth sends users back to."""
    return os.environ.get("APP_URL", f"http://localhost:{get_api_port()}").rstrip("/")


def get_dispatch_interval_seconds() -> int:
    """Seconds between notification dispatcher ticks."""
    return int(os.getenv("DISPATCH_INTERVAL_SECONDS", "30"))


def get_summary_interval_minutes() -> int:
    """Minutes between upcoming-fleet summary republishes."""
    return int(os.getenv("SUMMARY_INTERVAL_MINUTES", "30"))


def is_discord_bot_disabled() -> bool:
    """Check if the Discord bot is disabled (--no-bot flag)."""
    return os.getenv("DISABLE_DISCORD_BOT", "").lower() in ("true", "1", "yes")


# Required environment variables for production
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("JWT_SECRET", "Secret key for JWT tokens", True),
    ("DISCORD_BOT_TOKEN", "Discord bot token", False),
    ("APP_URL", "Public URL of the web app (OAuth redirects)", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        value = os.environ.get(name)

        if not value:
            if is_production():
                errors.append(f"  ✗ {name}: Not set ({description})")
            elif required_in_dev or not in_dev:
                warnings.append(f"  ⚠ {name}: Not set ({description})")

    if errors:
        for error in errors:
            print(error)
        return False, warnings

    return True, warnings
