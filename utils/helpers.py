# utils/helpers.py

import re
import secrets
from flask import current_app
from models import as_utc

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# --- Share links --------------------------------------------------------------

def generate_share_token():
    """64 hex chars (256 bits) from the OS CSPRNG."""
    return secrets.token_hex(32)


def share_link(song):
    base = current_app.config.get("FRONTEND_URL", "http://localhost:3004").rstrip("/")
    return f"{base}/share/{song.share_token}"


# --- Request parsing ----------------------------------------------------------

def is_valid_email(value):
    return bool(value) and len(value) <= 255 and EMAIL_PATTERN.match(value) is not None


def int_arg(args, name, default, minimum=0, maximum=None):
    """
    Read a non-negative integer query arg, falling back to default when it is
    missing or garbage. Clamped to [minimum, maximum].
    """
    try:
        value = int(args.get(name, default))
    except (TypeError, ValueError):
        value = default
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


def iso(dt):
    return as_utc(dt).isoformat() if dt is not None else None
