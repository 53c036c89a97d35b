from flask import request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from lending.core.security import get_member_id_from_token

# Per-route limits, counted per member when a valid token is presented.
BORROW_RETURN_LIMIT = "30 per minute"
LISTING_LIMIT = "100 per minute"


def member_or_remote_address() -> str:
    """Rate-limit key: the bearer token's member id, else the client address."""
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        member_id = get_member_id_from_token(header[len("Bearer ") :].strip())
        if member_id:
            return f"member:{member_id}"
    return get_remote_address()


# Bound in main.create_app, which also applies RATE_LIMIT_ENABLED and the
# storage URI from config.
limiter = Limiter(key_func=member_or_remote_address, default_limits=["200 per hour"])
