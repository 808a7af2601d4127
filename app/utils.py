# Utility functions for the sharecal api

import hashlib
import secrets
import string
import logging
import datetime
from typing import Optional
from dateutil import parser
from fastapi import HTTPException, Header, Depends, Request
import errors
import schemas

logger = logging.getLogger(__name__)


def generate_user_id():
    """Generate a random 8-character alphanumeric user ID"""
    return ''.join(secrets.choice(string.ascii_letters + string.digits) for _ in range(8))


def generate_api_key():
    """Generate a random API key"""
    return secrets.token_urlsafe(32)


def hash_api_key(api_key):
    """Hash an API key using SHA-256"""
    return hashlib.sha256(api_key.encode()).hexdigest()


async def get_context(request: Request):
    """FastAPI dependency returning the AppContext attached at startup."""
    return request.app.state.context


async def get_current_user(
    api_key: str = Header(..., alias="X-API-Key"),
    ctx=Depends(get_context),
) -> schemas.User:
    """
    Resolve the X-API-Key header to the calling user.

    Must stay async: store access happens on the event loop thread only.

    Raises:
        HTTPException: 403 if the key is unknown or its user is gone.
    """
    user_id = ctx.sessions.get(api_key)
    if not user_id:
        raise HTTPException(status_code=403, detail="Invalid API key")

    user = ctx.store.get_user(user_id)
    if user is None:
        logger.warning(f"API key refers to missing user {user_id}")
        raise HTTPException(status_code=403, detail="Invalid API key")
    return user


def user_timezone(ctx, user: schemas.User) -> str:
    """The zone a user's requests are interpreted in."""
    return user.timezone or ctx.default_timezone


def validate_time_format(time_str):
    """
    Validate time format (ISO 8601) and return as datetime object

    Args:
        time_str: Time string to validate

    Returns:
        datetime: Parsed datetime object if valid, None otherwise
    """
    try:
        return parser.isoparse(time_str)
    except ValueError:
        logger.error(f"Invalid time format: {time_str}")
        return None


def parse_date_param(name: str, value: Optional[str]) -> Optional[datetime.date]:
    """Parse an optional YYYY-MM-DD query parameter."""
    if not value:
        return None
    parsed = validate_time_format(value)
    if parsed is None:
        raise errors.ValidationFailure(f"Invalid {name} format: {value}")
    return parsed.date()
