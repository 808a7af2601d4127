# Registration and profile management

import re
import logging
import errors
import schemas
import timezones
import utils
import calendars

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_NAME_LENGTH = 2


def _validate_name(name: str) -> str:
    name = (name or "").strip()
    if len(name) < MIN_NAME_LENGTH:
        raise errors.ValidationFailure(f"Name must be at least {MIN_NAME_LENGTH} characters")
    return name


def register(ctx, data: schemas.UserRegister):
    """
    Create a user and their default calendar, then issue an API key.

    Returns:
        tuple: (user, api_key)
    """
    email = (data.email or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise errors.ValidationFailure("Invalid email address")
    name = _validate_name(data.name)
    zone_id = data.timezone or ctx.default_timezone
    timezones.get_zone(zone_id)

    if ctx.store.get_user_by_email(email) is not None:
        raise errors.Conflict("User with this email already exists")

    with ctx.store.transaction():
        user = ctx.store.create_user(schemas.User(
            id=utils.generate_user_id(),
            email=email,
            name=name,
            timezone=zone_id,
        ))
        calendars.create_default_calendar(ctx.store, user.id)
        api_key = ctx.sessions.create(user.id)

    logger.info(f"New user registered: {user.id}")
    return user, api_key


def get_profile(ctx, user: schemas.User) -> schemas.User:
    profile = ctx.store.get_user(user.id)
    if profile is None:
        raise errors.NotFoundOrDenied("User not found")
    return profile


def update_profile(ctx, user: schemas.User, data: schemas.UserUpdate) -> schemas.User:
    fields = {}
    if data.name is not None:
        fields["name"] = _validate_name(data.name)
    if data.timezone is not None:
        timezones.get_zone(data.timezone)
        fields["timezone"] = data.timezone

    updated = ctx.store.update_user(user.id, fields)
    logger.info(f"Updated profile of user {user.id}")
    return updated


def delete_account(ctx, user: schemas.User):
    """Remove the user; their calendars, events, shares and sessions go with them."""
    with ctx.store.transaction():
        ctx.store.delete_user(user.id)
    logger.info(f"Deleted user {user.id}")
