"""Authentication service - credential check and session token creation."""

import logging

from app.core.exceptions import NotFoundError, UnauthorizedError
from app.core.security import create_session_token, verify_password
from app.db.gateway import PersistenceGateway
from app.schemas.auth import LoginResponse, UserProfile, UserRecord, UserSession

logger = logging.getLogger(__name__)


def to_profile(user: UserRecord) -> UserProfile:
    return UserProfile(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        site_ids=user.site_ids,
    )


def login(gw: PersistenceGateway, email: str, password: str) -> LoginResponse:
    """
    Verify email + password and issue a bearer token.

    The token captures the user's site scope at login time.

    Raises:
        UnauthorizedError: unknown email or wrong password (same message for both)
    """
    user = gw.get_user_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Login rejected")
        raise UnauthorizedError("Invalid credentials")

    token = create_session_token(
        user_id=user.id,
        org_id=user.org_id,
        role=user.role.value,
        site_ids=user.site_ids,
    )
    logger.info("Login succeeded", extra={"user_id": user.id, "org_id": user.org_id})
    return LoginResponse(token=token, user=to_profile(user))


def get_profile(gw: PersistenceGateway, session: UserSession) -> UserProfile:
    """Caller's profile, with the site scope carried by their credential."""
    user = gw.get_user(session.user_id)
    if user is None or user.org_id != session.org_id:
        raise NotFoundError("User not found")
    profile = to_profile(user)
    profile.site_ids = list(session.site_ids)
    return profile
