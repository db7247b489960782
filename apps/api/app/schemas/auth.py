"""Authentication-related Pydantic schemas."""

from pydantic import BaseModel, Field

from app.db.enums import Role
from app.schemas.common import RecordModel


class TokenPayload(BaseModel):
    """Decoded bearer credential payload."""
    sub: str = Field(..., min_length=1)  # user_id
    org_id: str = Field(..., min_length=1)
    role: str
    site_ids: list[str] = []


class UserSession(BaseModel):
    """
    Caller identity for authenticated requests.

    site_ids is the scope captured at login; managers ignore it and see every
    site of their org.
    """
    user_id: str
    org_id: str
    role: Role  # Validated enum
    site_ids: list[str] = []


class OrgRecord(RecordModel):
    id: str
    name: str


class UserRecord(RecordModel):
    """Stored user, including the credential hash. Never returned by the API."""
    id: str
    org_id: str
    email: str
    name: str
    role: Role
    password_hash: str
    site_ids: list[str] = []


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)


class UserProfile(BaseModel):
    id: str
    email: str
    name: str
    role: Role
    site_ids: list[str]


class LoginResponse(BaseModel):
    token: str
    user: UserProfile
