"""Auth router - login and caller profile."""

from fastapi import APIRouter, Depends, Request

from app.core.config import settings
from app.core.deps import get_current_session, get_gateway
from app.core.rate_limit import limiter
from app.db.gateway import PersistenceGateway
from app.schemas.auth import LoginRequest, LoginResponse, UserProfile, UserSession
from app.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=LoginResponse)
@limiter.limit(f"{settings.RATE_LIMIT_AUTH}/minute")
def login(
    request: Request,
    body: LoginRequest,
    gw: PersistenceGateway = Depends(get_gateway),
) -> LoginResponse:
    """Exchange email + password for a bearer token."""
    return auth_service.login(gw, body.email, body.password)


@router.get("/me", response_model=UserProfile)
def me(
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(get_current_session),
) -> UserProfile:
    return auth_service.get_profile(gw, session)
