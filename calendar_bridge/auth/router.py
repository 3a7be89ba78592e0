# calendar_bridge/auth/router.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from . import schemas
from .service import AuthService
from calendar_bridge.core.config import Settings
from calendar_bridge.core.dependencies import get_db, get_oauth_client, get_settings, get_token_policy
from calendar_bridge.core.exceptions import AuthError, SessionExpired

router = APIRouter(
    prefix="/api/auth",
    tags=["Authentication"],
)
logger = logging.getLogger(__name__)


def get_auth_service(
    db: Session = Depends(get_db),
    oauth_client=Depends(get_oauth_client),
    token_policy=Depends(get_token_policy),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(db, oauth_client, token_policy, settings)


@router.get("/google", response_model=schemas.AuthUrlResponse)
def auth_google(auth_service: AuthService = Depends(get_auth_service)):
    try:
        return schemas.AuthUrlResponse(url=auth_service.authorization_url())
    except Exception as e:
        logger.error(f"Auth URL generation error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate auth URL")


@router.get("/callback")
def auth_callback(
    code: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    auth_service: AuthService = Depends(get_auth_service),
):
    redirect_url = auth_service.handle_callback(code, error)
    return RedirectResponse(url=redirect_url)


@router.get("/check", response_model=schemas.AuthCheckResponse)
def auth_check(
    email: Optional[str] = Query(None),
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        return schemas.AuthCheckResponse(authenticated=auth_service.check_session(email))
    except Exception as e:
        logger.error(f"Auth check error: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"authenticated": False, "error": "Internal server error during auth check"},
        )


@router.post("/logout", response_model=schemas.LogoutResponse)
def auth_logout(
    payload: schemas.EmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    if not payload.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required for logout")
    logger.info(f"Logout request for: {payload.email}")
    try:
        auth_service.logout(payload.email)
    except Exception as e:
        logger.error(f"Logout error for {payload.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to logout")
    return schemas.LogoutResponse()


@router.post("/refresh", response_model=schemas.RefreshResponse)
def auth_refresh(
    payload: schemas.EmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    if not payload.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")
    try:
        auth_service.refresh(payload.email)
    except SessionExpired:
        raise SessionExpired("Failed to refresh token")
    except AuthError:
        raise
    except Exception as e:
        logger.error(f"Manual token refresh error for {payload.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to refresh token")
    return schemas.RefreshResponse()
