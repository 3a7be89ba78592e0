# calendar_bridge/auth/schemas.py
from typing import Optional

from pydantic import BaseModel


class AuthUrlResponse(BaseModel):
    url: str


class AuthCheckResponse(BaseModel):
    authenticated: bool


class EmailRequest(BaseModel):
    email: Optional[str] = None


class LogoutResponse(BaseModel):
    success: bool = True
    message: str = "Logged out successfully"


class RefreshResponse(BaseModel):
    success: bool = True
