# calendar_bridge/auth/identity.py
import json
import logging
from typing import Optional

from fastapi import Request

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Extracts the caller's claimed identity from a request."""

    async def resolve(self, request: Request) -> Optional[str]:
        raise NotImplementedError


class PlaintextEmailIdentity(IdentityResolver):
    """
    Trusts whatever email the client sends, with no proof of ownership.

    Known weakness kept for compatibility with existing clients: anyone who
    knows a signed-in user's email can act as that user. Replace this resolver
    with one that verifies a signed session token to close it.
    """

    query_param = "email"
    body_fields = ("email", "userEmail")

    async def resolve(self, request: Request) -> Optional[str]:
        email = request.query_params.get(self.query_param)
        if email:
            return email.strip()

        raw = await request.body()
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.debug("Request body is not JSON, no identity in body")
            return None
        if not isinstance(payload, dict):
            return None
        for field in self.body_fields:
            value = payload.get(field)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None
