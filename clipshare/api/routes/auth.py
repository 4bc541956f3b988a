"""
Session endpoints.

The browser already holds the provider's session cookie; these endpoints
only report who that cookie belongs to and let the user drop it.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from ..dependencies import IdentityProviderDep, OptionalIdentity, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class SessionUser(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None
    subscription_status: Optional[str] = None


class SessionResponse(BaseModel):
    user: SessionUser
    expires_at: Optional[datetime] = None


@router.get(
    "/session",
    response_model=Optional[SessionResponse],
    summary="Current session",
    description="The signed-in user, or null for anonymous callers",
)
async def get_session(identity: OptionalIdentity) -> Optional[SessionResponse]:
    if identity is None:
        return None

    return SessionResponse(
        user=SessionUser(
            id=identity.id,
            email=identity.email,
            name=identity.name,
            image=identity.image,
            subscription_status=identity.subscription_status,
        ),
        expires_at=identity.expires_at,
    )


@router.post(
    "/sign-out",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Sign out",
)
async def sign_out(
    request: Request,
    settings: SettingsDep,
    identity_provider: IdentityProviderDep,
) -> Response:
    """Tell the provider, then clear the session cookie and any chunks of it."""
    await identity_provider.sign_out(request.cookies)

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    cookie_name = settings.session_cookie_name
    names = {cookie_name} | {
        name for name in request.cookies if name.startswith(f"{cookie_name}.")
    }
    for name in sorted(names):
        response.delete_cookie(name)

    return response
