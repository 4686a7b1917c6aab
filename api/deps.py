from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from core.security import verify_identity_token

security = HTTPBearer(auto_error=False)


async def get_current_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """User id of the caller, taken from the identity provider's bearer token."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = verify_identity_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


# clients are built once at startup and kept on app.state

def get_identifier(request: Request):
    return request.app.state.identifier


def get_care_generator(request: Request):
    return request.app.state.care


def get_plant_store(request: Request):
    return request.app.state.store


def get_device_bridge(request: Request):
    return request.app.state.devices
