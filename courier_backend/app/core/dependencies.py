"""
Actor identity dependencies for FastAPI.

Every mutating route needs to know who issued the command so it can be
written to the audit log and the parcel journey.
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from courier_backend.app.core.exceptions import AuthenticationError
from courier_backend.app.core.jwt import decode_access_token
from courier_backend.app.models.enums import ActorRole

# auto_error=False so a missing header goes through AuthenticationError too
security = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Decode the bearer token into the actor payload.

    Raises:
        AuthenticationError: missing, invalid or expired token, or a token
            without subject / with an unknown role
    """
    if credentials is None:
        raise AuthenticationError("Missing bearer token")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")

    if not payload.get("sub"):
        raise AuthenticationError("Invalid token payload")

    try:
        ActorRole(payload.get("role"))
    except ValueError:
        raise AuthenticationError("Invalid role in token")

    return payload


def actor_name(actor: dict) -> str:
    """Name recorded in audit entries and journey events."""
    return actor["sub"]
