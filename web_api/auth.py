"""
JWT session handling for the web API.

Sessions are HS256-signed JWTs in an HttpOnly cookie, valid for 24 hours.
The token subject is the user's Discord ID, which is all the fleet routes
need to look up roles.
"""

import os
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import HTTPException, Request, Response

JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = 24
SESSION_COOKIE = "session"


def _get_secret() -> str:
    secret = os.environ.get("JWT_SECRET")
    if not secret:
        raise ValueError("JWT_SECRET environment variable not set")
    return secret


def create_jwt(discord_user_id: str, discord_username: str) -> str:
    """
    Create a signed session token for a user who finished the Discord login.

    Args:
        discord_user_id: The user's Discord ID
        discord_username: The user's Discord display name

    Returns:
        Signed JWT token string, expiring after JWT_EXPIRATION_HOURS

    Raises:
        ValueError: If JWT_SECRET is not configured
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": discord_user_id,
        "username": discord_username,
        "iat": now,
        "exp": now + timedelta(hours=JWT_EXPIRATION_HOURS),
    }
    return jwt.encode(payload, _get_secret(), algorithm=JWT_ALGORITHM)


def verify_jwt(token: str) -> dict | None:
    """
    Verify and decode a session token.

    Args:
        token: The JWT token string from the session cookie

    Returns:
        Decoded payload dict if valid and unexpired, None otherwise
    """
    try:
        return jwt.decode(token, _get_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def set_session_cookie(response: Response, token: str) -> None:
    """
    Store the session token in an HttpOnly cookie.

    The cookie is only marked secure when APP_URL is served over HTTPS.

    Args:
        response: The FastAPI response object
        token: The JWT token to store
    """
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=os.environ.get("APP_URL", "").startswith("https://"),
        samesite="lax",
        max_age=60 * 60 * JWT_EXPIRATION_HOURS,
    )


async def get_current_user(request: Request) -> dict:
    """
    FastAPI dependency returning the session's JWT payload.

    Args:
        request: The FastAPI request object

    Returns:
        The decoded JWT payload, with the Discord ID under "sub"

    Raises:
        HTTPException: 401 if not authenticated or invalid token
    """
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = verify_jwt(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return payload
