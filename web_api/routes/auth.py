"""
Authentication routes for Discord OAuth.

Endpoints:
- GET /auth/discord - Start Discord OAuth flow
- GET /auth/discord/callback - Handle OAuth callback
- POST /auth/logout - Clear session
- GET /auth/me - Get current user info
"""

import logging
import os
import secrets
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import RedirectResponse

from core.config import get_app_url
from web_api.auth import SESSION_COOKIE, create_jwt, get_current_user, set_session_cookie

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# Discord OAuth configuration
DISCORD_CLIENT_ID = os.environ.get("DISCORD_CLIENT_ID")
DISCORD_CLIENT_SECRET = os.environ.get("DISCORD_CLIENT_SECRET")
DISCORD_REDIRECT_URI = os.environ.get(
    "DISCORD_REDIRECT_URI", "http://localhost:8000/auth/discord/callback"
)

# In-memory state storage for OAuth CSRF protection
_oauth_states: dict[str, str] = {}


def _safe_next(next_path: str) -> str:
    """Only allow relative paths, so the callback can't redirect off-site."""
    if not next_path.startswith("/") or next_path.startswith("//"):
        return "/"
    return next_path


@router.get("/discord")
async def discord_oauth_start(next: str = "/"):
    """
    Start Discord OAuth flow.

    Redirects user to Discord's authorization page and remembers where to
    send them afterwards.
    """
    if not DISCORD_CLIENT_ID:
        raise HTTPException(500, "Discord OAuth not configured")

    state = secrets.token_urlsafe(32)
    _oauth_states[state] = _safe_next(next)

    params = {
        "client_id": DISCORD_CLIENT_ID,
        "redirect_uri": DISCORD_REDIRECT_URI,
        "response_type": "code",
        "scope": "identify",
        "state": state,
    }
    return RedirectResponse(url=f"https://discord.com/oauth2/authorize?{urlencode(params)}")


@router.get("/discord/callback")
async def discord_oauth_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
):
    """
    Handle Discord OAuth callback.

    Exchanges the authorization code for an access token, fetches the
    Discord user and sets the session cookie.
    """
    app_url = get_app_url()
    if error:
        return RedirectResponse(url=f"{app_url}/?error={error}")

    if not code or not state:
        return RedirectResponse(url=f"{app_url}/?error=missing_params")

    next_path = _oauth_states.pop(state, None)
    if next_path is None:
        return RedirectResponse(url=f"{app_url}/?error=invalid_state")

    if not DISCORD_CLIENT_ID or not DISCORD_CLIENT_SECRET:
        raise HTTPException(500, "Discord OAuth not configured")

    async with httpx.AsyncClient() as client:
        token_response = await client.post(
            "https://discord.com/api/oauth2/token",
            data={
                "client_id": DISCORD_CLIENT_ID,
                "client_secret": DISCORD_CLIENT_SECRET,
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": DISCORD_REDIRECT_URI,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if token_response.status_code != 200:
            logger.warning(
                f"Discord token exchange failed: {token_response.status_code}"
            )
            return RedirectResponse(url=f"{app_url}/?error=token_exchange")

        access_token = token_response.json()["access_token"]

        user_response = await client.get(
            "https://discord.com/api/users/@me",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if user_response.status_code != 200:
            logger.warning(f"Discord user fetch failed: {user_response.status_code}")
            return RedirectResponse(url=f"{app_url}/?error=user_fetch")

        discord_user = user_response.json()

    discord_id = discord_user["id"]
    discord_username = discord_user.get("global_name") or discord_user["username"]

    response = RedirectResponse(url=f"{app_url}{next_path}")
    set_session_cookie(response, create_jwt(discord_id, discord_username))
    return response


@router.post("/logout")
async def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(key=SESSION_COOKIE)
    return {"status": "logged_out"}


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    """Current user's Discord ID and name, straight from the session."""
    return {"discord_id": user["sub"], "discord_username": user["username"]}
