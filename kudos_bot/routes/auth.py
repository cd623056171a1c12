"""Sign in with Slack for the web portal.

The signed-in user is kept in the signed session cookie and identifies the
viewer for private kudos.
"""

import logging
import secrets

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from kudos_bot.clients.slack_oauth import SlackOAuthClient, SlackOAuthError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _callback_url(request: Request) -> str:
    return str(request.url_for("slack_callback"))


@router.get("/slack")
async def slack_login(request: Request):
    oauth = SlackOAuthClient()
    try:
        state = secrets.token_urlsafe(16)
        request.session["oauth_state"] = state
        return RedirectResponse(oauth.authorize_url(_callback_url(request), state))
    finally:
        await oauth.close()


@router.get("/slack/callback", name="slack_callback")
async def slack_callback(request: Request, code: str | None = None, state: str | None = None):
    if not code:
        return RedirectResponse("/?error=missing_code")
    expected_state = request.session.pop("oauth_state", None)
    if not expected_state or not state or not secrets.compare_digest(expected_state, state):
        return RedirectResponse("/?error=invalid_state")

    oauth = SlackOAuthClient()
    try:
        request.session["user"] = await oauth.fetch_user(code, _callback_url(request))
    except SlackOAuthError as exc:
        logger.error("Slack OAuth error: %s", exc.error)
        return RedirectResponse(f"/?error={exc.error}")
    except Exception as exc:
        logger.error("OAuth callback error: %s", exc)
        return RedirectResponse("/?error=internal_error")
    finally:
        await oauth.close()
    return RedirectResponse("/")


@router.get("/me")
async def me(request: Request):
    user = request.session.get("user")
    if user:
        return {"success": True, "user": user}
    return {"success": False, "error": "Not authenticated"}


@router.get("/logout")
async def logout(request: Request):
    request.session.clear()
    return RedirectResponse("/")
