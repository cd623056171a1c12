"""Slack slash-command and interactivity endpoints.

Slack signs every request; unsigned or stale requests are rejected before
anything else happens.
"""

import hashlib
import hmac
import json
import logging
import time
from urllib.parse import parse_qs

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from kudos_bot.config import settings
from kudos_bot.database import StorageBackend
from kudos_bot.deps import get_backend
from kudos_bot.handlers.slack_interactions import (
    open_kudos_modal,
    parse_kudos_modal,
    process_kudos_modal,
    validate_kudos_modal,
)
from kudos_bot.templates.slack_templates import KUDOS_MODAL_CALLBACK_ID

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slack", tags=["slack"])

_MAX_REQUEST_AGE_SECONDS = 60 * 5


def verify_slack_signature(body: bytes, timestamp: str | None, signature: str | None) -> bool:
    """Check Slack's ``v0`` HMAC-SHA256 request signature."""
    secret = settings.slack_signing_secret
    if not secret:
        logger.error("KUDOS_SLACK_SIGNING_SECRET is not set; rejecting Slack request")
        return False
    if not timestamp or not signature:
        return False
    try:
        sent_at = int(timestamp)
    except ValueError:
        return False
    if abs(time.time() - sent_at) > _MAX_REQUEST_AGE_SECONDS:
        return False
    base = b"v0:" + timestamp.encode() + b":" + body
    expected = "v0=" + hmac.new(secret.encode(), base, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


async def verified_form(request: Request) -> dict:
    body = await request.body()
    if not verify_slack_signature(
        body,
        request.headers.get("X-Slack-Request-Timestamp"),
        request.headers.get("X-Slack-Signature"),
    ):
        raise HTTPException(status_code=401, detail="Invalid Slack signature")
    parsed = parse_qs(body.decode("utf-8"), keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items()}


@router.post("/commands")
async def slash_command(form: dict = Depends(verified_form)):
    """Handle ``/kudos`` by opening the kudos modal."""
    if form.get("command") == "/kudos":
        await open_kudos_modal(form)
    else:
        logger.warning("Ignoring unknown slash command %s", form.get("command"))
    return Response(status_code=200)


@router.post("/interactions")
async def interactions(
    background_tasks: BackgroundTasks,
    form: dict = Depends(verified_form),
    backend: StorageBackend = Depends(get_backend),
):
    """Handle kudos modal submissions; other interactions are acknowledged."""
    try:
        payload = json.loads(form.get("payload", ""))
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid interaction payload")

    callback_id = (payload.get("view") or {}).get("callback_id")
    if payload.get("type") != "view_submission" or callback_id != KUDOS_MODAL_CALLBACK_ID:
        return Response(status_code=200)

    modal = parse_kudos_modal(payload)
    errors = await validate_kudos_modal(modal)
    if errors:
        return JSONResponse(errors)

    background_tasks.add_task(process_kudos_modal, backend, modal)
    return Response(status_code=200)
