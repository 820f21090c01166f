# web/webhook_routes.py – Webhook Clerk : synchro des users (signature svix)

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from svix.webhooks import Webhook, WebhookVerificationError

from scout import storage
from scout.database import get_session

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


def _profile(data: Dict[str, Any]) -> Dict[str, Any]:
    """Clerk user payload -> colonnes de la table users."""
    emails = data.get("email_addresses") or []
    email = emails[0].get("email_address") if emails else None
    return {
        "email": email or None,
        "first_name": data.get("first_name"),
        "last_name": data.get("last_name"),
        "profile_image_url": data.get("image_url"),
    }


@router.post("/clerk")
async def clerk_webhook(request: Request, session: Session = Depends(get_session)) -> Dict[str, Any]:
    """
    User lifecycle events from Clerk.

    ``user.created`` / ``user.updated`` upsert the local copy,
    ``user.deleted`` removes it along with its leads. Other events are
    acknowledged and ignored.
    """
    secret = request.app.state.settings.CLERK_WEBHOOK_SECRET
    if not secret:
        log.error("CLERK_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=500, detail="Webhook not configured")

    headers = {name: request.headers.get(name) for name in SVIX_HEADERS}
    if not all(headers.values()):
        raise HTTPException(status_code=400, detail="Missing svix headers")

    body = await request.body()
    try:
        event = Webhook(secret).verify(body, headers)
    except WebhookVerificationError as e:
        log.warning(f"Clerk webhook rejected: {e}")
        raise HTTPException(status_code=400, detail="Webhook verification failed") from e

    event_type = event.get("type") if isinstance(event, dict) else None
    data = event.get("data") if isinstance(event, dict) else None
    if not isinstance(data, dict) or not data.get("id"):
        raise HTTPException(status_code=400, detail="Malformed webhook payload")

    user_id = data["id"]
    if event_type in ("user.created", "user.updated"):
        storage.upsert_user(session, user_id, **_profile(data))
        log.info(f"Clerk user synced: {user_id} ({event_type})")
    elif event_type == "user.deleted":
        if storage.delete_user(session, user_id):
            log.info(f"Clerk user deleted: {user_id}")
    else:
        log.debug(f"Unhandled Clerk webhook event: {event_type}")

    return {"received": True}
