# web/auth_routes.py – Utilisateur courant (profil Clerk synchronisé en base)

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from scout import storage
from scout.database import get_session
from scout.web.deps import rate_limit, require_user

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/user", dependencies=[Depends(rate_limit("auth"))])
async def current_user(request: Request, user_id: str = Depends(require_user),
                       session: Session = Depends(get_session)) -> Dict[str, Any]:
    profile = await request.app.state.identity.get_user(user_id) or {}
    user = storage.upsert_user(session, user_id, **profile)
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "profileImageUrl": user.profile_image_url,
    }
