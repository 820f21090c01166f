# web/lead_routes.py – CRUD leads, protégé par Clerk, ownership vérifiée

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from scout import storage
from scout.database import Lead, get_session
from scout.models.lead import LeadCreate, LeadOut, LeadUpdate
from scout.web.deps import rate_limit, require_user

router = APIRouter(prefix="/api/leads", tags=["leads"])


def _owned_lead(session: Session, lead_id: int, user_id: str) -> Lead:
    lead = storage.get_lead(session, lead_id)
    if lead is None:
        raise HTTPException(status_code=404, detail="Lead not found")
    if lead.user_id != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return lead


@router.get("", response_model=List[LeadOut], dependencies=[Depends(rate_limit("read"))])
def list_leads(user_id: str = Depends(require_user), session: Session = Depends(get_session)):
    return storage.get_leads(session, user_id)


@router.get("/{lead_id}", response_model=LeadOut, dependencies=[Depends(rate_limit("read"))])
def get_lead(lead_id: int, user_id: str = Depends(require_user),
             session: Session = Depends(get_session)):
    return _owned_lead(session, lead_id, user_id)


@router.post("", response_model=LeadOut, status_code=201, dependencies=[Depends(rate_limit("write"))])
def create_lead(payload: LeadCreate, user_id: str = Depends(require_user),
                session: Session = Depends(get_session)):
    return storage.create_lead(session, user_id, payload.model_dump())


@router.put("/{lead_id}", response_model=LeadOut, dependencies=[Depends(rate_limit("write"))])
def update_lead(lead_id: int, payload: LeadUpdate, user_id: str = Depends(require_user),
                session: Session = Depends(get_session)):
    lead = _owned_lead(session, lead_id, user_id)
    updates = payload.model_dump(exclude_unset=True)
    # name / status sont NOT NULL : un null explicite est ignoré
    updates = {k: v for k, v in updates.items() if v is not None or k not in ("name", "status")}
    return storage.update_lead(session, lead, updates)


@router.delete("/{lead_id}", status_code=204, dependencies=[Depends(rate_limit("write"))])
def delete_lead(lead_id: int, user_id: str = Depends(require_user),
                session: Session = Depends(get_session)):
    lead = _owned_lead(session, lead_id, user_id)
    storage.delete_lead(session, lead)
    return Response(status_code=204)
