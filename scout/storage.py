# storage.py – CRUD leads / users (SQLAlchemy, session fournie par l'appelant)

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from scout.database import Lead, User


def upsert_user(session: Session, user_id: str, **fields: Any) -> User:
    """Create the local copy of a Clerk user, or refresh the given fields."""
    user = session.get(User, user_id)
    if user is None:
        user = User(id=user_id, **fields)
        session.add(user)
    else:
        for key, value in fields.items():
            setattr(user, key, value)
        user.updated_at = datetime.utcnow()
    session.commit()
    return user


def delete_user(session: Session, user_id: str) -> bool:
    """Remove a user and, by cascade, their leads. False if unknown."""
    user = session.get(User, user_id)
    if user is None:
        return False
    session.delete(user)
    session.commit()
    return True


def get_leads(session: Session, user_id: str) -> List[Lead]:
    stmt = select(Lead).where(Lead.user_id == user_id).order_by(Lead.id)
    return list(session.scalars(stmt))


def get_lead(session: Session, lead_id: int) -> Optional[Lead]:
    return session.get(Lead, lead_id)


def create_lead(session: Session, user_id: str, data: Dict[str, Any]) -> Lead:
    # Le user doit exister pour la FK
    if session.get(User, user_id) is None:
        session.add(User(id=user_id))
    lead = Lead(user_id=user_id, **data)
    session.add(lead)
    session.commit()
    session.refresh(lead)
    return lead


def update_lead(session: Session, lead: Lead, updates: Dict[str, Any]) -> Lead:
    for key, value in updates.items():
        setattr(lead, key, value)
    lead.updated_at = datetime.utcnow()
    session.commit()
    session.refresh(lead)
    return lead


def delete_lead(session: Session, lead: Lead) -> None:
    session.delete(lead)
    session.commit()
