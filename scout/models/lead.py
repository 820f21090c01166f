# models/lead.py – Schémas pydantic pour l'API leads

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

LeadStatus = Literal["new", "contacted", "interested", "closed"]


class LeadBase(BaseModel):
    name: str = Field(min_length=1)
    steam_app_id: Optional[str] = None
    website: Optional[str] = None
    status: LeadStatus = "new"
    engine: Optional[str] = "Unknown"
    notes: Optional[str] = None
    metrics: Optional[Dict[str, Any]] = None


class LeadCreate(LeadBase):
    pass


class LeadUpdate(BaseModel):
    """Partial update: only the fields sent are applied."""
    name: Optional[str] = Field(default=None, min_length=1)
    steam_app_id: Optional[str] = None
    website: Optional[str] = None
    status: Optional[LeadStatus] = None
    engine: Optional[str] = None
    notes: Optional[str] = None
    metrics: Optional[Dict[str, Any]] = None


class LeadOut(LeadBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
