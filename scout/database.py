# database.py – SQLAlchemy setup + modèles User / Lead

from datetime import datetime
from pathlib import Path
from typing import Iterator

from sqlalchemy import (
    create_engine, Column, String, Integer, Text, DateTime, ForeignKey, JSON
)
from fastapi import Request
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from scout.config import settings


def make_engine(url: str):
    """Engine for ``url``; SQLite gets a parent dir and thread-safe connections."""
    if url.startswith("sqlite:///"):
        # Extrait le chemin local (après sqlite:///)
        db_file = url.replace("sqlite:///", "")
        Path(db_file).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, future=True, connect_args={"check_same_thread": False})
    if url.startswith("sqlite://"):
        # SQLite en mémoire : une seule connexion partagée
        return create_engine(
            url, future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, future=True)


# Engine & session
engine = make_engine(settings.DB_URL)
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False,
)

# Base pour les modèles
Base = declarative_base()


class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, index=True)  # Clerk user id
    email = Column(String, unique=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    leads = relationship("Lead", back_populates="user", cascade="all, delete-orphan")


class Lead(Base):
    __tablename__ = "leads"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    steam_app_id = Column(String, nullable=True)
    website = Column(String, nullable=True)
    status = Column(String, nullable=False, default="new")  # new, contacted, interested, closed
    engine = Column(String, default="Unknown")
    notes = Column(Text, nullable=True)
    metrics = Column(JSON, nullable=True)  # { followers, reviews, ccu, estimatedRevenue }
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="leads")


def init_db(bind=None):
    """Créer les tables si elles n'existent pas encore."""
    Base.metadata.create_all(bind=bind or engine)


def get_session(request: Request) -> Iterator[Session]:
    """FastAPI dependency: one session per request, from the app's session factory."""
    session = request.app.state.session_factory()
    try:
        yield session
    finally:
        session.close()
