"""
SQLAlchemy models for the credential store: client credentials and authorized endpoints.
"""
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Credential(Base):
    """One live credential per username; re-issue updates this row in place."""
    __tablename__ = "credentials"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    client_id: Mapped[str] = mapped_column("clientid", String(36), unique=True, nullable=False, index=True)
    # Unix time the secret was derived from; the secret itself is never stored
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)


class Endpoint(Base):
    """One row per (endpoint, method) pair a client may call."""
    __tablename__ = "endpoints"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    client_id: Mapped[str] = mapped_column("clientid", String(36), nullable=False, index=True)
    endpoint: Mapped[str] = mapped_column(String(512), nullable=False)
    method: Mapped[str] = mapped_column(String(16), nullable=False)

    @property
    def claim(self) -> str:
        return f"{self.endpoint}/{self.method}"
