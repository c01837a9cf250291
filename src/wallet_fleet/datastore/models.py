"""SQLAlchemy ORM models for the identity store."""

from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""


class WalletRecord(Base):
    """One enrolled wallet: Base58 keypair plus its latest access token."""

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    public_key: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        comment="Base58 Ed25519 public key",
    )
    private_key: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Base58 64-byte secret key (seed || public key)",
    )
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)

    def __repr__(self) -> str:
        return f"<WalletRecord {self.public_key[:8]}...>"
