"""Wallet ledger and manual payment proofs."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tambola.models.base import Base, utcnow

TRANSACTION_TYPES = ("deposit", "withdrawal", "prize", "ticket_purchase")
TRANSACTION_STATUSES = ("pending", "completed", "failed")
CREDIT_TYPES = ("deposit", "prize")
DEBIT_TYPES = ("withdrawal", "ticket_purchase")

PROOF_STATUSES = ("PENDING", "VERIFIED", "REJECTED")


class Transaction(Base):
    """One wallet movement. Amounts are whole currency units."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    room_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    upi_id: Mapped[str | None] = mapped_column(String(100), nullable=True)  # payout target of a withdrawal
    description: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class PaymentProof(Base):
    """UPI screenshot a player uploads for the host to verify."""

    __tablename__ = "payment_proofs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), index=True)
    player_id: Mapped[str] = mapped_column(String(64), nullable=False)
    player_name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    screenshot_url: Mapped[str] = mapped_column(String(500), nullable=False)
    transaction_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    host_note: Mapped[str | None] = mapped_column(String(300), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
