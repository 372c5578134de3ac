"""Wallet balance, gateway deposits and manual UPI payment proofs."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from tambola.clients.file_store import FileStore
from tambola.clients.payment_gateway import OrderRef, PaymentGateway
from tambola.errors import ConflictError, ForbiddenError, NotFoundError, PaymentError, ValidationError
from tambola.models.base import utcnow
from tambola.models.transaction import PaymentProof, Transaction
from tambola.repositories.wallet_repository import WalletRepository
from tambola.services.room_service import RoomService

logger = logging.getLogger(__name__)

SETTLED_EVENTS = {"payment.captured": "completed", "order.paid": "completed", "payment.failed": "failed"}


@dataclass(frozen=True)
class WalletSummary:
    player_id: str
    balance: int
    available: int
    transactions: Sequence[Transaction]


class PaymentService:
    def __init__(
        self,
        gateway: PaymentGateway,
        repository: WalletRepository | None = None,
        rooms: RoomService | None = None,
    ) -> None:
        self._gateway = gateway
        self._repo = repository or WalletRepository()
        self._rooms = rooms or RoomService()

    def wallet(self, session: Session, player_id: str, limit: int = 50) -> WalletSummary:
        return WalletSummary(
            player_id=player_id,
            balance=self._repo.balance(session, player_id),
            available=self._repo.available(session, player_id),
            transactions=self._repo.list_for_player(session, player_id, limit=limit),
        )

    def create_deposit_order(self, session: Session, player_id: str, amount: int) -> tuple[OrderRef, Transaction]:
        """Open a gateway order and record a pending deposit against it."""

        receipt = f"rcpt_{player_id}_{utcnow().strftime('%Y%m%d%H%M%S')}"[:40]
        order = self._gateway.create_order(int(amount), receipt, notes={"player_id": player_id})
        tx = self._repo.create_transaction(
            session,
            player_id=player_id,
            amount=int(amount),
            type="deposit",
            status="pending",
            reference=order.order_id,
            description="Wallet top-up",
        )
        logger.info("Deposit order %s for %s (%s)", order.order_id, player_id, amount)
        return order, tx

    def _deposit(self, session: Session, order_id: str) -> Transaction:
        tx = self._repo.get_by_reference(session, order_id, lock=True)
        if tx is None or tx.type != "deposit":
            raise NotFoundError(message=f"No deposit for order {order_id}")
        return tx

    def confirm_payment(
        self,
        session: Session,
        order_id: str,
        payment_id: str,
        signature: str,
        player_id: str | None = None,
    ) -> Transaction:
        """Checkout success callback: verify the signature and settle the deposit.

        A verified capture completes the deposit even after an earlier failed
        attempt on the same order; a retried checkout can still succeed.
        """

        tx = self._deposit(session, order_id)
        if player_id is not None and tx.player_id != player_id:
            raise ForbiddenError(message="Order belongs to another player")
        self._gateway.verify_payment(order_id, payment_id, signature)
        if tx.status != "completed":
            tx.status = "completed"
            session.flush()
            logger.info("Deposit %s completed by checkout (%s)", order_id, payment_id)
        return tx

    def handle_webhook(self, session: Session, body: bytes, signature: str) -> Transaction | None:
        """Apply a gateway webhook. Unknown orders and events are ignored."""

        self._gateway.verify_webhook(body, signature)
        try:
            payload: dict[str, Any] = json.loads(body or b"{}")
        except ValueError as exc:
            raise ValidationError(message="Webhook body is not JSON") from exc

        event = str(payload.get("event") or "")
        status = SETTLED_EVENTS.get(event)
        if status is None:
            logger.info("Ignoring webhook event %r", event)
            return None

        entities = payload.get("payload") or {}
        entity = (entities.get("payment") or entities.get("order") or {}).get("entity") or {}
        order_id = entity.get("order_id") or (entity.get("id") if event == "order.paid" else None)
        if not order_id:
            logger.warning("Webhook %s without order id", event)
            return None

        tx = self._repo.get_by_reference(session, str(order_id), lock=True)
        if tx is None or tx.type != "deposit":
            logger.warning("Webhook %s for unknown order %s", event, order_id)
            return None
        # Completed is final; a failure only settles a deposit still pending.
        if tx.status != "completed" and (status == "completed" or tx.status == "pending"):
            tx.status = status
            session.flush()
            logger.info("Deposit %s %s by webhook", order_id, status)
        return tx

    # Withdrawals

    def request_withdrawal(self, session: Session, player_id: str, amount: int, upi_id: str) -> Transaction:
        """Hold ``amount`` as a pending withdrawal to ``upi_id``.

        Pending withdrawals count against the available balance until they
        are settled, so the same funds cannot be spent on tickets meanwhile.
        """

        amount = int(amount)
        if amount <= 0:
            raise ValidationError(message="Invalid amount", details={"amount": ["Must be positive"]})

        self._repo.lock_player(session, player_id)
        available = self._repo.available(session, player_id)
        if available < amount:
            raise PaymentError(
                "Insufficient wallet balance",
                details={"balance": available, "amount": amount},
            )

        tx = self._repo.create_transaction(
            session,
            player_id=player_id,
            amount=amount,
            type="withdrawal",
            status="pending",
            upi_id=upi_id,
            description=f"Withdrawal to {upi_id}",
        )
        logger.info("Withdrawal %s of %s requested by %s", tx.id, amount, player_id)
        return tx

    def settle_withdrawal(
        self,
        session: Session,
        tx_id: int,
        success: bool,
        reference: str | None = None,
    ) -> Transaction:
        """Record the payout result. A failed payout releases the held funds."""

        tx = self._repo.get_transaction(session, tx_id, lock=True)
        if tx is None or tx.type != "withdrawal":
            raise NotFoundError(message=f"Withdrawal {tx_id} not found")
        if tx.status != "pending":
            raise ConflictError(message=f"Withdrawal already {tx.status}")

        tx.status = "completed" if success else "failed"
        if reference:
            tx.reference = reference
        session.flush()
        logger.info("Withdrawal %s %s", tx.id, tx.status)
        return tx

    def submit_proof(
        self,
        session: Session,
        file_store: FileStore,
        *,
        room_id: str,
        player_id: str,
        player_name: str,
        amount: int,
        data: bytes,
        content_type: str,
        transaction_ref: str | None = None,
    ) -> PaymentProof:
        room = self._rooms.get_room(session, room_id)
        if int(amount) <= 0:
            raise ValidationError(message="Invalid amount", details={"amount": ["Must be positive"]})

        url = file_store.upload_image(f"payment-proofs/{room.id}", data, content_type)
        proof = self._repo.create_proof(
            session,
            room_id=room.id,
            player_id=player_id,
            player_name=player_name,
            amount=int(amount),
            screenshot_url=url,
            transaction_ref=transaction_ref or None,
            status="PENDING",
        )
        logger.info("Payment proof %s submitted for room %s by %s", proof.id, room.id, player_id)
        return proof

    def review_proof(
        self,
        session: Session,
        proof_id: int,
        host_id: str,
        approve: bool,
        note: str | None = None,
    ) -> PaymentProof:
        """Host decision on a proof; a verified proof credits the player's wallet."""

        proof = self._repo.get_proof(session, proof_id)
        if proof is None:
            raise NotFoundError(message=f"Payment proof {proof_id} not found")
        room = self._rooms.get_room(session, proof.room_id)
        self._rooms.require_host(room, host_id)
        if proof.status != "PENDING":
            raise ConflictError(message=f"Payment proof already {proof.status.lower()}")

        proof.status = "VERIFIED" if approve else "REJECTED"
        proof.host_note = note or None
        proof.verified_at = utcnow()
        if approve:
            self._repo.create_transaction(
                session,
                player_id=proof.player_id,
                room_id=room.id,
                amount=proof.amount,
                type="deposit",
                status="completed",
                reference=f"proof:{proof.id}",
                description=f"UPI payment for {room.name}",
            )
        session.flush()
        logger.info("Payment proof %s %s by host %s", proof.id, proof.status, host_id)
        return proof

