"""Repository layer for wallet transactions and payment proofs."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from tambola.models.transaction import CREDIT_TYPES, DEBIT_TYPES, PaymentProof, Transaction


class WalletRepository:
    def create_transaction(self, session: Session, **fields: object) -> Transaction:
        tx = Transaction(**fields)
        session.add(tx)
        session.flush()
        return tx

    def get_transaction(self, session: Session, tx_id: int, lock: bool = False) -> Transaction | None:
        return session.get(Transaction, tx_id, with_for_update=lock or None, populate_existing=lock)

    def get_by_reference(self, session: Session, reference: str, lock: bool = False) -> Transaction | None:
        stmt = select(Transaction).where(Transaction.reference == reference).order_by(Transaction.id.asc())
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return session.scalars(stmt).first()

    def list_for_player(self, session: Session, player_id: str, limit: int = 50) -> Sequence[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.player_id == player_id)
            .order_by(Transaction.id.desc())
            .limit(int(limit))
        )
        return list(session.scalars(stmt).all())

    def lock_player(self, session: Session, player_id: str) -> None:
        """Row-lock the player's ledger so balance checks and debits serialize."""

        session.execute(select(Transaction.id).where(Transaction.player_id == player_id).with_for_update())

    def balance(self, session: Session, player_id: str) -> int:
        signed = case(
            (Transaction.type.in_(CREDIT_TYPES), Transaction.amount),
            (Transaction.type.in_(DEBIT_TYPES), -Transaction.amount),
            else_=0,
        )
        stmt = select(func.coalesce(func.sum(signed), 0)).where(
            Transaction.player_id == player_id,
            Transaction.status == "completed",
        )
        return int(session.scalar(stmt) or 0)

    def pending_withdrawals(self, session: Session, player_id: str) -> int:
        stmt = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.player_id == player_id,
            Transaction.type == "withdrawal",
            Transaction.status == "pending",
        )
        return int(session.scalar(stmt) or 0)

    def available(self, session: Session, player_id: str) -> int:
        """Balance minus withdrawals still being paid out."""

        return self.balance(session, player_id) - self.pending_withdrawals(session, player_id)

    def create_proof(self, session: Session, **fields: object) -> PaymentProof:
        proof = PaymentProof(**fields)
        session.add(proof)
        session.flush()
        return proof

    def get_proof(self, session: Session, proof_id: int) -> PaymentProof | None:
        return session.get(PaymentProof, proof_id)
