"""Wallet and payment routes (controllers). No business logic here."""

from __future__ import annotations

from flask import Blueprint, current_app, request

from tambola.db import get_session
from tambola.errors import UploadError
from tambola.schemas.payment import (
    OrderCreateSchema,
    PaymentProofSchema,
    PaymentVerifySchema,
    ProofReviewSchema,
    ProofSubmitSchema,
    TransactionSchema,
    WalletSchema,
    WithdrawalRequestSchema,
    WithdrawalSettleSchema,
)
from tambola.services.payment_service import PaymentService
from tambola.utils.identity import current_user_id, require_admin, require_user
from tambola.utils.responses import ok

payments_bp = Blueprint("payments", __name__)

_wallet_schema = WalletSchema()
_order_schema = OrderCreateSchema()
_verify_schema = PaymentVerifySchema()
_transaction_schema = TransactionSchema()
_proof_submit_schema = ProofSubmitSchema()
_proof_review_schema = ProofReviewSchema()
_proof_schema = PaymentProofSchema()
_withdrawal_schema = WithdrawalRequestSchema()
_settle_schema = WithdrawalSettleSchema()


def _service() -> PaymentService:
    return current_app.extensions["payment_service"]


@payments_bp.get("/wallet/<player_id>")
def get_wallet(player_id: str):
    require_user(player_id)
    summary = _service().wallet(get_session(), player_id)
    return ok(_wallet_schema.dump(summary))


@payments_bp.post("/payments/orders")
def create_order():
    data = _order_schema.load(request.get_json(silent=True) or {})
    order, tx = _service().create_deposit_order(get_session(), current_user_id(), int(data["amount"]))
    return ok({"order": order.to_dict(), "transaction": _transaction_schema.dump(tx)}, status_code=201)


@payments_bp.post("/payments/verify")
def verify_payment():
    """Checkout success callback from the browser."""

    data = _verify_schema.load(request.get_json(silent=True) or {})
    tx = _service().confirm_payment(
        get_session(),
        data["order_id"],
        data["payment_id"],
        data["signature"],
        player_id=current_user_id(),
    )
    return ok(_transaction_schema.dump(tx))


@payments_bp.post("/payments/webhook")
def payment_webhook():
    signature = request.headers.get("X-Razorpay-Signature", "")
    tx = _service().handle_webhook(get_session(), request.get_data(), signature)
    return ok({"processed": tx is not None, "transaction": _transaction_schema.dump(tx) if tx else None})


@payments_bp.post("/withdrawals")
def request_withdrawal():
    data = _withdrawal_schema.load(request.get_json(silent=True) or {})
    tx = _service().request_withdrawal(get_session(), current_user_id(), int(data["amount"]), data["upi_id"])
    return ok(_transaction_schema.dump(tx), status_code=201)


@payments_bp.post("/withdrawals/<int:tx_id>/settle")
def settle_withdrawal(tx_id: int):
    """Payout result, reported by an operator once the UPI transfer is done."""

    require_admin()
    data = _settle_schema.load(request.get_json(silent=True) or {})
    tx = _service().settle_withdrawal(get_session(), tx_id, bool(data["success"]), reference=data.get("reference"))
    return ok(_transaction_schema.dump(tx))


@payments_bp.post("/rooms/<room_id>/payment-proofs")
def submit_proof(room_id: str):
    """Multipart form: player_name, amount, transaction_ref, screenshot."""

    data = _proof_submit_schema.load(request.form.to_dict())
    upload = request.files.get("screenshot")
    if upload is None:
        raise UploadError("screenshot is required")

    proof = _service().submit_proof(
        get_session(),
        current_app.extensions["file_store"],
        room_id=room_id,
        player_id=current_user_id(),
        player_name=data["player_name"],
        amount=int(data["amount"]),
        data=upload.read(),
        content_type=upload.mimetype or "",
        transaction_ref=data.get("transaction_ref"),
    )
    return ok(_proof_schema.dump(proof), status_code=201)


@payments_bp.post("/payment-proofs/<int:proof_id>/review")
def review_proof(proof_id: int):
    data = _proof_review_schema.load(request.get_json(silent=True) or {})
    proof = _service().review_proof(
        get_session(),
        proof_id,
        current_user_id(),
        bool(data["approve"]),
        note=data.get("note"),
    )
    return ok(_proof_schema.dump(proof))
