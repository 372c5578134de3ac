"""Schemas for wallet, gateway orders, withdrawals and payment proofs."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class TransactionSchema(Schema):
    id = fields.Integer()
    room_id = fields.String(allow_none=True)
    amount = fields.Integer()
    type = fields.String()
    status = fields.String()
    reference = fields.String(allow_none=True)
    upi_id = fields.String(allow_none=True)
    description = fields.String(allow_none=True)
    created_at = fields.DateTime()


class WalletSchema(Schema):
    player_id = fields.String()
    balance = fields.Integer()
    available = fields.Integer()
    transactions = fields.List(fields.Nested(TransactionSchema))


class OrderCreateSchema(Schema):
    amount = fields.Integer(required=True, validate=validate.Range(min=1, max=100_000))


class PaymentVerifySchema(Schema):
    order_id = fields.String(required=True, data_key="razorpay_order_id")
    payment_id = fields.String(required=True, data_key="razorpay_payment_id")
    signature = fields.String(required=True, data_key="razorpay_signature")


class WithdrawalRequestSchema(Schema):
    amount = fields.Integer(required=True, validate=validate.Range(min=1, max=100_000))
    upi_id = fields.String(
        required=True,
        validate=[validate.Length(min=3, max=100), validate.Regexp(r"^[\w.\-]+@[\w.\-]+$", error="Not a UPI id")],
    )


class WithdrawalSettleSchema(Schema):
    success = fields.Boolean(required=True)
    reference = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=100))


class ProofSubmitSchema(Schema):
    player_name = fields.String(required=True, validate=validate.Length(min=1, max=120))
    amount = fields.Integer(required=True, validate=validate.Range(min=1))
    transaction_ref = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=100))


class ProofReviewSchema(Schema):
    approve = fields.Boolean(required=True)
    note = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=300))


class PaymentProofSchema(Schema):
    id = fields.Integer()
    room_id = fields.String()
    player_id = fields.String()
    player_name = fields.String()
    amount = fields.Integer()
    screenshot_url = fields.String()
    transaction_ref = fields.String(allow_none=True)
    status = fields.String()
    host_note = fields.String(allow_none=True)
    created_at = fields.DateTime()
    verified_at = fields.DateTime(allow_none=True)
