"""ORM models."""

from tambola.models.called_number import CalledNumber
from tambola.models.claim import Claim, PrizeAward
from tambola.models.room import Room
from tambola.models.ticket import PlayerTicket
from tambola.models.transaction import PaymentProof, Transaction

__all__ = ["CalledNumber", "Claim", "PaymentProof", "PlayerTicket", "PrizeAward", "Room", "Transaction"]
