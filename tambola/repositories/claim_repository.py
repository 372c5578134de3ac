"""Repository layer for claims and prize awards."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from tambola.models.claim import Claim, PrizeAward


class ClaimRepository:
    def add_claim(self, session: Session, **fields: object) -> Claim:
        claim = Claim(**fields)
        session.add(claim)
        session.flush()
        return claim

    def add_award(self, session: Session, **fields: object) -> PrizeAward:
        # Unique (room_id, prize): a second winner fails here with IntegrityError.
        award = PrizeAward(**fields)
        session.add(award)
        session.flush()
        return award

    def list_for_room(self, session: Session, room_id: str) -> Sequence[Claim]:
        stmt = select(Claim).where(Claim.room_id == room_id).order_by(Claim.id.asc())
        return list(session.scalars(stmt).all())

    def awards_for_room(self, session: Session, room_id: str) -> dict[str, PrizeAward]:
        stmt = select(PrizeAward).where(PrizeAward.room_id == room_id)
        return {a.prize: a for a in session.scalars(stmt).all()}
