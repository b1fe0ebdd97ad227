from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .round import LotteryRound


class LotteryEvent(Base):
    """Append-only log of events emitted by the lottery engine."""

    __tablename__ = "lottery_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ForeignKey("lottery_rounds.id", ondelete="CASCADE"), nullable=False
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    payload_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    round: Mapped["LotteryRound"] = relationship(back_populates="events")

    __table_args__ = (Index("ix_lottery_events_round_name", "round_id", "name"),)

    @property
    def payload(self) -> dict[str, Any]:
        if not self.payload_json:
            return {}
        return json.loads(self.payload_json)

    @classmethod
    def record(
        cls,
        session: Session,
        lottery_round: "LotteryRound",
        name: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> "LotteryEvent":
        """Append an event for ``lottery_round`` and return it."""

        event = cls(
            round=lottery_round,
            round_number=lottery_round.round_number,
            name=name,
            payload_json=json.dumps(payload, sort_keys=True) if payload else None,
        )
        session.add(event)
        return event

    @classmethod
    def for_round(
        cls, session: Session, round_id: int, name: Optional[str] = None
    ) -> list["LotteryEvent"]:
        """Return events of ``round_id`` in emission order, optionally by name."""

        stmt = select(cls).where(cls.round_id == round_id)
        if name is not None:
            stmt = stmt.where(cls.name == name)
        return list(session.scalars(stmt.order_by(cls.id.asc())).all())

    def __repr__(self) -> str:
        return (
            f"<LotteryEvent(id={self.id}, round_number={self.round_number}, "
            f"name='{self.name}')>"
        )
