"""Database models recording randomness requests and settled draws."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .types import Uint256

if TYPE_CHECKING:
    from .round import LotteryRound


class DrawRequestStatus(str, enum.Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"


class DrawRequest(Base):
    """Correlates an outstanding randomness request with its round."""

    __tablename__ = "lottery_draw_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Surrogate primary key."""

    request_id: Mapped[int] = mapped_column(Uint256, nullable=False)
    """Identifier returned by the randomness coordinator."""

    round_id: Mapped[int] = mapped_column(
        ForeignKey("lottery_rounds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """Round counter at the time of the request."""

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DrawRequestStatus.PENDING.value
    )
    random_words: Mapped[Optional[list[int]]] = mapped_column(JSON, nullable=True)
    """Raw words delivered by the fulfillment callback."""

    requested_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    fulfilled_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    round: Mapped["LotteryRound"] = relationship(back_populates="draw_requests")
    payouts: Mapped[list["Payout"]] = relationship(
        back_populates="draw_request",
        cascade="all, delete-orphan",
        order_by="Payout.id",
    )
    """Winner transfers attempted for this request, kept across retries."""

    __table_args__ = (
        UniqueConstraint("request_id", name="uq_lottery_draw_request_id"),
        CheckConstraint("status IN ('pending','fulfilled')", name="status_enum"),
        Index("ix_lottery_draw_requests_status", "status"),
    )

    def __init__(
        self,
        *,
        request_id: int,
        round_number: int,
        requested_at: int,
        round: Optional["LotteryRound"] = None,
        status: DrawRequestStatus = DrawRequestStatus.PENDING,
    ) -> None:
        self.request_id = request_id
        self.round_number = round_number
        self.requested_at = requested_at
        self.status = DrawRequestStatus(status).value
        if round is not None:
            self.round = round

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<DrawRequest(request_id={rid}, round_number={num}, status={status})>".format(
            rid=self.request_id,
            num=self.round_number,
            status=self.status,
        )

    @property
    def is_pending(self) -> bool:
        return self.status == DrawRequestStatus.PENDING.value

    @classmethod
    def get_by_request_id(
        cls, session: Session, request_id: int
    ) -> Optional["DrawRequest"]:
        """Return the request row for a coordinator ``request_id``."""

        return session.scalar(select(cls).where(cls.request_id == request_id))

    @classmethod
    def pending_for_round(
        cls, session: Session, round_id: int
    ) -> Optional["DrawRequest"]:
        """Return the outstanding request of ``round_id``, if any."""

        return session.scalar(
            select(cls).where(
                cls.round_id == round_id,
                cls.status == DrawRequestStatus.PENDING.value,
            )
        )


class DrawOutcome(Base):
    """Record of one settled draw."""

    __tablename__ = "lottery_draw_outcomes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ForeignKey("lottery_rounds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    request_id: Mapped[int] = mapped_column(Uint256, nullable=False)
    winning_numbers: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    """The normalized winning set, in word order."""

    entrant_count: Mapped[int] = mapped_column(Integer, nullable=False)
    winner_count: Mapped[int] = mapped_column(Integer, nullable=False)
    pool_before: Mapped[int] = mapped_column(Uint256, nullable=False)
    """Prize pool at the start of settlement."""

    share: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    """Amount paid to each winner; ``0`` when the pool rolled over."""

    rolled_over: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    settled_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    round: Mapped["LotteryRound"] = relationship(back_populates="outcomes")
    payouts: Mapped[list["Payout"]] = relationship(
        back_populates="outcome",
        order_by="Payout.id",
    )

    def __init__(
        self,
        *,
        round_number: int,
        request_id: int,
        winning_numbers: list[int],
        entrant_count: int,
        winner_count: int,
        pool_before: int,
        share: int,
        rolled_over: bool,
        settled_at: int,
        round: Optional["LotteryRound"] = None,
    ) -> None:
        self.round_number = round_number
        self.request_id = request_id
        self.winning_numbers = list(winning_numbers)
        self.entrant_count = entrant_count
        self.winner_count = winner_count
        self.pool_before = pool_before
        self.share = share
        self.rolled_over = rolled_over
        self.settled_at = settled_at
        if round is not None:
            self.round = round

    @property
    def total_paid(self) -> int:
        return self.share * self.winner_count

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable summary of the outcome.

        Amounts are rendered as decimal strings so they survive JSON consumers
        limited to 53-bit integers.
        """

        return {
            "round_number": self.round_number,
            "request_id": str(self.request_id),
            "winning_numbers": list(self.winning_numbers),
            "entrant_count": self.entrant_count,
            "winner_count": self.winner_count,
            "pool_before": str(self.pool_before),
            "share": str(self.share),
            "total_paid": str(self.total_paid),
            "rolled_over": self.rolled_over,
            "settled_at": self.settled_at,
            "payouts": [
                {
                    "identity": payout.identity,
                    "amount": str(payout.amount),
                    "match_count": payout.match_count,
                }
                for payout in self.payouts
            ],
        }


class Payout(Base):
    """Transfer of one winner's share for a draw request.

    The row is flushed as ``pending`` before the transfer is attempted and
    marked ``sent`` once the wallet accepts it. Settlement retries for the same
    request skip winners that are already ``sent``.
    """

    __tablename__ = "lottery_payouts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    draw_request_id: Mapped[int] = mapped_column(
        ForeignKey("lottery_draw_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    outcome_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("lottery_draw_outcomes.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    """Set once the draw is settled."""

    identity: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Uint256, nullable=False)
    match_count: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PayoutStatus.PENDING.value
    )
    sent_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    draw_request: Mapped["DrawRequest"] = relationship(back_populates="payouts")
    outcome: Mapped[Optional["DrawOutcome"]] = relationship(back_populates="payouts")

    __table_args__ = (
        UniqueConstraint(
            "draw_request_id", "identity", name="uq_lottery_payout_request_identity"
        ),
        CheckConstraint("status IN ('pending','sent')", name="status_enum"),
    )

    def __init__(
        self,
        *,
        identity: str,
        amount: int,
        match_count: int,
        draw_request: Optional[DrawRequest] = None,
    ) -> None:
        self.identity = identity
        self.amount = amount
        self.match_count = match_count
        self.status = PayoutStatus.PENDING.value
        if draw_request is not None:
            self.draw_request = draw_request

    @property
    def is_sent(self) -> bool:
        return self.status == PayoutStatus.SENT.value

    @property
    def reference(self) -> str:
        """Idempotency key handed to the wallet with the transfer."""

        return f"{self.draw_request.request_id}:{self.identity}"

    def mark_sent(self, now: int) -> None:
        self.status = PayoutStatus.SENT.value
        self.sent_at = now


__all__ = [
    "DrawOutcome",
    "DrawRequest",
    "DrawRequestStatus",
    "Payout",
    "PayoutStatus",
]
