"""Database models for the lottery round and its entrants."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
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
    from .draw import DrawOutcome, DrawRequest
    from .event import LotteryEvent


class RoundPhase(str, enum.Enum):
    """Lifecycle phase of a lottery round."""

    OPEN = "open"
    DRAWING = "drawing"


class LotteryRound(Base):
    """Singleton round state of one named lottery.

    The row is created once and reset in place after every draw; it owns the
    entrant list, the registration flags and both pool balances.
    """

    __tablename__ = "lottery_rounds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Primary key."""

    internal_name: Mapped[str] = mapped_column(String(100), nullable=False)
    """Machine friendly identifier of the lottery this round belongs to."""

    phase: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RoundPhase.OPEN.value
    )
    """Current :class:`RoundPhase` value."""

    round_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Counter bumped every time the round is reset after a draw."""

    last_draw_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    """Unix timestamp (seconds) of the last reset; drives the draw interval."""

    prize_pool: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    """Net entry value available to winners, in native base units."""

    fee_pool: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    """Protocol fees withheld from entries, in native base units."""

    last_winner: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    """Identity of the last winner paid by a settlement."""

    last_payout: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    """Share paid to each winner by the last paying settlement."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    entrants: Mapped[list["Entrant"]] = relationship(
        back_populates="round",
        cascade="all, delete-orphan",
        order_by="Entrant.position",
    )
    """Entrant list in registration order."""

    flags: Mapped[list["RegistrationFlag"]] = relationship(
        back_populates="round",
        cascade="all, delete-orphan",
    )
    draw_requests: Mapped[list["DrawRequest"]] = relationship(
        back_populates="round",
        cascade="all, delete-orphan",
    )
    outcomes: Mapped[list["DrawOutcome"]] = relationship(
        back_populates="round",
        cascade="all, delete-orphan",
    )
    events: Mapped[list["LotteryEvent"]] = relationship(
        back_populates="round",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("internal_name", name="lottery_rounds_internal_name_key"),
        CheckConstraint("phase IN ('open','drawing')", name="phase_enum"),
    )

    def __init__(
        self,
        *,
        internal_name: str,
        last_draw_timestamp: int,
        phase: RoundPhase = RoundPhase.OPEN,
        round_number: int = 1,
        prize_pool: int = 0,
        fee_pool: int = 0,
        last_payout: int = 0,
    ) -> None:
        self.internal_name = internal_name
        self.last_draw_timestamp = last_draw_timestamp
        self.phase = RoundPhase(phase).value
        self.round_number = round_number
        self.prize_pool = prize_pool
        self.fee_pool = fee_pool
        self.last_payout = last_payout

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<LotteryRound(id={self.id}, internal_name='{self.internal_name}', "
            f"round_number={self.round_number}, phase='{self.phase}', "
            f"prize_pool={self.prize_pool})>"
        )

    @property
    def is_open(self) -> bool:
        return self.phase == RoundPhase.OPEN.value

    @classmethod
    def get_by_internal_name(
        cls, session: Session, internal_name: str
    ) -> Optional["LotteryRound"]:
        """Return the round matching ``internal_name`` if it exists."""

        return session.scalar(select(cls).where(cls.internal_name == internal_name))

    @classmethod
    def get_or_create(
        cls, session: Session, internal_name: str, *, now: int
    ) -> "LotteryRound":
        """Return the round for ``internal_name``, creating it on first use.

        A freshly created round starts OPEN with empty pools and its draw
        interval measured from ``now``.
        """

        existing = cls.get_by_internal_name(session, internal_name)
        if existing is not None:
            return existing
        lottery_round = cls(internal_name=internal_name, last_draw_timestamp=now)
        session.add(lottery_round)
        session.flush()
        return lottery_round

    def flag_for(self, identity: str) -> Optional["RegistrationFlag"]:
        """Return the registration flag row for ``identity`` in this round."""

        for flag in self.flags:
            if flag.identity == identity:
                return flag
        return None

    def is_registered(self, identity: str) -> bool:
        flag = self.flag_for(identity)
        return flag is not None and flag.registered


class Entrant(Base):
    """A registered identity and its prediction for the current round."""

    __tablename__ = "lottery_entrants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ForeignKey("lottery_rounds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    """Zero-based index in the entrant list."""

    identity: Mapped[str] = mapped_column(String(100), nullable=False)
    prediction: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    """The six predicted numbers, in submission order."""

    paid_value: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    round: Mapped["LotteryRound"] = relationship(back_populates="entrants")

    __table_args__ = (
        UniqueConstraint("round_id", "position", name="uq_lottery_entrant_position"),
    )

    def __init__(
        self,
        *,
        identity: str,
        prediction: list[int],
        position: int,
        paid_value: int = 0,
        round: Optional["LotteryRound"] = None,
    ) -> None:
        self.identity = identity
        self.prediction = list(prediction)
        self.position = position
        self.paid_value = paid_value
        if round is not None:
            self.round = round

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Entrant(round_id={rid}, position={pos}, identity={identity})>".format(
            rid=self.round_id,
            pos=self.position,
            identity=self.identity,
        )


class RegistrationFlag(Base):
    """Per-identity registered marker, kept apart from the entrant list."""

    __tablename__ = "lottery_registration_flags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ForeignKey("lottery_rounds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    identity: Mapped[str] = mapped_column(String(100), nullable=False)
    registered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    round: Mapped["LotteryRound"] = relationship(back_populates="flags")

    __table_args__ = (
        UniqueConstraint("round_id", "identity", name="uq_lottery_flag_identity"),
    )

    def __init__(
        self,
        *,
        identity: str,
        registered: bool = False,
        round: Optional["LotteryRound"] = None,
    ) -> None:
        self.identity = identity
        self.registered = registered
        if round is not None:
            self.round = round


__all__ = [
    "Entrant",
    "LotteryRound",
    "RegistrationFlag",
    "RoundPhase",
]
