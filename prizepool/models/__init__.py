from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .round import Entrant, LotteryRound, RegistrationFlag, RoundPhase  # noqa: F401
from .draw import (  # noqa: F401
    DrawOutcome,
    DrawRequest,
    DrawRequestStatus,
    Payout,
    PayoutStatus,
)
from .event import LotteryEvent  # noqa: F401

__all__ = [
    "Base",
    "DrawOutcome",
    "DrawRequest",
    "DrawRequestStatus",
    "Entrant",
    "LotteryEvent",
    "LotteryRound",
    "Payout",
    "PayoutStatus",
    "RegistrationFlag",
    "RoundPhase",
]
