"""Time and funds gate deciding when a draw may be requested."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from .errors import UpkeepNotNeededError
from ..models import LotteryRound, RoundPhase

if TYPE_CHECKING:
    from .randomness import RandomnessBridge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpkeepStatus:
    """Snapshot of the four draw conditions."""

    interval_elapsed: bool
    is_open: bool
    has_balance: bool
    has_entrants: bool

    @property
    def needed(self) -> bool:
        return (
            self.interval_elapsed
            and self.is_open
            and self.has_balance
            and self.has_entrants
        )


class DrawTrigger:
    """Evaluates upkeep for a round and moves it into the drawing phase."""

    def __init__(self, *, interval: int, clock: Callable[[], int]) -> None:
        self._interval = interval
        self._clock = clock

    def status(self, lottery_round: LotteryRound) -> UpkeepStatus:
        elapsed = self._clock() - lottery_round.last_draw_timestamp
        return UpkeepStatus(
            interval_elapsed=elapsed >= self._interval,
            is_open=lottery_round.is_open,
            has_balance=lottery_round.prize_pool > 0,
            has_entrants=len(lottery_round.entrants) > 0,
        )

    def check_upkeep(self, lottery_round: LotteryRound) -> bool:
        """Return whether a draw may be requested now. Has no side effects."""

        return self.status(lottery_round).needed

    def request_draw(
        self, lottery_round: LotteryRound, bridge: "RandomnessBridge"
    ) -> int:
        """Re-check upkeep, enter DRAWING and ask ``bridge`` for randomness.

        Raises
        ------
        UpkeepNotNeededError
            If any condition fails at call time; the round is left untouched.
        RandomnessRequestError
            Propagated from the bridge; the round stays in DRAWING.
        """

        if not self.check_upkeep(lottery_round):
            logger.info(
                f"Upkeep not needed for round {lottery_round.round_number}: "
                f"{self.status(lottery_round)}"
            )
            raise UpkeepNotNeededError(
                lottery_round.prize_pool,
                len(lottery_round.entrants),
                lottery_round.phase,
            )
        lottery_round.phase = RoundPhase.DRAWING.value
        return bridge.request_random(lottery_round)


__all__ = ["DrawTrigger", "UpkeepStatus"]
