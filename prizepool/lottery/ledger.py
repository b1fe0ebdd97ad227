"""Pool accounting for entry value and protocol fees."""

from __future__ import annotations

import logging

from ..models.round import LotteryRound

logger = logging.getLogger(__name__)

PER_MILLE = 1000


class PrizeLedger:
    """Splits entry value into the prize pool and the fee pool of a round.

    Balances live on the :class:`LotteryRound` row, so they are persisted with
    the rest of the round state by the surrounding session.
    """

    def __init__(self, lottery_round: LotteryRound, *, fee_per_mille: int) -> None:
        if not 0 <= fee_per_mille <= PER_MILLE:
            raise ValueError("fee_per_mille must be between 0 and 1000")
        self._round = lottery_round
        self._fee_per_mille = fee_per_mille

    @property
    def prize_pool(self) -> int:
        return self._round.prize_pool

    @property
    def fee_pool(self) -> int:
        return self._round.fee_pool

    def deposit(self, amount: int) -> tuple[int, int]:
        """Accrue ``amount`` and return the ``(fee, pool_share)`` split."""

        if amount < 0:
            raise ValueError("deposit amount must be non-negative")
        fee = amount * self._fee_per_mille // PER_MILLE
        pool_share = amount - fee
        self._round.fee_pool = self._round.fee_pool + fee
        self._round.prize_pool = self._round.prize_pool + pool_share
        logger.debug(f"Deposited {amount}: fee={fee}, pool={pool_share}")
        return fee, pool_share

    def drain_fees(self) -> int:
        """Zero the fee pool and return what it held."""

        amount = self._round.fee_pool
        self._round.fee_pool = 0
        return amount

    def split_pool(self, winner_count: int) -> int:
        """Floor-divide the prize pool between ``winner_count`` winners."""

        if winner_count < 1:
            raise ValueError("winner_count must be at least 1")
        return self._round.prize_pool // winner_count

    def reset(self) -> None:
        """Zero both pools after a paying settlement."""

        self._round.prize_pool = 0
        self._round.fee_pool = 0


__all__ = ["PrizeLedger"]
