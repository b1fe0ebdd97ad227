"""Settlement engine orchestrating registration, draws and payouts."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import DrawNotPendingError, NotAdministratorError, TransferFailedError
from .ledger import PrizeLedger
from .matching import MatchEvaluation, evaluate_entrant
from .price import PriceConverter, PriceFeed
from .randomness import RandomnessBridge, RandomnessCoordinator
from .registry import EntryRegistry
from .trigger import DrawTrigger, UpkeepStatus
from ..config import LotteryConfig
from ..models import (
    DrawOutcome,
    DrawRequest,
    Entrant,
    LotteryEvent,
    LotteryRound,
    Payout,
    RoundPhase,
)

logger = logging.getLogger(__name__)

WINNERS_PAID = "WinnersPaid"
POOL_ROLLED_OVER = "PoolRolledOver"
FEES_WITHDRAWN = "FeesWithdrawn"


class NativeTransfer(Protocol):
    def transfer(
        self, recipient: str, amount: int, *, reference: Optional[str] = None
    ) -> None: ...


def _unix_now() -> int:
    return int(time.time())


class LotteryEngine:
    """Engine bound to a SQLAlchemy session that runs one named lottery.

    The engine owns the round row for ``config.name`` and composes the entry
    registry, prize ledger, draw trigger and randomness bridge around it. Each
    public method is meant to run inside one transaction opened by the caller.
    """

    def __init__(
        self,
        session: Session,
        config: LotteryConfig,
        *,
        price_feed: Optional[PriceFeed] = None,
        coordinator: Optional[RandomnessCoordinator] = None,
        transfer: Optional[NativeTransfer] = None,
        clock: Optional[Callable[[], int]] = None,
        lottery_round: Optional[LotteryRound] = None,
    ) -> None:
        """Create an engine and load (or create) the round it operates on.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence.
        config : LotteryConfig
            Lottery settings; ``config.name`` selects the round row.
        price_feed : Optional[PriceFeed], default: None
            Oracle used to price tickets. Required for registration.
        coordinator : Optional[RandomnessCoordinator], default: None
            Randomness oracle. Required to request draws.
        transfer : Optional[NativeTransfer], default: None
            Native value transfer primitive. Required to pay winners and fees.
        clock : Optional[Callable[[], int]], default: None
            Returns the current unix time in seconds. Defaults to ``time.time``.
        lottery_round : Optional[LotteryRound], default: None
            Round row to operate on. When omitted the row for ``config.name``
            is loaded, or created if the lottery has never run.
        """

        self._session = session
        self._config = config
        self._price_feed = price_feed
        self._coordinator = coordinator
        self._transfer = transfer
        self._clock = clock or _unix_now

        if lottery_round is None:
            lottery_round = LotteryRound.get_or_create(
                session, config.name, now=self._clock()
            )
        self._round = lottery_round
        self._ledger = PrizeLedger(self._round, fee_per_mille=config.fee_per_mille)
        self._registry = EntryRegistry(session, self._round, self._ledger)
        self._trigger = DrawTrigger(interval=config.draw_interval, clock=self._clock)

    @classmethod
    def existing(
        cls, session: Session, config: LotteryConfig, **kwargs
    ) -> Optional["LotteryEngine"]:
        """Return an engine for an already created round, or ``None``.

        Unlike the constructor this never inserts a round row, so read-only
        callers leave the database untouched.
        """

        lottery_round = LotteryRound.get_by_internal_name(session, config.name)
        if lottery_round is None:
            return None
        return cls(session, config, lottery_round=lottery_round, **kwargs)

    # -------- collaborators --------
    @property
    def round(self) -> LotteryRound:
        return self._round

    @property
    def ledger(self) -> PrizeLedger:
        return self._ledger

    @property
    def registry(self) -> EntryRegistry:
        return self._registry

    def _converter(self) -> PriceConverter:
        if self._price_feed is None:
            raise RuntimeError("No price feed configured for this lottery engine")
        return PriceConverter(
            self._price_feed,
            native_decimals=self._config.native_decimals,
            max_age=self._config.price_max_age,
            clock=self._clock,
        )

    def _bridge(self) -> RandomnessBridge:
        return RandomnessBridge(
            self._session, self._coordinator, self._config, clock=self._clock
        )

    def _require_transfer(self) -> NativeTransfer:
        if self._transfer is None:
            raise RuntimeError("No transfer primitive configured for this lottery engine")
        return self._transfer

    # -------- registration --------
    def ticket_price(self) -> int:
        """Return the entry fee converted to native units at the latest price."""

        return self._converter().convert(self._config.entry_fee_fiat)

    def register(self, identity: str, prediction: Sequence[int], value: int) -> int:
        """Register ``identity`` for the current round. See :meth:`EntryRegistry.register`."""

        accepted = self._registry.register(
            identity, prediction, value, ticket_price=self.ticket_price
        )
        self._session.flush()
        return accepted

    # -------- draw trigger --------
    def upkeep_status(self) -> UpkeepStatus:
        return self._trigger.status(self._round)

    def check_upkeep(self) -> bool:
        return self._trigger.check_upkeep(self._round)

    def request_draw(self) -> int:
        """Request randomness for the current round when upkeep is needed.

        Returns
        -------
        int
            The randomness request id.

        Raises
        ------
        UpkeepNotNeededError
            If the draw conditions are not met.
        RandomnessRequestError
            If the coordinator rejects the request. The round has already been
            moved to DRAWING and flushed; committing keeps it there.
        """

        return self._trigger.request_draw(self._round, self._bridge())

    # -------- fulfillment & settlement --------
    def fulfill(self, request_id: int, random_words: Sequence[int]) -> DrawOutcome:
        """Apply the oracle's ``random_words`` for ``request_id`` and settle."""

        return self._bridge().on_fulfilled(request_id, random_words, self._settle)

    def _settle(
        self, request: DrawRequest, winning_set: Sequence[int]
    ) -> DrawOutcome:
        """Match every entrant against ``winning_set``, pay winners and reset.

        Notes
        -----
        1. Every entrant is matched; there is no early exit.
        2. Entrants with at least three cross-product matches win.
        3. Winners split the prize pool by floor division; the remainder is
           forfeited and both pools are zeroed.
        4. Without winners the prize pool rolls over untouched.
        5. Flags and entrants are cleared, the draw timestamp is reset and the
           round reopens.

        Raises
        ------
        TransferFailedError
            If paying any winner fails. The round is left DRAWING with its
            entrants and pool; only the payout rows of this request have been
            flushed, recording which winners were already paid.
        """

        lottery_round = self._round
        if request.round_id != lottery_round.id:
            raise DrawNotPendingError(
                request.request_id, "request belongs to another lottery"
            )
        entrants = self._registry.entrants
        evaluations: list[MatchEvaluation] = [
            evaluate_entrant(entrant.identity, entrant.prediction, winning_set)
            for entrant in entrants
        ]
        winners = [evaluation for evaluation in evaluations if evaluation.passed]
        pool_before = lottery_round.prize_pool

        share = 0
        payouts: list[Payout] = []
        if winners:
            share = self._ledger.split_pool(len(winners))
            payouts = self._pay_winners(request, winners, share)

        now = self._clock()
        outcome = DrawOutcome(
            round_number=lottery_round.round_number,
            request_id=request.request_id,
            winning_numbers=list(winning_set),
            entrant_count=len(entrants),
            winner_count=len(winners),
            pool_before=pool_before,
            share=share,
            rolled_over=not winners,
            settled_at=now,
            round=lottery_round,
        )
        for payout in payouts:
            payout.outcome = outcome
        self._session.add(outcome)

        if winners:
            lottery_round.last_winner = winners[-1].identity
            lottery_round.last_payout = share
            self._ledger.reset()
            LotteryEvent.record(
                self._session,
                lottery_round,
                WINNERS_PAID,
                {
                    "winning_numbers": list(winning_set),
                    "winners": [winner.identity for winner in winners],
                    "share": str(share),
                },
            )
            logger.info(
                f"Round {lottery_round.round_number} paid {share} to each of "
                f"{len(winners)} winner(s)"
            )
        else:
            LotteryEvent.record(
                self._session,
                lottery_round,
                POOL_ROLLED_OVER,
                {
                    "winning_numbers": list(winning_set),
                    "prize_pool": str(lottery_round.prize_pool),
                },
            )
            logger.info(
                f"Round {lottery_round.round_number} had no winner; "
                f"{lottery_round.prize_pool} rolls over"
            )

        self._registry.clear()
        lottery_round.last_draw_timestamp = now
        lottery_round.phase = RoundPhase.OPEN.value
        lottery_round.round_number = lottery_round.round_number + 1
        self._session.flush()
        return outcome

    def _pay_winners(
        self,
        request: DrawRequest,
        winners: Sequence[MatchEvaluation],
        share: int,
    ) -> list[Payout]:
        """Transfer ``share`` to every winner not yet paid for ``request``.

        A payout row is flushed before each transfer and marked sent after it,
        so a retried fulfillment of the same request skips winners whose share
        already left the wallet. The row's reference is passed to the wallet as
        an idempotency key.
        """

        transfer = self._require_transfer()
        recorded = {payout.identity: payout for payout in request.payouts}
        payouts: list[Payout] = []
        for winner in winners:
            payout = recorded.get(winner.identity)
            if payout is None:
                payout = Payout(
                    identity=winner.identity,
                    amount=share,
                    match_count=winner.match_count,
                    draw_request=request,
                )
                self._session.add(payout)
                self._session.flush()
            payouts.append(payout)
            if payout.is_sent:
                logger.info(
                    f"Share for {winner.identity} already sent for request "
                    f"{request.request_id}; skipping"
                )
                continue
            try:
                transfer.transfer(winner.identity, share, reference=payout.reference)
            except Exception as exc:
                logger.error(
                    f"Payout of {share} to {winner.identity} failed; aborting "
                    f"settlement of round {self._round.round_number}: {exc}"
                )
                raise TransferFailedError(winner.identity, share) from exc
            payout.mark_sent(self._clock())
            self._session.flush()
        return payouts

    # -------- administration --------
    def withdraw_fees(self, caller: str) -> int:
        """Send the accrued fee pool to the administrator and return the amount.

        Raises
        ------
        NotAdministratorError
            If ``caller`` is not the configured administrator.
        TransferFailedError
            If the transfer fails; the fee pool is left untouched.
        """

        admin = self._config.admin_identity
        if admin is None or caller != admin:
            raise NotAdministratorError(caller)

        amount = self._ledger.fee_pool
        if amount > 0:
            try:
                self._require_transfer().transfer(admin, amount)
            except Exception as exc:
                raise TransferFailedError(admin, amount) from exc
        self._ledger.drain_fees()
        LotteryEvent.record(
            self._session, self._round, FEES_WITHDRAWN, {"amount": str(amount)}
        )
        self._session.flush()
        logger.info(f"Withdrew {amount} in fees to {admin}")
        return amount

    # -------- queries --------
    @property
    def phase(self) -> RoundPhase:
        return RoundPhase(self._round.phase)

    @property
    def entrant_count(self) -> int:
        return len(self._registry)

    def entrant_at(self, index: int) -> Entrant:
        return self._registry.entrant_at(index)

    @property
    def last_winner(self) -> Optional[str]:
        return self._round.last_winner

    @property
    def last_payout(self) -> int:
        return self._round.last_payout

    @property
    def last_draw_timestamp(self) -> int:
        return self._round.last_draw_timestamp

    def pending_draw(self) -> Optional[DrawRequest]:
        """Return the outstanding randomness request, if the round awaits one."""

        return DrawRequest.pending_for_round(self._session, self._round.id)

    def is_unresolved(self) -> bool:
        """``True`` while the round sits in DRAWING, awaiting fulfillment or repair."""

        return self._round.phase == RoundPhase.DRAWING.value

    def recent_outcomes(self, limit: int = 10) -> list[DrawOutcome]:
        """Return up to ``limit`` settled draws, newest first."""

        if limit <= 0:
            raise ValueError("limit must be a positive integer")
        stmt = (
            select(DrawOutcome)
            .where(DrawOutcome.round_id == self._round.id)
            .order_by(DrawOutcome.round_number.desc(), DrawOutcome.id.desc())
            .limit(limit)
        )
        return list(self._session.scalars(stmt).all())


__all__ = [
    "FEES_WITHDRAWN",
    "LotteryEngine",
    "NativeTransfer",
    "POOL_ROLLED_OVER",
    "WINNERS_PAID",
]
