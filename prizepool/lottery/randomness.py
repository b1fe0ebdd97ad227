"""Outbound randomness requests and inbound fulfillment handling."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from .errors import (
    DrawNotPendingError,
    RandomnessRequestError,
    UnknownRequestError,
)
from .matching import NUM_WORDS, normalize_winning_set
from ..config import LotteryConfig
from ..models import (
    DrawOutcome,
    DrawRequest,
    DrawRequestStatus,
    LotteryEvent,
    LotteryRound,
    RoundPhase,
)

logger = logging.getLogger(__name__)

DRAW_REQUESTED = "DrawRequested"
DRAW_REQUEST_FAILED = "DrawRequestFailed"


class RandomnessCoordinator(Protocol):
    def request_random_words(
        self,
        key_hash: str,
        subscription_id: int,
        confirmations: int,
        gas_limit: int,
        num_words: int,
    ) -> int: ...


SettleHandler = Callable[[DrawRequest, Sequence[int]], DrawOutcome]


class RandomnessBridge:
    """Issues randomness requests and routes fulfillments to settlement.

    Only one request per round can be pending because the draw trigger moves
    the round out of OPEN before asking for randomness.
    """

    def __init__(
        self,
        session: Session,
        coordinator: Optional[RandomnessCoordinator],
        config: LotteryConfig,
        *,
        clock: Callable[[], int],
    ) -> None:
        self._session = session
        self._coordinator = coordinator
        self._config = config
        self._clock = clock

    def request_random(self, lottery_round: LotteryRound) -> int:
        """Ask the coordinator for six words on behalf of ``lottery_round``.

        The round must already be in DRAWING. The phase change is flushed
        before the coordinator is called, so a rejection leaves the round
        parked in DRAWING once the caller commits.

        Returns
        -------
        int
            The coordinator's request id.

        Raises
        ------
        RandomnessRequestError
            If the coordinator rejects or fails the request.
        """

        if self._coordinator is None:
            raise RuntimeError("No randomness coordinator configured")
        self._session.flush()
        try:
            request_id = self._coordinator.request_random_words(
                self._config.key_hash,
                self._config.subscription_id,
                self._config.request_confirmations,
                self._config.callback_gas_limit,
                NUM_WORDS,
            )
        except Exception as exc:
            logger.error(
                f"Randomness request for round {lottery_round.round_number} failed: {exc}"
            )
            LotteryEvent.record(
                self._session,
                lottery_round,
                DRAW_REQUEST_FAILED,
                {"error": str(exc)},
            )
            self._session.flush()
            raise RandomnessRequestError(
                f"Randomness coordinator rejected the request: {exc}"
            ) from exc

        request = DrawRequest(
            request_id=int(request_id),
            round_number=lottery_round.round_number,
            requested_at=self._clock(),
            round=lottery_round,
        )
        self._session.add(request)
        LotteryEvent.record(
            self._session,
            lottery_round,
            DRAW_REQUESTED,
            {"request_id": str(request.request_id)},
        )
        self._session.flush()
        logger.info(
            f"Requested randomness {request.request_id} for round "
            f"{lottery_round.round_number}"
        )
        return request.request_id

    def on_fulfilled(
        self,
        request_id: int,
        random_words: Sequence[int],
        settle: SettleHandler,
    ) -> DrawOutcome:
        """Normalize ``random_words`` and hand the winning set to ``settle``.

        Raises
        ------
        UnknownRequestError
            If ``request_id`` was never issued.
        DrawNotPendingError
            If the request was already fulfilled or its round is not drawing.
        InvalidRandomWordsError
            If the callback does not carry exactly six words.
        """

        request = DrawRequest.get_by_request_id(self._session, request_id)
        if request is None:
            logger.warning(f"Fulfillment for unknown request {request_id}")
            raise UnknownRequestError(request_id)
        if not request.is_pending:
            logger.warning(f"Duplicate fulfillment for request {request_id}")
            raise DrawNotPendingError(request_id, "request already fulfilled")
        if request.round.phase != RoundPhase.DRAWING.value:
            raise DrawNotPendingError(request_id, "round is not drawing")

        winning_set = normalize_winning_set(random_words)
        logger.info(f"Request {request_id} fulfilled with winning set {winning_set}")
        outcome = settle(request, winning_set)

        request.status = DrawRequestStatus.FULFILLED.value
        request.random_words = [int(word) for word in random_words]
        request.fulfilled_at = self._clock()
        self._session.flush()
        return outcome

    def pending(self, lottery_round: LotteryRound) -> Optional[DrawRequest]:
        return DrawRequest.pending_for_round(self._session, lottery_round.id)


__all__ = [
    "DRAW_REQUESTED",
    "DRAW_REQUEST_FAILED",
    "RandomnessBridge",
    "RandomnessCoordinator",
]
