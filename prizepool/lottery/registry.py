"""Entrant registration for the current round."""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from sqlalchemy.orm import Session

from .errors import (
    AlreadyRegisteredError,
    InsufficientPaymentError,
    RoundNotOpenError,
)
from .ledger import PrizeLedger
from .matching import validate_prediction
from ..models import Entrant, LotteryEvent, LotteryRound, RegistrationFlag

logger = logging.getLogger(__name__)

ENTRANT_REGISTERED = "EntrantRegistered"


class EntryRegistry:
    """Holds entrants, their predictions and the per-identity registered flags."""

    def __init__(
        self, session: Session, lottery_round: LotteryRound, ledger: PrizeLedger
    ) -> None:
        self._session = session
        self._round = lottery_round
        self._ledger = ledger

    @property
    def entrants(self) -> list[Entrant]:
        return list(self._round.entrants)

    def __len__(self) -> int:
        return len(self._round.entrants)

    def entrant_at(self, index: int) -> Entrant:
        """Return the entrant at ``index`` in registration order."""

        entrants = self._round.entrants
        if index < 0 or index >= len(entrants):
            raise IndexError(f"No entrant at index {index}")
        return entrants[index]

    def register(
        self,
        identity: str,
        prediction: Sequence[int],
        paid_value: int,
        *,
        ticket_price: Callable[[], int],
    ) -> int:
        """Register ``identity`` with ``prediction`` and accrue ``paid_value``.

        Parameters
        ----------
        identity : str
            Account registering for the round.
        prediction : Sequence[int]
            Six numbers in ``[1, 50]``.
        paid_value : int
            Native value sent with the registration.
        ticket_price : Callable[[], int]
            Returns the current ticket price in native units. Only called once
            the phase and duplicate checks have passed.

        Returns
        -------
        int
            The accepted value, which is forwarded to the ledger in full.

        Raises
        ------
        RoundNotOpenError, AlreadyRegisteredError, InsufficientPaymentError,
        InvalidPredictionLengthError, PredictionOutOfRangeError
            Checked in this order; nothing is stored when any is raised.
        """

        if not identity:
            raise ValueError("identity must not be empty")
        if not self._round.is_open:
            raise RoundNotOpenError(self._round.phase)
        if self._round.is_registered(identity):
            raise AlreadyRegisteredError(identity)
        required = ticket_price()
        if paid_value < required:
            raise InsufficientPaymentError(paid_value, required)
        numbers = validate_prediction(prediction)

        flag = self._round.flag_for(identity)
        if flag is None:
            flag = RegistrationFlag(identity=identity, round=self._round)
            self._session.add(flag)
        flag.registered = True

        entrant = Entrant(
            identity=identity,
            prediction=numbers,
            position=len(self._round.entrants),
            paid_value=paid_value,
        )
        self._round.entrants.append(entrant)
        self._ledger.deposit(paid_value)

        LotteryEvent.record(
            self._session,
            self._round,
            ENTRANT_REGISTERED,
            {"identity": identity, "prediction": numbers},
        )
        logger.info(
            f"Registered {identity} for round {self._round.round_number} "
            f"with {numbers} (paid {paid_value})"
        )
        return paid_value

    def clear(self) -> None:
        """Unset every entrant's flag and empty the entrant list."""

        for entrant in self._round.entrants:
            flag = self._round.flag_for(entrant.identity)
            if flag is not None:
                flag.registered = False
        self._round.entrants.clear()


__all__ = ["ENTRANT_REGISTERED", "EntryRegistry"]
