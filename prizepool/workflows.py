from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from sqlalchemy.orm import Session

from .config import LotteryConfig
from .lottery.engine import LotteryEngine
from .lottery.errors import UnauthorizedFulfillmentError
from .models import DrawOutcome, Entrant

if TYPE_CHECKING:
    from .lottery.engine import NativeTransfer
    from .lottery.price import PriceFeed
    from .lottery.randomness import RandomnessCoordinator


def _resolve_config(config: Optional[LotteryConfig]) -> LotteryConfig:
    return config if config is not None else LotteryConfig.from_env()


def play(
    session: Session,
    identity: str,
    prediction: Sequence[int],
    value: int,
    *,
    config: Optional[LotteryConfig] = None,
    price_feed: Optional["PriceFeed"] = None,
    clock: Optional[Callable[[], int]] = None,
) -> int:
    """Register ``identity`` for the current round, paying ``value``.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session; the caller commits.
    identity : str
        Account entering the round.
    prediction : Sequence[int]
        Six numbers between 1 and 50.
    value : int
        Native value sent with the entry. Must cover the current ticket price.
    config : Optional[LotteryConfig]
        Lottery settings. Read from the environment when omitted.
    price_feed : Optional[PriceFeed]
        Oracle used to price the ticket. If not provided, a
        :class:`~prizepool.oracles.api.PriceFeedClient` is created.
    clock : Optional[Callable[[], int]]
        Unix time source, mainly for tests.

    Returns
    -------
    int
        The accepted value.

    Raises
    ------
    RegistrationError
        Subclass describing the failed precondition; nothing is stored.
    PriceFeedError
        If the oracle price is non-positive or stale.
    """

    if price_feed is None:
        from .oracles.api import PriceFeedClient

        price_feed = PriceFeedClient()

    engine = LotteryEngine(
        session, _resolve_config(config), price_feed=price_feed, clock=clock
    )
    return engine.register(identity, prediction, value)


def check_upkeep(
    session: Session,
    *,
    config: Optional[LotteryConfig] = None,
    clock: Optional[Callable[[], int]] = None,
) -> bool:
    """Return whether a draw may be requested now. Read-only.

    A lottery whose round was never created needs no upkeep.
    """

    engine = LotteryEngine.existing(session, _resolve_config(config), clock=clock)
    return engine is not None and engine.check_upkeep()


def perform_upkeep(
    session: Session,
    *,
    config: Optional[LotteryConfig] = None,
    coordinator: Optional["RandomnessCoordinator"] = None,
    clock: Optional[Callable[[], int]] = None,
) -> int:
    """Request a draw for the current round and return the randomness request id.

    Anyone may call this; the draw conditions are re-validated inside the call.

    Raises
    ------
    UpkeepNotNeededError
        If the round is not ready to be drawn.
    RandomnessRequestError
        If the coordinator rejected the request. The round is already in
        DRAWING in ``session``; commit to keep it parked there for an operator.
    """

    if coordinator is None:
        from .oracles.api import RandomnessCoordinatorClient

        coordinator = RandomnessCoordinatorClient()

    engine = LotteryEngine(
        session, _resolve_config(config), coordinator=coordinator, clock=clock
    )
    return engine.request_draw()


def fulfill_random_words(
    session: Session,
    request_id: int,
    random_words: Sequence[int],
    *,
    sender: Optional[str],
    config: Optional[LotteryConfig] = None,
    transfer: Optional["NativeTransfer"] = None,
    clock: Optional[Callable[[], int]] = None,
) -> DrawOutcome:
    """Dispatch a randomness fulfillment to the engine and settle the round.

    ``sender`` is checked against ``config.coordinator_identity`` here, before
    any settlement logic runs.

    Raises
    ------
    UnauthorizedFulfillmentError
        If ``sender`` is not the configured coordinator.
    FulfillmentError
        If the request is unknown, already fulfilled, or malformed.
    TransferFailedError
        If a winner could not be paid; the round stays DRAWING. Winners paid
        before the failure are recorded as sent payouts in ``session``. Commit
        it before retrying the fulfillment so they are not paid twice.
    """

    resolved = _resolve_config(config)
    if resolved.coordinator_identity is None or sender != resolved.coordinator_identity:
        raise UnauthorizedFulfillmentError(sender)

    if transfer is None:
        from .oracles.api import WalletTransferClient

        transfer = WalletTransferClient()

    engine = LotteryEngine(session, resolved, transfer=transfer, clock=clock)
    return engine.fulfill(request_id, random_words)


def withdraw_fees(
    session: Session,
    caller: str,
    *,
    config: Optional[LotteryConfig] = None,
    transfer: Optional["NativeTransfer"] = None,
) -> int:
    """Pay the accrued fee pool to the administrator and return the amount.

    Raises
    ------
    NotAdministratorError
        If ``caller`` is not the configured administrator.
    """

    if transfer is None:
        from .oracles.api import WalletTransferClient

        transfer = WalletTransferClient()

    engine = LotteryEngine(session, _resolve_config(config), transfer=transfer)
    return engine.withdraw_fees(caller)


def entrant_at(
    session: Session, index: int, *, config: Optional[LotteryConfig] = None
) -> Entrant:
    """Return the entrant at ``index`` of the current round."""

    engine = LotteryEngine.existing(session, _resolve_config(config))
    if engine is None:
        raise IndexError(f"No entrant at index {index}")
    return engine.entrant_at(index)


def lottery_status(
    session: Session,
    *,
    config: Optional[LotteryConfig] = None,
    price_feed: Optional["PriceFeed"] = None,
    clock: Optional[Callable[[], int]] = None,
) -> dict[str, Any]:
    """Return a read-only snapshot of the current round.

    The ticket price is included only when ``price_feed`` is supplied. Amounts
    are rendered as decimal strings. A lottery that has never run reports
    ``exists: False`` and nothing else; no round is created.
    """

    resolved = _resolve_config(config)
    engine = LotteryEngine.existing(
        session, resolved, price_feed=price_feed, clock=clock
    )
    if engine is None:
        return {"name": resolved.name, "exists": False}
    pending = engine.pending_draw()
    lottery_round = engine.round
    return {
        "name": lottery_round.internal_name,
        "exists": True,
        "round_number": lottery_round.round_number,
        "phase": engine.phase.value,
        "entrant_count": engine.entrant_count,
        "prize_pool": str(lottery_round.prize_pool),
        "fee_pool": str(lottery_round.fee_pool),
        "ticket_price": (
            str(engine.ticket_price()) if price_feed is not None else None
        ),
        "last_winner": engine.last_winner,
        "last_payout": str(engine.last_payout),
        "last_draw_timestamp": engine.last_draw_timestamp,
        "upkeep_needed": engine.check_upkeep(),
        "unresolved": engine.is_unresolved(),
        "pending_request_id": (
            str(pending.request_id) if pending is not None else None
        ),
        "pending_since": pending.requested_at if pending is not None else None,
    }

