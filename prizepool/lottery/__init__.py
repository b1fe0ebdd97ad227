"""Numbers-lottery settlement engine."""

from .engine import LotteryEngine, NativeTransfer
from .errors import (
    AlreadyRegisteredError,
    DrawNotPendingError,
    FulfillmentError,
    InsufficientPaymentError,
    InvalidPredictionLengthError,
    InvalidPriceError,
    InvalidRandomWordsError,
    LotteryError,
    NotAdministratorError,
    PredictionOutOfRangeError,
    PriceFeedError,
    RandomnessRequestError,
    RegistrationError,
    RoundNotOpenError,
    StalePriceError,
    TransferFailedError,
    UnauthorizedFulfillmentError,
    UnknownRequestError,
    UpkeepNotNeededError,
)
from .ledger import PrizeLedger
from .matching import (
    MatchEvaluation,
    count_matches,
    evaluate_entrant,
    normalize_winning_set,
    validate_prediction,
)
from .price import PriceConverter, PriceFeed, PriceQuote, convert_to_native
from .randomness import RandomnessBridge, RandomnessCoordinator
from .registry import EntryRegistry
from .trigger import DrawTrigger, UpkeepStatus

__all__ = [
    "AlreadyRegisteredError",
    "DrawNotPendingError",
    "DrawTrigger",
    "EntryRegistry",
    "FulfillmentError",
    "InsufficientPaymentError",
    "InvalidPredictionLengthError",
    "InvalidPriceError",
    "InvalidRandomWordsError",
    "LotteryEngine",
    "LotteryError",
    "MatchEvaluation",
    "NativeTransfer",
    "NotAdministratorError",
    "PredictionOutOfRangeError",
    "PriceConverter",
    "PriceFeed",
    "PriceFeedError",
    "PriceQuote",
    "PrizeLedger",
    "RandomnessBridge",
    "RandomnessCoordinator",
    "RandomnessRequestError",
    "RegistrationError",
    "RoundNotOpenError",
    "StalePriceError",
    "TransferFailedError",
    "UnauthorizedFulfillmentError",
    "UnknownRequestError",
    "UpkeepNotNeededError",
    "UpkeepStatus",
    "convert_to_native",
    "count_matches",
    "evaluate_entrant",
    "normalize_winning_set",
    "validate_prediction",
]
