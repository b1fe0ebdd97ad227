"""Exceptions raised by the lottery engine.

Every error derives from :class:`LotteryError` and from the builtin exception
matching its nature, so callers can catch either.
"""

from __future__ import annotations

from typing import Optional


class LotteryError(Exception):
    """Base class for all lottery engine errors."""


# -------- registration --------
class RegistrationError(LotteryError, ValueError):
    """A registration precondition failed; nothing was stored."""


class RoundNotOpenError(RegistrationError):
    def __init__(self, phase: str) -> None:
        super().__init__(f"Round is not open for registration (phase={phase})")
        self.phase = phase


class AlreadyRegisteredError(RegistrationError):
    def __init__(self, identity: str) -> None:
        super().__init__(f"'{identity}' is already registered in this round")
        self.identity = identity


class InsufficientPaymentError(RegistrationError):
    def __init__(self, paid: int, required: int) -> None:
        super().__init__(f"Paid value {paid} is below the ticket price {required}")
        self.paid = paid
        self.required = required


class InvalidPredictionLengthError(RegistrationError):
    def __init__(self, length: int, expected: int) -> None:
        super().__init__(f"Prediction must contain {expected} numbers, got {length}")
        self.length = length
        self.expected = expected


class PredictionOutOfRangeError(RegistrationError):
    def __init__(self, value: object, low: int, high: int) -> None:
        super().__init__(f"Prediction value {value!r} is outside [{low}, {high}]")
        self.value = value


# -------- price oracle --------
class PriceFeedError(LotteryError, RuntimeError):
    """The price oracle returned an unusable quote."""


class InvalidPriceError(PriceFeedError):
    def __init__(self, price: int) -> None:
        super().__init__(f"Price feed returned a non-positive price: {price}")
        self.price = price


class StalePriceError(PriceFeedError):
    def __init__(self, age: int, max_age: int) -> None:
        super().__init__(f"Price quote is {age}s old (max {max_age}s)")
        self.age = age
        self.max_age = max_age


# -------- draw trigger / randomness --------
class UpkeepNotNeededError(LotteryError):
    """A draw was requested while the trigger conditions were not met."""

    def __init__(self, balance: int, entrant_count: int, phase: str) -> None:
        super().__init__(
            "Upkeep not needed "
            f"(balance={balance}, entrants={entrant_count}, phase={phase})"
        )
        self.balance = balance
        self.entrant_count = entrant_count
        self.phase = phase


class RandomnessRequestError(LotteryError, RuntimeError):
    """The randomness coordinator rejected a request; the round stays DRAWING."""


class FulfillmentError(LotteryError, ValueError):
    """A randomness fulfillment could not be applied."""


class UnknownRequestError(FulfillmentError):
    def __init__(self, request_id: int) -> None:
        super().__init__(f"Unknown randomness request id {request_id}")
        self.request_id = request_id


class DrawNotPendingError(FulfillmentError):
    def __init__(self, request_id: int, reason: str) -> None:
        super().__init__(f"Request {request_id} cannot be fulfilled: {reason}")
        self.request_id = request_id


class InvalidRandomWordsError(FulfillmentError):
    def __init__(self, count: int, expected: int) -> None:
        super().__init__(f"Expected {expected} random words, got {count}")
        self.count = count


class UnauthorizedFulfillmentError(LotteryError, PermissionError):
    def __init__(self, sender: Optional[str]) -> None:
        super().__init__(f"Fulfillment sender {sender!r} is not the coordinator")
        self.sender = sender


# -------- settlement / administration --------
class TransferFailedError(LotteryError, RuntimeError):
    """A winner payout failed; the whole settlement was aborted."""

    def __init__(self, recipient: str, amount: int) -> None:
        super().__init__(f"Transfer of {amount} to '{recipient}' failed")
        self.recipient = recipient
        self.amount = amount


class NotAdministratorError(LotteryError, PermissionError):
    def __init__(self, caller: Optional[str]) -> None:
        super().__init__(f"'{caller}' is not the lottery administrator")
        self.caller = caller


__all__ = [
    "AlreadyRegisteredError",
    "DrawNotPendingError",
    "FulfillmentError",
    "InsufficientPaymentError",
    "InvalidPredictionLengthError",
    "InvalidPriceError",
    "InvalidRandomWordsError",
    "LotteryError",
    "NotAdministratorError",
    "PredictionOutOfRangeError",
    "PriceFeedError",
    "RandomnessRequestError",
    "RegistrationError",
    "RoundNotOpenError",
    "StalePriceError",
    "TransferFailedError",
    "UnauthorizedFulfillmentError",
    "UnknownRequestError",
    "UpkeepNotNeededError",
]
