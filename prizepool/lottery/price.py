"""Fiat to native value conversion backed by a price oracle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .errors import InvalidPriceError, StalePriceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceQuote:
    """A single oracle reading.

    Attributes
    ----------
    price : int
        Native unit price in fiat, scaled by ``10**decimals``.
    decimals : int
        Fractional digits of ``price`` (8 for most USD feeds).
    updated_at : Optional[int]
        Unix timestamp of the reading, when the oracle reports one.
    """

    price: int
    decimals: int
    updated_at: Optional[int] = None


class PriceFeed(Protocol):
    def latest_price(self) -> PriceQuote: ...


def convert_to_native(
    fiat_amount: int,
    quote: PriceQuote,
    native_decimals: int = 18,
    *,
    max_age: Optional[int] = None,
    now: Optional[int] = None,
) -> int:
    """Return the native amount whose market value equals ``fiat_amount``.

    Computes ``fiat * 10**nd / (price * 10**(nd - fd))`` with floor division,
    where ``nd`` is ``native_decimals`` and ``fd`` the quote's decimals.

    Parameters
    ----------
    fiat_amount : int
        Fiat value with ``native_decimals`` fractional digits.
    quote : PriceQuote
        Oracle reading to convert with.
    native_decimals : int, default: 18
        Decimal precision of the native unit.
    max_age : Optional[int], default: None
        Reject quotes older than this many seconds. Requires ``now`` and a
        quote carrying ``updated_at``.
    now : Optional[int], default: None
        Current unix time used for the freshness check.

    Raises
    ------
    InvalidPriceError
        If the quoted price is zero or negative.
    StalePriceError
        If the quote is older than ``max_age``.
    """

    if quote.price <= 0:
        raise InvalidPriceError(quote.price)
    if max_age is not None and now is not None and quote.updated_at is not None:
        age = now - quote.updated_at
        if age > max_age:
            raise StalePriceError(age, max_age)

    scale = native_decimals - quote.decimals
    if scale >= 0:
        return (fiat_amount * 10**native_decimals) // (quote.price * 10**scale)
    return (fiat_amount * 10**native_decimals * 10**-scale) // quote.price


class PriceConverter:
    """Converts fiat amounts with the latest quote from ``feed``."""

    def __init__(
        self,
        feed: PriceFeed,
        *,
        native_decimals: int = 18,
        max_age: Optional[int] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._feed = feed
        self._native_decimals = native_decimals
        self._max_age = max_age
        self._clock = clock

    def convert(self, fiat_amount: int) -> int:
        quote = self._feed.latest_price()
        now = self._clock() if self._clock is not None else None
        amount = convert_to_native(
            fiat_amount,
            quote,
            self._native_decimals,
            max_age=self._max_age,
            now=now,
        )
        logger.debug(
            f"Converted fiat {fiat_amount} at price {quote.price}e-{quote.decimals} "
            f"to {amount} native units"
        )
        return amount


__all__ = ["PriceConverter", "PriceFeed", "PriceQuote", "convert_to_native"]
