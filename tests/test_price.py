from __future__ import annotations

import unittest

from prizepool.lottery import (
    InvalidPriceError,
    PriceConverter,
    PriceQuote,
    StalePriceError,
    convert_to_native,
)
from prizepool.oracles.api import StaticPriceFeed


class ConvertToNativeTests(unittest.TestCase):
    def test_fifty_usd_at_two_thousand(self) -> None:
        quote = PriceQuote(price=2000 * 10**8, decimals=8)
        self.assertEqual(convert_to_native(50 * 10**18, quote), 25 * 10**15)

    def test_result_is_floored(self) -> None:
        quote = PriceQuote(price=3 * 10**8, decimals=8)
        self.assertEqual(convert_to_native(10**18, quote), 333333333333333333)

    def test_feed_more_precise_than_native_unit(self) -> None:
        quote = PriceQuote(price=2000 * 10**8, decimals=8)
        self.assertEqual(convert_to_native(50 * 10**6, quote, native_decimals=6), 25000)

    def test_non_positive_price_raises(self) -> None:
        for price in (0, -1):
            with self.subTest(price=price):
                with self.assertRaises(InvalidPriceError):
                    convert_to_native(10**18, PriceQuote(price=price, decimals=8))

    def test_stale_quote_raises(self) -> None:
        quote = PriceQuote(price=2000 * 10**8, decimals=8, updated_at=1_000)
        self.assertEqual(
            convert_to_native(50 * 10**18, quote, max_age=3600, now=4_600),
            25 * 10**15,
        )
        with self.assertRaises(StalePriceError) as ctx:
            convert_to_native(50 * 10**18, quote, max_age=3600, now=4_601)
        self.assertEqual(ctx.exception.age, 3601)

    def test_freshness_skipped_without_timestamp(self) -> None:
        quote = PriceQuote(price=2000 * 10**8, decimals=8)
        self.assertEqual(
            convert_to_native(50 * 10**18, quote, max_age=1, now=10**9),
            25 * 10**15,
        )


class PriceConverterTests(unittest.TestCase):
    def test_converter_reads_latest_quote(self) -> None:
        feed = StaticPriceFeed(2500 * 10**8, 8, clock=lambda: 500)
        converter = PriceConverter(feed, max_age=60, clock=lambda: 520)
        self.assertEqual(converter.convert(50 * 10**18), 2 * 10**16)

        feed.price = 0
        with self.assertRaises(InvalidPriceError):
            converter.convert(50 * 10**18)

    def test_converter_rejects_stale_feed(self) -> None:
        feed = StaticPriceFeed(2500 * 10**8, 8, clock=lambda: 500)
        converter = PriceConverter(feed, max_age=60, clock=lambda: 561)
        with self.assertRaises(StalePriceError):
            converter.convert(50 * 10**18)


if __name__ == "__main__":
    unittest.main()
