"""Runtime configuration for the lottery engine, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from dotenv import load_dotenv

FIAT_DECIMALS = 18
"""Fixed-point precision of fiat amounts handed to the price converter."""


def _int_env(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable '{key}' must be an integer") from exc


def _optional_int_env(env: Mapping[str, str], key: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(key)
    if raw is None:
        return default
    if raw.strip() == "" or raw.strip().lower() == "none":
        return None
    return _int_env(env, key, 0)


def parse_fiat_amount(value: str) -> int:
    """Scale a decimal fiat string such as ``"50"`` or ``"2.5"`` to 18 decimals."""

    try:
        amount = Decimal(value.strip())
    except (InvalidOperation, AttributeError) as exc:
        raise ValueError(f"Invalid fiat amount: {value!r}") from exc
    if amount <= 0:
        raise ValueError("Fiat amount must be positive")
    return int(amount * (10**FIAT_DECIMALS))


@dataclass(frozen=True)
class LotteryConfig:
    """Settings shared by every component of one lottery.

    Attributes
    ----------
    name : str
        Internal name of the lottery round row.
    entry_fee_fiat : int
        Ticket price in fiat with 18 fractional digits (``50 * 10**18`` is 50 USD).
    native_decimals : int
        Decimal precision of the native value unit.
    fee_per_mille : int
        Protocol fee withheld from each entry, in thousandths.
    draw_interval : int
        Minimum seconds between two draws.
    price_max_age : Optional[int]
        Oldest acceptable price quote in seconds; ``None`` disables the check.
    admin_identity : Optional[str]
        Identity allowed to withdraw accrued fees.
    coordinator_identity : Optional[str]
        Identity the randomness fulfillment callback must come from.
    key_hash, subscription_id, request_confirmations, callback_gas_limit
        Parameters forwarded with every randomness request.
    """

    name: str = "numbers"
    entry_fee_fiat: int = 50 * 10**FIAT_DECIMALS
    native_decimals: int = 18
    fee_per_mille: int = 10
    draw_interval: int = 86400
    price_max_age: Optional[int] = 3600
    admin_identity: Optional[str] = None
    coordinator_identity: Optional[str] = None
    key_hash: str = "0x" + "0" * 64
    subscription_id: int = 0
    request_confirmations: int = 3
    callback_gas_limit: int = 500_000

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Lottery name must not be empty")
        if self.entry_fee_fiat <= 0:
            raise ValueError("entry_fee_fiat must be positive")
        if not 0 <= self.fee_per_mille <= 1000:
            raise ValueError("fee_per_mille must be between 0 and 1000")
        if self.draw_interval < 0:
            raise ValueError("draw_interval must be non-negative")
        if self.price_max_age is not None and self.price_max_age <= 0:
            raise ValueError("price_max_age must be positive when provided")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "LotteryConfig":
        """Build a configuration from ``env`` (defaults to ``os.environ`` after ``.env``)."""

        if env is None:
            load_dotenv()
            env = os.environ

        entry_fee = env.get("ENTRY_FEE_USD")
        return cls(
            name=env.get("LOTTERY_NAME") or cls.name,
            entry_fee_fiat=(
                parse_fiat_amount(entry_fee) if entry_fee else cls.entry_fee_fiat
            ),
            native_decimals=_int_env(env, "NATIVE_DECIMALS", cls.native_decimals),
            fee_per_mille=_int_env(env, "FEE_PER_MILLE", cls.fee_per_mille),
            draw_interval=_int_env(env, "DRAW_INTERVAL_SECONDS", cls.draw_interval),
            price_max_age=_optional_int_env(
                env, "PRICE_MAX_AGE_SECONDS", cls.price_max_age
            ),
            admin_identity=env.get("ADMIN_IDENTITY") or None,
            coordinator_identity=env.get("COORDINATOR_IDENTITY") or None,
            key_hash=env.get("VRF_KEY_HASH") or cls.key_hash,
            subscription_id=_int_env(env, "VRF_SUBSCRIPTION_ID", cls.subscription_id),
            request_confirmations=_int_env(
                env, "VRF_REQUEST_CONFIRMATIONS", cls.request_confirmations
            ),
            callback_gas_limit=_int_env(
                env, "VRF_CALLBACK_GAS_LIMIT", cls.callback_gas_limit
            ),
        )


__all__ = ["FIAT_DECIMALS", "LotteryConfig", "parse_fiat_amount"]
