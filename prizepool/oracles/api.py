import logging
from urllib.parse import urljoin
from typing import Any, Callable, Mapping, Optional

import requests

from .utils import open_session, resolve_service_url
from ..lottery.price import PriceQuote

logger = logging.getLogger(__name__)


class ServiceClient:
    """Thin JSON-over-HTTP client shared by the oracle integrations."""

    env_var: str = ""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: int = 45,
        session: Optional[requests.Session] = None,
        api_key: Optional[str] = None,
    ):
        self.base_url = resolve_service_url(self.env_var, base_url)
        self.session = session or open_session(api_key)
        self.timeout = timeout

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            headers=headers,
            params=params,
            json=json,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None


class PriceFeedClient(ServiceClient):
    """Reads the native/fiat price from the price oracle service."""

    env_var = "PRICE_FEED_URL"

    def __init__(self, base_url: Optional[str] = None, *, pair: str = "ETH/USD", **kwargs):
        super().__init__(base_url, **kwargs)
        self.pair = pair

    def latest_price(self) -> PriceQuote:
        payload = self._request(
            "GET", "/api/v1/prices/latest", params={"pair": self.pair}
        )
        if not isinstance(payload, dict):
            raise RuntimeError(f"Unexpected price feed response: {payload!r}")
        try:
            price = int(payload["price"])
            decimals = int(payload["decimals"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed price feed response: {payload!r}") from exc
        updated_at = payload.get("updated_at")
        logger.debug(f"Price feed {self.pair}: {price}e-{decimals}")
        return PriceQuote(
            price=price,
            decimals=decimals,
            updated_at=int(updated_at) if updated_at is not None else None,
        )


class RandomnessCoordinatorClient(ServiceClient):
    """Submits randomness requests to the coordinator service.

    Fulfillments are delivered asynchronously to ``callback_url``.
    """

    env_var = "VRF_COORDINATOR_URL"

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        callback_url: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(base_url, **kwargs)
        self.callback_url = callback_url

    def request_random_words(
        self,
        key_hash: str,
        subscription_id: int,
        confirmations: int,
        gas_limit: int,
        num_words: int,
    ) -> int:
        body = {
            "key_hash": key_hash,
            "subscription_id": subscription_id,
            "request_confirmations": confirmations,
            "callback_gas_limit": gas_limit,
            "num_words": num_words,
        }
        if self.callback_url:
            body["callback_url"] = self.callback_url
        payload = self._request("POST", "/api/v1/randomness/requests", json=body)
        if not isinstance(payload, dict) or "request_id" not in payload:
            raise RuntimeError(f"Unexpected coordinator response: {payload!r}")
        return int(payload["request_id"])


class WalletTransferClient(ServiceClient):
    """Moves native value out of the lottery wallet."""

    env_var = "WALLET_SERVICE_URL"

    def transfer(
        self, recipient: str, amount: int, *, reference: Optional[str] = None
    ) -> None:
        # Amounts exceed JSON-safe integers, send them as decimal strings.
        body = {"recipient": recipient, "amount": str(amount)}
        if reference is not None:
            # The wallet drops a second transfer carrying the same reference.
            body["reference"] = reference
        response = self._request("POST", "/api/v1/transfers", json=body)
        if not isinstance(response, dict):
            raise RuntimeError(f"Unexpected wallet response: {response!r}")
        status = response.get("status")
        if status != "success":
            message = response.get("message")
            raise RuntimeError(
                f"Transfer to {recipient} failed" + (f": {message}" if message else ".")
            )
        logger.debug(f"Transferred {amount} to {recipient}")


class StaticPriceFeed:
    """Price feed returning a fixed quote, for development seeding and tests."""

    def __init__(
        self,
        price: int,
        decimals: int = 8,
        *,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.price = price
        self.decimals = decimals
        self._clock = clock

    def latest_price(self) -> PriceQuote:
        updated_at = self._clock() if self._clock is not None else None
        return PriceQuote(price=self.price, decimals=self.decimals, updated_at=updated_at)
