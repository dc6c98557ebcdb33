"""HTTP client for the upstream exchange-rate feed."""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Any

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from fx_keeper.exceptions import UpstreamUnavailable
from fx_keeper.feed.models import FeedSnapshot
from fx_keeper.models import CurrencyCode, normalise_code
from fx_keeper.utils.decimals import RATE_PLACES, divide, to_rate
from fx_keeper.utils.logger import get_logger

LOGGER = get_logger(__name__)

DEFAULT_FEED_URL = "https://api.exchangerate-api.com/v4/latest/USD"
DEFAULT_TIMEOUT: tuple[float, float] = (5.0, 10.0)

_TRANSIENT_ERRORS = (requests.ConnectionError, requests.Timeout)


class RateFeedClient:
    """Pull one quote snapshot and normalise it to rate-to-base values.

    Upstream publishes quotes relative to its own base currency U. For every
    code X the rate to the system base B is ``quote[B] / quote[X]``, a cross
    rate through U. :meth:`fetch_latest_rates` never raises; any failure
    yields an empty mapping.
    """

    def __init__(
        self,
        url: str = DEFAULT_FEED_URL,
        *,
        base_currency: str | CurrencyCode = CurrencyCode.TWD,
        timeout: tuple[float, float] = DEFAULT_TIMEOUT,
        max_attempts: int = 2,
        backoff_seconds: float = 0.5,
        session: requests.Session | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.url = url
        self.base_currency = normalise_code(base_currency)
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")

    def fetch_snapshot(self) -> FeedSnapshot:
        """Download and parse the upstream payload, raising on any failure."""

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=10),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            payload: Any = response.json()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "?"
            raise UpstreamUnavailable(f"Feed responded with HTTP {status} for {self.url}") from exc
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"Feed request to {self.url} failed: {exc}") from exc
        except ValueError as exc:
            raise UpstreamUnavailable(f"Feed returned invalid JSON: {exc}") from exc
        try:
            return FeedSnapshot.from_payload(payload)
        except ValueError as exc:
            raise UpstreamUnavailable(f"Feed returned an unexpected payload: {exc}") from exc

    def fetch_latest_rates(self) -> dict[str, Decimal]:
        """Return ``{code: rate_to_base}`` or an empty dict when nothing usable arrived."""

        LOGGER.info("Fetching latest quotes from %s", self.url)
        started = time.perf_counter()
        try:
            snapshot = self.fetch_snapshot()
        except UpstreamUnavailable as exc:
            LOGGER.error(
                "Quote feed unavailable after %.0f ms: %s",
                (time.perf_counter() - started) * 1000.0,
                exc,
            )
            return {}
        LOGGER.info(
            "Feed answered in %.0f ms: base=%s date=%s quotes=%s",
            (time.perf_counter() - started) * 1000.0,
            snapshot.base,
            snapshot.date,
            len(snapshot),
        )
        return self.normalise(snapshot)

    def normalise(self, snapshot: FeedSnapshot) -> dict[str, Decimal]:
        """Convert upstream quotes into rates relative to :attr:`base_currency`."""

        if not snapshot.rates:
            LOGGER.warning("Feed snapshot carried no quotes")
            return {}
        base_quote = snapshot.rates.get(self.base_currency)
        if base_quote is None and snapshot.base == self.base_currency:
            base_quote = Decimal(1)
        if base_quote is None:
            LOGGER.warning(
                "Feed snapshot (base %s) has no quote for %s; skipping",
                snapshot.base,
                self.base_currency,
            )
            return {}
        quotes = dict(snapshot.rates)
        if snapshot.base:
            quotes.setdefault(snapshot.base, Decimal(1))
        result: dict[str, Decimal] = {}
        for code, quote in quotes.items():
            try:
                result[code] = divide(base_quote, quote, RATE_PLACES)
            except ValueError as exc:
                LOGGER.warning("Dropping quote for %s: %s", code, exc)
        result[self.base_currency] = to_rate(1)
        return result

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "RateFeedClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = ["DEFAULT_FEED_URL", "DEFAULT_TIMEOUT", "RateFeedClient"]
