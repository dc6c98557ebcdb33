from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest
import requests

from fx_keeper.exceptions import UpstreamUnavailable
from fx_keeper.feed.client import DEFAULT_FEED_URL, RateFeedClient
from fx_keeper.feed.models import FeedSnapshot


class _FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, invalid_json: bool = False) -> None:
        self._payload = payload
        self.status_code = status_code
        self._invalid_json = invalid_json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)  # type: ignore[arg-type]

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value")
        return self._payload


class _FakeSession:
    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.headers: dict[str, str] = {}
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    def get(self, url: str, timeout: Any) -> _FakeResponse:
        self.calls.append((url, timeout))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self) -> None:
        self.closed = True


def _client(session: _FakeSession, **kwargs: Any) -> RateFeedClient:
    kwargs.setdefault("backoff_seconds", 0)
    return RateFeedClient(session=session, **kwargs)  # type: ignore[arg-type]


def test_cross_rates_are_computed_against_system_base() -> None:
    payload = {"base": "USD", "date": "2024-05-01", "rates": {"TWD": 31.25, "EUR": 0.90}}
    session = _FakeSession(_FakeResponse(payload))
    client = _client(session)

    rates = client.fetch_latest_rates()

    assert rates["TWD"] == Decimal("1.000000")
    assert rates["EUR"] == Decimal("34.722222")
    assert rates["USD"] == Decimal("31.250000")
    assert session.calls == [(DEFAULT_FEED_URL, (5.0, 10.0))]
    assert session.headers["Accept"] == "application/json"


def test_missing_base_quote_yields_empty_result() -> None:
    payload = {"base": "USD", "rates": {"EUR": 0.9, "JPY": 151.2}}
    client = _client(_FakeSession(_FakeResponse(payload)))

    assert client.fetch_latest_rates() == {}


def test_upstream_base_equal_to_system_base_is_implicit_one() -> None:
    payload = {"base": "TWD", "rates": {"USD": 0.032}}
    client = _client(_FakeSession(_FakeResponse(payload)))

    rates = client.fetch_latest_rates()

    assert rates == {"USD": Decimal("31.250000"), "TWD": Decimal("1.000000")}


def test_invalid_quotes_are_dropped_from_snapshot() -> None:
    snapshot = FeedSnapshot.from_payload(
        {"base": "usd", "rates": {"twd": "31.25", "EUR": 0, "JPY": "n/a", "CNY": None}, "extra": 1}
    )

    assert snapshot.base == "USD"
    assert snapshot.rates == {"TWD": Decimal("31.25")}
    assert len(FeedSnapshot.from_payload({"rates": ["TWD", 31.25]})) == 0


def test_out_of_range_cross_rate_drops_only_that_code() -> None:
    payload = {"base": "USD", "rates": {"USD": 1, "TWD": 31.25, "EUR": 0.9, "XXX": 1e-30}}
    client = _client(_FakeSession(_FakeResponse(payload)))

    rates = client.fetch_latest_rates()

    assert "XXX" not in rates
    assert rates["EUR"] == Decimal("34.722222")
    assert rates["USD"] == Decimal("31.250000")
    assert rates["TWD"] == Decimal("1.000000")


@pytest.mark.parametrize(
    "outcome",
    [
        _FakeResponse({"error": "boom"}, status_code=503),
        _FakeResponse(invalid_json=True),
        _FakeResponse(["not", "an", "object"]),
        requests.exceptions.TooManyRedirects("redirect loop"),
    ],
)
def test_failures_return_empty_mapping(outcome: Any) -> None:
    client = _client(_FakeSession(outcome))

    assert client.fetch_latest_rates() == {}


def test_fetch_snapshot_raises_upstream_unavailable() -> None:
    client = _client(_FakeSession(_FakeResponse(status_code=500)))

    with pytest.raises(UpstreamUnavailable, match="HTTP 500"):
        client.fetch_snapshot()


def test_transient_errors_are_retried() -> None:
    payload = {"base": "USD", "rates": {"TWD": 31.25}}
    session = _FakeSession(requests.ConnectionError("reset"), _FakeResponse(payload))
    client = _client(session, max_attempts=2)

    assert client.fetch_latest_rates()["USD"] == Decimal("31.250000")
    assert len(session.calls) == 2


def test_retries_are_bounded() -> None:
    session = _FakeSession(requests.Timeout("slow"), requests.Timeout("slow"), _FakeResponse({}))
    client = _client(session, max_attempts=2)

    assert client.fetch_latest_rates() == {}
    assert len(session.calls) == 2


def test_close_leaves_injected_session_open() -> None:
    session = _FakeSession()
    with _client(session):
        pass
    assert session.closed is False
