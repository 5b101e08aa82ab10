"""Tests for RPC endpoint selection."""

from __future__ import annotations

import logging

import httpx
import pytest
from solders.hash import Hash

from agentic_wallet.errors import NoHealthyEndpointError
from agentic_wallet.ledger import endpoints
from agentic_wallet.ledger.endpoints import (
    ENDPOINTS,
    Endpoint,
    candidate_endpoints,
    list_endpoint_names,
    select_endpoint,
)


def test_builtin_names() -> None:
    assert list_endpoint_names() == ["SOLANA_PUBLIC_DEVNET", "ANKR_DEVNET", "CHAINSTACK_DEVNET"]


def test_preferred_url_goes_first() -> None:
    candidates = candidate_endpoints("http://mine:8899")
    assert candidates[0] == Endpoint("ENV_RPC_URL", "http://mine:8899")
    assert candidates[1:] == list(ENDPOINTS)


def test_preferred_builtin_not_duplicated() -> None:
    candidates = candidate_endpoints(ENDPOINTS[1].url)
    assert [c.url for c in candidates].count(ENDPOINTS[1].url) == 1


def test_first_healthy_endpoint_wins() -> None:
    probed = []

    def probe(url: str) -> bool:
        probed.append(url)
        return url == ENDPOINTS[1].url

    chosen = select_endpoint(probe=probe, delay=0)

    assert chosen == ENDPOINTS[1]
    assert probed == [ENDPOINTS[0].url, ENDPOINTS[1].url]


def test_failed_probes_are_warnings(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="agentic_wallet.ledger.endpoints"):
        select_endpoint(
            candidates=[Endpoint("A", "http://a"), Endpoint("B", "http://b")],
            probe=lambda url: url == "http://b",
            delay=0,
        )
    assert any("A (http://a)" in r.getMessage() for r in caplog.records)


def test_no_healthy_endpoint() -> None:
    with pytest.raises(NoHealthyEndpointError, match="A, B"):
        select_endpoint(
            candidates=[Endpoint("A", "http://a"), Endpoint("B", "http://b")],
            probe=lambda url: False,
            delay=0,
        )


def test_probe_endpoint_over_http(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "down.test":
            raise httpx.ConnectError("refused")
        return httpx.Response(
            200,
            json={
                "jsonrpc": "2.0",
                "id": 1,
                "result": {
                    "context": {"slot": 1},
                    "value": {
                        "blockhash": str(Hash.default()),
                        "lastValidBlockHeight": 10,
                    },
                },
            },
        )

    real_client = endpoints.RpcLedgerClient

    def patched(url, commitment="confirmed", **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(url, commitment, **kwargs)

    monkeypatch.setattr(endpoints, "RpcLedgerClient", patched)

    assert endpoints.probe_endpoint("http://up.test") is True
    assert endpoints.probe_endpoint("http://down.test") is False
