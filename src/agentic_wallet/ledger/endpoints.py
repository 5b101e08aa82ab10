"""Known RPC endpoints and healthy-endpoint selection."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from agentic_wallet.errors import NoHealthyEndpointError, TransientNetworkError
from agentic_wallet.ledger.rpc import RpcLedgerClient

logger = logging.getLogger("agentic_wallet.ledger.endpoints")

PROBE_DELAY_SECONDS = 0.15


@dataclass(frozen=True)
class Endpoint:
    """A named RPC endpoint."""

    name: str
    url: str


ENDPOINTS: tuple[Endpoint, ...] = (
    Endpoint(name="SOLANA_PUBLIC_DEVNET", url="https://api.devnet.solana.com"),
    Endpoint(name="ANKR_DEVNET", url="https://rpc.ankr.com/solana_devnet"),
    Endpoint(name="CHAINSTACK_DEVNET", url="https://solana-devnet.core.chainstack.com"),
)


def list_endpoint_names() -> list[str]:
    """Return the names of the built-in endpoints."""
    return [e.name for e in ENDPOINTS]


def probe_endpoint(url: str, commitment: str = "confirmed") -> bool:
    """Return ``True`` if *url* answers a ``getLatestBlockhash`` call."""
    try:
        with RpcLedgerClient(url, commitment, timeout=10.0) as client:
            client.get_latest_checkpoint()
    except TransientNetworkError as exc:
        logger.warning(f"RPC health check failed for {url}: {exc}")
        return False
    return True


def candidate_endpoints(preferred_url: str | None = None) -> list[Endpoint]:
    """The probe order: the preferred URL (if any), then the built-ins."""
    candidates: list[Endpoint] = []
    if preferred_url:
        candidates.append(Endpoint(name="ENV_RPC_URL", url=preferred_url))
    candidates.extend(e for e in ENDPOINTS if e.url != preferred_url)
    return candidates


def select_endpoint(
    preferred_url: str | None = None,
    *,
    candidates: list[Endpoint] | None = None,
    probe: Callable[[str], bool] = probe_endpoint,
    delay: float = PROBE_DELAY_SECONDS,
) -> Endpoint:
    """Return the first endpoint that passes the health probe.

    Probe failures are logged and skipped, with a short pause between
    attempts to avoid hammering public nodes.

    Raises
    ------
    NoHealthyEndpointError
        If every candidate fails.
    """
    if candidates is None:
        candidates = candidate_endpoints(preferred_url)

    for endpoint in candidates:
        if probe(endpoint.url):
            logger.info(f"Selected RPC endpoint {endpoint.name} ({endpoint.url})")
            return endpoint
        logger.warning(f"RPC failed health check: {endpoint.name} ({endpoint.url})")
        if delay > 0:
            time.sleep(delay)

    tried = ", ".join(e.name for e in candidates) or "none"
    raise NoHealthyEndpointError(f"No healthy RPC endpoints available (tried: {tried}).")
