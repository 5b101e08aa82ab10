"""JSON-RPC ledger client over HTTP."""

from __future__ import annotations

import base64
import itertools
import logging
import time
from typing import Any

import httpx
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from agentic_wallet.errors import LedgerRpcError, SubmissionError, TransientNetworkError
from agentic_wallet.ledger.base import Checkpoint, SimulationResult

logger = logging.getLogger("agentic_wallet.ledger.rpc")

DEFAULT_TIMEOUT = 30.0
SEND_MAX_ATTEMPTS = 3
CONFIRM_POLL_SECONDS = 1.0
_CONFIRMED = {"confirmed", "finalized"}


class RpcLedgerClient:
    """Talks to a ledger node's JSON-RPC endpoint.

    Parameters
    ----------
    url:
        HTTP(S) endpoint of the node.
    commitment:
        Commitment level used for reads, preflight and confirmation.
    transport:
        Optional httpx transport (tests pass an ``httpx.MockTransport``).
    poll_interval:
        Seconds between confirmation polls.
    """

    def __init__(
        self,
        url: str,
        commitment: str = "confirmed",
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        poll_interval: float = CONFIRM_POLL_SECONDS,
    ) -> None:
        self.url = url
        self.commitment = commitment
        self.poll_interval = poll_interval
        self._ids = itertools.count(1)
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RpcLedgerClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _call(self, method: str, params: list[Any] | None = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            response = self._client.post(self.url, json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TransientNetworkError(f"{method} request to {self.url} failed: {exc}") from exc

        if not isinstance(body, dict):
            raise TransientNetworkError(
                f"{method} response from {self.url} is not a JSON-RPC object: {body!r:.200}"
            )
        error = body.get("error")
        if error:
            raise LedgerRpcError(method, error.get("code"), error.get("message", str(error)))
        return body.get("result")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_balance(self, pubkey: Pubkey) -> int:
        result = self._call("getBalance", [str(pubkey), {"commitment": self.commitment}])
        return int(result["value"])

    def get_latest_checkpoint(self) -> Checkpoint:
        result = self._call("getLatestBlockhash", [{"commitment": self.commitment}])
        value = result["value"]
        return Checkpoint(
            blockhash=Hash.from_string(value["blockhash"]),
            last_valid_block_height=int(value["lastValidBlockHeight"]),
        )

    def get_block_height(self) -> int:
        return int(self._call("getBlockHeight", [{"commitment": self.commitment}]))

    def get_token_amount(self, account: Pubkey) -> int:
        result = self._call(
            "getTokenAccountBalance", [str(account), {"commitment": self.commitment}]
        )
        return int(result["value"]["amount"])

    def account_exists(self, address: Pubkey) -> bool:
        result = self._call(
            "getAccountInfo",
            [str(address), {"encoding": "base64", "commitment": self.commitment}],
        )
        return result.get("value") is not None

    def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        return int(self._call("getMinimumBalanceForRentExemption", [size]))

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def simulate(self, tx: VersionedTransaction) -> SimulationResult:
        encoded = base64.b64encode(bytes(tx)).decode("ascii")
        result = self._call(
            "simulateTransaction",
            [
                encoded,
                {
                    "encoding": "base64",
                    "sigVerify": False,
                    "replaceRecentBlockhash": False,
                    "commitment": self.commitment,
                },
            ],
        )
        value = result["value"]
        return SimulationResult(
            err=value.get("err"),
            logs=list(value.get("logs") or []),
            units_consumed=value.get("unitsConsumed"),
        )

    def send_raw(self, raw: bytes) -> Signature:
        """Submit a signed transaction, retrying transport failures.

        A JSON-RPC error (e.g. preflight rejection) is not retried.
        """
        encoded = base64.b64encode(raw).decode("ascii")
        params = [
            encoded,
            {
                "encoding": "base64",
                "skipPreflight": False,
                "preflightCommitment": self.commitment,
                "maxRetries": SEND_MAX_ATTEMPTS,
            },
        ]
        last_exc: Exception | None = None
        for attempt in range(1, SEND_MAX_ATTEMPTS + 1):
            try:
                return Signature.from_string(self._call("sendTransaction", params))
            except LedgerRpcError as exc:
                raise SubmissionError(str(exc)) from exc
            except TransientNetworkError as exc:
                last_exc = exc
                logger.warning(f"sendTransaction attempt {attempt}/{SEND_MAX_ATTEMPTS} failed: {exc}")
        raise SubmissionError(
            f"sendTransaction failed after {SEND_MAX_ATTEMPTS} attempts: {last_exc}"
        ) from last_exc

    def confirm(self, signature: Signature, checkpoint: Checkpoint) -> bool:
        """Poll until *signature* reaches the commitment level.

        Returns ``False`` once the block height passes the checkpoint's
        last valid height without the transaction landing.

        Raises
        ------
        SubmissionError
            If the transaction landed but failed on-chain.
        """
        while True:
            result = self._call(
                "getSignatureStatuses",
                [[str(signature)], {"searchTransactionHistory": False}],
            )
            status = (result.get("value") or [None])[0]
            if status is not None:
                if status.get("err") is not None:
                    raise SubmissionError(f"Transaction {signature} failed: {status['err']}")
                if status.get("confirmationStatus") in _CONFIRMED:
                    return True

            if self.get_block_height() > checkpoint.last_valid_block_height:
                return False
            time.sleep(self.poll_interval)
