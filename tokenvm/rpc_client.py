"""Client for the token chain's JSON-RPC service."""

from __future__ import annotations

import base64
import json
import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from .encoding import encode_id
from .rpc_server import DEFAULT_NAMESPACE, JSONRPC_ENDPOINT

Transport = Callable[[str, Mapping[str, Any]], Mapping[str, Any]]

_logger = logging.getLogger(__name__)

_TX_NOT_FOUND = "tx not found"
_ASSET_NOT_FOUND = "asset not found"
_WAIT_INTERVAL = 0.5


class RPCError(Exception):
    """Raised when the service answers a call with an error."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


@dataclass(frozen=True)
class TxStatus:
    success: bool
    timestamp: int
    units: int


@dataclass(frozen=True)
class AssetInfo:
    metadata: bytes
    supply: int
    owner: str
    warp: bool


def _http_transport(url: str, request: Mapping[str, Any]) -> Mapping[str, Any]:
    body = json.dumps(request).encode("utf-8")
    http_request = urllib.request.Request(
        url, data=body, headers={"Content-Type": "application/json"}, method="POST"
    )
    try:
        with urllib.request.urlopen(http_request) as response:
            payload = response.read()
    except urllib.error.HTTPError as exc:
        payload = exc.read()
        if not payload:
            raise RPCError(f"HTTP {exc.code}: {exc.reason}", exc.code) from exc
    return json.loads(payload)


def _poll(check: Callable[[], bool], interval: float, timeout: Optional[float], what: str) -> None:
    deadline = None if timeout is None else time.monotonic() + timeout
    while not check():
        if deadline is not None and time.monotonic() >= deadline:
            raise TimeoutError(f"timed out waiting for {what}")
        time.sleep(interval)


class JSONRPCClient:
    """Calls the token service of one chain."""

    def __init__(
        self,
        uri: str,
        chain_id: bytes,
        namespace: str = DEFAULT_NAMESPACE,
        transport: Optional[Transport] = None,
    ) -> None:
        self.url = uri.removesuffix("/") + JSONRPC_ENDPOINT
        self.chain_id = bytes(chain_id)
        self.namespace = namespace
        self._transport = transport or _http_transport
        self._genesis: Any = None
        self._next_id = 0

    def _send(self, method: str, params: Mapping[str, Any]) -> Mapping[str, Any]:
        self._next_id += 1
        request = {
            "jsonrpc": "2.0",
            "method": f"{self.namespace}.{method}",
            "params": dict(params),
            "id": self._next_id,
        }
        response = self._transport(self.url, request)
        error = response.get("error")
        if error is not None:
            if isinstance(error, Mapping):
                raise RPCError(str(error.get("message", "")), error.get("code"))
            raise RPCError(str(error))
        return response.get("result") or {}

    def genesis(self) -> Any:
        """Return the chain's genesis, fetched once and then cached."""
        if self._genesis is None:
            self._genesis = self._send("genesis", {}).get("genesis")
        return self._genesis

    def tx(self, tx_id: bytes) -> Optional[TxStatus]:
        """Return the transaction's status, or None if it is not known."""
        try:
            result = self._send("tx", {"txId": encode_id(tx_id)})
        except RPCError as exc:
            if _TX_NOT_FOUND in exc.message:
                return None
            raise
        return TxStatus(
            success=bool(result.get("success", False)),
            timestamp=int(result.get("timestamp", 0)),
            units=int(result.get("units", 0)),
        )

    def asset(self, asset: bytes) -> Optional[AssetInfo]:
        """Return what is known of an asset, or None if it does not exist."""
        try:
            result = self._send("asset", {"asset": encode_id(asset)})
        except RPCError as exc:
            if _ASSET_NOT_FOUND in exc.message:
                return None
            raise
        metadata = result.get("metadata")
        return AssetInfo(
            metadata=base64.b64decode(metadata) if metadata else b"",
            supply=int(result.get("supply", 0)),
            owner=str(result.get("owner", "")),
            warp=bool(result.get("warp", False)),
        )

    def balance(self, address: str, asset: bytes) -> int:
        result = self._send("balance", {"address": address, "asset": encode_id(asset)})
        return int(result.get("amount", 0))

    def orders(self, pair: str) -> list[Any]:
        return list(self._send("orders", {"pair": pair}).get("orders") or [])

    def loan(self, asset: bytes, destination: bytes) -> int:
        result = self._send(
            "loan", {"asset": encode_id(asset), "destination": encode_id(destination)}
        )
        return int(result.get("amount", 0))

    def wait_for_balance(
        self,
        address: str,
        asset: bytes,
        minimum: int,
        interval: float = _WAIT_INTERVAL,
        timeout: Optional[float] = None,
    ) -> None:
        """Block until the address holds at least ``minimum`` of the asset."""

        def reached() -> bool:
            if self.balance(address, asset) >= minimum:
                return True
            _logger.info("waiting for %d balance: %s", minimum, address)
            return False

        _poll(reached, interval, timeout, f"balance of {address}")

    def wait_for_transaction(
        self,
        tx_id: bytes,
        interval: float = _WAIT_INTERVAL,
        timeout: Optional[float] = None,
    ) -> bool:
        """Block until the transaction is known and return whether it succeeded."""
        found: list[TxStatus] = []

        def known() -> bool:
            status = self.tx(tx_id)
            if status is None:
                return False
            found.append(status)
            return True

        _poll(known, interval, timeout, f"transaction {encode_id(tx_id)}")
        return found[-1].success