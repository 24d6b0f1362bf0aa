"""JSON-RPC service exposing the token chain's state."""

from __future__ import annotations

import base64
import json
from typing import Any, Callable, Mapping, Optional, Protocol

from .encoding import ID_LEN, address, decode_id, parse_address
from .storage import Asset, TransactionRecord

JSONRPC_ENDPOINT = "/tokenapi"
ORDERS_TO_SEND = 128
DEFAULT_NAMESPACE = "tokenvm"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
SERVER_ERROR = -32000


class TxNotFoundError(LookupError):
    """Raised when a transaction is not known to the chain."""

    def __init__(self) -> None:
        super().__init__("tx not found")


class AssetNotFoundError(LookupError):
    """Raised when an asset is not known to the chain."""

    def __init__(self) -> None:
        super().__init__("asset not found")


class Controller(Protocol):
    """What the service needs from the running chain."""

    def genesis(self) -> Any: ...

    def get_transaction(self, tx_id: bytes) -> Optional[TransactionRecord]: ...

    def get_asset_from_state(self, asset: bytes) -> Optional[Asset]: ...

    def get_balance_from_state(self, public_key: bytes, asset: bytes) -> int: ...

    def orders(self, pair: str, limit: int) -> list[Any]: ...

    def get_loan_from_state(self, asset: bytes, destination: bytes) -> int: ...


class _InvalidParams(ValueError):
    pass


def _id_arg(args: Mapping[str, Any], key: str) -> bytes:
    value = args.get(key)
    if value is None:
        return bytes(ID_LEN)
    if not isinstance(value, str):
        raise _InvalidParams(f"{key} must be a string")
    try:
        return decode_id(value)
    except ValueError as exc:
        raise _InvalidParams(f"invalid {key}: {exc}") from None


def _str_arg(args: Mapping[str, Any], key: str) -> str:
    value = args.get(key, "")
    if not isinstance(value, str):
        raise _InvalidParams(f"{key} must be a string")
    return value


def _single_params(params: Any) -> Mapping[str, Any]:
    if params is None:
        return {}
    if isinstance(params, list):
        if not params:
            return {}
        if len(params) != 1:
            raise _InvalidParams("expected a single parameter object")
        params = params[0]
    if not isinstance(params, Mapping):
        raise _InvalidParams("parameters must be an object")
    return params


def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": request_id}


class JSONRPCServer:
    """Answers token queries from a controller's state."""

    def __init__(self, controller: Controller, hrp: str, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.controller = controller
        self.hrp = hrp
        self.namespace = namespace
        self._methods: dict[str, Callable[[Mapping[str, Any]], dict[str, Any]]] = {
            "genesis": lambda _args: self.genesis(),
            "tx": self.tx,
            "asset": self.asset,
            "balance": self.balance,
            "orders": self.orders,
            "loan": self.loan,
        }

    def genesis(self) -> dict[str, Any]:
        return {"genesis": self.controller.genesis()}

    def tx(self, args: Mapping[str, Any]) -> dict[str, Any]:
        record = self.controller.get_transaction(_id_arg(args, "txId"))
        if record is None:
            raise TxNotFoundError()
        return {"timestamp": record.timestamp, "success": record.success, "units": record.units}

    def asset(self, args: Mapping[str, Any]) -> dict[str, Any]:
        info = self.controller.get_asset_from_state(_id_arg(args, "asset"))
        if info is None:
            raise AssetNotFoundError()
        return {
            "metadata": base64.b64encode(info.metadata).decode("ascii"),
            "supply": info.supply,
            "owner": address(info.owner, self.hrp),
            "warp": info.warp,
        }

    def balance(self, args: Mapping[str, Any]) -> dict[str, Any]:
        public_key = parse_address(_str_arg(args, "address"), self.hrp)
        amount = self.controller.get_balance_from_state(public_key, _id_arg(args, "asset"))
        return {"amount": amount}

    def orders(self, args: Mapping[str, Any]) -> dict[str, Any]:
        return {"orders": list(self.controller.orders(_str_arg(args, "pair"), ORDERS_TO_SEND))}

    def loan(self, args: Mapping[str, Any]) -> dict[str, Any]:
        amount = self.controller.get_loan_from_state(
            _id_arg(args, "asset"), _id_arg(args, "destination")
        )
        return {"amount": amount}

    def handle(self, request: Any) -> dict[str, Any]:
        """Serve one JSON-RPC 2.0 request (object or JSON text) and return the response."""
        if isinstance(request, (str, bytes, bytearray)):
            try:
                request = json.loads(request)
            except ValueError as exc:
                return _error(None, PARSE_ERROR, f"parse error: {exc}")
        if not isinstance(request, Mapping):
            return _error(None, INVALID_REQUEST, "request must be an object")
        request_id = request.get("id")
        method = request.get("method")
        if not isinstance(method, str):
            return _error(request_id, INVALID_REQUEST, "method must be a string")
        service, _, name = method.rpartition(".")
        handler = self._methods.get(name.lower())
        if service.lower() != self.namespace.lower() or handler is None:
            return _error(request_id, METHOD_NOT_FOUND, f"method {method!r} not found")
        try:
            result = handler(_single_params(request.get("params")))
        except _InvalidParams as exc:
            return _error(request_id, INVALID_PARAMS, str(exc))
        except Exception as exc:  # every handler failure is reported to the caller
            return _error(request_id, SERVER_ERROR, str(exc))
        return {"jsonrpc": "2.0", "result": result, "id": request_id}