# tokenvm

`tokenvm` is the state layer of a small token ledger. It stores these records in a key-value database:

- balances per account and asset,
- asset records (metadata, supply, owner, warp flag),
- trade orders,
- cross-chain loans,
- transaction results.

It also provides a JSON-RPC 2.0 request handler that answers queries against that state, and a client for it.

It needs only the standard library and runs on Python 3.10 and later.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `tokenvm.encoding` | Bech32 account addresses: `address(public_key, hrp)`, `parse_address(text, hrp)`, `AddressError`. Checksummed base58 text for 32-byte identifiers: `encode_id`, `decode_id` |
| `tokenvm.storage` | Key layout and record codecs, `MemoryDatabase`, the `Database` protocol, the record types `TransactionRecord`, `Asset` and `Order`, and the errors `InvalidBalanceError` and `NotFoundError` |
| `tokenvm.rpc_server` | `JSONRPCServer`, the `Controller` protocol it queries, and the errors `TxNotFoundError` and `AssetNotFoundError` |
| `tokenvm.rpc_client` | `JSONRPCClient`, the result types `TxStatus` and `AssetInfo`, and the error `RPCError` |
| `tokenvm.version` | `SemanticVersion` and `VERSION` (`str(VERSION) == "v0.0.1"`) |

## Storage layout

Every key starts with a one-byte prefix. Identifiers and public keys are 32 bytes. Integers are big-endian and 64-bit: unsigned, except the transaction timestamp, which is signed.

| Prefix | Key | Value |
| --- | --- | --- |
| `0x0` | tx id | timestamp, success byte, units |
| `0x0` | public key + asset | balance |
| `0x1` | asset | 16-bit metadata length, metadata, supply, owner, warp byte |
| `0x2` | order tx id | in asset, in tick, out asset, out tick, remaining, owner |
| `0x3` | asset + destination chain | loan amount |
| `0x4` | (the prefix alone, `height_key()`) | height |
| `0x5` | source chain + message id | incoming warp (`incoming_warp_key_prefix`) |
| `0x6` | tx id | outgoing warp (`outgoing_warp_key_prefix`) |

Transactions and balances share prefix `0x0`. The two kinds of key differ in length.

A key, identifier or public key of the wrong length raises `ValueError`. So does a value outside its integer range.

## Balances and loans

```python
from tokenvm.storage import (
    InvalidBalanceError,
    MemoryDatabase,
    add_balance,
    get_balance,
    sub_balance,
)

db = MemoryDatabase()
owner = bytes(range(32))
asset = bytes(32)

add_balance(db, owner, asset, 100)
sub_balance(db, owner, asset, 40)
assert get_balance(db, owner, asset) == 60

try:
    sub_balance(db, owner, asset, 1_000)
except InvalidBalanceError as exc:
    print(exc)  # invalid balance: could not subtract balance (...)
```

A balance that is not stored reads as `0`.

When a subtraction brings a balance or a loan to zero, the record is removed instead of being stored as zero.

`InvalidBalanceError` is raised for any of these:

- an addition that would go past 2⁶⁴ − 1,
- a subtraction that would go below zero,
- a negative amount.

`add_loan`, `sub_loan`, `get_loan` and `set_loan` work the same way for loans. A loan is keyed by asset and destination chain.

## Assets, orders and transactions

```python
from tokenvm.storage import MemoryDatabase, get_asset, set_asset

db = MemoryDatabase()
asset_id = bytes([7]) * 32
set_asset(db, asset_id, b"COIN", 1_000, bytes(32), False)
print(get_asset(db, asset_id))
# Asset(metadata=b'COIN', supply=1000, owner=b'\x00...', warp=False)
```

Three getters return `None` when the record is absent:

- `get_asset` returns an `Asset`,
- `get_order` returns an `Order`,
- `get_transaction` returns a `TransactionRecord`.

The matching writers are `set_asset`, `set_order` and `store_transaction`. Records are deleted with `delete_asset`, `delete_order` and `delete_balance`.

## Reading through a state callable

The `*_from_state` helpers take a `read_state` callable instead of a database. It receives a list of keys and returns one value per key, with `None` for a key that is absent. `MemoryDatabase.read_state` is one such callable:

```python
from tokenvm.storage import get_balance_from_state

print(get_balance_from_state(db.read_state, owner, asset))
```

The helpers are `get_balance_from_state`, `get_asset_from_state` and `get_loan_from_state`.

## JSON-RPC

### Server

`JSONRPCServer(controller, hrp, namespace="tokenvm")` serves these methods:

- `genesis`
- `tx`
- `asset`
- `balance`
- `orders` (at most 128 orders are asked of the controller)
- `loan`

Each is called as `<namespace>.<method>`. The namespace and the method name are matched without regard to case.

`handle(request)` takes a request object or its JSON text and returns the response object. On the wire:

- identifiers are checksummed base58,
- addresses are bech32 with the server's `hrp`,
- asset metadata is base64.

A controller failure, an unknown transaction (`tx not found`) or an unknown asset (`asset not found`) becomes a JSON-RPC error with code `-32000`.

### Client

`JSONRPCClient(uri, chain_id, namespace="tokenvm", transport=None)` posts to `uri + "/tokenapi"`. It uses `urllib` unless a `transport(url, request) -> response` callable is given.

What the client methods return:

- `tx` returns a `TxStatus`, or `None` if the transaction is not known.
- `asset` returns an `AssetInfo`, or `None` if the asset does not exist.
- `balance` and `loan` return integers.
- `orders` returns the list the server sent.
- `genesis` is fetched once and then cached.

Any other error answer raises `RPCError`, which carries `message` and `code`.

`wait_for_balance(address, asset, minimum, interval=0.5, timeout=None)` polls until its condition holds. So does `wait_for_transaction(tx_id, interval=0.5, timeout=None)`, which then returns whether the transaction succeeded. Both raise `TimeoutError` if `timeout` seconds pass first.

A server and a client can share a process:

```python
from tokenvm import storage
from tokenvm.encoding import address
from tokenvm.rpc_client import JSONRPCClient
from tokenvm.rpc_server import JSONRPCServer

db = storage.MemoryDatabase()


class Controller:
    def genesis(self):
        return {"hrp": "token"}

    def get_transaction(self, tx_id):
        return storage.get_transaction(db, tx_id)

    def get_asset_from_state(self, asset):
        return storage.get_asset_from_state(db.read_state, asset)

    def get_balance_from_state(self, public_key, asset):
        return storage.get_balance_from_state(db.read_state, public_key, asset)

    def orders(self, pair, limit):
        return []

    def get_loan_from_state(self, asset, destination):
        return storage.get_loan_from_state(db.read_state, asset, destination)


server = JSONRPCServer(Controller(), "token")
client = JSONRPCClient(
    "http://localhost:9650",
    bytes(32),
    transport=lambda url, request: server.handle(request),
)

owner = bytes(range(32))
storage.add_balance(db, owner, bytes(32), 500)
print(client.balance(address(owner, "token"), bytes(32)))  # 500
print(client.tx(bytes(32)))  # None
```

## What this package does not do

This package is the state and query layer only. It does not include:

- a virtual machine,
- consensus or block production,
- transaction building or signing,
- the order book (the `Controller` supplies the orders),
- a genesis format (the genesis is passed through as given),
- a network listener: `JSONRPCServer.handle` processes requests, and serving them over HTTP is left to the caller,
- a database engine besides the in-memory `MemoryDatabase`. Any object with `get_value`, `insert` and `remove` (the `Database` protocol) can take its place.