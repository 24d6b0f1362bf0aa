"""Key layout and value encoding for the token chain's state."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from .encoding import ID_LEN, PUBLIC_KEY_LEN, encode_id

UINT64_MAX = (1 << 64) - 1
UINT16_MAX = (1 << 16) - 1

TX_PREFIX = 0x0

BALANCE_PREFIX = 0x0
ASSET_PREFIX = 0x1
ORDER_PREFIX = 0x2
LOAN_PREFIX = 0x3
HEIGHT_PREFIX = 0x4
INCOMING_WARP_PREFIX = 0x5
OUTGOING_WARP_PREFIX = 0x6

_FAILURE_BYTE = 0x0
_SUCCESS_BYTE = 0x1
_HEIGHT_KEY = bytes([HEIGHT_PREFIX])

_TX_VALUE = struct.Struct(">qBQ")
_UINT64 = struct.Struct(">Q")
_UINT16 = struct.Struct(">H")
_ORDER_VALUE = struct.Struct(f">{ID_LEN}sQ{ID_LEN}sQQ{PUBLIC_KEY_LEN}s")

ReadState = Callable[[Sequence[bytes]], "list[Optional[bytes]]"]


class InvalidBalanceError(Exception):
    """Raised when a balance or loan would overflow or go negative."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"invalid balance: {detail}")


class NotFoundError(LookupError):
    """Raised by a database when a key is absent."""


class Database(Protocol):
    """Key-value store holding chain state."""

    def get_value(self, key: bytes) -> bytes: ...

    def insert(self, key: bytes, value: bytes) -> None: ...

    def remove(self, key: bytes) -> None: ...


class MemoryDatabase:
    """An in-memory state database."""

    def __init__(self) -> None:
        self._data: dict[bytes, bytes] = {}

    def get_value(self, key: bytes) -> bytes:
        try:
            return self._data[bytes(key)]
        except KeyError:
            raise NotFoundError("not found") from None

    def insert(self, key: bytes, value: bytes) -> None:
        self._data[bytes(key)] = bytes(value)

    def remove(self, key: bytes) -> None:
        self._data.pop(bytes(key), None)

    def read_state(self, keys: Sequence[bytes]) -> list[Optional[bytes]]:
        """Return the value for each key, or None where the key is absent."""
        return [self._data.get(bytes(key)) for key in keys]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, (bytes, bytearray)) and bytes(key) in self._data

    def __len__(self) -> int:
        return len(self._data)


@dataclass(frozen=True)
class TransactionRecord:
    timestamp: int
    success: bool
    units: int


@dataclass(frozen=True)
class Asset:
    metadata: bytes
    supply: int
    owner: bytes
    warp: bool


@dataclass(frozen=True)
class Order:
    in_asset: bytes
    in_tick: int
    out_asset: bytes
    out_tick: int
    remaining: int
    owner: bytes


def _fixed(value: bytes, size: int, name: str) -> bytes:
    if len(value) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(value)}")
    return bytes(value)


def _uint64(value: int, name: str) -> int:
    if not 0 <= value <= UINT64_MAX:
        raise ValueError(f"{name} out of uint64 range: {value}")
    return value


def _get_optional(db: Database, key: bytes) -> Optional[bytes]:
    try:
        return db.get_value(key)
    except NotFoundError:
        return None


def _read_one(read_state: ReadState, key: bytes) -> Optional[bytes]:
    try:
        return read_state([key])[0]
    except NotFoundError:
        return None


def _decode_uint64(value: Optional[bytes]) -> int:
    if value is None:
        return 0
    return _UINT64.unpack_from(value)[0]


# Transactions


def prefix_tx_key(tx_id: bytes) -> bytes:
    """[TX_PREFIX] + [txID]"""
    return bytes([TX_PREFIX]) + _fixed(tx_id, ID_LEN, "transaction id")


def store_transaction(db: Database, tx_id: bytes, timestamp: int, success: bool, units: int) -> None:
    value = _TX_VALUE.pack(
        timestamp,
        _SUCCESS_BYTE if success else _FAILURE_BYTE,
        _uint64(units, "units"),
    )
    db.insert(prefix_tx_key(tx_id), value)


def get_transaction(db: Database, tx_id: bytes) -> Optional[TransactionRecord]:
    value = _get_optional(db, prefix_tx_key(tx_id))
    if value is None:
        return None
    timestamp, flag, units = _TX_VALUE.unpack_from(value)
    return TransactionRecord(timestamp=timestamp, success=flag != _FAILURE_BYTE, units=units)


# Balances


def prefix_balance_key(public_key: bytes, asset: bytes) -> bytes:
    """[BALANCE_PREFIX] + [address] + [asset]"""
    return (
        bytes([BALANCE_PREFIX])
        + _fixed(public_key, PUBLIC_KEY_LEN, "public key")
        + _fixed(asset, ID_LEN, "asset id")
    )


def get_balance(db: Database, public_key: bytes, asset: bytes) -> int:
    """Return the balance, 0 if the account holds none of the asset."""
    return _decode_uint64(_get_optional(db, prefix_balance_key(public_key, asset)))


def get_balance_from_state(read_state: ReadState, public_key: bytes, asset: bytes) -> int:
    return _decode_uint64(_read_one(read_state, prefix_balance_key(public_key, asset)))


def set_balance(db: Database, public_key: bytes, asset: bytes, balance: int) -> None:
    db.insert(prefix_balance_key(public_key, asset), _UINT64.pack(_uint64(balance, "balance")))


def delete_balance(db: Database, public_key: bytes, asset: bytes) -> None:
    db.remove(prefix_balance_key(public_key, asset))


def add_balance(db: Database, public_key: bytes, asset: bytes, amount: int) -> None:
    key = prefix_balance_key(public_key, asset)
    balance = _decode_uint64(_get_optional(db, key))
    new_balance = balance + amount
    if amount < 0 or new_balance > UINT64_MAX:
        raise InvalidBalanceError(
            f"could not add balance (asset={encode_id(asset)}, bal={balance}, "
            f"addr={bytes(public_key).hex()}, amount={amount})"
        )
    db.insert(key, _UINT64.pack(new_balance))


def sub_balance(db: Database, public_key: bytes, asset: bytes, amount: int) -> None:
    key = prefix_balance_key(public_key, asset)
    balance = _decode_uint64(_get_optional(db, key))
    new_balance = balance - amount
    if amount < 0 or new_balance < 0:
        raise InvalidBalanceError(
            f"could not subtract balance (asset={encode_id(asset)}, bal={balance}, "
            f"addr={bytes(public_key).hex()}, amount={amount})"
        )
    if new_balance == 0:
        # An emptied account is removed rather than stored as zero.
        db.remove(key)
        return
    db.insert(key, _UINT64.pack(new_balance))


# Assets


def prefix_asset_key(asset: bytes) -> bytes:
    """[ASSET_PREFIX] + [asset]"""
    return bytes([ASSET_PREFIX]) + _fixed(asset, ID_LEN, "asset id")


def _decode_asset(value: Optional[bytes]) -> Optional[Asset]:
    if value is None:
        return None
    (metadata_len,) = _UINT16.unpack_from(value)
    offset = _UINT16.size
    metadata = value[offset : offset + metadata_len]
    offset += metadata_len
    (supply,) = _UINT64.unpack_from(value, offset)
    offset += _UINT64.size
    owner = value[offset : offset + PUBLIC_KEY_LEN]
    offset += PUBLIC_KEY_LEN
    warp = value[offset] == 0x1
    return Asset(metadata=bytes(metadata), supply=supply, owner=bytes(owner), warp=warp)


def get_asset_from_state(read_state: ReadState, asset: bytes) -> Optional[Asset]:
    return _decode_asset(_read_one(read_state, prefix_asset_key(asset)))


def get_asset(db: Database, asset: bytes) -> Optional[Asset]:
    return _decode_asset(_get_optional(db, prefix_asset_key(asset)))


def set_asset(
    db: Database,
    asset: bytes,
    metadata: bytes,
    supply: int,
    owner: bytes,
    warp: bool,
) -> None:
    if len(metadata) > UINT16_MAX:
        raise ValueError(f"metadata too long: {len(metadata)} bytes")
    value = b"".join(
        (
            _UINT16.pack(len(metadata)),
            bytes(metadata),
            _UINT64.pack(_uint64(supply, "supply")),
            _fixed(owner, PUBLIC_KEY_LEN, "owner"),
            b"\x01" if warp else b"\x00",
        )
    )
    db.insert(prefix_asset_key(asset), value)


def delete_asset(db: Database, asset: bytes) -> None:
    db.remove(prefix_asset_key(asset))


# Orders


def prefix_order_key(tx_id: bytes) -> bytes:
    """[ORDER_PREFIX] + [txID]"""
    return bytes([ORDER_PREFIX]) + _fixed(tx_id, ID_LEN, "order id")


def set_order(
    db: Database,
    tx_id: bytes,
    in_asset: bytes,
    in_tick: int,
    out_asset: bytes,
    out_tick: int,
    supply: int,
    owner: bytes,
) -> None:
    value = _ORDER_VALUE.pack(
        _fixed(in_asset, ID_LEN, "in asset"),
        _uint64(in_tick, "in tick"),
        _fixed(out_asset, ID_LEN, "out asset"),
        _uint64(out_tick, "out tick"),
        _uint64(supply, "supply"),
        _fixed(owner, PUBLIC_KEY_LEN, "owner"),
    )
    db.insert(prefix_order_key(tx_id), value)


def get_order(db: Database, order: bytes) -> Optional[Order]:
    value = _get_optional(db, prefix_order_key(order))
    if value is None:
        return None
    in_asset, in_tick, out_asset, out_tick, remaining, owner = _ORDER_VALUE.unpack_from(value)
    return Order(
        in_asset=in_asset,
        in_tick=in_tick,
        out_asset=out_asset,
        out_tick=out_tick,
        remaining=remaining,
        owner=owner,
    )


def delete_order(db: Database, order: bytes) -> None:
    db.remove(prefix_order_key(order))


# Loans


def prefix_loan_key(asset: bytes, destination: bytes) -> bytes:
    """[LOAN_PREFIX] + [asset] + [destination]"""
    return (
        bytes([LOAN_PREFIX])
        + _fixed(asset, ID_LEN, "asset id")
        + _fixed(destination, ID_LEN, "destination")
    )


def get_loan_from_state(read_state: ReadState, asset: bytes, destination: bytes) -> int:
    return _decode_uint64(_read_one(read_state, prefix_loan_key(asset, destination)))


def get_loan(db: Database, asset: bytes, destination: bytes) -> int:
    return _decode_uint64(_get_optional(db, prefix_loan_key(asset, destination)))


def set_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    db.insert(prefix_loan_key(asset, destination), _UINT64.pack(_uint64(amount, "loan")))


def add_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    loan = get_loan(db, asset, destination)
    new_loan = loan + amount
    if amount < 0 or new_loan > UINT64_MAX:
        raise InvalidBalanceError(
            f"could not add loan (asset={encode_id(asset)}, "
            f"destination={encode_id(destination)}, amount={amount})"
        )
    set_loan(db, asset, destination, new_loan)


def sub_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    loan = get_loan(db, asset, destination)
    new_loan = loan - amount
    if amount < 0 or new_loan < 0:
        raise InvalidBalanceError(
            f"could not subtract loan (asset={encode_id(asset)}, "
            f"destination={encode_id(destination)}, amount={amount})"
        )
    if new_loan == 0:
        # A repaid loan is removed rather than stored as zero.
        db.remove(prefix_loan_key(asset, destination))
        return
    set_loan(db, asset, destination, new_loan)


# Chain bookkeeping


def height_key() -> bytes:
    return _HEIGHT_KEY


def incoming_warp_key_prefix(source_chain_id: bytes, msg_id: bytes) -> bytes:
    return (
        bytes([INCOMING_WARP_PREFIX])
        + _fixed(source_chain_id, ID_LEN, "source chain id")
        + _fixed(msg_id, ID_LEN, "message id")
    )


def outgoing_warp_key_prefix(tx_id: bytes) -> bytes:
    return bytes([OUTGOING_WARP_PREFIX]) + _fixed(tx_id, ID_LEN, "transaction id")