import json

import pytest

from tokenvm import storage
from tokenvm.encoding import address, encode_id
from tokenvm.rpc_client import AssetInfo, JSONRPCClient, RPCError, TxStatus
from tokenvm.rpc_server import JSONRPC_ENDPOINT, JSONRPCServer

HRP = "token"
CHAIN_ID = bytes([5]) * 32
OWNER = bytes(range(32))
ASSET = bytes([7]) * 32
TX_ID = bytes([9]) * 32
DEST = bytes([3]) * 32
BASE = "http://localhost:9650/ext/bc/chain"


class FakeController:
    def __init__(self):
        self.db = storage.MemoryDatabase()
        self.genesis_data = {"minUnitPrice": 1}
        self.order_book = {}

    def genesis(self):
        return self.genesis_data

    def get_transaction(self, tx_id):
        return storage.get_transaction(self.db, tx_id)

    def get_asset_from_state(self, asset):
        return storage.get_asset_from_state(self.db.read_state, asset)

    def get_balance_from_state(self, public_key, asset):
        return storage.get_balance_from_state(self.db.read_state, public_key, asset)

    def orders(self, pair, limit):
        return self.order_book.get(pair, [])[:limit]

    def get_loan_from_state(self, asset, destination):
        return storage.get_loan_from_state(self.db.read_state, asset, destination)


class Wire:
    def __init__(self, server, hook=None):
        self.server = server
        self.hook = hook
        self.requests = []
        self.urls = []

    def __call__(self, url, request):
        self.urls.append(url)
        self.requests.append(json.loads(json.dumps(request)))
        if self.hook is not None:
            self.hook(len(self.requests))
        return json.loads(json.dumps(self.server.handle(self.requests[-1])))


@pytest.fixture
def controller():
    return FakeController()


@pytest.fixture
def wire(controller):
    return Wire(JSONRPCServer(controller, HRP))


@pytest.fixture
def client(wire):
    return JSONRPCClient(BASE + "/", CHAIN_ID, transport=wire)


def test_url_trims_slash_and_adds_endpoint(client):
    assert client.url == BASE + JSONRPC_ENDPOINT
    assert client.chain_id == CHAIN_ID


def test_genesis_is_cached(client, wire, controller):
    assert client.genesis() == controller.genesis_data
    assert client.genesis() == controller.genesis_data
    assert len(wire.requests) == 1
    assert wire.requests[0]["method"] == "tokenvm.genesis"


def test_tx_request_shape_and_result(client, wire, controller):
    storage.store_transaction(controller.db, TX_ID, 99, False, 12)
    assert client.tx(TX_ID) == TxStatus(success=False, timestamp=99, units=12)
    assert wire.requests[0]["params"] == {"txId": encode_id(TX_ID)}
    assert wire.urls[0] == BASE + JSONRPC_ENDPOINT


def test_tx_not_found_returns_none(client):
    assert client.tx(TX_ID) is None


def test_asset_round_trip(client, controller):
    storage.set_asset(controller.db, ASSET, b"coin", 300, OWNER, False)
    assert client.asset(ASSET) == AssetInfo(
        metadata=b"coin", supply=300, owner=address(OWNER, HRP), warp=False
    )


def test_asset_empty_metadata(client, controller):
    storage.set_asset(controller.db, ASSET, b"", 0, OWNER, True)
    info = client.asset(ASSET)
    assert info.metadata == b""
    assert info.warp is True


def test_asset_missing_returns_none(client):
    assert client.asset(ASSET) is None


def test_balance_and_loan(client, controller):
    storage.set_balance(controller.db, OWNER, ASSET, 1000)
    storage.set_loan(controller.db, ASSET, DEST, 110)
    assert client.balance(address(OWNER, HRP), ASSET) == 1000
    assert client.loan(ASSET, DEST) == 110


def test_orders(client, controller):
    controller.order_book["p"] = [{"remaining": 4}]
    assert client.orders("p") == [{"remaining": 4}]
    assert client.orders("other") == []


def test_server_error_raises(client):
    with pytest.raises(RPCError) as info:
        client.balance("bogus", ASSET)
    assert info.value.code is not None


def test_wait_for_transaction(controller):
    server = JSONRPCServer(controller, HRP)

    def hook(count):
        if count == 3:
            storage.store_transaction(controller.db, TX_ID, 1, True, 2)

    wire = Wire(server, hook)
    client = JSONRPCClient(BASE, CHAIN_ID, transport=wire)
    assert client.wait_for_transaction(TX_ID, interval=0) is True
    assert len(wire.requests) == 3


def test_wait_for_failed_transaction(client, controller):
    storage.store_transaction(controller.db, TX_ID, 1, False, 2)
    assert client.wait_for_transaction(TX_ID, interval=0) is False


def test_wait_for_balance_reaches(controller):
    server = JSONRPCServer(controller, HRP)

    def hook(count):
        if count == 2:
            storage.set_balance(controller.db, OWNER, ASSET, 50)

    wire = Wire(server, hook)
    client = JSONRPCClient(BASE, CHAIN_ID, transport=wire)
    client.wait_for_balance(address(OWNER, HRP), ASSET, 50, interval=0)
    assert len(wire.requests) == 2


def test_wait_for_balance_times_out(client):
    with pytest.raises(TimeoutError):
        client.wait_for_balance(address(OWNER, HRP), ASSET, 1, interval=0.001, timeout=0.01)


def test_wait_for_transaction_times_out(client):
    with pytest.raises(TimeoutError):
        client.wait_for_transaction(TX_ID, interval=0.001, timeout=0.01)