"""Token ledger state storage, address and identifier encoding, and a JSON-RPC query service and client."""

__version__ = "0.0.1"