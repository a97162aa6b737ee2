"""Chain client protocol: EVM JSON-RPC abstraction."""
from typing import Protocol

from ..models import TokenInfo


class ChainClient(Protocol):
    """Abstract interface for the read-only RPC queries the engine needs."""

    async def get_balance(self, address: str) -> int: ...

    async def get_token_info(self, token_address: str) -> TokenInfo: ...
