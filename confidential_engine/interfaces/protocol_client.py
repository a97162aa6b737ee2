"""Confidential-transfer protocol client interface.

The client owns proof generation and encrypted-balance encoding. Return
values follow the protocol SDK's shapes: balances are integers (the
confidential balance wrapped in an object or mapping with an ``amount``),
mutating calls return a receipt exposing ``hash``.
"""
from typing import Any, Callable, Protocol

from ..config import ChainConfig
from ..models import AccountKeys, SigningCapability


class ConfidentialClient(Protocol):
    async def ensure_account(self, signer: SigningCapability) -> AccountKeys: ...

    async def get_public_balance(self, address: str, token_address: str) -> int: ...

    async def get_confidential_balance(
        self, address: str, private_key: str, token_address: str
    ) -> Any: ...

    async def confidential_deposit(
        self, signer: SigningCapability, token_address: str, amount: int
    ) -> Any: ...

    async def confidential_transfer(
        self,
        signer: SigningCapability,
        recipient: str,
        token_address: str,
        amount: int,
    ) -> Any: ...

    async def withdraw(
        self, signer: SigningCapability, token_address: str, amount: int
    ) -> Any: ...


ConfidentialClientFactory = Callable[[ChainConfig], ConfidentialClient]
