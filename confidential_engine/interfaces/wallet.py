"""Wallet and identity provider protocols."""
from typing import Any, Protocol, Sequence


class WalletHandle(Protocol):
    """One connected wallet account."""

    @property
    def address(self) -> str: ...

    async def switch_chain(self, chain_id: int) -> None: ...

    async def get_provider(self) -> Any: ...


class IdentityProvider(Protocol):
    """Login provider state: who is authenticated and which wallets they hold."""

    @property
    def authenticated(self) -> bool: ...

    @property
    def address(self) -> str | None: ...

    @property
    def wallets(self) -> Sequence[WalletHandle]: ...
