"""Funding action protocol: faucet abstraction."""
from typing import Protocol

from ..models import FaucetResult


class FundingAction(Protocol):
    """Sends test funds to an address and reports the outcome."""

    async def request(self, address: str) -> FaucetResult: ...
