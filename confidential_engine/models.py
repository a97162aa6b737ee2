"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class SigningCapability:
    """Wallet provider handle bound to one address on one chain."""

    address: str
    chain_id: int
    provider: Any = None

    def same_binding(self, other: SigningCapability | None) -> bool:
        return (
            other is not None
            and other.chain_id == self.chain_id
            and other.address.lower() == self.address.lower()
        )


@dataclass(frozen=True)
class AccountKeys:
    """Confidential account keypair derived by the protocol client."""

    public_key: str
    private_key: str

    def __repr__(self) -> str:
        return f"AccountKeys(public_key={self.public_key!r}, private_key=<hidden>)"


@dataclass(frozen=True)
class BalanceSnapshot:
    """Formatted balances; each field refreshes independently."""

    native: str = "0"
    public: str = "0"
    confidential: str = "0"


@dataclass(frozen=True)
class TokenInfo:
    symbol: str = "TKN"
    decimals: int = 18


@dataclass(frozen=True)
class TransactionResult:
    hash: str


@dataclass(frozen=True)
class FaucetResult:
    """Outcome of a faucet funding request."""

    success: bool
    hash: str | None = None
    hashes: tuple[str, ...] = ()
    error: str | None = None
    message: str | None = None


class ErrorCategory(str, Enum):
    USER_REJECTED = "UserRejected"
    EXECUTION_REVERTED = "ExecutionReverted"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    NETWORK_ERROR = "NetworkError"
    NONCE_TOO_LOW = "NonceTooLow"
    UNDERPRICED_REPLACEMENT = "UnderpricedReplacement"
    CALL_EXCEPTION = "CallException"
    UNCLASSIFIED = "Unclassified"


@dataclass(frozen=True)
class OperationError:
    category: ErrorCategory
    message: str


class OnboardingStatus(str, Enum):
    DISCONNECTED = "disconnected"
    INSUFFICIENT_GAS = "insufficient_gas"
    READY_TO_INITIALIZE = "ready_to_initialize"
    READY = "ready"


@dataclass(frozen=True)
class EngineState:
    """Read-only view of everything a UI renders."""

    chain_id: int
    explorer_url: str
    signer_address: str | None
    has_keys: bool
    balances: BalanceSnapshot
    loading: bool
    error: str | None
    last_tx_hash: str | None
    token: TokenInfo
