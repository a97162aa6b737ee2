"""Mutating operations: deposit, confidential transfer, withdraw, faucet."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from eth_utils import is_address

from ..config import ChainConfigStore, EngineConfig
from ..errors import (
    EngineNotInitializedError,
    FaucetError,
    OperationInProgressError,
    parse_error,
)
from ..interfaces.faucet import FundingAction
from ..interfaces.protocol_client import ConfidentialClient
from ..models import SigningCapability, TransactionResult
from ..units import parse_units
from .balances import BalanceReconciler
from .session import Session

logger = logging.getLogger(__name__)


def _hash_of(receipt: Any) -> str:
    if isinstance(receipt, str):
        tx_hash = receipt
    elif isinstance(receipt, dict):
        tx_hash = receipt.get("hash")
    else:
        tx_hash = getattr(receipt, "hash", None)
    if not tx_hash:
        raise ValueError("Transaction receipt has no hash")
    return str(tx_hash)


class TransactionOrchestrator:
    """Runs every mutating call through the same lifecycle.

    Busy flag on, previous error cleared, call made, reconciliation
    scheduled, hash recorded. Failures are normalized into
    ``session.error`` and re-raised; the busy flag is always released.
    Only one operation may be in flight per session.
    """

    def __init__(
        self,
        session: Session,
        config_store: ChainConfigStore,
        engine_config: EngineConfig,
        reconciler: BalanceReconciler,
        get_client: Callable[[], ConfidentialClient | None],
        funding: FundingAction | None = None,
    ) -> None:
        self._session = session
        self._config_store = config_store
        self._engine_config = engine_config
        self._reconciler = reconciler
        self._get_client = get_client
        self._funding = funding
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def to_units(self, amount: str) -> int:
        """Protocol amounts always use the fixed confidential scale."""
        value = parse_units(amount, self._engine_config.confidential_decimals)
        if value < 0:
            raise ValueError(f"Amount must not be negative: {amount!r}")
        return value

    def _check_chain(self, signer: SigningCapability) -> None:
        chain_id = self._config_store.get().chain_id
        if signer.chain_id != chain_id:
            raise EngineNotInitializedError(
                f"Signer is bound to chain {signer.chain_id}, configured chain is {chain_id}"
            )

    def _require_client(self) -> tuple[ConfidentialClient, SigningCapability]:
        client = self._get_client()
        signer = self._session.signer
        if client is None or signer is None:
            raise EngineNotInitializedError("Client or signer not initialized")
        self._check_chain(signer)
        if not self._config_store.get().token_address:
            raise EngineNotInitializedError("Token address not configured")
        return client, signer

    async def _run(
        self,
        name: str,
        submit: Callable[[], Awaitable[Any]],
        refresh_delays: Sequence[float],
    ) -> TransactionResult:
        if self._lock.locked():
            raise OperationInProgressError(
                f"Cannot start {name}: another operation is in progress"
            )

        session = self._session
        async with self._lock:
            generation = session.generation
            with session.busy():
                session.error = None
                try:
                    tx_hash = _hash_of(await submit())
                except Exception as e:
                    session.error = parse_error(e)
                    logger.error("%s failed: %s", name, e)
                    raise

            if session.generation != generation:
                logger.warning("%s finished after signer change (tx %s)", name, tx_hash)
                return TransactionResult(hash=tx_hash)

            for delay in refresh_delays:
                self._reconciler.schedule(delay)

            session.last_tx_hash = tx_hash
            logger.info("%s submitted: %s", name, tx_hash)
            return TransactionResult(hash=tx_hash)

    async def confidential_deposit(self, amount: str) -> TransactionResult:
        client, signer = self._require_client()
        token_address = self._config_store.get().token_address

        async def submit() -> Any:
            return await client.confidential_deposit(
                signer, token_address, self.to_units(amount)
            )

        return await self._run(
            "Deposit", submit, (self._engine_config.reconcile_delay_seconds,)
        )

    async def confidential_transfer(self, recipient: str, amount: str) -> TransactionResult:
        client, signer = self._require_client()
        token_address = self._config_store.get().token_address

        async def submit() -> Any:
            if not is_address(recipient):
                raise ValueError(f"Invalid recipient address: {recipient}")
            return await client.confidential_transfer(
                signer, recipient, token_address, self.to_units(amount)
            )

        return await self._run(
            "Transfer", submit, (self._engine_config.reconcile_delay_seconds,)
        )

    async def withdraw(self, amount: str) -> TransactionResult:
        client, signer = self._require_client()
        token_address = self._config_store.get().token_address

        async def submit() -> Any:
            return await client.withdraw(signer, token_address, self.to_units(amount))

        return await self._run(
            "Withdraw", submit, (self._engine_config.reconcile_delay_seconds,)
        )

    async def request_faucet(self) -> TransactionResult:
        signer = self._session.signer
        if signer is None or self._funding is None:
            raise EngineNotInitializedError("Signer or faucet not initialized")
        self._check_chain(signer)
        funding = self._funding

        async def submit() -> Any:
            result = await funding.request(signer.address)
            if not result.success:
                raise FaucetError(result.error or "Faucet request failed")
            return result.hash or (result.hashes[0] if result.hashes else None)

        return await self._run(
            "Faucet", submit, self._engine_config.faucet_refresh_delays
        )
