"""Three-way balance reconciliation: native, public token, confidential."""
from __future__ import annotations

import asyncio
import logging
from contextlib import nullcontext
from typing import Any, Callable

from ..config import ChainConfigStore, EngineConfig
from ..interfaces.chain import ChainClient
from ..interfaces.protocol_client import ConfidentialClient
from ..models import AccountKeys, BalanceSnapshot, TokenInfo
from ..units import format_units
from .session import Session

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18


def _amount_of(raw: Any) -> int:
    if isinstance(raw, dict):
        return int(raw["amount"])
    if hasattr(raw, "amount"):
        return int(raw.amount)
    return int(raw)


class BalanceReconciler:
    """Reads the three balances and merges them into the session snapshot.

    Each read fails on its own: a field whose read fails keeps the value
    from the previous pass.
    """

    def __init__(
        self,
        session: Session,
        config_store: ChainConfigStore,
        engine_config: EngineConfig,
        get_chain: Callable[[], ChainClient],
        get_client: Callable[[], ConfidentialClient | None],
        get_token: Callable[[], TokenInfo],
    ) -> None:
        self._session = session
        self._config_store = config_store
        self._engine_config = engine_config
        self._get_chain = get_chain
        self._get_client = get_client
        self._get_token = get_token
        self._poll_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Individual reads
    # ------------------------------------------------------------------

    async def _read_native(self, address: str) -> str | None:
        try:
            wei = await self._get_chain().get_balance(address)
            return format_units(wei, NATIVE_DECIMALS)
        except Exception as e:
            logger.error("Error fetching native balance for %s: %s", address, e)
            return None

    async def _read_public(
        self, client: ConfidentialClient, address: str, token_address: str
    ) -> str | None:
        try:
            raw = await client.get_public_balance(address, token_address)
            return format_units(_amount_of(raw), self._get_token().decimals)
        except Exception as e:
            logger.warning("Error fetching public balance for %s: %s", address, e)
            return None

    async def _read_confidential(
        self,
        client: ConfidentialClient,
        address: str,
        keys: AccountKeys,
        token_address: str,
    ) -> str | None:
        try:
            raw = await client.get_confidential_balance(
                address, keys.private_key, token_address
            )
            return format_units(_amount_of(raw), self._engine_config.confidential_decimals)
        except Exception as e:
            logger.warning("Error fetching confidential balance for %s: %s", address, e)
            return None

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self, silent: bool = False) -> BalanceSnapshot | None:
        """Re-read all balances. No-op without a signer.

        ``silent`` leaves the busy flag alone (background polling).
        """
        session = self._session
        signer = session.signer
        if signer is None:
            return None

        generation = session.generation
        token_address = self._config_store.get().token_address
        client = self._get_client()
        keys = session.user_keys

        with nullcontext() if silent else session.busy():
            reads = [self._read_native(signer.address)]
            if client is not None and keys is not None:
                reads.append(self._read_public(client, signer.address, token_address))
                reads.append(
                    self._read_confidential(client, signer.address, keys, token_address)
                )
            results = await asyncio.gather(*reads)

        if session.generation != generation:
            logger.debug("Signer changed during balance refresh; discarding result")
            return None

        native = results[0]
        public = results[1] if len(results) > 1 else None
        confidential = results[2] if len(results) > 2 else None

        current = session.balances
        session.balances = BalanceSnapshot(
            native=native if native is not None else current.native,
            public=public if public is not None else current.public,
            confidential=confidential if confidential is not None else current.confidential,
        )
        return session.balances

    def schedule(self, delay: float) -> asyncio.Task[Any]:
        """Refresh once after ``delay`` seconds without blocking the caller."""

        async def _delayed() -> None:
            await asyncio.sleep(delay)
            await self.refresh(silent=True)

        return self._session.spawn(_delayed())

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def start_polling(self) -> None:
        if self.polling:
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    def stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll_loop(self) -> None:
        interval = self._engine_config.poll_interval_seconds
        logger.info("Starting balance polling (every %.0f seconds)", interval)

        while self._session.signer is not None:
            try:
                await self.refresh(silent=True)
            except Exception as e:
                logger.error("Error in balance polling loop: %s", e)
            await asyncio.sleep(interval)

        logger.info("Balance polling stopped: no signer")
