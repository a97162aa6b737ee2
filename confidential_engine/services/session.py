"""Per-wallet session state shared by the engine services."""
from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Coroutine, Iterator

from ..models import AccountKeys, BalanceSnapshot, SigningCapability

logger = logging.getLogger(__name__)


class Session:
    """Mutable state for one connected wallet.

    ``reset()`` is the only way back to the disconnected state; it runs
    synchronously so nothing from the old session survives into the next
    login.
    """

    def __init__(self) -> None:
        self.signer: SigningCapability | None = None
        self.user_keys: AccountKeys | None = None
        self.balances = BalanceSnapshot()
        self.error: str | None = None
        self.last_tx_hash: str | None = None
        # Bumped whenever the signer changes; reads started under an older
        # generation must not write back.
        self.generation = 0
        self._busy_depth = 0
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def loading(self) -> bool:
        return self._busy_depth > 0

    @contextmanager
    def busy(self) -> Iterator[None]:
        self._busy_depth += 1
        try:
            yield
        finally:
            self._busy_depth -= 1

    def set_signer(self, signer: SigningCapability) -> bool:
        """Install ``signer``. Returns True when it replaced a different binding."""
        if signer.same_binding(self.signer):
            self.signer = signer
            return False

        self.reset()
        self.signer = signer
        logger.info("Signer bound to %s on chain %d", signer.address, signer.chain_id)
        return True

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run a background coroutine owned by this session."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def reset(self) -> None:
        had_signer = self.signer is not None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

        self.signer = None
        self.user_keys = None
        self.balances = BalanceSnapshot()
        self.error = None
        self.last_tx_hash = None
        self.generation += 1
        if had_signer:
            logger.info("Session reset")
