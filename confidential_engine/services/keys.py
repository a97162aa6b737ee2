"""Confidential account key derivation and caching."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from ..errors import EngineNotInitializedError, parse_error
from ..interfaces.protocol_client import ConfidentialClient
from ..models import AccountKeys
from .session import Session

logger = logging.getLogger(__name__)


def _field(raw: Any, *names: str) -> Any:
    for name in names:
        if isinstance(raw, dict) and raw.get(name):
            return raw[name]
        value = getattr(raw, name, None)
        if value:
            return value
    return None


def coerce_keys(raw: Any) -> AccountKeys:
    """Accept an ``AccountKeys``, a mapping, or any object with key attributes."""
    if isinstance(raw, AccountKeys):
        return raw
    public_key = _field(raw, "public_key", "publicKey")
    private_key = _field(raw, "private_key", "privateKey")
    if not public_key or not private_key:
        raise ValueError("Protocol client returned incomplete key material")
    return AccountKeys(public_key=str(public_key), private_key=str(private_key))


class AccountKeyManager:
    """Derive the confidential keypair once per signer and keep it in memory."""

    def __init__(
        self, session: Session, get_client: Callable[[], ConfidentialClient | None]
    ) -> None:
        self._session = session
        self._get_client = get_client
        self._lock = asyncio.Lock()

    async def ensure_account(self) -> AccountKeys:
        session = self._session
        signer = session.signer
        client = self._get_client()
        if signer is None or client is None:
            raise EngineNotInitializedError("Client or signer not initialized")

        if session.user_keys is not None:
            return session.user_keys

        async with self._lock:
            # Another caller may have finished the derivation while we waited.
            if session.user_keys is not None:
                return session.user_keys
            signer = session.signer
            if signer is None:
                raise EngineNotInitializedError("Client or signer not initialized")

            generation = session.generation
            with session.busy():
                session.error = None
                try:
                    keys = coerce_keys(await client.ensure_account(signer))
                except Exception as e:
                    session.error = parse_error(e)
                    logger.error("Account setup failed for %s: %s", signer.address, e)
                    raise

            if session.generation != generation:
                logger.warning("Signer changed during account setup; keys not cached")
                return keys

            session.user_keys = keys
            logger.info("Confidential account ready for %s", signer.address)
            return keys
