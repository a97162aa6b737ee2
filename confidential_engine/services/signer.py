"""Signing capability acquisition from the identity provider's wallets."""
from __future__ import annotations

import logging
from typing import Sequence

from ..config import ChainConfigStore
from ..interfaces.wallet import IdentityProvider, WalletHandle
from ..models import SigningCapability

logger = logging.getLogger(__name__)


class SignerAcquisition:
    """Produce a signing capability for the current wallet and chain."""

    def __init__(self, identity: IdentityProvider, config_store: ChainConfigStore) -> None:
        self._identity = identity
        self._config_store = config_store

    @staticmethod
    def select_wallet(
        wallets: Sequence[WalletHandle], resolved_address: str | None
    ) -> WalletHandle | None:
        """Pick the wallet matching ``resolved_address``.

        A lone wallet is used even without a match. With several wallets
        and no match there is no safe choice, so nothing is returned.
        """
        if not wallets:
            return None

        if resolved_address:
            target = resolved_address.lower()
            for wallet in wallets:
                if wallet.address and wallet.address.lower() == target:
                    return wallet

        if len(wallets) == 1:
            return wallets[0]

        logger.info(
            "%d wallets connected, none matches %s; waiting", len(wallets), resolved_address
        )
        return None

    async def acquire(self) -> SigningCapability | None:
        """Return a signer, or None when unauthenticated or acquisition failed."""
        if not self._identity.authenticated:
            return None

        wallet = self.select_wallet(self._identity.wallets, self._identity.address)
        if wallet is None:
            return None

        chain_id = self._config_store.get().chain_id
        try:
            await wallet.switch_chain(chain_id)
            provider = await wallet.get_provider()
        except Exception as e:
            logger.error(
                "Failed to acquire signer for %s on chain %d: %s", wallet.address, chain_id, e
            )
            return None

        if provider is None:
            logger.error("Wallet %s returned no provider", wallet.address)
            return None

        return SigningCapability(address=wallet.address, chain_id=chain_id, provider=provider)
