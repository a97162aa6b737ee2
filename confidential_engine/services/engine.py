"""Session controller: wires config, signer, keys, balances and operations."""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from ..chains.evm import EvmClient
from ..config import AppConfig, ChainConfig, ChainConfigStore
from ..faucet import HttpFaucet
from ..interfaces.faucet import FundingAction
from ..interfaces.protocol_client import ConfidentialClient, ConfidentialClientFactory
from ..interfaces.wallet import IdentityProvider
from ..models import (
    AccountKeys,
    BalanceSnapshot,
    EngineState,
    OnboardingStatus,
    SigningCapability,
    TokenInfo,
    TransactionResult,
)
from .balances import BalanceReconciler
from .keys import AccountKeyManager
from .orchestrator import TransactionOrchestrator
from .session import Session
from .signer import SignerAcquisition

logger = logging.getLogger(__name__)


class ConfidentialEngine:
    """One controller per connected wallet.

    State changes arrive through explicit handlers: ``sync_wallet()`` when
    authentication or the wallet list changes, ``replace_config()`` when
    the network (including its chain id) changes. ``disconnect()`` is the
    explicit reset on logout.
    """

    def __init__(
        self,
        config: AppConfig,
        identity: IdentityProvider,
        client_factory: ConfidentialClientFactory,
        funding: FundingAction | None = None,
    ) -> None:
        self._config = config
        self._identity = identity
        self._client_factory = client_factory
        self._engine_config = config.engine

        if funding is None and config.faucet.enabled:
            funding = HttpFaucet(config.faucet)

        self._store = ChainConfigStore(config.chain)
        self._session = Session()
        self._chain = EvmClient(self._store.get())
        self._client = self._build_client(self._store.get())
        self._token = TokenInfo()

        self._signer_acquisition = SignerAcquisition(identity, self._store)
        self._keys = AccountKeyManager(self._session, lambda: self._client)
        self._reconciler = BalanceReconciler(
            self._session,
            self._store,
            self._engine_config,
            get_chain=lambda: self._chain,
            get_client=lambda: self._client,
            get_token=lambda: self._token,
        )
        self._orchestrator = TransactionOrchestrator(
            self._session,
            self._store,
            self._engine_config,
            self._reconciler,
            get_client=lambda: self._client,
            funding=funding,
        )
        self._unsubscribe = self._store.subscribe(self._on_config_replaced)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _build_client(self, chain: ChainConfig) -> ConfidentialClient | None:
        try:
            return self._client_factory(chain)
        except Exception as e:
            logger.error("Failed to initialize protocol client: %s", e)
            return None

    def _on_config_replaced(self, old: ChainConfig, new: ChainConfig) -> None:
        # Everything bound to the old network goes, including the signer.
        self.disconnect()
        self._chain = EvmClient(new)
        self._client = self._build_client(new)
        if new.token_address != old.token_address or new.rpc_url != old.rpc_url:
            self._token = TokenInfo()

    async def load_token_info(self) -> TokenInfo:
        """Read token symbol/decimals; failures keep the defaults."""
        chain = self._store.get()
        try:
            token = await self._chain.get_token_info(chain.token_address)
        except Exception as e:
            logger.warning("Failed to fetch token details: %s", e)
            return self._token

        if self._store.get() is chain:
            self._token = token
        return self._token

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self.load_token_info()
        await self.sync_wallet()

    async def sync_wallet(self) -> SigningCapability | None:
        """Re-evaluate the signer after an authentication or wallet change."""
        if not self._identity.authenticated:
            self.disconnect()
            return None

        signer = await self._signer_acquisition.acquire()
        if signer is None:
            self.disconnect()
            return None

        if self._session.set_signer(signer):
            self._reconciler.stop_polling()
        self._reconciler.start_polling()
        return signer

    async def replace_config(self, config: ChainConfig) -> None:
        if self._store.replace(config):
            await self.load_token_info()
            await self.sync_wallet()

    def disconnect(self) -> None:
        self._reconciler.stop_polling()
        self._session.reset()

    def close(self) -> None:
        self.disconnect()
        self._unsubscribe()

    async def __aenter__(self) -> ConfidentialEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def config(self) -> ChainConfig:
        return self._store.get()

    @property
    def signer(self) -> SigningCapability | None:
        return self._session.signer

    @property
    def client(self) -> ConfidentialClient | None:
        return self._client

    @property
    def user_keys(self) -> AccountKeys | None:
        return self._session.user_keys

    @property
    def balances(self) -> BalanceSnapshot:
        return self._session.balances

    @property
    def loading(self) -> bool:
        return self._session.loading

    @property
    def error(self) -> str | None:
        return self._session.error

    @property
    def last_tx_hash(self) -> str | None:
        return self._session.last_tx_hash

    @property
    def token(self) -> TokenInfo:
        return self._token

    @property
    def polling(self) -> bool:
        return self._reconciler.polling

    async def ensure_account(self) -> AccountKeys:
        """Derive (or return cached) keys; fresh keys trigger an immediate balance read."""
        had_keys = self._session.user_keys is not None
        keys = await self._keys.ensure_account()
        if not had_keys and self._session.user_keys is not None:
            self._reconciler.schedule(0)
        return keys

    async def fetch_balances(self, silent: bool = False) -> BalanceSnapshot | None:
        return await self._reconciler.refresh(silent)

    async def confidential_deposit(self, amount: str) -> TransactionResult:
        return await self._orchestrator.confidential_deposit(amount)

    async def confidential_transfer(self, recipient: str, amount: str) -> TransactionResult:
        return await self._orchestrator.confidential_transfer(recipient, amount)

    async def withdraw(self, amount: str) -> TransactionResult:
        return await self._orchestrator.withdraw(amount)

    async def request_faucet(self) -> TransactionResult:
        return await self._orchestrator.request_faucet()

    def tx_url(self, tx_hash: str | None = None) -> str | None:
        tx_hash = tx_hash or self._session.last_tx_hash
        if not tx_hash:
            return None
        return f"{self.config.explorer_url}{tx_hash}"

    def onboarding_status(self) -> OnboardingStatus:
        if self._session.signer is None:
            return OnboardingStatus.DISCONNECTED
        if self._session.user_keys is not None:
            return OnboardingStatus.READY

        try:
            native = Decimal(self._session.balances.native)
            threshold = Decimal(self._engine_config.min_native_balance)
        except InvalidOperation:
            logger.warning("Unparseable native balance: %s", self._session.balances.native)
            return OnboardingStatus.INSUFFICIENT_GAS

        if native < threshold:
            return OnboardingStatus.INSUFFICIENT_GAS
        return OnboardingStatus.READY_TO_INITIALIZE

    def state(self) -> EngineState:
        signer = self._session.signer
        chain = self.config
        return EngineState(
            chain_id=chain.chain_id,
            explorer_url=chain.explorer_url,
            signer_address=signer.address if signer else None,
            has_keys=self._session.user_keys is not None,
            balances=self._session.balances,
            loading=self._session.loading,
            error=self._session.error,
            last_tx_hash=self._session.last_tx_hash,
            token=self._token,
        )
