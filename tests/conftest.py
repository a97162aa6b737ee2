"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from confidential_engine.config import (
    AppConfig,
    ChainConfig,
    ChainConfigStore,
    EngineConfig,
    FaucetConfig,
)
from confidential_engine.models import AccountKeys, FaucetResult, SigningCapability, TokenInfo
from confidential_engine.services.session import Session

WALLET_ADDRESS = "0x1111111111111111111111111111111111111111"
OTHER_ADDRESS = "0x2222222222222222222222222222222222222222"
RECIPIENT_ADDRESS = "0x3333333333333333333333333333333333333333"
TOKEN_ADDRESS = "0x78Cf24370174180738C5B8E352B6D14c83a6c9A9"


# ---------------------------------------------------------------------------
# Wallet / identity fakes
# ---------------------------------------------------------------------------


class FakeWallet:
    """Wallet handle whose chain switch and provider calls are AsyncMocks."""

    def __init__(
        self,
        address: str,
        provider: Any = "provider",
        switch_error: Exception | None = None,
    ) -> None:
        self.address = address
        self.switch_chain = AsyncMock(side_effect=switch_error)
        self.get_provider = AsyncMock(return_value=provider)


@dataclass
class FakeIdentity:
    authenticated: bool = True
    address: str | None = WALLET_ADDRESS
    wallets: list[FakeWallet] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        rpc_url="https://rpc1.example.com",
        fallback_rpc_urls=("https://rpc2.example.com",),
        token_address=TOKEN_ADDRESS,
        explorer_url="https://explorer.example.com/tx/",
        chain_id=2201,
        contract_address="0x29E4fd434758b1677c10854Fa81C2fc496D76E62",
        rpc_timeout=5,
    )


@pytest.fixture()
def sample_engine_config() -> EngineConfig:
    return EngineConfig(
        poll_interval_seconds=30.0,
        reconcile_delay_seconds=2.0,
        faucet_refresh_delays=(0.0, 3.0, 6.0),
        confidential_decimals=2,
        min_native_balance="0.0005",
    )


@pytest.fixture()
def sample_app_config(
    sample_chain_config: ChainConfig, sample_engine_config: EngineConfig
) -> AppConfig:
    return AppConfig(
        active_network="testnet",
        networks={"testnet": sample_chain_config},
        engine=sample_engine_config,
        faucet=FaucetConfig(enabled=False),
    )


@pytest.fixture()
def config_store(sample_chain_config: ChainConfig) -> ChainConfigStore:
    return ChainConfigStore(sample_chain_config)


# ---------------------------------------------------------------------------
# Session / collaborator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_signer() -> SigningCapability:
    return SigningCapability(address=WALLET_ADDRESS, chain_id=2201, provider="provider")


@pytest.fixture()
def sample_keys() -> AccountKeys:
    return AccountKeys(public_key="pub-key", private_key="priv-key")


@pytest.fixture()
def session(sample_signer: SigningCapability) -> Session:
    s = Session()
    s.set_signer(sample_signer)
    return s


@pytest.fixture()
def protocol_client(sample_keys: AccountKeys) -> AsyncMock:
    client = AsyncMock()
    client.ensure_account.return_value = sample_keys
    client.get_public_balance.return_value = 12_500_000
    client.get_confidential_balance.return_value = {"amount": 150}
    client.confidential_deposit.return_value = {"hash": "0xdeposit"}
    client.confidential_transfer.return_value = MagicMock(hash="0xtransfer")
    client.withdraw.return_value = {"hash": "0xwithdraw"}
    return client


@pytest.fixture()
def chain_client() -> AsyncMock:
    chain = AsyncMock()
    chain.get_balance.return_value = 10**18
    chain.get_token_info.return_value = TokenInfo(symbol="USDC", decimals=6)
    return chain


@pytest.fixture()
def funding() -> AsyncMock:
    action = AsyncMock()
    action.request.return_value = FaucetResult(
        success=True, hash="0xfaucet", hashes=("0xfaucet",)
    )
    return action


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    active_network: testnet
    networks:
      testnet:
        rpc_url: "https://rpc.example.com"
        fallback_rpc_urls: ["https://rpc-backup.example.com"]
        chain_id: 2201
        contract_address: "0xabc"
        token_address: "0xdef"
        explorer_url: "https://explorer.example.com/tx/"
        rpc_timeout: 10
      other:
        rpc_url: "https://other.example.com"
        chain_id: 84532
        token_address: "0x123"
        explorer_url: "https://other-explorer.example.com/tx/"
    engine:
      poll_interval_seconds: 15
      reconcile_delay_seconds: 2
      faucet_refresh_delays: [0, 3, 6]
      confidential_decimals: 2
      min_native_balance: "0.001"
    faucet:
      enabled: true
      url: "https://faucet.example.com/api/faucet"
      timeout: 20
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


@pytest.fixture()
def wallet() -> FakeWallet:
    return FakeWallet(WALLET_ADDRESS)


@pytest.fixture()
def wallet_factory() -> type[FakeWallet]:
    return FakeWallet


@pytest.fixture()
def identity(wallet: FakeWallet) -> FakeIdentity:
    return FakeIdentity(wallets=[wallet])
