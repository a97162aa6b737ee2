"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainConfig:
    rpc_url: str = ""
    token_address: str = ""
    explorer_url: str = ""
    chain_id: int = 0
    contract_address: str = ""
    fallback_rpc_urls: tuple[str, ...] = ()
    rpc_timeout: int = 30

    @property
    def rpc_endpoints(self) -> tuple[str, ...]:
        return (self.rpc_url, *self.fallback_rpc_urls)


@dataclass(frozen=True)
class EngineConfig:
    poll_interval_seconds: float = 10.0
    reconcile_delay_seconds: float = 2.0
    faucet_refresh_delays: tuple[float, ...] = (0.0, 3.0, 6.0)
    confidential_decimals: int = 2
    min_native_balance: str = "0.0005"


@dataclass(frozen=True)
class FaucetConfig:
    enabled: bool = False
    url: str = ""
    timeout: int = 60


@dataclass(frozen=True)
class AppConfig:
    active_network: str = ""
    networks: dict[str, ChainConfig] = field(default_factory=dict)
    engine: EngineConfig = field(default_factory=EngineConfig)
    faucet: FaucetConfig = field(default_factory=FaucetConfig)

    @property
    def chain(self) -> ChainConfig:
        return self.networks[self.active_network]


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    chain_id = raw.get("chain_id", 0)
    return ChainConfig(
        rpc_url=raw.get("rpc_url", ""),
        token_address=raw.get("token_address", ""),
        explorer_url=raw.get("explorer_url", ""),
        chain_id=int(chain_id) if chain_id not in ("", None) else 0,
        contract_address=raw.get("contract_address", "") or "",
        fallback_rpc_urls=tuple(raw.get("fallback_rpc_urls", [])),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
    )


def _build_networks(raw: dict[str, Any]) -> dict[str, ChainConfig]:
    return {name: _build_chain(cfg or {}) for name, cfg in raw.items()}


def _build_engine(raw: dict[str, Any]) -> EngineConfig:
    defaults = EngineConfig()
    return EngineConfig(
        poll_interval_seconds=float(
            raw.get("poll_interval_seconds", defaults.poll_interval_seconds)
        ),
        reconcile_delay_seconds=float(
            raw.get("reconcile_delay_seconds", defaults.reconcile_delay_seconds)
        ),
        faucet_refresh_delays=tuple(
            float(d)
            for d in raw.get("faucet_refresh_delays", defaults.faucet_refresh_delays)
        ),
        confidential_decimals=int(
            raw.get("confidential_decimals", defaults.confidential_decimals)
        ),
        min_native_balance=str(
            raw.get("min_native_balance", defaults.min_native_balance)
        ),
    )


def _build_faucet(raw: dict[str, Any]) -> FaucetConfig:
    return FaucetConfig(
        enabled=bool(raw.get("enabled", False)),
        url=raw.get("url", ""),
        timeout=int(raw.get("timeout", 60)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    config_path: str | Path | None = None, network: str | None = None
) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (two levels up from this file).
        network: Overrides ``active_network`` from the file.
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        active_network=network or raw.get("active_network", ""),
        networks=_build_networks(raw.get("networks", {})),
        engine=_build_engine(raw.get("engine", {})),
        faucet=_build_faucet(raw.get("faucet", {})),
    )

    _validate(cfg)
    logger.info(
        "Configuration loaded from %s (network: %s)", config_path, cfg.active_network
    )
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.networks:
        raise ValueError("At least one network must be configured")

    if cfg.active_network not in cfg.networks:
        raise ValueError(f"Active network '{cfg.active_network}' is not configured")

    for name, chain in cfg.networks.items():
        try:
            validate_chain_config(chain)
        except ValueError as e:
            raise ValueError(f"Network '{name}': {e}") from e

    if cfg.engine.poll_interval_seconds <= 0:
        raise ValueError("poll_interval_seconds must be positive")

    if cfg.faucet.enabled and not cfg.faucet.url:
        logger.warning("Faucet is enabled but has no url; requests will fail")


def validate_chain_config(chain: ChainConfig) -> None:
    """Check the minimum a chain config needs: URLs present, chain id positive.

    Addresses and reachability are not checked here; a bad value surfaces
    as a connection failure once something tries to use it.
    """
    if not isinstance(chain.rpc_url, str) or not chain.rpc_url:
        raise ValueError("rpc_url must be a non-empty string")
    if not isinstance(chain.explorer_url, str) or not chain.explorer_url:
        raise ValueError("explorer_url must be a non-empty string")
    if (
        not isinstance(chain.chain_id, int)
        or isinstance(chain.chain_id, bool)
        or chain.chain_id <= 0
    ):
        raise ValueError("chain_id must be a positive integer")


# ---------------------------------------------------------------------------
# Runtime store
# ---------------------------------------------------------------------------

ConfigListener = Callable[[ChainConfig, ChainConfig], None]


class ChainConfigStore:
    """Holds the active chain configuration and notifies listeners on change."""

    def __init__(self, config: ChainConfig) -> None:
        validate_chain_config(config)
        self._config = config
        self._listeners: list[ConfigListener] = []

    def get(self) -> ChainConfig:
        return self._config

    def replace(self, config: ChainConfig) -> bool:
        """Swap the active config. Returns False when nothing changed."""
        validate_chain_config(config)
        old = self._config
        if config == old:
            return False

        self._config = config
        logger.info(
            "Chain config replaced (chain %d -> %d, rpc %s -> %s)",
            old.chain_id,
            config.chain_id,
            old.rpc_url,
            config.rpc_url,
        )
        for listener in list(self._listeners):
            listener(old, config)
        return True

    def subscribe(self, listener: ConfigListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
