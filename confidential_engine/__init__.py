"""Confidential balance engine for EVM chains."""
from .config import AppConfig, ChainConfig, ChainConfigStore, load_config
from .errors import (
    EngineNotInitializedError,
    FaucetError,
    OperationInProgressError,
    normalize_error,
    parse_error,
)
from .services import ConfidentialEngine

__all__ = [
    "AppConfig",
    "ChainConfig",
    "ChainConfigStore",
    "ConfidentialEngine",
    "EngineNotInitializedError",
    "FaucetError",
    "OperationInProgressError",
    "load_config",
    "normalize_error",
    "parse_error",
]
