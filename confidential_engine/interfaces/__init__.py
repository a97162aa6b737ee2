"""Protocol interfaces for the confidential balance engine."""
from .chain import ChainClient
from .faucet import FundingAction
from .protocol_client import ConfidentialClient, ConfidentialClientFactory
from .wallet import IdentityProvider, WalletHandle

__all__ = [
    "ChainClient",
    "ConfidentialClient",
    "ConfidentialClientFactory",
    "FundingAction",
    "IdentityProvider",
    "WalletHandle",
]
