"""Service modules"""
from .balances import BalanceReconciler
from .engine import ConfidentialEngine
from .keys import AccountKeyManager
from .orchestrator import TransactionOrchestrator
from .session import Session
from .signer import SignerAcquisition

__all__ = [
    "AccountKeyManager",
    "BalanceReconciler",
    "ConfidentialEngine",
    "Session",
    "SignerAcquisition",
    "TransactionOrchestrator",
]
