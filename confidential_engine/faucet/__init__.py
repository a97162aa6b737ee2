"""Faucet funding clients."""
from .http import HttpFaucet

__all__ = ["HttpFaucet"]
