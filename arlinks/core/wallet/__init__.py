"""Wallet key material and balance helpers."""
from .wallet import Wallet
from .balance import BalancePoller, winston_to_ar, ar_to_winston

__all__ = [
    'Wallet',
    'BalancePoller',
    'winston_to_ar',
    'ar_to_winston',
]
