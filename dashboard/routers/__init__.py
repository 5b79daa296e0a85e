"""
Ledger API Routers.
"""
from . import ledger, sync

__all__ = ["ledger", "sync"]
