"""
Deployment slot storage.
"""

from .store import SlotStore

__all__ = ["SlotStore"]
