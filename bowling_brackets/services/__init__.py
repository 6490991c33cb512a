"""
Services package for the bracket engine.

Shared retry, deadline and locking infrastructure for the operations layer.
"""

from .base import BaseService
from .locks import KeyedLockRegistry

__all__ = ['BaseService', 'KeyedLockRegistry']
