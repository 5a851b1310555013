"""
Storage module for the interview assistant.
Provides the session repository and its durable snapshot store.
"""

from .repository import SessionRepository
from .persistence import SnapshotStore

__all__ = ['SessionRepository', 'SnapshotStore']
