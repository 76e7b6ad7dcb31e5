"""Client package public exports."""

from .engine import SyncEngine
from .reconciler import Reconciler

__all__ = ["SyncEngine", "Reconciler"]
