"""Backend package for clan safe zone claims."""

from .config import BackendSettings, load_settings
from .coordinator import ZoneClaimCoordinator
from .engine import evaluate
from .sessions import InteractionSessionTracker
from .store import ClaimStore, InMemoryClaimStore, PostgresClaimStore, create_store

__all__ = [
    "BackendSettings",
    "ClaimStore",
    "create_store",
    "evaluate",
    "InMemoryClaimStore",
    "InteractionSessionTracker",
    "load_settings",
    "PostgresClaimStore",
    "ZoneClaimCoordinator",
]
