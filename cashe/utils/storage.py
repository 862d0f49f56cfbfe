"""Storage backend selection for the NLP core."""

from typing import Optional, Tuple

from cashe.utils.repositories import ConversationStateRepository, IdentityRepository, LedgerRepository
from .config import settings
from .logger import get_logger

logger = get_logger("storage")


def build_repositories(backend: Optional[str] = None) -> Tuple[IdentityRepository, LedgerRepository,
                                                               ConversationStateRepository]:
    """
    Create the identity, ledger and state repositories.

    Args:
        backend: "mongodb" or "memory"; defaults to STORAGE_BACKEND

    Returns:
        (identity, ledger, state) repositories
    """
    backend = (backend or settings.storage_backend).lower()

    if backend == "memory":
        from cashe.utils.memory_store import build_memory_repositories

        logger.info("🧠 Using in-memory storage")
        return build_memory_repositories()

    if backend == "mongodb":
        from cashe.utils.mongodb_manager import MongoDBManager

        manager = MongoDBManager()
        if not manager.connected:
            logger.warning("⚠️ MongoDB not connected - requests will fail until it is reachable")
        return manager, manager, manager

    raise ValueError(f"Unknown storage backend: {backend}")
