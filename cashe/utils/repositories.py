#!/usr/bin/env python3
"""
Repository contracts used by the NLP core.

Three narrow interfaces: identity/context lookup, ledger reads and writes,
and the conversation state store. ``memory_store`` and ``mongodb_manager``
provide the implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from cashe.schemas.core import (
    Budget,
    ConversationStateRecord,
    InstallmentPurchase,
    LedgerFilter,
    Movement,
    Platform,
    PlatformUser,
    Transfer,
    UserContext,
)


class IdentityRepository(ABC):
    """Links chat identities to users and loads per-turn context."""

    @abstractmethod
    async def get_platform_user(self, platform: Platform, platform_user_id: str) -> Optional[PlatformUser]:
        ...

    @abstractmethod
    async def get_user_context(self, user_id: str) -> UserContext:
        """Fresh snapshot of the user's accounts, categories and settings."""


class LedgerRepository(ABC):
    """Movements, transfers, installment purchases and budgets."""

    @abstractmethod
    async def insert_movement(self, movement: Movement) -> Movement:
        ...

    @abstractmethod
    async def insert_movements(self, movements: List[Movement]) -> List[Movement]:
        ...

    @abstractmethod
    async def insert_transfer(self, transfer: Transfer) -> Transfer:
        ...

    @abstractmethod
    async def insert_installment_purchase(self, purchase: InstallmentPurchase) -> InstallmentPurchase:
        ...

    @abstractmethod
    async def delete_installment_purchase(self, user_id: str, purchase_id: str) -> bool:
        ...

    @abstractmethod
    async def query_movements(self, ledger_filter: LedgerFilter) -> List[Movement]:
        """Movements matching the filter, newest first."""

    @abstractmethod
    async def query_transfers(self, ledger_filter: LedgerFilter) -> List[Transfer]:
        """Transfers matching the filter, newest first.

        ``account_id`` matches either side of the transfer.
        """

    @abstractmethod
    async def list_budgets(self, user_id: str) -> List[Budget]:
        ...

    async def calculate_account_balance(self, user_id: str, account_id: str,
                                        initial_balance: float = 0.0) -> float:
        """initial + incomes - expenses + incoming transfers - outgoing transfers."""
        account_filter = LedgerFilter(user_id=user_id, account_id=account_id)
        balance = initial_balance
        for movement in await self.query_movements(account_filter):
            balance += movement.amount if movement.type == "income" else -movement.amount
        for transfer in await self.query_transfers(account_filter):
            if transfer.to_account_id == account_id:
                balance += transfer.to_amount
            if transfer.from_account_id == account_id:
                balance -= transfer.from_amount
        return round(balance, 2)


class ConversationStateRepository(ABC):
    """Raw storage for conversation records keyed by (platform, platform_user_id).

    Expiry is interpreted by the caller; this layer only stores, compares
    versions and sweeps.
    """

    @abstractmethod
    async def get(self, platform: Platform, platform_user_id: str) -> Optional[ConversationStateRecord]:
        ...

    @abstractmethod
    async def create(self, record: ConversationStateRecord) -> ConversationStateRecord:
        """Insert a new record.

        Raises:
            StateConflictError: a record already exists for the key
        """

    @abstractmethod
    async def update(self, record: ConversationStateRecord, expected_version: int) -> ConversationStateRecord:
        """Replace the record if its stored version equals ``expected_version``.

        Returns:
            The stored record with version ``expected_version + 1``

        Raises:
            StateConflictError: the stored version differs or the record is gone
        """

    @abstractmethod
    async def delete(self, platform: Platform, platform_user_id: str) -> bool:
        ...

    @abstractmethod
    async def cleanup_expired(self, now: datetime) -> int:
        """Delete every record whose ``expires_at`` is before ``now``."""


def state_key(platform: Platform, platform_user_id: str) -> str:
    platform_value = platform.value if isinstance(platform, Platform) else str(platform)
    return f"{platform_value}:{platform_user_id}"


def sort_newest_first(items: List, created_default: Optional[datetime] = None) -> List:
    """Sort ledger rows by date then creation time, newest first."""
    fallback = created_default or datetime.min

    def _key(item) -> tuple:
        created = item.created_at or fallback
        if created.tzinfo is not None:
            created = created.replace(tzinfo=None)
        return item.date, created

    return sorted(items, key=_key, reverse=True)


def group_totals(movements: List[Movement]) -> Dict[str, float]:
    """Sum movement amounts per currency."""
    totals: Dict[str, float] = {}
    for movement in movements:
        totals[movement.currency] = totals.get(movement.currency, 0.0) + movement.amount
    return totals
