#!/usr/bin/env python3
"""
In-memory repositories.
Used by the local CLI, by STORAGE_BACKEND=memory and by the test suite.
"""

import uuid
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from cashe.schemas.core import (
    Budget,
    ConversationStateRecord,
    InstallmentPurchase,
    LedgerFilter,
    Movement,
    Platform,
    PlatformUser,
    Transfer,
    UserAccount,
    UserCategory,
    UserContext,
    UserSettings,
)
from cashe.utils.errors import StateConflictError
from cashe.utils.logger import get_logger
from cashe.utils.repositories import (
    ConversationStateRepository,
    IdentityRepository,
    LedgerRepository,
    sort_newest_first,
    state_key,
)

logger = get_logger("memory_store")


def _new_id() -> str:
    return uuid.uuid4().hex


def _in_range(value: date, start: Optional[date], end: Optional[date]) -> bool:
    if start and value < start:
        return False
    if end and value > end:
        return False
    return True


class MemoryIdentityRepository(IdentityRepository):
    """Users, their accounts and categories kept in dicts."""

    def __init__(self):
        self.platform_users: Dict[str, PlatformUser] = {}
        self.accounts: Dict[str, List[UserAccount]] = {}
        self.categories: Dict[str, List[UserCategory]] = {}
        self.settings: Dict[str, UserSettings] = {}

    def link_platform_user(self, platform: Platform, platform_user_id: str, user_id: str,
                           verified: bool = True) -> PlatformUser:
        link = PlatformUser(user_id=user_id, platform=platform,
                            platform_user_id=platform_user_id, verified=verified)
        self.platform_users[state_key(platform, platform_user_id)] = link
        return link

    def add_account(self, user_id: str, account: UserAccount) -> UserAccount:
        self.accounts.setdefault(user_id, []).append(account)
        return account

    def add_category(self, user_id: str, category: UserCategory) -> UserCategory:
        self.categories.setdefault(user_id, []).append(category)
        return category

    async def get_platform_user(self, platform: Platform, platform_user_id: str) -> Optional[PlatformUser]:
        return self.platform_users.get(state_key(platform, platform_user_id))

    async def get_user_context(self, user_id: str) -> UserContext:
        # Copies so a turn never mutates the stored snapshot
        return UserContext(
            user_id=user_id,
            accounts=[a.model_copy() for a in self.accounts.get(user_id, [])],
            categories=[c.model_copy() for c in self.categories.get(user_id, [])],
            settings=self.settings.get(user_id, UserSettings()).model_copy(),
        )


class MemoryLedgerRepository(LedgerRepository):
    """Ledger rows kept in lists."""

    def __init__(self):
        self.movements: List[Movement] = []
        self.transfers: List[Transfer] = []
        self.installment_purchases: Dict[str, InstallmentPurchase] = {}
        self.budgets: List[Budget] = []

    async def insert_movement(self, movement: Movement) -> Movement:
        stored = movement.model_copy(update={"id": movement.id or _new_id(),
                                             "created_at": movement.created_at or datetime.now()})
        self.movements.append(stored)
        return stored

    async def insert_movements(self, movements: List[Movement]) -> List[Movement]:
        return [await self.insert_movement(m) for m in movements]

    async def insert_transfer(self, transfer: Transfer) -> Transfer:
        stored = transfer.model_copy(update={"id": transfer.id or _new_id(),
                                             "created_at": transfer.created_at or datetime.now()})
        self.transfers.append(stored)
        return stored

    async def insert_installment_purchase(self, purchase: InstallmentPurchase) -> InstallmentPurchase:
        stored = purchase.model_copy(update={"id": purchase.id or _new_id()})
        self.installment_purchases[stored.id] = stored
        return stored

    async def delete_installment_purchase(self, user_id: str, purchase_id: str) -> bool:
        purchase = self.installment_purchases.get(purchase_id)
        if not purchase or purchase.user_id != user_id:
            return False
        del self.installment_purchases[purchase_id]
        # Cascade like the relational schema does
        self.movements = [m for m in self.movements if m.installment_purchase_id != purchase_id]
        return True

    async def query_movements(self, ledger_filter: LedgerFilter) -> List[Movement]:
        f = ledger_filter
        rows = [
            m for m in self.movements
            if m.user_id == f.user_id
            and (f.type is None or m.type == f.type)
            and (f.account_id is None or m.account_id == f.account_id)
            and (f.category_id is None or m.category_id == f.category_id)
            and _in_range(m.date, f.start_date, f.end_date)
        ]
        rows = sort_newest_first(rows)
        return rows[:f.limit] if f.limit else rows

    async def query_transfers(self, ledger_filter: LedgerFilter) -> List[Transfer]:
        f = ledger_filter
        rows = [
            t for t in self.transfers
            if t.user_id == f.user_id
            and (f.account_id is None or f.account_id in (t.from_account_id, t.to_account_id))
            and _in_range(t.date, f.start_date, f.end_date)
        ]
        rows = sort_newest_first(rows)
        return rows[:f.limit] if f.limit else rows

    async def list_budgets(self, user_id: str) -> List[Budget]:
        return [b for b in self.budgets if b.user_id == user_id and b.is_active]


class MemoryStateRepository(ConversationStateRepository):
    """Conversation records in a dict with version compare-and-swap."""

    def __init__(self):
        self.records: Dict[str, ConversationStateRecord] = {}

    async def get(self, platform: Platform, platform_user_id: str) -> Optional[ConversationStateRecord]:
        record = self.records.get(state_key(platform, platform_user_id))
        return record.model_copy(deep=True) if record else None

    async def create(self, record: ConversationStateRecord) -> ConversationStateRecord:
        key = state_key(record.platform, record.platform_user_id)
        if key in self.records:
            raise StateConflictError(record.platform.value, record.platform_user_id)
        stored = record.model_copy(deep=True, update={"version": 0})
        self.records[key] = stored
        return stored.model_copy(deep=True)

    async def update(self, record: ConversationStateRecord, expected_version: int) -> ConversationStateRecord:
        key = state_key(record.platform, record.platform_user_id)
        current = self.records.get(key)
        if current is None or current.version != expected_version:
            raise StateConflictError(record.platform.value, record.platform_user_id, expected_version)
        stored = record.model_copy(deep=True, update={"version": expected_version + 1})
        self.records[key] = stored
        return stored.model_copy(deep=True)

    async def delete(self, platform: Platform, platform_user_id: str) -> bool:
        return self.records.pop(state_key(platform, platform_user_id), None) is not None

    async def cleanup_expired(self, now: datetime) -> int:
        expired = [key for key, record in self.records.items() if record.expires_at < now]
        for key in expired:
            del self.records[key]
        if expired:
            logger.debug(f"Removed {len(expired)} expired conversation states")
        return len(expired)


def build_memory_repositories() -> Tuple[MemoryIdentityRepository, MemoryLedgerRepository, MemoryStateRepository]:
    return MemoryIdentityRepository(), MemoryLedgerRepository(), MemoryStateRepository()


DEMO_USER_ID = "demo-user"


def seed_demo_user(identity: MemoryIdentityRepository, platform: Platform = Platform.TELEGRAM,
                   platform_user_id: str = "local") -> str:
    """Create a demo user with a typical Argentine set of accounts and categories."""
    identity.link_platform_user(platform, platform_user_id, DEMO_USER_ID)
    for account in (
        UserAccount(id="acc-efectivo", name="Efectivo", icon="💵", initial_balance=20000),
        UserAccount(id="acc-galicia", name="Banco Galicia", icon="🏦", initial_balance=150000),
        UserAccount(id="acc-mp", name="MercadoPago", icon="💙", initial_balance=45000),
        UserAccount(id="acc-usd", name="Caja de Ahorro USD", currency="USD", icon="💵", initial_balance=500),
        UserAccount(id="acc-visa", name="Visa Galicia", icon="💳", is_credit_card=True, closing_day=25),
    ):
        identity.add_account(DEMO_USER_ID, account)
    for category in (
        UserCategory(id="cat-comida", name="Comida", type="expense", icon="🍔"),
        UserCategory(id="cat-super", name="Supermercado", type="expense", icon="🛒"),
        UserCategory(id="cat-transporte", name="Transporte", type="expense", icon="🚌"),
        UserCategory(id="cat-servicios", name="Servicios", type="expense", icon="💡"),
        UserCategory(id="cat-salidas", name="Salidas", type="expense", icon="🍻"),
        UserCategory(id="cat-impuestos", name="Impuestos", type="expense", icon="🧾"),
        UserCategory(id="cat-otros", name="Otros gastos", type="expense", icon="📦"),
        UserCategory(id="cat-sueldo", name="Sueldo", type="income", icon="💰"),
        UserCategory(id="cat-freelance", name="Freelance", type="income", icon="💻"),
    ):
        identity.add_category(DEMO_USER_ID, category)
    return DEMO_USER_ID
