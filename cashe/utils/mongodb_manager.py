#!/usr/bin/env python3
"""
MongoDB Manager for the Cashé bot.
Implements the identity, ledger and conversation state repositories on
MongoDB collections.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError
from pymongo.mongo_client import MongoClient
from pymongo.server_api import ServerApi

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
from cashe.utils.errors import PersistenceError, StateConflictError
from cashe.utils.repositories import (
    ConversationStateRepository,
    IdentityRepository,
    LedgerRepository,
)
from .config import settings
from .logger import chat_label, get_logger

logger = get_logger("mongodb_manager")


def _doc_to_model(model_cls, doc: Dict[str, Any]):
    """Turn a stored document into a model, mapping ``_id`` to ``id``."""
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    return model_cls.model_validate(data)


def _object_id(value: str):
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return value


def _date_range(f: LedgerFilter) -> Dict[str, str]:
    # Dates are stored as ISO strings, which sort chronologically
    condition: Dict[str, str] = {}
    if f.start_date:
        condition["$gte"] = f.start_date.isoformat()
    if f.end_date:
        condition["$lte"] = f.end_date.isoformat()
    return condition


class MongoDBManager(IdentityRepository, LedgerRepository, ConversationStateRepository):
    """MongoDB connection and repository operations."""

    def __init__(self, mongodb_url: Optional[str] = None, database: Optional[str] = None):
        self.mongodb_url = mongodb_url or settings.mongodb_url
        self.database_name = database or settings.mongodb_database
        self.client: Optional[MongoClient] = None
        self.db: Optional[Database] = None
        self.connected: bool = False
        self._connect()

    def _connect(self):
        """Connect to MongoDB."""
        try:
            if "<db_password>" in self.mongodb_url:
                logger.warning("MongoDB password placeholder found - please replace <db_password> with actual password")
                return

            self.client = MongoClient(self.mongodb_url, server_api=ServerApi('1'), tz_aware=True)

            # Test connection
            self.client.admin.command('ping')

            self.db = self.client[self.database_name]
            self.connected = True

            self._create_indexes()

            logger.info(f"✅ Connected to MongoDB database: {self.database_name}")

        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            self.connected = False

    def _create_indexes(self):
        """Create database indexes for lookups and state expiry."""
        if not self.connected or self.db is None:
            return

        try:
            self.db.platform_users.create_index(
                [("platform", ASCENDING), ("platform_user_id", ASCENDING)], unique=True)

            self.db.accounts.create_index([("user_id", ASCENDING)])
            self.db.categories.create_index([("user_id", ASCENDING), ("type", ASCENDING)])

            self.db.movements.create_index([("user_id", ASCENDING), ("date", DESCENDING)])
            self.db.movements.create_index([("user_id", ASCENDING), ("account_id", ASCENDING)])
            self.db.movements.create_index([("installment_purchase_id", ASCENDING)])

            self.db.transfers.create_index([("user_id", ASCENDING), ("date", DESCENDING)])

            self.db.budgets.create_index([("user_id", ASCENDING), ("is_active", ASCENDING)])

            # One live record per chat identity; Mongo drops expired ones on its own
            states = self.db.conversation_states
            states.create_index([("platform", ASCENDING), ("platform_user_id", ASCENDING)], unique=True)
            states.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)

            logger.info("✅ Database indexes created successfully")

        except Exception as e:
            logger.warning(f"Failed to create database indexes: {e}")

    def is_connected(self) -> bool:
        """Check if MongoDB is connected."""
        return self.connected

    def _require_db(self) -> Database:
        if not self.connected or self.db is None:
            raise PersistenceError("MongoDB is not connected")
        return self.db

    # Identity
    async def get_platform_user(self, platform: Platform, platform_user_id: str) -> Optional[PlatformUser]:
        db = self._require_db()
        try:
            doc = db.platform_users.find_one({"platform": platform.value, "platform_user_id": platform_user_id})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to get platform user: {e}")
        if not doc:
            return None
        doc.pop("_id", None)
        return PlatformUser.model_validate(doc)

    async def get_user_context(self, user_id: str) -> UserContext:
        db = self._require_db()
        try:
            accounts = [_doc_to_model(UserAccount, d) for d in db.accounts.find({"user_id": user_id})]
            categories = [_doc_to_model(UserCategory, d) for d in db.categories.find({"user_id": user_id})]
            settings_doc = db.user_settings.find_one({"user_id": user_id}) or {}
        except PyMongoError as e:
            raise PersistenceError(f"Failed to load user context: {e}")

        user_settings = UserSettings(
            default_currency=settings_doc.get("default_currency", settings.default_currency),
            exchange_rate=settings_doc.get("exchange_rate"),
        )
        return UserContext(user_id=user_id, accounts=accounts, categories=categories, settings=user_settings)

    # Ledger writes
    async def insert_movement(self, movement: Movement) -> Movement:
        db = self._require_db()
        doc = movement.model_dump(mode="json", exclude={"id"})
        doc["created_at"] = movement.created_at or datetime.utcnow()
        try:
            result = db.movements.insert_one(doc)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to insert movement: {e}")
        logger.debug(f"Saved {movement.type} movement for user {movement.user_id}")
        return movement.model_copy(update={"id": str(result.inserted_id), "created_at": doc["created_at"]})

    async def insert_movements(self, movements: List[Movement]) -> List[Movement]:
        if not movements:
            return []
        db = self._require_db()
        now = datetime.utcnow()
        docs = []
        for movement in movements:
            doc = movement.model_dump(mode="json", exclude={"id"})
            doc["created_at"] = movement.created_at or now
            docs.append(doc)
        try:
            result = db.movements.insert_many(docs, ordered=True)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to insert movements: {e}")
        return [
            m.model_copy(update={"id": str(inserted_id), "created_at": doc["created_at"]})
            for m, doc, inserted_id in zip(movements, docs, result.inserted_ids)
        ]

    async def insert_transfer(self, transfer: Transfer) -> Transfer:
        db = self._require_db()
        doc = transfer.model_dump(mode="json", exclude={"id"})
        doc["created_at"] = transfer.created_at or datetime.utcnow()
        try:
            result = db.transfers.insert_one(doc)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to insert transfer: {e}")
        logger.debug(f"Saved transfer for user {transfer.user_id}")
        return transfer.model_copy(update={"id": str(result.inserted_id), "created_at": doc["created_at"]})

    async def insert_installment_purchase(self, purchase: InstallmentPurchase) -> InstallmentPurchase:
        db = self._require_db()
        try:
            result = db.installment_purchases.insert_one(purchase.model_dump(mode="json", exclude={"id"}))
        except PyMongoError as e:
            raise PersistenceError(f"Failed to insert installment purchase: {e}")
        return purchase.model_copy(update={"id": str(result.inserted_id)})

    async def delete_installment_purchase(self, user_id: str, purchase_id: str) -> bool:
        db = self._require_db()
        try:
            db.movements.delete_many({"user_id": user_id, "installment_purchase_id": purchase_id})
            result = db.installment_purchases.delete_one({"_id": _object_id(purchase_id), "user_id": user_id})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to delete installment purchase: {e}")
        return result.deleted_count > 0

    # Ledger reads
    async def query_movements(self, ledger_filter: LedgerFilter) -> List[Movement]:
        db = self._require_db()
        f = ledger_filter
        query: Dict[str, Any] = {"user_id": f.user_id}
        if f.type:
            query["type"] = f.type
        if f.account_id:
            query["account_id"] = f.account_id
        if f.category_id:
            query["category_id"] = f.category_id
        date_range = _date_range(f)
        if date_range:
            query["date"] = date_range

        try:
            cursor = db.movements.find(query).sort([("date", DESCENDING), ("created_at", DESCENDING)])
            if f.limit:
                cursor = cursor.limit(f.limit)
            return [_doc_to_model(Movement, d) for d in cursor]
        except PyMongoError as e:
            raise PersistenceError(f"Failed to query movements: {e}")

    async def query_transfers(self, ledger_filter: LedgerFilter) -> List[Transfer]:
        db = self._require_db()
        f = ledger_filter
        query: Dict[str, Any] = {"user_id": f.user_id}
        if f.account_id:
            query["$or"] = [{"from_account_id": f.account_id}, {"to_account_id": f.account_id}]
        date_range = _date_range(f)
        if date_range:
            query["date"] = date_range

        try:
            cursor = db.transfers.find(query).sort([("date", DESCENDING), ("created_at", DESCENDING)])
            if f.limit:
                cursor = cursor.limit(f.limit)
            return [_doc_to_model(Transfer, d) for d in cursor]
        except PyMongoError as e:
            raise PersistenceError(f"Failed to query transfers: {e}")

    async def list_budgets(self, user_id: str) -> List[Budget]:
        db = self._require_db()
        try:
            return [_doc_to_model(Budget, d) for d in db.budgets.find({"user_id": user_id, "is_active": True})]
        except PyMongoError as e:
            raise PersistenceError(f"Failed to list budgets: {e}")

    # Conversation state
    @staticmethod
    def _state_filter(platform: Platform, platform_user_id: str) -> Dict[str, str]:
        return {"platform": platform.value, "platform_user_id": platform_user_id}

    @staticmethod
    def _state_doc(record: ConversationStateRecord, version: int) -> Dict[str, Any]:
        doc = record.model_dump(mode="json")
        # Real datetimes so the TTL index applies
        doc["created_at"] = record.created_at
        doc["expires_at"] = record.expires_at
        doc["version"] = version
        return doc

    async def get(self, platform: Platform, platform_user_id: str) -> Optional[ConversationStateRecord]:
        db = self._require_db()
        try:
            doc = db.conversation_states.find_one(self._state_filter(platform, platform_user_id))
        except PyMongoError as e:
            raise PersistenceError(f"Failed to get conversation state: {e}")
        if not doc:
            return None
        doc.pop("_id", None)
        return ConversationStateRecord.model_validate(doc)

    async def create(self, record: ConversationStateRecord) -> ConversationStateRecord:
        db = self._require_db()
        try:
            db.conversation_states.insert_one(self._state_doc(record, 0))
        except DuplicateKeyError:
            raise StateConflictError(record.platform.value, record.platform_user_id)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to create conversation state: {e}")
        logger.debug(f"Created conversation state for {chat_label(record.platform, record.platform_user_id)}")
        return record.model_copy(update={"version": 0})

    async def update(self, record: ConversationStateRecord, expected_version: int) -> ConversationStateRecord:
        db = self._require_db()
        query = {**self._state_filter(record.platform, record.platform_user_id), "version": expected_version}
        try:
            result = db.conversation_states.update_one(
                query, {"$set": self._state_doc(record, expected_version + 1)})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to update conversation state: {e}")
        if result.matched_count == 0:
            raise StateConflictError(record.platform.value, record.platform_user_id, expected_version)
        return record.model_copy(update={"version": expected_version + 1})

    async def delete(self, platform: Platform, platform_user_id: str) -> bool:
        db = self._require_db()
        try:
            result = db.conversation_states.delete_one(self._state_filter(platform, platform_user_id))
        except PyMongoError as e:
            raise PersistenceError(f"Failed to clear conversation state: {e}")
        return result.deleted_count > 0

    async def cleanup_expired(self, now: datetime) -> int:
        db = self._require_db()
        try:
            result = db.conversation_states.delete_many({"expires_at": {"$lt": now}})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to clean up conversation states: {e}")
        return result.deleted_count

    def close(self):
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")
