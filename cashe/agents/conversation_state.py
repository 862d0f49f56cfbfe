"""
Conversation State Management Module
TTL-bounded, version-checked conversation records plus the required-field
policy that decides when a write command is ready for confirmation.
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from cashe.agents.intent_classifier import expected_category_type
from cashe.constants.patterns import RESET_PATTERN, normalize_text
from cashe.schemas.core import (
    ConversationStateName,
    ConversationStateRecord,
    DisambiguationOption,
    Intent,
    ParsedEntities,
    Platform,
    UserContext,
)
from cashe.utils.config import settings
from cashe.utils.dates import local_now
from cashe.utils.logger import chat_label, get_logger
from cashe.utils.repositories import ConversationStateRepository

logger = get_logger("conversation_state")

# (field, attribute that must be set) in prompting order
REQUIRED_FIELDS: Dict[Intent, List[Tuple[str, str]]] = {
    Intent.REGISTRAR_GASTO: [("amount", "amount"), ("account", "account_id"), ("category", "category_id")],
    Intent.REGISTRAR_INGRESO: [("amount", "amount"), ("account", "account_id"), ("category", "category_id")],
    Intent.REGISTRAR_TRANSFERENCIA: [
        ("amount", "amount"), ("from_account", "from_account_id"), ("to_account", "to_account_id"),
    ],
    Intent.PAGAR_TARJETA: [("target_card", "target_card_id"), ("source_account", "source_account_id")],
    Intent.AGREGAR_SELLOS: [("target_card", "target_card_id"), ("stamp_tax", "stamp_tax_amount")],
}

ACCOUNT_FIELDS = ("account", "from_account", "to_account")
CARD_FIELDS = ("target_card",)

# Guided state used to ask for each field
FIELD_STATES: Dict[str, ConversationStateName] = {
    "amount": ConversationStateName.AWAITING_EDIT_VALUE,
    "date": ConversationStateName.AWAITING_EDIT_VALUE,
    "note": ConversationStateName.AWAITING_EDIT_VALUE,
    "account": ConversationStateName.AWAITING_ACCOUNT_SELECTION,
    "from_account": ConversationStateName.AWAITING_ACCOUNT_SELECTION,
    "to_account": ConversationStateName.AWAITING_ACCOUNT_SELECTION,
    "category": ConversationStateName.AWAITING_CATEGORY_SELECTION,
    "target_card": ConversationStateName.AWAITING_CARD_SELECTION,
    "source_account": ConversationStateName.AWAITING_SOURCE_ACCOUNT,
    "statement_month": ConversationStateName.AWAITING_STATEMENT_SELECTION,
    "stamp_tax": ConversationStateName.AWAITING_STAMP_TAX_AMOUNT,
}


def missing_required_fields(intent: Intent, entities: ParsedEntities) -> List[str]:
    """Required fields still unset, in the order they should be asked for."""
    return [field for field, attribute in REQUIRED_FIELDS.get(intent, []) if not getattr(entities, attribute)]


def apply_single_candidate_defaults(intent: Intent, entities: ParsedEntities,
                                    context: UserContext) -> ParsedEntities:
    """
    Fill required references that have exactly one possible value.

    A user with one account never gets asked which account, except for the
    second end of a transfer. The same goes for one category of the needed
    type, one credit card or one regular account to pay from.

    Returns:
        Updated copy of the entities
    """
    filled = entities.model_copy()
    missing = missing_required_fields(intent, filled)

    if len(context.accounts) == 1:
        only = context.accounts[0]
        for field in ACCOUNT_FIELDS:
            # The other end of a transfer already holds the only account
            if field in ("from_account", "to_account") and only.id in (filled.from_account_id,
                                                                       filled.to_account_id):
                continue
            if field in missing:
                setattr(filled, f"{field}_id", only.id)
                setattr(filled, field, only.name)

    if "category" in missing:
        category_type = expected_category_type(intent)
        candidates = [c for c in context.categories if category_type is None or c.type == category_type]
        if len(candidates) == 1:
            filled.category_id = candidates[0].id
            filled.category = candidates[0].name

    if "target_card" in missing and len(context.credit_cards) == 1:
        filled.target_card_id = context.credit_cards[0].id
        filled.target_card = context.credit_cards[0].name

    if "source_account" in missing and len(context.regular_accounts) == 1:
        filled.source_account_id = context.regular_accounts[0].id
        filled.source_account = context.regular_accounts[0].name

    return filled


def is_reset_message(text: str) -> bool:
    """True when the whole message is a reset keyword ("cancelar", "salir", "no"...)."""
    return RESET_PATTERN.match(normalize_text(text)) is not None


class StateStore:
    """Reads and writes conversation records with TTL and optimistic versioning."""

    def __init__(self, repository: ConversationStateRepository, ttl_minutes: Optional[int] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.repository = repository
        self.ttl = timedelta(minutes=ttl_minutes or settings.state_ttl_minutes)
        self.clock = clock or local_now

    async def get(self, platform: Platform, platform_user_id: str) -> Optional[ConversationStateRecord]:
        """Live record for the chat identity; expired ones are deleted and read as absent."""
        record = await self.repository.get(platform, platform_user_id)
        if record is None:
            return None
        if record.expires_at <= self.clock():
            await self.repository.delete(platform, platform_user_id)
            logger.info(f"⏰ Conversation state expired for {chat_label(platform, platform_user_id)}")
            return None
        return record

    async def save(self, platform: Platform, platform_user_id: str, user_id: str,
                   state: ConversationStateName, intent: Intent, parsed_data: ParsedEntities,
                   edit_field: Optional[str] = None,
                   options: Optional[List[DisambiguationOption]] = None,
                   current: Optional[ConversationStateRecord] = None) -> ConversationStateRecord:
        """
        Create or advance the conversation record.

        Args:
            current: The record read at the start of the turn. When given the
                write only succeeds if nobody changed it since.

        Returns:
            The stored record

        Raises:
            StateConflictError: a concurrent turn won the race
        """
        now = self.clock()
        expires_at = now + self.ttl

        if current is None:
            record = ConversationStateRecord(
                platform=platform,
                platform_user_id=platform_user_id,
                user_id=user_id,
                state=state,
                intent=intent,
                parsed_data=parsed_data,
                edit_field=edit_field,
                disambiguation_options=options,
                created_at=now,
                expires_at=expires_at,
            )
            saved = await self.repository.create(record)
            logger.debug(f"🆕 {chat_label(platform, platform_user_id)} -> {state.value} ({intent.value})")
            return saved

        record = current.model_copy(update={
            "state": state,
            "intent": intent,
            "parsed_data": parsed_data,
            "edit_field": edit_field,
            "disambiguation_options": options,
            "expires_at": expires_at,
        })
        saved = await self.repository.update(record, current.version)
        logger.debug(f"🔁 {chat_label(platform, platform_user_id)} {current.state.value} -> {state.value}")
        return saved

    async def clear(self, platform: Platform, platform_user_id: str) -> bool:
        deleted = await self.repository.delete(platform, platform_user_id)
        if deleted:
            logger.debug(f"🧹 Cleared conversation state for {chat_label(platform, platform_user_id)}")
        return deleted

    async def cleanup_expired(self) -> int:
        """Sweep every expired record."""
        removed = await self.repository.cleanup_expired(self.clock())
        if removed:
            logger.info(f"🧹 Removed {removed} expired conversation states")
        return removed
