"""Conversation state store: TTL, versioning and the required-field policy."""

import asyncio
from datetime import date, timedelta

import pytest

from cashe.agents.conversation_state import (
    StateStore,
    apply_single_candidate_defaults,
    is_reset_message,
    missing_required_fields,
)
from cashe.schemas.core import (
    ConversationStateName,
    ConversationStateRecord,
    Intent,
    ParsedEntities,
    Platform,
    UserAccount,
)
from cashe.utils.errors import StateConflictError
from cashe.utils.memory_store import MemoryStateRepository


def _save(store, current=None, state=ConversationStateName.AWAITING_CONFIRMATION, chat_id="1"):
    return asyncio.run(store.save(Platform.TELEGRAM, chat_id, "user-1", state, Intent.REGISTRAR_GASTO,
                                  ParsedEntities(amount=500), current=current))


def test_save_creates_then_advances_version(clock):
    store = StateStore(MemoryStateRepository(), ttl_minutes=10, clock=clock)
    created = _save(store)
    assert created.version == 0
    assert created.expires_at == clock() + timedelta(minutes=10)

    updated = _save(store, current=created, state=ConversationStateName.AWAITING_EDIT_FIELD)
    assert updated.version == 1
    assert updated.state == ConversationStateName.AWAITING_EDIT_FIELD
    assert updated.parsed_data.amount == 500


def test_stale_version_is_rejected(clock):
    store = StateStore(MemoryStateRepository(), ttl_minutes=10, clock=clock)
    created = _save(store)
    _save(store, current=created)
    with pytest.raises(StateConflictError):
        _save(store, current=created)


def test_second_create_is_a_conflict(clock):
    store = StateStore(MemoryStateRepository(), ttl_minutes=10, clock=clock)
    _save(store)
    with pytest.raises(StateConflictError):
        _save(store)


def test_expired_record_reads_as_absent_and_is_deleted(clock):
    repository = MemoryStateRepository()
    store = StateStore(repository, ttl_minutes=10, clock=clock)
    _save(store)

    clock.advance(minutes=9)
    assert asyncio.run(store.get(Platform.TELEGRAM, "1")) is not None

    clock.advance(minutes=2)
    assert asyncio.run(store.get(Platform.TELEGRAM, "1")) is None
    assert repository.records == {}


def test_each_save_refreshes_expiry(clock):
    store = StateStore(MemoryStateRepository(), ttl_minutes=10, clock=clock)
    created = _save(store)
    clock.advance(minutes=8)
    _save(store, current=created)
    clock.advance(minutes=8)
    assert asyncio.run(store.get(Platform.TELEGRAM, "1")) is not None


def test_cleanup_expired(clock):
    store = StateStore(MemoryStateRepository(), ttl_minutes=10, clock=clock)
    _save(store, chat_id="1")
    _save(store, chat_id="2")
    clock.advance(minutes=5)
    _save(store, chat_id="3")
    clock.advance(minutes=6)
    assert asyncio.run(store.cleanup_expired()) == 2


def test_clear(clock):
    store = StateStore(MemoryStateRepository(), ttl_minutes=10, clock=clock)
    _save(store)
    assert asyncio.run(store.clear(Platform.TELEGRAM, "1")) is True
    assert asyncio.run(store.clear(Platform.TELEGRAM, "1")) is False


def test_missing_required_fields_in_prompt_order():
    assert missing_required_fields(Intent.REGISTRAR_GASTO, ParsedEntities()) == ["amount", "account", "category"]
    assert missing_required_fields(Intent.REGISTRAR_TRANSFERENCIA, ParsedEntities(amount=1, from_account_id="a")) \
        == ["to_account"]
    assert missing_required_fields(Intent.AGREGAR_SELLOS, ParsedEntities(target_card_id="v")) == ["stamp_tax"]
    assert missing_required_fields(Intent.CONSULTAR_SALDO, ParsedEntities()) == []


def test_single_candidates_are_filled(context):
    filled = apply_single_candidate_defaults(Intent.PAGAR_TARJETA, ParsedEntities(), context)
    # One credit card but several accounts to pay from
    assert filled.target_card_id == "acc-visa"
    assert filled.source_account_id is None


def test_single_account_fills_one_end_of_a_transfer(context):
    context.accounts = [UserAccount(id="only", name="Efectivo")]
    filled = apply_single_candidate_defaults(Intent.REGISTRAR_TRANSFERENCIA, ParsedEntities(amount=10), context)
    assert filled.from_account_id == "only"
    assert filled.to_account_id is None
    assert missing_required_fields(Intent.REGISTRAR_TRANSFERENCIA, filled) == ["to_account"]


def test_single_account_fills_expense_account(context):
    context.accounts = [UserAccount(id="only", name="Efectivo")]
    filled = apply_single_candidate_defaults(Intent.REGISTRAR_GASTO, ParsedEntities(amount=10), context)
    assert filled.account_id == "only"


@pytest.mark.parametrize("text", ["cancelar", "Cancelar", "salir", "no", "x", "0", "volver", "atrás", "olvidate"])
def test_reset_words(text):
    assert is_reset_message(text)


@pytest.mark.parametrize("text", ["nota", "no se", "cancelar el gasto", "1", "si"])
def test_not_reset_words(text):
    assert not is_reset_message(text)


def test_parsed_entities_hold_dates():
    entities = ParsedEntities(amount=500, date=date(2026, 3, 17))
    assert entities.date == date(2026, 3, 17)
    assert ParsedEntities(date="2026-03-17").date == date(2026, 3, 17)


def test_state_record_survives_json(clock):
    store = StateStore(MemoryStateRepository(), ttl_minutes=10, clock=clock)
    saved = asyncio.run(store.save(Platform.WHATSAPP, "5491100000000", "user-1",
                                   ConversationStateName.AWAITING_CONFIRMATION, Intent.REGISTRAR_GASTO,
                                   ParsedEntities(amount=500, category="comida", date=date(2026, 3, 17))))

    reloaded = ConversationStateRecord.model_validate_json(saved.model_dump_json())
    assert reloaded == saved
    assert reloaded.parsed_data.date == date(2026, 3, 17)
