"""End-to-end conversations through the NLP agent."""

import asyncio
from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from cashe.agents.llm_fallback import LLMFallback
from cashe.constants.responses import RESPONSES
from cashe.schemas.core import (
    ConversationStateName,
    ConversationStateRecord,
    Intent,
    Movement,
    ParsedEntities,
    Platform,
    UserAccount,
)
from cashe.utils.errors import StateConflictError
from cashe.utils.memory_store import MemoryLedgerRepository, MemoryStateRepository, build_memory_repositories
from tests.conftest import CHAT_ID, FakeLLMClient, make_agent


class RacingStateRepository(MemoryStateRepository):
    """Every update loses to a concurrent turn."""

    async def update(self, record, expected_version):
        raise StateConflictError(record.platform.value, record.platform_user_id, expected_version)


class FailingCuotasLedger(MemoryLedgerRepository):
    async def insert_movements(self, movements):
        raise RuntimeError("connection reset")


def send(agent, text, chat_id=CHAT_ID):
    return asyncio.run(agent.process_message(Platform.TELEGRAM, chat_id, text))


def press(agent, token):
    return asyncio.run(agent.process_callback(Platform.TELEGRAM, CHAT_ID, token))


def stored_state(repos):
    record = asyncio.run(repos.states.get(Platform.TELEGRAM, CHAT_ID))
    return record.state if record else None


def seed_state(repos, clock, state, intent=Intent.REGISTRAR_GASTO, entities=None, edit_field=None):
    record = ConversationStateRecord(
        platform=Platform.TELEGRAM,
        platform_user_id=CHAT_ID,
        user_id=repos.user_id,
        state=state,
        intent=intent,
        parsed_data=entities or ParsedEntities(),
        edit_field=edit_field,
        created_at=clock(),
        expires_at=clock() + timedelta(minutes=10),
    )
    asyncio.run(repos.states.create(record))


def add_expense(repos, amount, on, account_id="acc-efectivo", category_id="cat-comida"):
    repos.ledger.movements.append(Movement(user_id=repos.user_id, type="expense", date=on, amount=amount,
                                           account_id=account_id, category_id=category_id))


# Writes
def test_expense_is_previewed_then_written(simple_agent, simple_repos):
    preview = send(simple_agent, "gasté 500 en comida")
    assert preview.new_state == ConversationStateName.AWAITING_CONFIRMATION
    assert "$500,00" in preview.response_text
    assert "🍔 Comida" in preview.response_text
    assert [b.token for b in preview.buttons] == ["confirm_yes", "confirm_edit", "confirm_cancel"]
    assert simple_repos.ledger.movements == []

    done = send(simple_agent, "si")
    assert done.success
    assert done.should_clear_state
    assert "¡Gasto registrado!" in done.response_text
    [movement] = simple_repos.ledger.movements
    assert (movement.amount, movement.account_id, movement.category_id) == (500, "acc-efectivo", "cat-comida")
    assert movement.date == date(2026, 3, 18)
    assert simple_repos.states.records == {}


def test_confirm_button(simple_agent, simple_repos):
    send(simple_agent, "gasté 500 en comida")
    done = press(simple_agent, "confirm_yes")
    assert done.success
    assert len(simple_repos.ledger.movements) == 1


def test_missing_account_is_asked_for(agent, repos):
    prompt = send(agent, "gasté 500 en comida")
    assert prompt.new_state == ConversationStateName.AWAITING_ACCOUNT_SELECTION
    assert prompt.response_text.startswith(RESPONSES["SELECCIONAR_CUENTA"])
    assert "acc_acc-mp" in [b.token for b in prompt.buttons]

    preview = press(agent, "acc_acc-mp")
    assert preview.new_state == ConversationStateName.AWAITING_CONFIRMATION
    assert "MercadoPago" in preview.response_text

    send(agent, "dale")
    assert repos.ledger.movements[0].account_id == "acc-mp"


def test_transfer_keeps_direction(agent, repos):
    repos.identity.accounts[repos.user_id] = [a for a in repos.identity.accounts[repos.user_id]
                                              if a.id != "acc-visa"]
    preview = send(agent, "transferí 10000 de galicia a mp")
    assert "🏦 De: Banco Galicia" in preview.response_text
    assert "🏦 A: MercadoPago" in preview.response_text

    send(agent, "si")
    [transfer] = repos.ledger.transfers
    assert (transfer.from_account_id, transfer.to_account_id, transfer.from_amount) == \
        ("acc-galicia", "acc-mp", 10000)


def test_installment_purchase_is_written_from_confirmation(agent, repos, clock):
    entities = ParsedEntities(amount=90000, installments=3, account_id="acc-visa", category_id="cat-otros",
                              note="Zapatillas", date=date(2026, 3, 18))
    seed_state(repos, clock, ConversationStateName.AWAITING_CONFIRMATION, entities=entities)

    result = send(agent, "si")
    assert result.success
    assert len(repos.ledger.installment_purchases) == 1
    assert sorted(m.date for m in repos.ledger.movements) == [date(2026, 4, 25), date(2026, 5, 25),
                                                              date(2026, 6, 25)]


def test_failed_installments_discard_the_conversation(repos, clock):
    ledger = FailingCuotasLedger()
    agent = make_agent(SimpleNamespace(identity=repos.identity, ledger=ledger, states=repos.states), clock)
    entities = ParsedEntities(amount=90000, installments=3, account_id="acc-visa", category_id="cat-otros")
    seed_state(repos, clock, ConversationStateName.AWAITING_CONFIRMATION, entities=entities)

    result = send(agent, "si")
    assert not result.success
    assert result.response_text == RESPONSES["ERROR_GENERICO"]
    assert result.should_clear_state
    assert ledger.installment_purchases == {}
    assert repos.states.records == {}


def test_card_payment_uses_statement_total(agent, repos):
    add_expense(repos, 30000, date(2026, 2, 10), account_id="acc-visa")
    add_expense(repos, 8000, date(2026, 2, 26), account_id="acc-visa")
    add_expense(repos, 4000, date(2026, 1, 20), account_id="acc-visa")

    preview = send(agent, "pagar visa desde galicia")
    assert preview.new_state == ConversationStateName.AWAITING_CONFIRMATION
    assert "Marzo 2026" in preview.response_text
    assert "$30.000,00" in preview.response_text

    send(agent, "si")
    [payment] = repos.ledger.transfers
    assert (payment.from_account_id, payment.to_account_id, payment.from_amount) == \
        ("acc-galicia", "acc-visa", 30000)
    assert payment.note == "Pago resumen Marzo 2026"


def test_empty_statement_offers_other_statements(agent, repos):
    add_expense(repos, 7000, date(2026, 1, 20), account_id="acc-visa")

    result = send(agent, "pagar visa desde galicia")
    assert not result.success
    assert "no tiene consumos para pagar" in result.response_text
    assert result.new_state == ConversationStateName.AWAITING_STATEMENT_SELECTION

    preview = press(agent, "sel_2026-02")
    assert preview.new_state == ConversationStateName.AWAITING_CONFIRMATION
    assert "$7.000,00" in preview.response_text
    assert "Febrero 2026" in preview.response_text


def test_stamp_tax_lands_on_statement_close_date(agent, repos):
    preview = send(agent, "agregar sellos de 1500 a visa")
    assert "25/02/2026" in preview.response_text

    send(agent, "si")
    [movement] = repos.ledger.movements
    assert (movement.account_id, movement.amount, movement.date) == ("acc-visa", 1500, date(2026, 2, 25))
    assert movement.category_id == "cat-impuestos"


# Reads
def test_spend_query_answers_without_state(agent, repos):
    add_expense(repos, 1000, date(2026, 3, 2))
    add_expense(repos, 2500, date(2026, 3, 10))
    add_expense(repos, 500, date(2026, 3, 18))

    result = send(agent, "cuánto gasté en comida este mes")
    assert result.success
    assert "📊 *Gastos en 🍔 Comida de este mes:*" in result.response_text
    assert "$4.000,00" in result.response_text
    assert "3 movimientos" in result.response_text
    assert result.new_state is None
    assert repos.states.records == {}


def _ambiguous_agent(clock):
    identity, ledger, states = build_memory_repositories()
    identity.link_platform_user(Platform.TELEGRAM, CHAT_ID, "user-2")
    for account_id, name in (("a1", "Sueldo"), ("a2", "Salud"), ("a3", "Salta")):
        identity.add_account("user-2", UserAccount(id=account_id, name=name))
    repos = SimpleNamespace(identity=identity, ledger=ledger, states=states, user_id="user-2")
    return make_agent(repos, clock), repos


def test_ambiguous_account_asks_and_answers(clock):
    agent, repos = _ambiguous_agent(clock)

    question = send(agent, "saldo")
    assert question.response_text.startswith(RESPONSES["MULTIPLES_CUENTAS"])
    assert question.new_state == ConversationStateName.AWAITING_DISAMBIGUATION
    assert len(question.buttons) == 4

    record = asyncio.run(repos.states.get(Platform.TELEGRAM, CHAT_ID))
    second = record.disambiguation_options[1]

    answer = send(agent, "2")
    assert answer.response_text.startswith(f"💰 *Saldo en {second.name}:*")
    assert answer.should_clear_state
    assert repos.states.records == {}


def test_invalid_option_keeps_waiting(clock):
    agent, repos = _ambiguous_agent(clock)
    send(agent, "saldo")
    retry = send(agent, "9")
    assert not retry.success
    assert retry.response_text.startswith(RESPONSES["OPCION_INVALIDA"])
    assert stored_state(repos) == ConversationStateName.AWAITING_DISAMBIGUATION


# Editing and resets
def test_edit_amount_then_confirm(simple_agent, simple_repos):
    send(simple_agent, "gasté 500 en comida")
    menu = send(simple_agent, "editar")
    assert menu.new_state == ConversationStateName.AWAITING_EDIT_FIELD
    assert "1️⃣ Monto ($500,00)" in menu.response_text

    prompt = send(simple_agent, "1")
    assert prompt.new_state == ConversationStateName.AWAITING_EDIT_VALUE

    preview = send(simple_agent, "750")
    assert preview.new_state == ConversationStateName.AWAITING_CONFIRMATION
    assert "$750,00" in preview.response_text

    send(simple_agent, "si")
    assert simple_repos.ledger.movements[0].amount == 750


def test_invalid_edit_value_keeps_prompting(simple_agent, simple_repos):
    send(simple_agent, "gasté 500 en comida")
    send(simple_agent, "editar")
    send(simple_agent, "monto")
    retry = send(simple_agent, "un montón")
    assert not retry.success
    assert retry.response_text == RESPONSES["ERROR_MONTO_INVALIDO"]
    assert stored_state(simple_repos) == ConversationStateName.AWAITING_EDIT_VALUE


def test_cancel_mid_edit(simple_agent, simple_repos):
    send(simple_agent, "gasté 500 en comida")
    send(simple_agent, "editar")
    send(simple_agent, "1")
    result = send(simple_agent, "cancelar")
    assert result.response_text == RESPONSES["REINICIADO"]
    assert result.should_clear_state
    assert simple_repos.states.records == {}
    assert simple_repos.ledger.movements == []


@pytest.mark.parametrize("state", list(ConversationStateName))
def test_reset_works_from_every_state(agent, repos, clock, state):
    seed_state(repos, clock, state, entities=ParsedEntities(amount=100), edit_field="amount")
    result = send(agent, "volver")
    assert result.response_text == RESPONSES["REINICIADO"]
    assert repos.states.records == {}


def test_unclear_confirmation_reply_keeps_state(simple_agent, simple_repos):
    send(simple_agent, "gasté 500 en comida")
    result = send(simple_agent, "mmm no sé")
    assert not result.success
    assert RESPONSES["CONFIRMAR_OPCIONES"] in result.response_text
    assert stored_state(simple_repos) == ConversationStateName.AWAITING_CONFIRMATION


def test_expired_state_is_forgotten(simple_agent, simple_repos, clock):
    send(simple_agent, "gasté 500 en comida")
    clock.advance(minutes=11)
    result = send(simple_agent, "si")
    assert result.response_text == RESPONSES["NO_ENTENDI"]
    assert simple_repos.ledger.movements == []
    assert simple_repos.states.records == {}


def test_concurrent_turn_is_reported(simple_repos, clock):
    repos = SimpleNamespace(identity=simple_repos.identity, ledger=simple_repos.ledger,
                            states=RacingStateRepository(), user_id=simple_repos.user_id)
    agent = make_agent(repos, clock)
    send(agent, "gasté 500 en comida")
    result = send(agent, "editar")
    assert result.response_text == RESPONSES["CONFLICTO_ESTADO"]
    assert not result.success


# Menu
def test_menu_guides_an_expense(agent, repos):
    menu = send(agent, "menú")
    assert menu.new_state == ConversationStateName.AWAITING_TYPE_SELECTION
    assert menu.buttons[0].token == "menu_gasto"

    amount = press(agent, "menu_gasto")
    assert amount.new_state == ConversationStateName.AWAITING_AMOUNT_INPUT

    account = send(agent, "1500")
    assert account.new_state == ConversationStateName.AWAITING_ACCOUNT_SELECTION

    category = send(agent, "1")
    assert category.new_state == ConversationStateName.AWAITING_CATEGORY_SELECTION

    preview = send(agent, "1")
    assert preview.new_state == ConversationStateName.AWAITING_CONFIRMATION
    assert "$1.500,00" in preview.response_text

    press(agent, "confirm_yes")
    [movement] = repos.ledger.movements
    assert (movement.amount, movement.account_id, movement.category_id) == (1500, "acc-efectivo", "cat-comida")


def test_menu_period_query(agent, repos):
    add_expense(repos, 2000, date(2026, 3, 18))
    send(agent, "menú")
    period = press(agent, "menu_gastos")
    assert period.new_state == ConversationStateName.AWAITING_PERIOD_SELECTION

    result = press(agent, "sel_today")
    assert "$2.000,00" in result.response_text
    assert repos.states.records == {}


# LLM fallback
def test_llm_rescues_unknown_message(simple_repos, clock):
    client = FakeLLMClient({"intent": "GASTO", "entities": {"monto": 500, "categoria": "comida"},
                            "confidence": 0.8})
    agent = make_agent(simple_repos, clock, llm=LLMFallback(ai_client=client, ai_enabled=True))

    result = send(agent, "blablabla")
    assert result.new_state == ConversationStateName.AWAITING_CONFIRMATION
    assert "$500,00" in result.response_text
    assert len(client.completions.calls) == 1


def test_llm_skipped_for_confident_regex(simple_repos, clock):
    client = FakeLLMClient({"intent": "INGRESO", "confidence": 1.0})
    agent = make_agent(simple_repos, clock, llm=LLMFallback(ai_client=client, ai_enabled=True))
    send(agent, "gasté 500 en comida")
    assert client.completions.calls == []


def test_llm_failure_falls_back_to_not_understood(simple_repos, clock):
    client = FakeLLMClient(error=RuntimeError("timeout"))
    agent = make_agent(simple_repos, clock, llm=LLMFallback(ai_client=client, ai_enabled=True))
    result = send(agent, "blablabla")
    assert result.response_text == RESPONSES["NO_ENTENDI"]


def test_llm_date_reaches_the_preview(simple_repos, clock):
    client = FakeLLMClient({"intent": "GASTO", "entities": {"monto": 500, "categoria": "comida",
                                                            "fecha": "2026-03-17"}, "confidence": 0.9})
    agent = make_agent(simple_repos, clock, llm=LLMFallback(ai_client=client, ai_enabled=True))

    result = send(agent, "blablabla")
    assert result.new_state == ConversationStateName.AWAITING_CONFIRMATION
    send(agent, "si")
    [movement] = simple_repos.ledger.movements
    assert movement.date == date(2026, 3, 17)


def test_llm_amount_out_of_range_is_asked_for(simple_repos, clock):
    client = FakeLLMClient({"intent": "GASTO", "entities": {"monto": 10 ** 12, "categoria": "comida"},
                            "confidence": 0.9})
    agent = make_agent(simple_repos, clock, llm=LLMFallback(ai_client=client, ai_enabled=True))

    result = send(agent, "blablabla")
    assert result.response_text != RESPONSES["ERROR_GENERICO"]
    assert result.new_state == ConversationStateName.AWAITING_EDIT_VALUE


# Misc
def test_unlinked_user(agent):
    result = send(agent, "saldo", chat_id="999")
    assert not result.success
    assert result.response_text == RESPONSES["NO_VINCULADO_TELEGRAM"]


def test_unknown_callback(agent):
    result = press(agent, "bogus")
    assert result.response_text == RESPONSES["NO_ENTENDI"]


def test_greeting_gets_short_help(agent):
    assert send(agent, "hola").response_text == RESPONSES["HELP_SHORT"]


def test_help(agent):
    assert send(agent, "ayuda").response_text == RESPONSES["HELP"]


def test_cleanup_expired_states(simple_agent, clock):
    send(simple_agent, "gasté 500 en comida")
    clock.advance(minutes=30)
    assert asyncio.run(simple_agent.cleanup_expired_states()) == 1
