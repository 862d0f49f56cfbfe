"""Ledger writes and read queries."""

import asyncio
from datetime import date

import pytest

from cashe.agents.command_executor import CommandExecutor
from cashe.schemas.core import Budget, Intent, Movement, ParsedEntities, Transfer
from cashe.utils.errors import PersistenceError, ValidationError
from cashe.utils.memory_store import MemoryLedgerRepository

TODAY = date(2026, 3, 18)


class FailingCuotasLedger(MemoryLedgerRepository):
    async def insert_movements(self, movements):
        raise RuntimeError("disk full")


@pytest.fixture
def executor(repos):
    return CommandExecutor(repos.ledger, clock=lambda: TODAY)


def _add(repos, amount, on, account_id="acc-efectivo", category_id="cat-comida", type="expense", **extra):
    repos.ledger.movements.append(Movement(user_id=repos.user_id, type=type, date=on, amount=amount,
                                           account_id=account_id, category_id=category_id, **extra))


def _write(executor, repos, intent, entities, context):
    return asyncio.run(executor.execute_write(repos.user_id, intent, entities, context))


def _read(executor, repos, intent, entities, context):
    return asyncio.run(executor.execute_read(repos.user_id, intent, entities, context))


def test_expense_is_written_with_todays_date(executor, repos, context):
    entities = ParsedEntities(amount=500, account_id="acc-efectivo", category_id="cat-comida")
    result = _write(executor, repos, Intent.REGISTRAR_GASTO, entities, context)

    assert result.success
    assert "¡Gasto registrado!" in result.message
    assert "$500,00" in result.message
    [movement] = repos.ledger.movements
    assert (movement.type, movement.date, movement.amount) == ("expense", TODAY, 500)


def test_income_is_written(executor, repos, context):
    entities = ParsedEntities(amount=250000, account_id="acc-galicia", category_id="cat-sueldo",
                              date=date(2026, 3, 1))
    result = _write(executor, repos, Intent.REGISTRAR_INGRESO, entities, context)
    assert "+$250.000,00" in result.message
    assert repos.ledger.movements[0].type == "income"


def test_incomplete_command_is_rejected(executor, repos, context):
    with pytest.raises(ValidationError):
        _write(executor, repos, Intent.REGISTRAR_GASTO, ParsedEntities(amount=500, account_id="acc-efectivo"),
               context)
    assert repos.ledger.movements == []


def test_transfer_to_same_account_is_rejected(executor, context):
    entities = ParsedEntities(amount=100, from_account_id="acc-mp", to_account_id="acc-mp")
    with pytest.raises(ValidationError) as error:
        executor.build_command(Intent.REGISTRAR_TRANSFERENCIA, entities, context)
    assert error.value.response_key == "ERROR_MISMA_CUENTA"


def test_transfer_moves_money_between_accounts(executor, repos, context):
    entities = ParsedEntities(amount=10000, from_account_id="acc-galicia", to_account_id="acc-mp")
    result = _write(executor, repos, Intent.REGISTRAR_TRANSFERENCIA, entities, context)
    assert "Banco Galicia → MercadoPago" in result.message

    ledger = repos.ledger
    assert asyncio.run(ledger.calculate_account_balance(repos.user_id, "acc-galicia", 150000)) == 140000
    assert asyncio.run(ledger.calculate_account_balance(repos.user_id, "acc-mp", 45000)) == 55000


def test_installment_purchase_creates_one_movement_per_cuota(executor, repos, context):
    entities = ParsedEntities(amount=90000, installments=3, account_id="acc-visa", category_id="cat-otros",
                              note="Zapatillas")
    result = _write(executor, repos, Intent.REGISTRAR_GASTO, entities, context)

    [purchase] = repos.ledger.installment_purchases.values()
    assert purchase.start_date == date(2026, 4, 25)
    assert purchase.total_amount == 90000

    cuotas = sorted(repos.ledger.movements, key=lambda m: m.date)
    assert [m.date for m in cuotas] == [date(2026, 4, 25), date(2026, 5, 25), date(2026, 6, 25)]
    assert {m.amount for m in cuotas} == {30000}
    assert cuotas[0].note == "Zapatillas (1/3)"
    assert all(m.installment_purchase_id == purchase.id for m in cuotas)
    assert "Primera cuota: Abril 2026" in result.message


def test_failed_cuotas_leave_no_orphaned_purchase(repos, context):
    ledger = FailingCuotasLedger()
    executor = CommandExecutor(ledger, clock=lambda: TODAY)
    entities = ParsedEntities(amount=90000, installments=3, account_id="acc-visa", category_id="cat-otros")
    with pytest.raises(PersistenceError):
        asyncio.run(executor.execute_write(repos.user_id, Intent.REGISTRAR_GASTO, entities, context))
    assert ledger.installment_purchases == {}
    assert ledger.movements == []


def test_statement_membership(executor, repos, context):
    card = context.account_by_id("acc-visa")
    _add(repos, 30000, date(2026, 2, 10), account_id="acc-visa")
    _add(repos, 5000, date(2026, 2, 26), account_id="acc-visa")   # closes into April
    _add(repos, 7000, date(2026, 1, 20), account_id="acc-visa")   # closes into February
    _add(repos, 10000, date(2026, 3, 25), account_id="acc-visa", installment_purchase_id="p1",
         installment_number=2, total_installments=3)
    _add(repos, 99999, date(2026, 2, 1), account_id="acc-visa", type="income")

    assert asyncio.run(executor.statement_total(repos.user_id, card, "2026-03")) == 40000
    assert asyncio.run(executor.statement_total(repos.user_id, card, "2026-02")) == 7000
    assert asyncio.run(executor.statement_total(repos.user_id, card, "2026-04")) == 5000


def test_card_payment_is_a_transfer_into_the_card(executor, repos, context):
    entities = ParsedEntities(target_card_id="acc-visa", source_account_id="acc-galicia", amount=30000)
    result = _write(executor, repos, Intent.PAGAR_TARJETA, entities, context)

    [transfer] = repos.ledger.transfers
    assert (transfer.from_account_id, transfer.to_account_id) == ("acc-galicia", "acc-visa")
    assert transfer.note == "Pago resumen Marzo 2026"
    assert result.data["statement_month"] == "2026-03"


def test_stamp_tax_is_dated_at_statement_close(executor, repos, context):
    entities = ParsedEntities(target_card_id="acc-visa", stamp_tax_amount=1500)
    result = _write(executor, repos, Intent.AGREGAR_SELLOS, entities, context)

    [movement] = repos.ledger.movements
    assert movement.date == date(2026, 2, 25)
    assert movement.account_id == "acc-visa"
    assert movement.category_id == "cat-impuestos"
    assert movement.note == "Impuesto de sellos - Resumen Marzo 2026"
    assert "¡Impuesto de sellos agregado!" in result.message


def test_balance_of_one_account(executor, repos, context):
    _add(repos, 500, date(2026, 3, 10))
    result = _read(executor, repos, Intent.CONSULTAR_SALDO, ParsedEntities(account_id="acc-efectivo"), context)
    assert "💰 *Saldo en Efectivo:*" in result.message
    assert "$19.500,00" in result.message
    assert result.data["balance"] == 19500


def test_total_balance_keeps_currencies_apart(executor, repos, context):
    result = _read(executor, repos, Intent.CONSULTAR_SALDO, ParsedEntities(), context)
    assert result.data["totals"] == {"ARS": 215000, "USD": 500}
    assert "u$s 500,00" in result.message


def test_spend_by_category_for_the_month(executor, repos, context):
    _add(repos, 1000, date(2026, 3, 2))
    _add(repos, 2500, date(2026, 3, 10))
    _add(repos, 500, date(2026, 3, 18))
    _add(repos, 9000, date(2026, 2, 27))
    _add(repos, 3000, date(2026, 3, 5), category_id="cat-super")

    entities = ParsedEntities(category_id="cat-comida")
    result = _read(executor, repos, Intent.CONSULTAR_GASTOS, entities, context)
    assert "📊 *Gastos en 🍔 Comida de marzo:*" in result.message
    assert "$4.000,00" in result.message
    assert "3 movimientos" in result.message
    assert result.data["count"] == 3


def test_spend_query_without_movements(executor, repos, context):
    result = _read(executor, repos, Intent.CONSULTAR_INGRESOS, ParsedEntities(), context)
    assert result.message == "📭 No hay movimientos en este período."


def test_recent_activity_mixes_movements_and_transfers(executor, repos, context):
    _add(repos, 500, date(2026, 3, 10))
    _add(repos, 700, date(2026, 3, 12))
    repos.ledger.transfers.append(Transfer(user_id=repos.user_id, date=date(2026, 3, 15),
                                           from_account_id="acc-galicia", to_account_id="acc-mp",
                                           from_amount=1000, to_amount=1000))
    result = _read(executor, repos, Intent.ULTIMOS_MOVIMIENTOS, ParsedEntities(limit=2), context)
    assert result.data["count"] == 2
    assert result.message.startswith("📋 *Últimos 2 movimientos:*")
    assert "Banco Galicia → MercadoPago" in result.message
    assert "$500,00" not in result.message


def test_monthly_summary(executor, repos, context):
    _add(repos, 100000, date(2026, 3, 1), account_id="acc-galicia", category_id="cat-sueldo", type="income")
    _add(repos, 30000, date(2026, 3, 5))
    _add(repos, 10000, date(2026, 3, 6), category_id="cat-super")
    result = _read(executor, repos, Intent.RESUMEN_MES, ParsedEntities(), context)
    assert result.data["balance"] == 60000
    assert result.data["top_categories"][0] == {"name": "🍔 Comida", "amount": 30000}
    assert "🍔 Comida: $30.000,00 (75%)" in result.message


def test_monthly_summary_keeps_currencies_apart(executor, repos, context):
    _add(repos, 100000, date(2026, 3, 1), account_id="acc-galicia", category_id="cat-sueldo", type="income")
    _add(repos, 30000, date(2026, 3, 5))
    _add(repos, 200, date(2026, 3, 7), account_id="acc-usd", currency="USD")
    result = _read(executor, repos, Intent.RESUMEN_MES, ParsedEntities(), context)
    assert (result.data["income"], result.data["expense"], result.data["balance"]) == (100000, 30000, 70000)
    assert result.data["by_currency"]["USD"] == {"income": 0, "expense": 200}
    assert "🍔 Comida: $30.000,00 (100%)" in result.message
    assert "💵 *USD:*" in result.message


def test_card_statement_query(executor, repos, context):
    empty = _read(executor, repos, Intent.CONSULTAR_RESUMEN_TARJETA, ParsedEntities(), context)
    assert empty.data == {"total": 0, "statement_month": "2026-03"}

    _add(repos, 30000, date(2026, 2, 10), account_id="acc-visa", note="Zapatillas")
    result = _read(executor, repos, Intent.CONSULTAR_RESUMEN_TARJETA, ParsedEntities(), context)
    assert "💳 *Resumen Visa Galicia - Marzo 2026:*" in result.message
    assert "Cierre: 25/02/2026" in result.message
    assert result.data["total"] == 30000


def test_budgets(executor, repos, context):
    repos.ledger.budgets.append(Budget(user_id=repos.user_id, category_id="cat-comida", amount=10000))
    _add(repos, 8500, date(2026, 3, 4))
    result = _read(executor, repos, Intent.CONSULTAR_PRESUPUESTOS, ParsedEntities(), context)
    assert "🟡 🍔 Comida: $8.500,00 / $10.000,00 (85%)" in result.message


def test_help(executor, repos, context):
    result = _read(executor, repos, Intent.AYUDA, ParsedEntities(), context)
    assert result.success
