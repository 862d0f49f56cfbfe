"""Entity extraction: amounts, dates, installments, periods and references."""

from datetime import date

import pytest

from cashe.agents.entity_extractor import (
    EntityExtractor,
    extract_amount,
    extract_date,
    extract_installments,
    extract_limit,
    extract_period,
    extract_statement_month,
    parse_argentine_number,
    period_to_date_range,
)
from cashe.schemas.core import Intent, QueryPeriod

TODAY = date(2026, 3, 18)
extractor = EntityExtractor(clock=lambda: TODAY)


@pytest.mark.parametrize("text, expected", [
    ("1.500,50", 1500.5),
    ("15.000", 15000.0),
    ("2,5", 2.5),
    ("1,500", 1500.0),
    ("$300", 300.0),
    ("abc", None),
    ("", None),
])
def test_parse_argentine_number(text, expected):
    assert parse_argentine_number(text) == expected


def test_amount_with_multipliers():
    assert extract_amount("gaste 50k en super") == (50000.0, "ARS", False)
    assert extract_amount("me salio 2 palos") == (2000000.0, "ARS", False)
    assert extract_amount("150 lucas") == (150000.0, "ARS", False)


def test_amount_currency_detection():
    assert extract_amount("gaste u$s 100") == (100.0, "USD", True)
    assert extract_amount("pague 1500 pesos") == (1500.0, "ARS", True)


def test_amount_ignores_dates_and_installments():
    assert extract_amount("compre tele 300000 en 12 cuotas el 15/03")[0] == 300000.0


def test_amount_out_of_range_is_dropped():
    assert extract_amount("gaste 0") is None
    assert extract_amount("sin numeros") is None


def test_relative_dates():
    assert extract_date("gaste 500 ayer", TODAY) == date(2026, 3, 17)
    assert extract_date("gaste 500 anteayer", TODAY) == date(2026, 3, 16)
    assert extract_date("gaste 500 hoy", TODAY) == TODAY


def test_explicit_dates():
    assert extract_date("gaste 500 el 15/02", TODAY) == date(2026, 2, 15)
    assert extract_date("gaste 500 el 3-1-25", TODAY) == date(2025, 1, 3)
    assert extract_date("gaste 500 el 31/02", TODAY) is None


def test_day_of_month_never_rolls_forward():
    assert extract_date("gaste 500 el 10", TODAY) == date(2026, 3, 10)
    assert extract_date("gaste 500 el 20", TODAY) == date(2026, 2, 20)
    # 31 of last month does not exist in February
    assert extract_date("gaste 500 el 31", TODAY) is None


def test_no_date_mentioned():
    assert extract_date("gaste 500 en comida", TODAY) is None


@pytest.mark.parametrize("text, expected", [
    ("en 3 cuotas", 3),
    ("12x", 12),
    ("x6", 6),
    ("6c", 6),
    ("en 60 cuotas", None),
    ("sin cuotas", None),
])
def test_installments(text, expected):
    assert extract_installments(text) == expected


def test_limit():
    assert extract_limit("ultimos 10 movimientos") == 10
    assert extract_limit("movimientos") == 5


def test_relative_periods():
    this_month = extract_period("cuanto gaste este mes", TODAY)
    assert this_month.value == "this_month"
    assert (this_month.start_date, this_month.end_date) == (date(2026, 3, 1), TODAY)

    last_week = extract_period("gastos de la semana pasada", TODAY)
    assert (last_week.start_date, last_week.end_date) == (date(2026, 3, 9), date(2026, 3, 15))

    last_month = extract_period("ingresos del mes pasado", TODAY)
    assert (last_month.start_date, last_month.end_date) == (date(2026, 2, 1), date(2026, 2, 28))


def test_month_periods_pick_the_past_year():
    january = extract_period("gastos en enero", TODAY)
    assert january.type == "month"
    assert january.value == "2026-01"
    may = extract_period("gastos en mayo", TODAY)
    assert may.value == "2025-05"
    assert may.end_date == date(2025, 5, 31)


def test_range_period():
    period = extract_period("gastos del 1/3 al 10/3", TODAY)
    assert period.type == "range"
    assert (period.start_date, period.end_date) == (date(2026, 3, 1), date(2026, 3, 10))


def test_no_period_defaults_to_current_month():
    assert extract_period("cuanto gaste", TODAY) is None
    assert period_to_date_range(None, TODAY) == (date(2026, 3, 1), TODAY)
    assert period_to_date_range(QueryPeriod(type="relative", value="today"), TODAY) == (TODAY, TODAY)


def test_statement_month():
    assert extract_statement_month("pagar resumen actual", TODAY) == "actual"
    assert extract_statement_month("pagar visa resumen de abril", TODAY) == "2026-04"
    assert extract_statement_month("resumen de enero", TODAY) == "2026-01"
    assert extract_statement_month("pagar visa", TODAY) is None


def test_expense_entities():
    entities = extractor.extract("gasté 500 en comida", Intent.REGISTRAR_GASTO)
    assert entities.amount == 500
    assert entities.category == "comida"
    assert entities.date is None
    assert entities.note is None
    assert entities.original_message == "gasté 500 en comida"


def test_installment_purchase_entities():
    entities = extractor.extract("compré zapatillas 90k en 3 cuotas con visa", Intent.REGISTRAR_GASTO)
    assert entities.amount == 90000
    assert entities.installments == 3
    assert entities.account == "visa"
    assert entities.note == "Zapatillas"


def test_explicit_note_wins():
    entities = extractor.extract("gasté 500 en comida nota: cumple de juan", Intent.REGISTRAR_GASTO)
    assert entities.note == "cumple de juan"


def test_transfer_entities():
    entities = extractor.extract("transferí 10000 de galicia a mp", Intent.REGISTRAR_TRANSFERENCIA)
    assert entities.amount == 10000
    assert (entities.from_account, entities.to_account) == ("galicia", "mp")


def test_card_payment_entities():
    entities = extractor.extract("pagar visa desde galicia", Intent.PAGAR_TARJETA)
    assert entities.target_card == "visa"
    assert entities.source_account == "galicia"
    assert entities.statement_month is None
    assert entities.date == TODAY


def test_stamp_tax_entities():
    entities = extractor.extract("agregar sellos de 1500 a visa", Intent.AGREGAR_SELLOS)
    assert entities.stamp_tax_amount == 1500
    assert entities.target_card == "visa"


def test_balance_entities():
    entities = extractor.extract("saldo mercadopago", Intent.CONSULTAR_SALDO)
    assert entities.account == "mercadopago"


def test_spend_query_entities():
    entities = extractor.extract("cuánto gasté en comida este mes", Intent.CONSULTAR_GASTOS)
    assert entities.category == "comida"
    assert entities.period.value == "this_month"


@pytest.mark.parametrize("text, account, category", [
    ("gasté 500 en comida", None, "comida"),
    ("cobré 50000 en santander", "santander", None),
    ("gasté 500 en comida con galicia", "galicia", None),
])
def test_en_reference_is_an_account_only_for_known_names(text, account, category):
    intent = Intent.REGISTRAR_INGRESO if text.startswith("cobr") else Intent.REGISTRAR_GASTO
    entities = extractor.extract(text, intent)
    assert entities.account == account
    if category:
        assert entities.category == category
