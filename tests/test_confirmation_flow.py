"""Previews, edit menus and reply parsing for pending write commands."""

from datetime import date

import pytest

from cashe.agents.confirmation_flow import ConfirmationFlow, resolve_statement_month, statement_options
from cashe.schemas.core import DisambiguationOption, Intent, ParsedEntities
from cashe.utils.errors import ValidationError

TODAY = date(2026, 3, 18)
flow = ConfirmationFlow(clock=lambda: TODAY)


def _expense(**overrides):
    values = dict(amount=500, currency="ARS", account_id="acc-efectivo", category_id="cat-comida", date=TODAY)
    values.update(overrides)
    return ParsedEntities(**values)


def test_expense_preview(context):
    preview = flow.build_preview(Intent.REGISTRAR_GASTO, _expense(note="Almuerzo"), context)
    assert "$500,00" in preview
    assert "🍔 Comida" in preview
    assert "Efectivo" in preview
    assert "Hoy" in preview
    assert "Almuerzo" in preview


def test_card_expense_preview_shows_statement(context):
    preview = flow.build_preview(Intent.REGISTRAR_GASTO, _expense(account_id="acc-visa"), context)
    assert "Resumen: Abril 2026" in preview

    after_close = flow.build_preview(Intent.REGISTRAR_GASTO,
                                     _expense(account_id="acc-visa", date=date(2026, 3, 26)), context)
    assert "Resumen: Mayo 2026" in after_close


def test_installment_preview(context):
    preview = flow.build_preview(Intent.REGISTRAR_GASTO,
                                 _expense(amount=90000, installments=3, account_id="acc-visa"), context)
    assert "3x $30.000,00" in preview
    assert "$90.000,00" in preview


def test_explicit_first_installment_wins(context):
    entities = _expense(installments=6, account_id="acc-visa", first_installment_date=date(2026, 7, 1))
    assert "Julio 2026" in flow.build_preview(Intent.REGISTRAR_GASTO, entities, context)


def test_transfer_preview_keeps_direction(context):
    entities = ParsedEntities(amount=10000, from_account_id="acc-galicia", to_account_id="acc-mp", date=TODAY)
    preview = flow.build_preview(Intent.REGISTRAR_TRANSFERENCIA, entities, context)
    assert "De: Banco Galicia" in preview
    assert "A: MercadoPago" in preview


def test_stamp_tax_preview_uses_close_date(context):
    entities = ParsedEntities(target_card_id="acc-visa", stamp_tax_amount=1500)
    preview = flow.build_preview(Intent.AGREGAR_SELLOS, entities, context)
    assert "Marzo 2026" in preview
    assert "25/02/2026" in preview
    assert "$1.500,00" in preview


def test_non_write_intent_has_no_preview(context):
    assert flow.build_preview(Intent.CONSULTAR_SALDO, ParsedEntities(), context) == ""


def test_confirmation_has_three_buttons(context):
    message, buttons = flow.build_confirmation(Intent.REGISTRAR_GASTO, _expense(), context)
    assert message.endswith("¿Está correcto?")
    assert [b.token for b in buttons] == ["confirm_yes", "confirm_edit", "confirm_cancel"]


@pytest.mark.parametrize("text, answer", [
    ("si", "yes"), ("Sí", "yes"), ("dale", "yes"), ("ok", "yes"), ("1", "yes"),
    ("no", "no"), ("cancelar", "no"),
    ("editar", "edit"), ("cambiar", "edit"),
    ("quizás", None), ("si pero no", None),
])
def test_parse_confirmation(text, answer):
    assert flow.parse_confirmation(text) == answer


def test_statement_months(context):
    card = context.account_by_id("acc-visa")
    assert resolve_statement_month(None, card, TODAY) == "2026-03"
    assert resolve_statement_month("actual", card, TODAY) == "2026-03"
    assert resolve_statement_month("2026-01", card, TODAY) == "2026-01"

    options = statement_options(card, TODAY)
    assert [o.id for o in options] == ["2026-04", "2026-03", "2026-02", "2026-01"]
    assert options[1].display_name == "Marzo 2026 (actual)"


def test_edit_menu(context):
    message, buttons = flow.build_edit_menu(Intent.REGISTRAR_GASTO, _expense(), context)
    assert "1️⃣ Monto ($500,00)" in message
    assert [b.token for b in buttons] == ["edit_amount", "edit_category", "edit_account", "edit_date",
                                          "edit_note", "confirm_cancel"]


def test_parse_edit_field():
    assert flow.parse_edit_field("1", Intent.REGISTRAR_GASTO) == "amount"
    assert flow.parse_edit_field("2", Intent.REGISTRAR_GASTO) == "category"
    assert flow.parse_edit_field("9", Intent.REGISTRAR_GASTO) is None
    assert flow.parse_edit_field("el monto", Intent.REGISTRAR_GASTO) == "amount"
    assert flow.parse_edit_field("note", Intent.REGISTRAR_GASTO) == "note"
    assert flow.parse_edit_field("destino", Intent.REGISTRAR_TRANSFERENCIA) == "to_account"
    assert flow.parse_edit_field("destino", Intent.REGISTRAR_GASTO) is None


def test_category_prompt_lists_only_expense_categories(context):
    message, buttons, options = flow.build_field_prompt("category", Intent.REGISTRAR_GASTO, _expense(), context,
                                                        missing=True)
    assert message.startswith("📁 *Elegí la categoría:*")
    assert all(context.category_by_id(o.id).type == "expense" for o in options)
    assert buttons[0].token == "cat_cat-comida"
    assert buttons[-1].token == "confirm_cancel"


def test_value_prompt_has_only_cancel(context):
    message, buttons, options = flow.build_field_prompt("amount", Intent.REGISTRAR_GASTO, _expense(), context)
    assert message == "💰 Escribí el nuevo monto:"
    assert [b.token for b in buttons] == ["confirm_cancel"]
    assert options == []


def test_parse_selection():
    options = [
        DisambiguationOption(id="acc-galicia", name="Banco Galicia", display_name="Banco Galicia"),
        DisambiguationOption(id="acc-visa", name="Visa Galicia", display_name="Visa Galicia"),
    ]
    assert flow.parse_selection("2", options).id == "acc-visa"
    assert flow.parse_selection("acc-galicia", options).id == "acc-galicia"
    assert flow.parse_selection("visa", options).id == "acc-visa"
    assert flow.parse_selection("3", options) is None
    assert flow.parse_selection("santander", options) is None
    assert flow.parse_selection("1", []) is None


def test_apply_value():
    updated = flow.apply_value(_expense(), "amount", "750")
    assert updated.amount == 750

    usd = flow.apply_value(_expense(), "amount", "u$s 20")
    assert (usd.amount, usd.currency) == (20, "USD")

    assert flow.apply_value(_expense(), "date", "ayer").date == date(2026, 3, 17)
    assert flow.apply_value(_expense(), "note", "  cumple  ").note == "cumple"
    assert flow.apply_value(ParsedEntities(), "stamp_tax", "1.500").stamp_tax_amount == 1500


def test_apply_value_rejects_bad_input():
    with pytest.raises(ValidationError) as error:
        flow.apply_value(_expense(), "amount", "mucho")
    assert error.value.response_key == "ERROR_MONTO_INVALIDO"

    with pytest.raises(ValidationError) as error:
        flow.apply_value(_expense(), "date", "algún día")
    assert error.value.response_key == "ERROR_FECHA_INVALIDA"


def test_apply_selection():
    option = DisambiguationOption(id="cat-super", name="Supermercado", display_name="🛒 Supermercado")
    updated = flow.apply_selection(_expense(), "category", option)
    assert (updated.category_id, updated.category) == ("cat-super", "Supermercado")

    month = DisambiguationOption(id="2026-02", name="Febrero 2026", display_name="Febrero 2026")
    assert flow.apply_selection(ParsedEntities(), "statement_month", month).statement_month == "2026-02"
