"""Intent classification for typical Argentine chat messages."""

import pytest

from cashe.agents.intent_classifier import IntentClassifier, expected_category_type, is_read_intent, is_write_intent
from cashe.constants.patterns import normalize_text
from cashe.schemas.core import Intent

classifier = IntentClassifier()


@pytest.mark.parametrize("text, intent", [
    ("gasté 500 en comida", Intent.REGISTRAR_GASTO),
    ("compré zapatillas 90k en 3 cuotas con visa", Intent.REGISTRAR_GASTO),
    ("cobré 50000 en santander", Intent.REGISTRAR_INGRESO),
    ("transferí 10000 de galicia a mp", Intent.REGISTRAR_TRANSFERENCIA),
    ("saldo", Intent.CONSULTAR_SALDO),
    ("cuánto gasté en comida este mes", Intent.CONSULTAR_GASTOS),
    ("cuánto cobré este mes", Intent.CONSULTAR_INGRESOS),
    ("últimos 10 movimientos", Intent.ULTIMOS_MOVIMIENTOS),
    ("resumen del mes", Intent.RESUMEN_MES),
    ("resumen visa", Intent.CONSULTAR_RESUMEN_TARJETA),
    ("pagar visa desde galicia", Intent.PAGAR_TARJETA),
    ("agregar sellos de 1500 a visa", Intent.AGREGAR_SELLOS),
    ("cómo van mis presupuestos", Intent.CONSULTAR_PRESUPUESTOS),
    ("ayuda", Intent.AYUDA),
])
def test_classifies_common_messages(text, intent):
    result = classifier.classify(text)
    assert result.intent == intent
    assert result.confidence >= 0.4


def test_spent_question_is_not_an_expense():
    result = classifier.classify("cuánto gasté")
    assert result.intent == Intent.CONSULTAR_GASTOS


def test_exact_menu_and_cancel_are_certain():
    assert classifier.classify("menú").intent == Intent.MENU
    assert classifier.classify("menú").confidence == 1.0
    assert classifier.classify("Cancelar").intent == Intent.CANCELAR
    assert classifier.classify("Cancelar").confidence == 1.0


def test_greeting_is_tagged_and_low_confidence():
    result = classifier.classify("hola!")
    assert result.matched_pattern_id == "ignore.greeting"
    assert result.confidence < 0.4


def test_gibberish_is_unknown():
    result = classifier.classify("xyzzy plugh")
    assert result.intent == Intent.DESCONOCIDO
    assert result.confidence == 0.0


def test_classification_is_deterministic():
    first = classifier.classify("pasé 5000 de brubank a efectivo")
    second = classifier.classify("pasé 5000 de brubank a efectivo")
    assert first == second


def test_confidence_is_capped_at_one():
    result = classifier.classify("transferí 10000 de galicia a mp")
    assert result.confidence <= 1.0


def test_normalize_text_keeps_numbers_and_strips_accents():
    assert normalize_text("  Gasté  1.500,50 en   Café ") == "gaste 1.500,50 en cafe"
    assert normalize_text("visa, galicia") == "visa galicia"


def test_intent_families():
    assert is_write_intent(Intent.PAGAR_TARJETA)
    assert not is_write_intent(Intent.CONSULTAR_SALDO)
    assert is_read_intent(Intent.CONSULTAR_RESUMEN_TARJETA)
    assert expected_category_type(Intent.REGISTRAR_GASTO) == "expense"
    assert expected_category_type(Intent.REGISTRAR_INGRESO) == "income"
    assert expected_category_type(Intent.REGISTRAR_TRANSFERENCIA) is None
