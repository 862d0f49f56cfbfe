"""Regex tables for intent classification and entity extraction.

Tuned for Argentine Spanish. Every pattern is compiled once at import time and
applied to text produced by ``normalize_text`` unless noted otherwise.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Dict, List, Pattern

_FLAGS = re.IGNORECASE


@dataclass(frozen=True)
class IntentRule:
    """One weighted pattern contributing to an intent's score."""

    intent: str
    tag: str
    pattern: Pattern
    weight: float = 0.7


def _rule(intent: str, tag: str, pattern: str, weight: float = 0.7, flags: int = _FLAGS) -> IntentRule:
    return IntentRule(intent=intent, tag=tag, pattern=re.compile(pattern, flags), weight=weight)


INTENT_RULES: List[IntentRule] = [
    # Expenses
    _rule("REGISTRAR_GASTO", "gasto.verbo",
          r"\b(gast[eéoó]|pagu[eé]|compr[eé]|gasto\s+de|me\s+cobr[oóa]|debit[eéoó]|abon[eé]|puse)\b"),
    _rule("REGISTRAR_GASTO", "gasto.salieron",
          r"\b(sal[ií]|salieron?|fueron?)\s+(\$|u\$s?|usd?)?\s*[\d.,]+"),
    _rule("REGISTRAR_GASTO", "gasto.se_fue",
          r"\b(se\s+fue(ron)?|se\s+me\s+fue(ron)?)\b"),

    # Income
    _rule("REGISTRAR_INGRESO", "ingreso.verbo",
          r"\b(cobr[eé]|me\s+pagar[oó]n|recib[ií]|ingres[oó]|entr[oó]|depositaron|deposit[eé])\b"),
    _rule("REGISTRAR_INGRESO", "ingreso.me_llego",
          r"\b(me\s+(cay[oó]|lleg[oó]|transfirieron|pasaron))\b"),
    _rule("REGISTRAR_INGRESO", "ingreso.gane", r"\b(gan[eé])\b"),

    # Transfers
    _rule("REGISTRAR_TRANSFERENCIA", "transferencia.verbo",
          r"\b(transfer[ií]|pas[eé]|mand[eé]\s*(plata)?|mov[ií])\b.*\b(a|de|desde|hacia)\b"),
    _rule("REGISTRAR_TRANSFERENCIA", "transferencia.de_a",
          r"\b(de|desde)\s+\w+\s+(a|hacia)\s+\w+"),

    # Balance
    _rule("CONSULTAR_SALDO", "saldo.palabra",
          r"\b(saldo|balance|cu[aá]nto\s+tengo|plata\s+(en|que\s+tengo)|disponible)\b"),
    _rule("CONSULTAR_SALDO", "saldo.hay_plata", r"\b(tengo\s+plata|hay\s+plata)\b"),
    _rule("CONSULTAR_SALDO", "saldo.que_tengo", r"\bqu[eé]\s+tengo\s+en\b"),

    # Expense queries
    _rule("CONSULTAR_GASTOS", "gastos.cuanto",
          r"\b(cu[aá]nto\s+gast[eé]|gastos?\s+(de|en|del?)|resumen\s+de\s+gastos?)\b"),
    _rule("CONSULTAR_GASTOS", "gastos.llevo",
          r"\b(cu[aá]nto\s+llevo\s+gastado|qu[eé]\s+gast[eé])\b"),
    _rule("CONSULTAR_GASTOS", "gastos.periodo",
          r"\bgastos?\s+(de\s+)?(hoy|ayer|esta\s+semana|este\s+mes|este\s+a[nñ]o)"),

    # Income queries
    _rule("CONSULTAR_INGRESOS", "ingresos.cuanto",
          r"\b(cu[aá]nto\s+cobr[eé]|ingresos?\s+(de|en|del?))\b"),
    _rule("CONSULTAR_INGRESOS", "ingresos.entro",
          r"\b(cu[aá]nto\s+entr[oó]|qu[eé]\s+cobr[eé])\b"),
    _rule("CONSULTAR_INGRESOS", "ingresos.periodo",
          r"\bingresos?\s+(de\s+)?(hoy|ayer|esta\s+semana|este\s+mes|este\s+a[nñ]o)"),

    # Card payment
    _rule("PAGAR_TARJETA", "tarjeta.pagar_desde",
          r"\bpagar\s+(?:tarjeta\s+)?(\w+)(?:\s+(?:resumen\s+)?(\w+))?\s+(?:desde|con|de)\s+(\w+)"),
    _rule("PAGAR_TARJETA", "tarjeta.pago_de", r"\bpago\s+(?:de\s+)?(?:tarjeta\s+)?(\w+)"),
    _rule("PAGAR_TARJETA", "tarjeta.pagar_tarjeta", r"\bpagar\s+(?:la\s+)?tarjeta"),
    _rule("PAGAR_TARJETA", "tarjeta.pagar_resumen", r"\bpagar\s+resumen"),

    # Stamp tax
    _rule("AGREGAR_SELLOS", "sellos.agregar",
          r"\b(?:agregar|sumar|cargar)\s+(?:impuesto\s+de\s+)?sellos?\b"),
    _rule("AGREGAR_SELLOS", "sellos.monto",
          r"\bsellos?\s+(?:de\s+)?(?:\$|u\$s?|usd?)?\s*[\d.,kmKM]+"),
    _rule("AGREGAR_SELLOS", "sellos.impuesto", r"\bimpuesto\s+de\s+sellos?\b"),

    # Card statement
    _rule("CONSULTAR_RESUMEN_TARJETA", "resumen_tarjeta.resumen",
          r"\bresumen\s+(?:de\s+)?(?:tarjeta\s+)?(\w+)(?:\s+(\w+))?"),
    _rule("CONSULTAR_RESUMEN_TARJETA", "resumen_tarjeta.ver",
          r"\b(?:ver|mostrar)\s+resumen\s+(?:de\s+)?(\w+)"),
    _rule("CONSULTAR_RESUMEN_TARJETA", "resumen_tarjeta.debo",
          r"\bcu[aá]nto\s+debo\s+(?:en|de)\s+(?:la\s+)?(?:tarjeta\s+)?(\w+)"),
    _rule("CONSULTAR_RESUMEN_TARJETA", "resumen_tarjeta.deuda",
          r"\bdeuda\s+(?:de|en)\s+(?:la\s+)?(?:tarjeta\s+)?(\w+)"),

    # Menu and cancel
    _rule("MENU", "menu.menu", r"^men[uú]$"),
    _rule("MENU", "menu.inicio", r"^inicio$"),
    _rule("MENU", "menu.main", r"^main$"),
    _rule("MENU", "menu.home", r"^home$"),
    _rule("MENU", "menu.start", r"^/start$"),
    _rule("CANCELAR", "cancelar.cancelar", r"^cancelar$"),
    _rule("CANCELAR", "cancelar.cancel", r"^cancel$"),
    _rule("CANCELAR", "cancelar.salir", r"^salir$"),
    _rule("CANCELAR", "cancelar.slash", r"^/cancel$"),

    # Recent movements
    _rule("ULTIMOS_MOVIMIENTOS", "ultimos.palabra",
          r"\b([uú]ltim[oa]s?|recientes?|historial|movimientos?)\b"),
    _rule("ULTIMOS_MOVIMIENTOS", "ultimos.que_hice", r"\b(qu[eé]\s+hice|qu[eé]\s+mov[ií])\b"),

    # Monthly summary
    _rule("RESUMEN_MES", "resumen.palabra",
          r"\b(resumen|c[oó]mo\s+voy|estado\s+(del?|mensual)|balance\s+mensual)\b"),
    _rule("RESUMEN_MES", "resumen.como_estoy", r"\b(c[oó]mo\s+estoy|c[oó]mo\s+vengo)\b"),
    _rule("RESUMEN_MES", "resumen.mes", r"\bresumen\s+(del?\s+)?(este\s+)?mes\b"),

    # Budgets
    _rule("CONSULTAR_PRESUPUESTOS", "presupuestos.palabra",
          r"\b(presupuesto|presupuestos|l[ií]mite|l[ií]mites)\b"),
    _rule("CONSULTAR_PRESUPUESTOS", "presupuestos.como_van",
          r"\bc[oó]mo\s+(van|va)\s+(mis\s+)?presupuestos?\b"),

    # Help
    _rule("AYUDA", "ayuda.palabra",
          r"\b(ayuda|help|qu[eé]\s+pued[eo]\s+hacer|comandos?|opciones?)\b"),
    _rule("AYUDA", "ayuda.como_uso", r"\bc[oó]mo\s+(te\s+)?us[oa]|c[oó]mo\s+funciona"),
]

# Greetings, thanks and emoji-only messages; matched against the raw text
IGNORE_PATTERNS: List[Pattern] = [
    re.compile(r"^(hola|buenas?|hey|hi|hello|buenos?\s*(d[ií]as?|tardes?|noches?))\s*[!.?]?$", _FLAGS),
    re.compile(r"^(gracias|muchas\s+gracias|thx|thanks)\s*[!.?]?$", _FLAGS),
    re.compile(r"^(chau|adi[oó]s|nos\s+vemos|hasta\s+luego)\s*[!.?]?$", _FLAGS),
    re.compile(r"^[👍🙏😊🤗]+$"),
]

AMOUNT_PATTERNS: Dict[str, Pattern] = {
    "with_multiplier": re.compile(r"(\d+(?:[.,]\d+)?)\s*(k|lucas?|mil|palos?|mill[oó]n(?:es)?)\b", _FLAGS),
    "standard": re.compile(
        r"(?:\$|u\$s?|usd?\s*)?\s*(\d{1,3}(?:[.,]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?)", _FLAGS),
    "simple": re.compile(r"\b(\d+(?:[.,]\d{1,2})?)\b"),
}

DATE_PATTERNS: Dict[str, Pattern] = {
    "explicit": re.compile(r"\b(\d{1,2})[/\-](\d{1,2})(?:[/\-](\d{2,4}))?\b"),
    "day_of_month": re.compile(r"\b(?:el\s+(?:d[ií]a\s+)?|d[ií]a\s+)(\d{1,2})\b(?!\s*(?:cuotas?|c\b|x\b|[.,]\d|k\b|mil\b|lucas?\b))", _FLAGS),
}

PERIOD_PATTERNS: Dict[str, Pattern] = {
    "today": re.compile(r"\b(hoy|de\s+hoy)\b", _FLAGS),
    "yesterday": re.compile(r"\b(ayer|de\s+ayer)\b", _FLAGS),
    "this_week": re.compile(r"\b(esta\s+semana|de\s+esta\s+semana|semana\s+actual)\b", _FLAGS),
    "last_week": re.compile(r"\b(la\s+semana\s+pasada|semana\s+pasada|semana\s+anterior)\b", _FLAGS),
    "this_month": re.compile(r"\b(este\s+mes|de\s+este\s+mes|mes\s+actual)\b", _FLAGS),
    "last_month": re.compile(r"\b(el\s+mes\s+pasado|mes\s+pasado|mes\s+anterior)\b", _FLAGS),
    "this_year": re.compile(r"\b(este\s+a[nñ]o|de\s+este\s+a[nñ]o|a[nñ]o\s+actual)\b", _FLAGS),
    "last_7_days": re.compile(r"\b([uú]ltimos?\s+7\s+d[ií]as?)\b", _FLAGS),
    "last_30_days": re.compile(r"\b([uú]ltimos?\s+30\s+d[ií]as?)\b", _FLAGS),
    "last_n_days": re.compile(r"\b[uú]ltimos?\s+(\d+)\s+d[ií]as?\b", _FLAGS),
    "range": re.compile(
        r"\b(?:del?|desde(?:\s+el)?)\s+(\d{1,2}[/\-]\d{1,2}(?:[/\-]\d{2,4})?|\d{1,2}\s+de\s+\w+)"
        r"\s+(?:al?|hasta(?:\s+el)?)\s+(\d{1,2}[/\-]\d{1,2}(?:[/\-]\d{2,4})?|\d{1,2}\s+de\s+\w+)", _FLAGS),
    "month": re.compile(
        r"\b(?:de\s+|en\s+)?(enero|febrero|marzo|abril|mayo|junio|julio|agosto|septiembre|setiembre"
        r"|octubre|noviembre|diciembre)(?:\s+(?:de\s+)?(\d{4}))?\b", _FLAGS),
    "ago": re.compile(r"\bhace\s+(\d+)\s+(d[ií]as?|semanas?|meses?)\b", _FLAGS),
}

NOTE_PATTERNS: Dict[str, Pattern] = {
    "quoted": re.compile(r"[\"'“”]([^\"'“”]+)[\"'“”]"),
    "explicit": re.compile(r"\b(?:nota|motivo|concepto)[:\s]+(.+)$", _FLAGS),
}

INSTALLMENT_PATTERNS: Dict[str, Pattern] = {
    "cuotas": re.compile(r"(?:\ben\s+)?\b(\d{1,2})\s*(?:cuotas?\b|c\b|cuo\b|x\b)", _FLAGS),
    "x_prefix": re.compile(r"\bx\s*(\d{1,2})\b", _FLAGS),
    "first_installment": re.compile(
        r"(?:primera\s+cuota\s+(?:en\s+)?|resumen\s+(?:de\s+)?|cierra\s+(?:en\s+)?|entra\s+(?:en\s+)?)"
        r"([a-záéíóú]+)(?:\s+(\d{4}))?", _FLAGS),
}

TRANSFER_PATTERNS: Dict[str, Pattern] = {
    "from_to": re.compile(r"\b(?:de|desde)\s+([a-z][a-z\s]*?)\s+(?:a|hacia|para)\s+([a-z][a-z\s]*?)(?:\s+(?:hoy|ayer|el|nota|por)\b|\s*\d|$)", _FLAGS),
    "to_from": re.compile(r"\b(?:a|hacia|para)\s+([a-z][a-z\s]*?)\s+(?:de|desde)\s+([a-z][a-z\s]*?)(?:\s+(?:hoy|ayer|el|nota|por)\b|\s*\d|$)", _FLAGS),
    "direction": re.compile(r"\b(de|desde)\b.*\b(a|hacia)\b|\b(a|hacia)\b.*\b(de|desde)\b", _FLAGS),
}

_ACCOUNT_STOP = r"(?=\s+(?:ayer|hoy|el|la|en|con|de|desde|para|por|nota|primera|resumen|\d)\b|\s*\d|$)"

ACCOUNT_PATTERNS: Dict[str, Pattern] = {
    "card_bank": re.compile(r"\b(visa|mastercard|master|amex|cabal|naranja|nativa)[,\s]+([a-z]+)\b", _FLAGS),
    "card_only": re.compile(r"\b(?:con|en)\s+(?:la\s+)?(visa|mastercard|master|amex|cabal|naranja|nativa)\b", _FLAGS),
    "strong_preposition": re.compile(r"\b(?:con|desde|cuenta)\s+([a-z][a-z\s]*?)" + _ACCOUNT_STOP, _FLAGS),
    "weak_preposition": re.compile(r"\ben\s+([a-z][a-z\s]*?)" + _ACCOUNT_STOP, _FLAGS),
    "last_word": re.compile(r"([a-z]+)[\s?!.¿¡]*$", _FLAGS),
    "clean": re.compile(r"\b(cuenta|banco|tarjeta|de|la|el|mi)\b", _FLAGS),
}

CATEGORY_PATTERNS: Dict[str, Pattern] = {
    "preposition": re.compile(r"\b(?:en|de|para|categoria)\s+([a-z]{3,}(?:\s+[a-z]{3,})?)\b", _FLAGS),
    "de": re.compile(r"\bde\s+([a-z]{3,})\b", _FLAGS),
    "clean": re.compile(r"\b(categoria|de|la|el|un|una)\b", _FLAGS),
}

LIMIT_PATTERNS: Dict[str, Pattern] = {
    "with_keyword": re.compile(r"(\d+)\s*(?:ultim[oa]s?|movimientos?)|(?:ultim[oa]s?)\s+(\d+)", _FLAGS),
    "loose": re.compile(r"\b(\d{1,2})\b"),
}

CREDIT_CARD_PATTERNS: Dict[str, Pattern] = {
    "pay_card": re.compile(
        r"\bpagar\s+(?:(?:la\s+)?tarjeta\s+)?(\w+)(?:\s+(?:resumen\s+)?(?:de\s+)?(\w+))?\s+(?:desde|con|de)\s+(\w+)", _FLAGS),
    "pay_card_simple": re.compile(r"\bpag(?:ar|o)\s+(?:de\s+)?(?:(?:la\s+)?tarjeta\s+)?(\w+)", _FLAGS),
    "add_stamp_tax": re.compile(
        r"\b(?:agregar|sumar|cargar)\s+(?:impuesto\s+de\s+)?sellos?\s+(?:de\s+)?(\$?[\d.,]+\s*(?:k|mil|lucas?)?)"
        r"\s+(?:a|en)\s+(?:(?:la\s+)?tarjeta\s+)?(\w+)", _FLAGS),
    "add_stamp_tax_alt": re.compile(
        r"\bsellos?\s+(?:de\s+)?(\$?[\d.,]+\s*(?:k|mil|lucas?)?)\s+(?:a|en)\s+(?:(?:la\s+)?tarjeta\s+)?(\w+)", _FLAGS),
    "card_statement": re.compile(r"\bresumen\s+(?:de\s+)?(?:(?:la\s+)?tarjeta\s+)?(\w+)", _FLAGS),
    "statement_month": re.compile(r"\bresumen\s+(?:de\s+)?(?:\w+\s+)?(\w+)", _FLAGS),
    "actual": re.compile(r"\bactual\b", _FLAGS),
    "card_word": re.compile(r"\b(visa|master(?:card)?|amex|cabal|naranja|nativa|tarjeta)\b", _FLAGS),
}

CONFIRMATION_PATTERNS: Dict[str, Pattern] = {
    "yes": re.compile(r"^(s[ií]|si|yes|ok|dale|confirmar?|listo|va|bien|correct[oa]|perfect[oa]|1|✅)$", _FLAGS),
    "no": re.compile(r"^(no|cancelar?|cancel|anular?|salir|x|2|❌)$", _FLAGS),
    "edit": re.compile(r"^(editar?|cambiar?|modificar?|corregir?|edit|3|✏️)$", _FLAGS),
}

SELECTION_PATTERNS: Dict[str, Pattern] = {
    "number": re.compile(r"^(\d{1,2})$"),
}

# Any of these, alone, wipes the conversation from whatever state it is in
RESET_PATTERN: Pattern = re.compile(
    r"^(cancel(?:ar)?|salir|x|0|reiniciar|reset(?:ear)?|volver|atr[aá]s|back|empezar|comenzar|inicio"
    r"|nuevo|nueva|limpiar|clear|stop|parar|detener|no|nada|olvida(?:te|lo)?|dej[aá])$", _FLAGS)

_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")
_LONE_COMMA_AFTER = re.compile(r",(?!\d)")
_LONE_COMMA_BEFORE = re.compile(r"(?<!\d),")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace.

    Commas that are not part of a number become spaces so "visa, galicia"
    and "visa galicia" read the same while "1.500,50" survives.
    """
    result = unicodedata.normalize("NFD", (text or "").lower())
    result = _COMBINING_MARKS.sub("", result)
    result = _LONE_COMMA_AFTER.sub(" ", result)
    result = _LONE_COMMA_BEFORE.sub(" ", result)
    return _WHITESPACE.sub(" ", result).strip()


def should_ignore_message(text: str) -> bool:
    """True for greetings, thanks, goodbyes and emoji-only messages."""
    stripped = (text or "").strip()
    return any(pattern.search(stripped) for pattern in IGNORE_PATTERNS)
