#!/usr/bin/env python3
"""
Entity Extractor
Pulls amounts, dates, notes, installments, periods and free-text
account/category references out of an Argentine-Spanish message.
References are left as text; the fuzzy matcher turns them into IDs.
"""

import re
from datetime import date, timedelta
from typing import Callable, List, Optional, Tuple

from cashe.constants.aliases import (
    ACCOUNT_ALIASES,
    AMOUNT_MULTIPLIERS,
    COMMON_WORDS,
    CREDIT_CARD_NAMES,
    CURRENCY_KEYWORDS,
    DATE_KEYWORDS,
    MONTH_NAMES,
)
from cashe.constants.patterns import (
    ACCOUNT_PATTERNS,
    AMOUNT_PATTERNS,
    CATEGORY_PATTERNS,
    CREDIT_CARD_PATTERNS,
    DATE_PATTERNS,
    INSTALLMENT_PATTERNS,
    LIMIT_PATTERNS,
    NOTE_PATTERNS,
    PERIOD_PATTERNS,
    TRANSFER_PATTERNS,
    normalize_text,
)
from cashe.schemas.core import Intent, ParsedEntities, QueryPeriod
from cashe.utils.dates import (
    add_months,
    last_day_of_month,
    local_today,
    month_bounds,
    shift_month,
    start_of_week,
    statement_key,
)
from cashe.utils.logger import get_logger

logger = get_logger("entity_extractor")

MAX_AMOUNT = 100_000_000
MAX_INSTALLMENTS = 48
DEFAULT_LIMIT = 5

FULL_MONTHS = {name: number for name, number in MONTH_NAMES.items() if len(name) > 3}
_MONTH_WORD = re.compile(r"\b(" + "|".join(sorted(MONTH_NAMES, key=len, reverse=True)) + r")\b")
_FULL_MONTH_WORD = re.compile(r"\b(" + "|".join(sorted(FULL_MONTHS, key=len, reverse=True)) + r")\b")
_KNOWN_ACCOUNT_NAMES = {normalize_text(a) for key, values in ACCOUNT_ALIASES.items() for a in [key, *values]}
_KNOWN_ACCOUNT = re.compile(
    r"\b(" + "|".join(re.escape(a) for a in sorted(_KNOWN_ACCOUNT_NAMES | set(CREDIT_CARD_NAMES),
                                                   key=len, reverse=True)) + r")\b"
)
_PERIOD_NOISE = re.compile(
    r"\b(?:hoy|ayer|anteayer|esta\s+semana|semana\s+pasada|este\s+mes|mes\s+pasado|este\s+ano)\b"
)

# Residue synthesis: everything the parser already understood is removed
_NOTE_STRIP_PATTERNS = [
    re.compile(r"\b(compr[eoa]r?|gast[eoa]r?|pagu[eo]|pagar|pago|cobr[eoa]r?|recib[ioa]r?|transfer[ioa]r?"
               r"|pas[eoa]r?|abon[eoa]r?|debit[eoa]r?|puse|puso|sali[oe]?|me)\b"),
    re.compile(r"\b(primera\s+cuota|cuotas?|primera|resumen|cierra|entra)\b"),
    re.compile(r"\b(" + "|".join(sorted(MONTH_NAMES, key=len, reverse=True)) + r")\b"),
    re.compile(r"\b20\d{2}\b"),
    re.compile(r"\b\d{1,2}[/\-]\d{1,2}(?:[/\-]\d{2,4})?\b"),
    re.compile(r"(?:u\$s|us\$|u\$d|\$)?\s*\d[\d.,]*\s*(?:k|lucas?|mil|palos?|millon(?:es)?)?\b"),
    re.compile(r"\b(pesos|peso|dolares|dolar|usd|ars|verdes)\b"),
    re.compile(r"\b(hoy|ayer|anteayer|ahora)\b"),
    re.compile(r"\b(visa|mastercard|master|amex|cabal|naranja|nativa|tarjeta|tc)\b"),
    re.compile(r"\b(galicia|santander|bbva|frances|macro|nacion|provincia|ciudad|icbc|hsbc|brubank|uala"
               r"|mercadopago|mercado\s*pago|mp|bru|gal|personal\s*pay|prex|bna|lemon|modo)\b"),
    re.compile(r"\b(caja\s+de\s+ahorro|cuenta\s+corriente|efectivo|billetera|cuenta|banco)\b"),
    re.compile(r"\b(con|en|de|del|la|el|los|las|un|una|unos|unas|a|al|para|por|que|y|o|x)\b"),
]
_NOTE_PUNCTUATION = re.compile(r"[,.:;!?¿¡()\[\]{}\"'“”]")


def parse_argentine_number(text: str) -> Optional[float]:
    """
    Parse a number written with Argentine separators.

    Args:
        text: Digits with optional '.' and ',' (e.g. "1.500,50", "2,5", "15.000")

    Returns:
        The float value, or None when it isn't a number
    """
    cleaned = (text or "").strip().lstrip("$").strip()
    if not cleaned:
        return None
    has_dot = "." in cleaned
    has_comma = "," in cleaned
    if has_dot and has_comma:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    elif has_comma:
        head, _, tail = cleaned.rpartition(",")
        if len(tail) > 2:
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = head.replace(",", "") + "." + tail
    elif has_dot:
        tail = cleaned.rpartition(".")[2]
        if len(tail) == 3:
            cleaned = cleaned.replace(".", "")
        elif cleaned.count(".") > 1:
            return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def _keyword_present(keyword: str, text: str) -> bool:
    keyword = normalize_text(keyword)
    if re.fullmatch(r"[a-z]+", keyword):
        return re.search(rf"\b{re.escape(keyword)}\b", text) is not None
    return keyword in text


def detect_currency(normalized: str) -> Tuple[str, bool]:
    """Return (currency, explicit). USD keywords win over ARS ones."""
    for currency in ("USD", "ARS"):
        if any(_keyword_present(k, normalized) for k in CURRENCY_KEYWORDS[currency]):
            return currency, True
    return "ARS", False


def _valid_amount(value: Optional[float]) -> bool:
    return value is not None and 0 < value < MAX_AMOUNT


def _strip_non_amount_numbers(normalized: str) -> str:
    """Blank out numbers that are dates, installment counts, years or list limits."""
    text = DATE_PATTERNS["explicit"].sub(" ", normalized)
    text = DATE_PATTERNS["day_of_month"].sub(" ", text)
    text = INSTALLMENT_PATTERNS["cuotas"].sub(" ", text)
    text = INSTALLMENT_PATTERNS["x_prefix"].sub(" ", text)
    text = re.sub(r"\b(" + "|".join(MONTH_NAMES) + r")\s+(?:de\s+)?20\d{2}\b", " ", text)
    text = re.sub(r"\b[uú]ltim[oa]s?\s+\d+\b|\b\d+\s+(?:[uú]ltim[oa]s?|movimientos?|d[ií]as?|semanas?|meses?)\b",
                  " ", text)
    return text


def extract_amount(normalized: str) -> Optional[Tuple[float, str, bool]]:
    """
    Find the amount in a normalized message.

    Tries multiplier forms ("50k", "2 palos"), then Argentine literals
    ("1.500,50"), then bare digits.

    Returns:
        (amount, currency, currency_explicit) or None
    """
    text = _strip_non_amount_numbers(normalized)
    currency, explicit = detect_currency(normalized)

    for match in AMOUNT_PATTERNS["with_multiplier"].finditer(text):
        base = parse_argentine_number(match.group(1))
        suffix = normalize_text(match.group(2))
        multiplier = AMOUNT_MULTIPLIERS.get(suffix)
        if base is not None and multiplier:
            value = round(base * multiplier, 2)
            if _valid_amount(value):
                return value, currency, explicit

    for key in ("standard", "simple"):
        for match in AMOUNT_PATTERNS[key].finditer(text):
            value = parse_argentine_number(match.group(1))
            if _valid_amount(value):
                return value, currency, explicit
    return None


def _month_with_year(month: int, today: date) -> date:
    """Bare month name: day 1, last year when the month hasn't come yet."""
    year = today.year - 1 if month > today.month else today.year
    return date(year, month, 1)


def extract_date(normalized: str, today: date) -> Optional[date]:
    """
    Resolve relative words, dd/mm[/yy], 'el 15' and bare month names.

    Args:
        normalized: Output of normalize_text
        today: Reference day in the user's timezone

    Returns:
        The date, or None when the message doesn't mention one
    """
    offsets = {"day_before_yesterday": 2, "yesterday": 1, "today": 0}
    for key, keywords in DATE_KEYWORDS.items():
        for keyword in keywords:
            if re.search(rf"\b{re.escape(keyword)}\b", normalized):
                return today - timedelta(days=offsets[key])

    explicit = DATE_PATTERNS["explicit"].search(normalized)
    if explicit:
        day, month = int(explicit.group(1)), int(explicit.group(2))
        year = today.year
        if explicit.group(3):
            raw_year = int(explicit.group(3))
            if len(explicit.group(3)) == 2:
                year = 2000 + raw_year if raw_year < 50 else 1900 + raw_year
            else:
                year = raw_year
        if 1 <= day <= 31 and 1 <= month <= 12:
            try:
                return date(year, month, day)
            except ValueError:
                return None
        return None

    day_match = DATE_PATTERNS["day_of_month"].search(normalized)
    if day_match:
        day = int(day_match.group(1))
        if not 1 <= day <= 31:
            return None
        year, month = today.year, today.month
        if day > today.day:
            # Never rolls forward: a day that hasn't come yet means last month
            year, month = shift_month(year, month, -1)
        if day > last_day_of_month(year, month):
            return None
        return date(year, month, day)

    month_match = _MONTH_WORD.search(normalized)
    if month_match:
        return _month_with_year(MONTH_NAMES[month_match.group(1)], today)
    return None


def extract_installments(normalized: str) -> Optional[int]:
    """'en 3 cuotas', '3x', 'x3', '12c'; 1..48 or None."""
    match = INSTALLMENT_PATTERNS["cuotas"].search(normalized) or INSTALLMENT_PATTERNS["x_prefix"].search(normalized)
    if not match:
        return None
    count = int(match.group(1))
    return count if 1 <= count <= MAX_INSTALLMENTS else None


def extract_first_installment_date(normalized: str, today: date) -> Optional[date]:
    """'primera cuota en marzo', 'resumen de abril 2027', 'entra en mayo'."""
    match = INSTALLMENT_PATTERNS["first_installment"].search(normalized)
    if not match:
        return None
    month = MONTH_NAMES.get(match.group(1))
    if not month:
        return None
    if match.group(2):
        year = int(match.group(2))
    else:
        year = today.year + 1 if month < today.month else today.year
    return date(year, month, 1)


def _clean_reference(ref: Optional[str], cleaner: "re.Pattern") -> Optional[str]:
    if not ref:
        return None
    words = [w for w in cleaner.sub(" ", ref).split() if w not in COMMON_WORDS and w not in MONTH_NAMES]
    cleaned = " ".join(words).strip()
    return cleaned if len(cleaned) > 1 else None


def clean_account_ref(ref: Optional[str]) -> Optional[str]:
    return _clean_reference(ref, ACCOUNT_PATTERNS["clean"])


def clean_category_ref(ref: Optional[str]) -> Optional[str]:
    cleaned = _clean_reference(ref, CATEGORY_PATTERNS["clean"])
    return cleaned if cleaned and len(cleaned) > 2 else None


def extract_transfer_accounts(normalized: str) -> Tuple[Optional[str], Optional[str]]:
    """'de X a Y' or 'a Y de X' -> (from_ref, to_ref)."""
    match = TRANSFER_PATTERNS["from_to"].search(normalized)
    if match:
        return clean_account_ref(match.group(1)), clean_account_ref(match.group(2))
    match = TRANSFER_PATTERNS["to_from"].search(normalized)
    if match:
        return clean_account_ref(match.group(2)), clean_account_ref(match.group(1))
    return None, None


def extract_account_ref(normalized: str, use_last_word: bool = True) -> Optional[str]:
    """
    Find the account the message talks about.

    Order: card + bank ("visa galicia"), "con visa", "con/desde/cuenta X",
    "en X" when X is a known bank or wallet, then the last meaningful word.
    """
    card_bank = ACCOUNT_PATTERNS["card_bank"].search(normalized)
    if card_bank and card_bank.group(2) not in COMMON_WORDS and card_bank.group(2) not in ("a", "al", "x"):
        return f"{card_bank.group(1)} {card_bank.group(2)}"

    card_only = ACCOUNT_PATTERNS["card_only"].search(normalized)
    if card_only:
        return card_only.group(1)

    for match in ACCOUNT_PATTERNS["strong_preposition"].finditer(normalized):
        ref = clean_account_ref(match.group(1))
        if ref:
            return ref

    # "en comida" is a category; "en galicia" is an account
    for match in ACCOUNT_PATTERNS["weak_preposition"].finditer(normalized):
        ref = clean_account_ref(match.group(1))
        if ref and _KNOWN_ACCOUNT.search(ref):
            return ref

    if use_last_word:
        last = ACCOUNT_PATTERNS["last_word"].search(normalized)
        if last:
            return clean_account_ref(last.group(1))
    return None


def extract_category_ref(normalized: str) -> Optional[str]:
    """'en comida', 'de luz', 'para regalo', 'categoria super'."""
    for key in ("preposition", "de"):
        for match in CATEGORY_PATTERNS[key].finditer(normalized):
            ref = clean_category_ref(match.group(1))
            if ref:
                return ref
    return None


def extract_note(original: str, normalized: str, strip_words: List[str]) -> Optional[str]:
    """
    Explicit quoted text or 'nota: ...'; otherwise whatever is left after
    removing everything the parser understood.

    Args:
        original: Message as typed
        normalized: Output of normalize_text
        strip_words: Already extracted account/category refs to remove too
    """
    quoted = NOTE_PATTERNS["quoted"].search(original or "")
    if quoted and quoted.group(1).strip():
        return quoted.group(1).strip()

    explicit = NOTE_PATTERNS["explicit"].search(original or "")
    if explicit and explicit.group(1).strip():
        return explicit.group(1).strip()

    residue = normalized
    for pattern in _NOTE_STRIP_PATTERNS:
        residue = pattern.sub(" ", residue)
    for ref in strip_words:
        for word in (ref or "").split():
            if len(word) > 1:
                residue = re.sub(rf"\b{re.escape(word)}\b", " ", residue)
    residue = _NOTE_PUNCTUATION.sub(" ", residue)
    residue = re.sub(r"\s+", " ", residue).strip()
    if len(residue) <= 2 or residue.replace(" ", "").isdigit():
        return None
    return residue[0].upper() + residue[1:]


def extract_limit(normalized: str) -> int:
    """'últimos 10', '20 movimientos'; defaults to 5."""
    match = LIMIT_PATTERNS["with_keyword"].search(normalized)
    if match:
        value = int(match.group(1) or match.group(2))
        if 1 <= value <= 50:
            return value
    loose = LIMIT_PATTERNS["loose"].search(normalized)
    if loose:
        value = int(loose.group(1))
        if 1 <= value <= 20:
            return value
    return DEFAULT_LIMIT


def _parse_range_endpoint(text: str, today: date) -> Optional[date]:
    text = text.strip()
    numeric = re.fullmatch(r"(\d{1,2})(?:[/\-](\d{1,2})(?:[/\-](\d{2,4}))?)?", text)
    try:
        if numeric:
            day = int(numeric.group(1))
            month = int(numeric.group(2)) if numeric.group(2) else today.month
            year = today.year
            if numeric.group(3):
                raw_year = int(numeric.group(3))
                year = (2000 + raw_year if raw_year < 50 else 1900 + raw_year) if raw_year < 100 else raw_year
            return date(year, month, day)
        named = re.fullmatch(r"(\d{1,2})\s+de\s+(\w+)", text)
        if named and named.group(2) in MONTH_NAMES:
            return date(today.year, MONTH_NAMES[named.group(2)], int(named.group(1)))
    except ValueError:
        return None
    return None


def extract_period(normalized: str, today: date) -> Optional[QueryPeriod]:
    """
    Read-query time window. Returns None when nothing is said; callers
    default to the current calendar month.
    """
    range_match = PERIOD_PATTERNS["range"].search(normalized)
    if range_match:
        start = _parse_range_endpoint(range_match.group(1), today)
        end = _parse_range_endpoint(range_match.group(2), today)
        if start and end:
            if end < start:
                start, end = end, start
            return QueryPeriod(type="range", value=f"{start.isoformat()}_{end.isoformat()}",
                               start_date=start, end_date=end)

    ago = PERIOD_PATTERNS["ago"].search(normalized)
    if ago:
        count = int(ago.group(1))
        unit = "days" if ago.group(2).startswith("d") else "weeks" if ago.group(2).startswith("s") else "months"
        return _with_range(QueryPeriod(type="relative", value=f"ago_{count}_{unit}"), today)

    last_n = PERIOD_PATTERNS["last_n_days"].search(normalized)
    if last_n:
        return _with_range(QueryPeriod(type="relative", value=f"last_{int(last_n.group(1))}_days"), today)

    for key in ("today", "yesterday", "this_week", "last_week", "this_month", "last_month", "this_year"):
        if PERIOD_PATTERNS[key].search(normalized):
            return _with_range(QueryPeriod(type="relative", value=key), today)

    month = PERIOD_PATTERNS["month"].search(normalized)
    if month:
        month_number = MONTH_NAMES[month.group(1)]
        year = int(month.group(2)) if month.group(2) else _month_with_year(month_number, today).year
        start, end = month_bounds(year, month_number)
        return QueryPeriod(type="month", value=statement_key(year, month_number), start_date=start, end_date=end)
    return None


def _with_range(period: QueryPeriod, today: date) -> QueryPeriod:
    start, end = period_to_date_range(period, today)
    return period.model_copy(update={"start_date": start, "end_date": end})


def period_to_date_range(period: Optional[QueryPeriod], today: date) -> Tuple[date, date]:
    """
    Concrete inclusive (start, end) for a period. Weeks start on Monday.

    Args:
        period: Parsed period or None for the current month
        today: Reference day
    """
    if period is None:
        return date(today.year, today.month, 1), today
    if period.start_date and period.end_date and period.type in ("range", "month"):
        return period.start_date, period.end_date

    value = period.value
    if value == "today":
        return today, today
    if value == "yesterday":
        day = today - timedelta(days=1)
        return day, day
    if value == "this_week":
        return start_of_week(today), today
    if value == "last_week":
        start = start_of_week(today) - timedelta(days=7)
        return start, start + timedelta(days=6)
    if value == "this_month":
        return date(today.year, today.month, 1), today
    if value == "last_month":
        year, month = shift_month(today.year, today.month, -1)
        return month_bounds(year, month)
    if value == "this_year":
        return date(today.year, 1, 1), today

    last_n = re.fullmatch(r"last_(\d+)_days", value)
    if last_n:
        return today - timedelta(days=int(last_n.group(1))), today

    ago = re.fullmatch(r"ago_(\d+)_(days|weeks|months)", value)
    if ago:
        count, unit = int(ago.group(1)), ago.group(2)
        if unit == "days":
            day = today - timedelta(days=count)
            return day, day
        if unit == "weeks":
            start = today - timedelta(weeks=count)
            return start, start + timedelta(days=6)
        shifted = add_months(today, -count)
        return month_bounds(shifted.year, shifted.month)

    return date(today.year, today.month, 1), today


def _closest_year_for_month(month: int, today: date) -> int:
    """Pick the year that puts ``month`` nearest to today, preferring the past."""
    current = today.year * 12 + today.month
    candidates = [today.year - 1, today.year, today.year + 1]
    return min(candidates, key=lambda y: (abs(y * 12 + month - current), y * 12 + month > current))


def extract_statement_month(normalized: str, today: date) -> Optional[str]:
    """'actual' or the due month of a named statement as 'YYYY-MM'."""
    if CREDIT_CARD_PATTERNS["actual"].search(normalized):
        return "actual"
    match = CREDIT_CARD_PATTERNS["statement_month"].search(normalized)
    month_word = match.group(1) if match and match.group(1) in MONTH_NAMES else None
    if not month_word:
        any_month = _FULL_MONTH_WORD.search(normalized)
        month_word = any_month.group(1) if any_month else None
    if not month_word:
        return None
    month = MONTH_NAMES[month_word]
    return statement_key(_closest_year_for_month(month, today), month)


_NOT_A_CARD = {"la", "el", "tarjeta", "resumen", "de", "del", "mes", "actual", "este", "mi", "desde", "con"}


def _card_ref(word: Optional[str]) -> Optional[str]:
    if not word or word in _NOT_A_CARD or word in MONTH_NAMES or word.isdigit():
        return None
    return word


class EntityExtractor:
    """Turns one message into a ParsedEntities bag for a given intent."""

    def __init__(self, clock: Optional[Callable[[], date]] = None):
        self.clock = clock or local_today

    def extract(self, text: str, intent: Intent) -> ParsedEntities:
        """
        Extract every entity relevant to ``intent``.

        Args:
            text: Message as typed by the user
            intent: Classified intent (DESCONOCIDO extracts the write fields too)

        Returns:
            ParsedEntities with only the fields that were found
        """
        today = self.clock()
        normalized = normalize_text(text)
        entities = ParsedEntities(original_message=text)

        if intent in (Intent.REGISTRAR_GASTO, Intent.REGISTRAR_INGRESO, Intent.REGISTRAR_TRANSFERENCIA,
                      Intent.DESCONOCIDO):
            entities = self._extract_write_fields(text, normalized, intent, today, entities)
        elif intent == Intent.PAGAR_TARJETA:
            entities = self._extract_card_payment(normalized, today, entities)
        elif intent == Intent.AGREGAR_SELLOS:
            entities = self._extract_stamp_tax(normalized, today, entities)
        elif intent == Intent.CONSULTAR_RESUMEN_TARJETA:
            entities.target_card = self._statement_card_ref(normalized)
            entities.statement_month = extract_statement_month(normalized, today)
        elif intent == Intent.CONSULTAR_SALDO:
            stripped = _PERIOD_NOISE.sub(" ", normalized)
            entities.account = extract_account_ref(stripped)
        elif intent in (Intent.CONSULTAR_GASTOS, Intent.CONSULTAR_INGRESOS):
            entities.period = extract_period(normalized, today)
            entities.category = extract_category_ref(_PERIOD_NOISE.sub(" ", normalized))
        elif intent == Intent.ULTIMOS_MOVIMIENTOS:
            entities.limit = extract_limit(normalized)
        elif intent == Intent.RESUMEN_MES:
            entities.period = extract_period(normalized, today)

        logger.debug(f"🔎 {intent.value}: {entities.model_dump(exclude_none=True, exclude={'original_message'})}")
        return entities

    def _extract_write_fields(self, text: str, normalized: str, intent: Intent, today: date,
                              entities: ParsedEntities) -> ParsedEntities:
        amount = extract_amount(normalized)
        if amount:
            entities.amount, entities.currency, entities.currency_explicit = amount

        date_text = normalized
        if intent == Intent.REGISTRAR_GASTO:
            entities.installments = extract_installments(normalized)
            entities.first_installment_date = extract_first_installment_date(normalized, today)
            first = INSTALLMENT_PATTERNS["first_installment"].search(normalized)
            if first:
                date_text = normalized[:first.start()] + normalized[first.end():]
        entities.date = extract_date(date_text, today)

        if intent == Intent.REGISTRAR_TRANSFERENCIA:
            entities.from_account, entities.to_account = extract_transfer_accounts(normalized)
            refs = [entities.from_account, entities.to_account]
        else:
            entities.account = extract_account_ref(normalized)
            entities.category = extract_category_ref(normalized)
            if entities.account == entities.category and not _KNOWN_ACCOUNT.search(entities.account or ""):
                entities.account = None
            refs = [entities.account, entities.category]

        entities.note = extract_note(text, normalized, [r for r in refs if r])
        return entities

    def _extract_card_payment(self, normalized: str, today: date, entities: ParsedEntities) -> ParsedEntities:
        full = CREDIT_CARD_PATTERNS["pay_card"].search(normalized)
        if full:
            card, middle, source = full.group(1), full.group(2), full.group(3)
            card = _card_ref(card)
            if middle and middle not in MONTH_NAMES and _card_ref(middle):
                card = f"{card} {middle}" if card else middle
            entities.target_card = card
            entities.source_account = clean_account_ref(source)
        else:
            simple = CREDIT_CARD_PATTERNS["pay_card_simple"].search(normalized)
            entities.target_card = _card_ref(simple.group(1)) if simple else None
            strong = ACCOUNT_PATTERNS["strong_preposition"].search(normalized)
            entities.source_account = clean_account_ref(strong.group(1)) if strong else None
        if not entities.target_card:
            card_word = CREDIT_CARD_PATTERNS["card_word"].search(normalized)
            entities.target_card = _card_ref(card_word.group(1)) if card_word else None
        entities.statement_month = extract_statement_month(normalized, today)
        entities.date = today
        return entities

    def _extract_stamp_tax(self, normalized: str, today: date, entities: ParsedEntities) -> ParsedEntities:
        match = CREDIT_CARD_PATTERNS["add_stamp_tax"].search(normalized) or \
            CREDIT_CARD_PATTERNS["add_stamp_tax_alt"].search(normalized)
        if match:
            parsed = extract_amount(match.group(1))
            entities.stamp_tax_amount = parsed[0] if parsed else None
            entities.target_card = _card_ref(match.group(2))
        else:
            parsed = extract_amount(normalized)
            entities.stamp_tax_amount = parsed[0] if parsed else None
            card_word = CREDIT_CARD_PATTERNS["card_word"].search(normalized)
            entities.target_card = _card_ref(card_word.group(1)) if card_word else None
        entities.statement_month = extract_statement_month(normalized, today)
        return entities

    def _statement_card_ref(self, normalized: str) -> Optional[str]:
        match = CREDIT_CARD_PATTERNS["card_statement"].search(normalized)
        if match and _card_ref(match.group(1)):
            return match.group(1)
        debt = re.search(r"\b(?:cu[aá]nto\s+debo|deuda)\s+(?:en|de)\s+(?:la\s+)?(?:tarjeta\s+)?(\w+)", normalized)
        if debt and _card_ref(debt.group(1)):
            return debt.group(1)
        card_word = CREDIT_CARD_PATTERNS["card_word"].search(normalized)
        return _card_ref(card_word.group(1)) if card_word else None
