#!/usr/bin/env python3
"""
Intent Classifier
Scores a message against the weighted rule table, then runs a separate
adjustment pass of small heuristics. Pure: same text, same answer.
"""

import re
from typing import Callable, Dict, List, Optional

from cashe.constants.patterns import INTENT_RULES, IntentRule, normalize_text, should_ignore_message
from cashe.schemas.core import (
    Intent,
    IntentClassification,
    READ_INTENTS,
    WRITE_INTENTS,
)
from cashe.utils.logger import get_logger

logger = get_logger("intent_classifier")

MIN_CONFIDENCE = 0.4
GREETING_CONFIDENCE = 0.3

Scores = Dict[Intent, float]
Adjustment = Callable[[str, str, Scores], None]

_DIRECTION = re.compile(r"\b(de|desde)\b.*\b(a|hacia)\b|\b(a|hacia)\b.*\b(de|desde)\b")
_HOW_MUCH_SPENT = re.compile(r"cu[aá]nto\s+(gast[eé]|llevo)")
_HOW_MUCH_EARNED = re.compile(r"cu[aá]nto\s+(cobr[eé]|ingres[eé]|entr[oó])")
_PAY_CARD = re.compile(
    r"\bpagar\b.*\b(visa|master(?:card)?|amex|cabal|naranja|nativa|tarjeta)\b"
    r"|\b(visa|master(?:card)?|amex|cabal|naranja|nativa|tarjeta)\b.*\bpagar\b"
)
_STAMP_TAX = re.compile(r"\b(sellos?|impuesto\s+de\s+sellos?)\b")
_STATEMENT_CARD = re.compile(r"\bresumen\b.*\b(visa|master(?:card)?|amex|cabal|naranja|nativa|tarjeta)\b")
_MONTH_SUMMARY = re.compile(r"\bresumen\s+(del?\s+)?(este\s+)?mes\b")
_EXACT_MENU = re.compile(r"^men[uú]$", re.IGNORECASE)
_EXACT_CANCEL = re.compile(r"^cancelar$", re.IGNORECASE)

QUESTION_BOOSTED = (
    Intent.CONSULTAR_SALDO,
    Intent.CONSULTAR_GASTOS,
    Intent.CONSULTAR_INGRESOS,
    Intent.ULTIMOS_MOVIMIENTOS,
    Intent.RESUMEN_MES,
    Intent.CONSULTAR_RESUMEN_TARJETA,
)


def _bump(scores: Scores, intent: Intent, delta: float) -> None:
    scores[intent] = max(0.0, scores.get(intent, 0.0) + delta)


def boost_transfer_direction(normalized: str, raw: str, scores: Scores) -> None:
    """'de X a Y' (or the reverse) reinforces an already detected transfer."""
    if scores.get(Intent.REGISTRAR_TRANSFERENCIA, 0.0) > 0 and _DIRECTION.search(normalized):
        _bump(scores, Intent.REGISTRAR_TRANSFERENCIA, 0.2)


def shift_spent_question(normalized: str, raw: str, scores: Scores) -> None:
    """'cuánto gasté' asks about expenses, it does not record one."""
    if _HOW_MUCH_SPENT.search(normalized):
        _bump(scores, Intent.CONSULTAR_GASTOS, 0.2)
        if Intent.REGISTRAR_GASTO in scores:
            _bump(scores, Intent.REGISTRAR_GASTO, -0.3)


def shift_earned_question(normalized: str, raw: str, scores: Scores) -> None:
    if _HOW_MUCH_EARNED.search(normalized):
        _bump(scores, Intent.CONSULTAR_INGRESOS, 0.2)
        if Intent.REGISTRAR_INGRESO in scores:
            _bump(scores, Intent.REGISTRAR_INGRESO, -0.3)


def boost_questions(normalized: str, raw: str, scores: Scores) -> None:
    if "?" in raw:
        for intent in QUESTION_BOOSTED:
            if intent in scores:
                _bump(scores, intent, 0.1)


def boost_card_payment(normalized: str, raw: str, scores: Scores) -> None:
    if _PAY_CARD.search(normalized):
        _bump(scores, Intent.PAGAR_TARJETA, 0.3)


def boost_stamp_tax(normalized: str, raw: str, scores: Scores) -> None:
    if _STAMP_TAX.search(normalized):
        _bump(scores, Intent.AGREGAR_SELLOS, 0.3)


def boost_card_statement(normalized: str, raw: str, scores: Scores) -> None:
    if _STATEMENT_CARD.search(normalized) and "pagar" not in normalized:
        _bump(scores, Intent.CONSULTAR_RESUMEN_TARJETA, 0.3)


def prefer_month_summary(normalized: str, raw: str, scores: Scores) -> None:
    """'resumen del mes' is the monthly summary, not a card statement."""
    if _MONTH_SUMMARY.search(normalized) and not _STATEMENT_CARD.search(normalized):
        _bump(scores, Intent.RESUMEN_MES, 0.2)


def force_exact_commands(normalized: str, raw: str, scores: Scores) -> None:
    """Single-word 'menú' and 'cancelar' are unambiguous."""
    stripped = raw.strip()
    if _EXACT_MENU.match(stripped):
        scores[Intent.MENU] = 1.0
    if _EXACT_CANCEL.match(stripped):
        scores[Intent.CANCELAR] = 1.0


ADJUSTMENTS: List[Adjustment] = [
    boost_transfer_direction,
    shift_spent_question,
    shift_earned_question,
    boost_questions,
    boost_card_payment,
    boost_stamp_tax,
    boost_card_statement,
    prefer_month_summary,
    force_exact_commands,
]


class IntentClassifier:
    """Weighted regex classifier for the fixed intent catalog."""

    def __init__(self, rules: Optional[List[IntentRule]] = None,
                 adjustments: Optional[List[Adjustment]] = None):
        self.rules = rules if rules is not None else INTENT_RULES
        self.adjustments = adjustments if adjustments is not None else ADJUSTMENTS

    def score(self, normalized: str) -> Dict[Intent, tuple]:
        """
        Run every rule and keep the best (score, tag) per intent.

        Args:
            normalized: Output of normalize_text

        Returns:
            Mapping intent -> (score, tag of the winning rule)
        """
        best: Dict[Intent, tuple] = {}
        for rule in self.rules:
            match = rule.pattern.search(normalized)
            if not match:
                continue
            length = len(match.group(0))
            score = rule.weight
            if length > 10:
                score += 0.1
            if length > 20:
                score += 0.1
            intent = Intent(rule.intent)
            if intent not in best or score > best[intent][0]:
                best[intent] = (score, rule.tag)
        return best

    def classify(self, text: str) -> IntentClassification:
        """
        Classify a raw chat message.

        Args:
            text: Message as typed by the user

        Returns:
            IntentClassification with confidence in [0, 1]
        """
        raw = (text or "").strip()
        if should_ignore_message(raw):
            return IntentClassification(intent=Intent.AYUDA, confidence=GREETING_CONFIDENCE,
                                        matched_pattern_id="ignore.greeting")

        normalized = normalize_text(raw)
        matched = self.score(normalized)
        scores: Scores = {intent: score for intent, (score, _) in matched.items()}
        for adjustment in self.adjustments:
            adjustment(normalized, raw, scores)

        if not scores:
            return IntentClassification(intent=Intent.DESCONOCIDO, confidence=0.0)

        # Ties go to the intent listed first in the rule table
        order = {Intent(rule.intent): i for i, rule in reversed(list(enumerate(self.rules)))}
        ranked = sorted(scores.items(), key=lambda item: (-item[1], order.get(item[0], len(order))))
        intent, score = ranked[0]
        tag = matched.get(intent, (None, None))[1] or "adjustment"

        if score < MIN_CONFIDENCE:
            logger.debug(f"🤔 Low confidence ({score:.2f}) for '{raw[:40]}'")
            return IntentClassification(intent=Intent.DESCONOCIDO, confidence=round(score, 4),
                                        matched_pattern_id=tag)

        result = IntentClassification(intent=intent, confidence=round(min(score, 1.0), 4),
                                      matched_pattern_id=tag)
        logger.debug(f"🎯 {result.intent.value} ({result.confidence:.2f}) via {tag}")
        return result


def is_write_intent(intent: Intent) -> bool:
    return intent in WRITE_INTENTS


def is_read_intent(intent: Intent) -> bool:
    return intent in READ_INTENTS


def expected_category_type(intent: Intent) -> Optional[str]:
    """Category type a write intent needs, if any."""
    if intent == Intent.REGISTRAR_GASTO:
        return "expense"
    if intent == Intent.REGISTRAR_INGRESO:
        return "income"
    return None
