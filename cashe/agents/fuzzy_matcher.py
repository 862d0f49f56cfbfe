#!/usr/bin/env python3
"""
Fuzzy Matcher
Resolves free-text account and category references against the user's
real data using aliases, word coverage and normalized Levenshtein distance.
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

from cashe.agents.intent_classifier import expected_category_type
from cashe.constants.aliases import (
    ACCOUNT_ALIASES,
    EXPENSE_CATEGORY_ALIASES,
    INCOME_CATEGORY_ALIASES,
)
from cashe.constants.patterns import normalize_text
from cashe.schemas.core import (
    DisambiguationOption,
    FuzzyMatch,
    Intent,
    ParsedEntities,
    UserAccount,
    UserCategory,
    UserContext,
)
from cashe.utils.errors import DisambiguationRequired
from cashe.utils.logger import get_logger

logger = get_logger("fuzzy_matcher")


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """
    Similarity in [0, 1].

    Equal strings score 1.0; containment scores 0.8 plus up to 0.2 by
    length ratio; anything else is 1 - distance / longest length.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    if b in a:
        return 0.8 + (len(b) / len(a)) * 0.2
    if a in b:
        return 0.8 + (len(a) / len(b)) * 0.2
    return 1.0 - levenshtein(a, b) / max(len(a), len(b))


def contains_word(text: str, phrase: str) -> bool:
    """Whole-word containment, so 'ca' never matches inside 'mercado'."""
    if not phrase:
        return False
    return re.search(rf"(?<![a-z0-9]){re.escape(phrase)}(?![a-z0-9])", text) is not None


class FuzzyMatcher:
    """
    Ranks user accounts and categories for a free-text reference.
    Single source of truth for thresholds and alias scoring.
    """

    MATCH_THRESHOLD = 0.4
    EXACT_MATCH_THRESHOLD = 0.85
    CLEAR_WINNER_MARGIN = 0.15
    MAX_OPTIONS = 5
    ALIAS_SCORE = 0.9
    CURRENCY_PENALTY = 0.5
    ACCOUNT_WORD_FACTOR = 0.7
    CATEGORY_WORD_FACTOR = 0.8

    @classmethod
    def _word_pair_score(cls, query: str, name: str, factor: float) -> float:
        best = 0.0
        for name_word in name.split():
            for query_word in query.split():
                if len(name_word) > 2 and len(query_word) > 2:
                    best = max(best, similarity(query_word, name_word) * factor)
        return best

    @classmethod
    def _word_coverage_score(cls, query: str, name: str) -> float:
        """Every query word present in the name: 0.85 to 0.95 by coverage."""
        query_words = [w for w in query.split() if len(w) > 1]
        name_words = name.split()
        if not query_words or not name_words:
            return 0.0
        if all(w in name_words for w in query_words):
            coverage = min(len(query_words) / len(name_words), 1.0)
            return 0.85 + 0.10 * coverage
        return 0.0

    @classmethod
    def score_account(cls, query: str, account: UserAccount) -> Tuple[float, Optional[str]]:
        """
        Score one account against a normalized query.

        Args:
            query: Normalized reference text
            account: Candidate account

        Returns:
            (score, alias that produced it if any)
        """
        name = normalize_text(account.name)
        compact_name = name.replace(" ", "")
        best = similarity(query, name)
        best_alias = None

        for key, aliases in ACCOUNT_ALIASES.items():
            for alias in aliases:
                alias = normalize_text(alias)
                if contains_word(query, alias) and (key in name or key in compact_name):
                    if cls.ALIAS_SCORE > best:
                        best, best_alias = cls.ALIAS_SCORE, alias
                if contains_word(name, alias):
                    score = similarity(query, alias)
                    if score > best:
                        best, best_alias = score, alias

        best = max(best, cls._word_coverage_score(query, name))
        best = max(best, cls._word_pair_score(query, name, cls.ACCOUNT_WORD_FACTOR))
        return best, best_alias

    @classmethod
    def find_accounts(cls, query: Optional[str], accounts: Sequence[UserAccount],
                      currency: Optional[str] = None, currency_explicit: bool = False) -> List[FuzzyMatch]:
        """
        Rank accounts for a reference.

        Args:
            query: Free-text reference ("galicia", "visa galicia", "mp")
            accounts: Candidate pool
            currency: Currency parsed from the message
            currency_explicit: Whether the user actually said the currency

        Returns:
            Matches at or above MATCH_THRESHOLD, best first
        """
        normalized = normalize_text(query or "")
        if not normalized or not accounts:
            return []

        matches: List[FuzzyMatch] = []
        for account in accounts:
            score, alias = cls.score_account(normalized, account)
            if currency_explicit and currency and account.currency.upper() != currency.upper():
                score -= cls.CURRENCY_PENALTY
            if score >= cls.MATCH_THRESHOLD:
                matches.append(FuzzyMatch(item=account, score=round(min(score, 1.0), 4), matched_alias=alias))
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    @classmethod
    def _category_aliases(cls, expected_type: Optional[str]) -> Dict[str, List[str]]:
        if expected_type == "income":
            return INCOME_CATEGORY_ALIASES
        if expected_type == "expense":
            return EXPENSE_CATEGORY_ALIASES
        merged = dict(EXPENSE_CATEGORY_ALIASES)
        for key, aliases in INCOME_CATEGORY_ALIASES.items():
            merged[key] = merged.get(key, []) + aliases
        return merged

    @classmethod
    def score_category(cls, query: str, category: UserCategory,
                       alias_table: Dict[str, List[str]]) -> Tuple[float, Optional[str]]:
        name = normalize_text(category.name)
        best = similarity(query, name)
        best_alias = None

        for key, aliases in alias_table.items():
            normalized_aliases = [normalize_text(a) for a in aliases]
            name_matches_key = (key in name or (len(name) > 2 and name in key)
                                or any(contains_word(name, a) for a in normalized_aliases))
            if not name_matches_key:
                continue
            for alias in normalized_aliases:
                if contains_word(query, alias) or (len(query) > 2 and query in alias):
                    if cls.ALIAS_SCORE > best:
                        best, best_alias = cls.ALIAS_SCORE, alias
                    break

        best = max(best, cls._word_coverage_score(query, name))
        best = max(best, cls._word_pair_score(query, name, cls.CATEGORY_WORD_FACTOR))
        return best, best_alias

    @classmethod
    def find_categories(cls, query: Optional[str], categories: Sequence[UserCategory],
                        expected_type: Optional[str] = None) -> List[FuzzyMatch]:
        """
        Rank categories for a reference, restricted to ``expected_type``.

        Args:
            query: Free-text reference ("comida", "super", "nafta")
            categories: Candidate pool
            expected_type: income, expense or None for both

        Returns:
            Matches at or above MATCH_THRESHOLD, best first
        """
        normalized = normalize_text(query or "")
        if not normalized or not categories:
            return []

        pool = [c for c in categories if expected_type is None or c.type == expected_type]
        alias_table = cls._category_aliases(expected_type)
        matches: List[FuzzyMatch] = []
        for category in pool:
            score, alias = cls.score_category(normalized, category, alias_table)
            if score >= cls.MATCH_THRESHOLD:
                matches.append(FuzzyMatch(item=category, score=round(min(score, 1.0), 4), matched_alias=alias))
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    @classmethod
    def decide(cls, matches: List[FuzzyMatch]) -> Tuple[Optional[FuzzyMatch], List[FuzzyMatch]]:
        """
        Auto-resolve or ask.

        Resolves with exactly one candidate, a strict top score at or above
        EXACT_MATCH_THRESHOLD, or a lead of CLEAR_WINNER_MARGIN. Otherwise
        returns up to MAX_OPTIONS candidates to ask about.

        Returns:
            (winner, []) or (None, options); (None, []) when nothing matched
        """
        if not matches:
            return None, []
        if len(matches) == 1:
            return matches[0], []
        top, second = matches[0].score, matches[1].score
        if top - second >= cls.CLEAR_WINNER_MARGIN - 1e-9:
            return matches[0], []
        if top >= cls.EXACT_MATCH_THRESHOLD and top > second:
            return matches[0], []
        return None, matches[:cls.MAX_OPTIONS]

    @classmethod
    def to_option(cls, match: FuzzyMatch) -> DisambiguationOption:
        item = match.item
        if isinstance(item, UserAccount):
            return DisambiguationOption(id=item.id, name=item.name, display_name=item.name, icon=item.icon,
                                        balance=item.balance, currency=item.currency)
        return DisambiguationOption(id=item.id, name=item.name,
                                    display_name=f"{item.icon or ''} {item.name}".strip(), icon=item.icon)

    @classmethod
    def account_options(cls, accounts: Sequence[UserAccount]) -> List[DisambiguationOption]:
        return [DisambiguationOption(id=a.id, name=a.name, display_name=a.name, icon=a.icon,
                                     balance=a.balance, currency=a.currency) for a in accounts]

    @classmethod
    def category_options(cls, categories: Sequence[UserCategory]) -> List[DisambiguationOption]:
        return [DisambiguationOption(id=c.id, name=c.name, display_name=f"{c.icon or ''} {c.name}".strip(),
                                     icon=c.icon) for c in categories]

    # Field -> (id attribute, pool selector)
    ACCOUNT_FIELDS = {
        "account": ("account_id", lambda ctx: ctx.accounts),
        "from_account": ("from_account_id", lambda ctx: ctx.accounts),
        "to_account": ("to_account_id", lambda ctx: ctx.accounts),
        "target_card": ("target_card_id", lambda ctx: ctx.credit_cards),
        "source_account": ("source_account_id", lambda ctx: ctx.regular_accounts),
    }

    @classmethod
    def resolve_entities(cls, entities: ParsedEntities, context: UserContext, intent: Intent) -> ParsedEntities:
        """
        Turn every unresolved reference into an ID.

        Unmatched references stay unresolved so the guided flow can ask
        for them. The first ambiguous reference stops resolution.

        Raises:
            DisambiguationRequired: with the field name and ranked options
        """
        resolved = entities.model_copy()

        for field, (id_field, pool_of) in cls.ACCOUNT_FIELDS.items():
            ref = getattr(resolved, field)
            if not ref or getattr(resolved, id_field):
                continue
            matches = cls.find_accounts(ref, pool_of(context), resolved.currency, resolved.currency_explicit)
            winner, options = cls.decide(matches)
            if winner:
                setattr(resolved, id_field, winner.item.id)
                setattr(resolved, field, winner.item.name)
                logger.debug(f"✅ {field} '{ref}' -> {winner.item.name} ({winner.score:.2f})")
            elif options:
                logger.info(f"🤔 {field} '{ref}' is ambiguous among {len(options)} accounts")
                raise DisambiguationRequired(field, [cls.to_option(m) for m in options])

        if resolved.category and not resolved.category_id:
            matches = cls.find_categories(resolved.category, context.categories, expected_category_type(intent))
            winner, options = cls.decide(matches)
            if winner:
                resolved.category_id = winner.item.id
                resolved.category = winner.item.name
                logger.debug(f"✅ category '{entities.category}' -> {winner.item.name} ({winner.score:.2f})")
            elif options:
                logger.info(f"🤔 category '{resolved.category}' is ambiguous among {len(options)} categories")
                raise DisambiguationRequired("category", [cls.to_option(m) for m in options])

        return resolved

    @classmethod
    def get_default_account(cls, accounts: Sequence[UserAccount]) -> Optional[UserAccount]:
        """First non-credit-card account, else the first account."""
        if not accounts:
            return None
        return next((a for a in accounts if not a.is_credit_card), accounts[0])

    @classmethod
    def get_default_category(cls, categories: Sequence[UserCategory], category_type: str) -> Optional[UserCategory]:
        """A category named like 'Otros' of the given type, else the first one."""
        filtered = [c for c in categories if c.type == category_type]
        if not filtered:
            return None
        return next((c for c in filtered if "otro" in normalize_text(c.name)), filtered[0])
