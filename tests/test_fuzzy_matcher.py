"""Fuzzy resolution of account and category references."""

import pytest

from cashe.agents.fuzzy_matcher import FuzzyMatcher, contains_word, levenshtein, similarity
from cashe.schemas.core import FuzzyMatch, Intent, ParsedEntities, UserAccount, UserCategory, UserContext
from cashe.utils.errors import DisambiguationRequired


def _matches(*scores):
    return [FuzzyMatch(item=UserAccount(id=f"acc-{i}", name=f"Cuenta {i}"), score=s)
            for i, s in enumerate(scores)]


def test_levenshtein_and_similarity():
    assert levenshtein("saldo", "sueldo") == 2
    assert similarity("galicia", "galicia") == 1.0
    assert similarity("", "galicia") == 0.0
    # Containment scores between 0.8 and 1.0
    assert 0.8 < similarity("super", "supermercado") < 1.0


def test_contains_word_respects_boundaries():
    assert contains_word("pago con mp", "mp")
    assert not contains_word("mercado", "ca")


def test_alias_resolves_wallet(context):
    matches = FuzzyMatcher.find_accounts("mp", context.accounts)
    assert matches[0].item.id == "acc-mp"
    assert matches[0].score == pytest.approx(0.9)


def test_currency_penalty_lowers_other_currency(context):
    plain = FuzzyMatcher.find_accounts("ahorro", context.accounts)
    penalised = FuzzyMatcher.find_accounts("ahorro", context.accounts, currency="ARS", currency_explicit=True)
    usd_plain = next(m.score for m in plain if m.item.id == "acc-usd")
    usd_penalised = [m.score for m in penalised if m.item.id == "acc-usd"]
    assert not usd_penalised or usd_penalised[0] < usd_plain


def test_category_alias(context):
    matches = FuzzyMatcher.find_categories("nafta", context.categories, "expense")
    assert matches[0].item.id == "cat-transporte"

    super_matches = FuzzyMatcher.find_categories("super", context.categories, "expense")
    assert super_matches[0].item.id == "cat-super"


def test_category_type_filter(context):
    matches = FuzzyMatcher.find_categories("sueldo", context.categories, "income")
    assert [m.item.id for m in matches] == ["cat-sueldo"]
    expense_matches = FuzzyMatcher.find_categories("sueldo", context.categories, "expense")
    assert all(m.item.type == "expense" for m in expense_matches)


def test_decide_single_candidate_wins():
    winner, options = FuzzyMatcher.decide(_matches(0.45))
    assert winner.item.id == "acc-0"
    assert options == []


def test_decide_clear_margin_wins():
    winner, _ = FuzzyMatcher.decide(_matches(0.7, 0.55))
    assert winner.item.id == "acc-0"


def test_decide_high_score_wins_when_strictly_ahead():
    winner, _ = FuzzyMatcher.decide(_matches(0.86, 0.8))
    assert winner.item.id == "acc-0"


def test_decide_tie_asks():
    winner, options = FuzzyMatcher.decide(_matches(0.9, 0.9))
    assert winner is None
    assert len(options) == 2


def test_decide_close_scores_ask_with_at_most_five():
    winner, options = FuzzyMatcher.decide(_matches(0.7, 0.65, 0.6, 0.6, 0.55, 0.5, 0.45))
    assert winner is None
    assert len(options) == 5


def test_decide_nothing_matched():
    assert FuzzyMatcher.decide([]) == (None, [])


def test_resolve_entities_auto_resolves(context):
    entities = ParsedEntities(from_account="galicia", to_account="mp", amount=100)
    context.accounts = [a for a in context.accounts if a.id != "acc-visa"]
    resolved = FuzzyMatcher.resolve_entities(entities, context, Intent.REGISTRAR_TRANSFERENCIA)
    assert resolved.from_account_id == "acc-galicia"
    assert resolved.to_account_id == "acc-mp"
    assert resolved.to_account == "MercadoPago"


def test_resolve_entities_raises_on_tie(context):
    # Both "Banco Galicia" and "Visa Galicia" match equally
    with pytest.raises(DisambiguationRequired) as error:
        FuzzyMatcher.resolve_entities(ParsedEntities(account="galicia"), context, Intent.REGISTRAR_GASTO)
    assert error.value.field == "account"
    assert {o.id for o in error.value.options} == {"acc-galicia", "acc-visa"}


def test_resolve_entities_leaves_unknown_refs(context):
    resolved = FuzzyMatcher.resolve_entities(ParsedEntities(account="zzzz"), context, Intent.REGISTRAR_GASTO)
    assert resolved.account_id is None


def test_three_way_disambiguation():
    context = UserContext(user_id="u", accounts=[
        UserAccount(id="a1", name="Sueldo"),
        UserAccount(id="a2", name="Salud"),
        UserAccount(id="a3", name="Salta"),
    ])
    with pytest.raises(DisambiguationRequired) as error:
        FuzzyMatcher.resolve_entities(ParsedEntities(account="saldo"), context, Intent.CONSULTAR_SALDO)
    assert len(error.value.options) == 3


def test_defaults():
    accounts = [UserAccount(id="card", name="Visa", is_credit_card=True), UserAccount(id="cash", name="Efectivo")]
    assert FuzzyMatcher.get_default_account(accounts).id == "cash"
    categories = [
        UserCategory(id="c1", name="Comida", type="expense"),
        UserCategory(id="c2", name="Otros gastos", type="expense"),
    ]
    assert FuzzyMatcher.get_default_category(categories, "expense").id == "c2"
    assert FuzzyMatcher.get_default_category(categories, "income") is None
