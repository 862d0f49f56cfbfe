#!/usr/bin/env python3
"""
Confirmation Flow - previews, edit menus, selection prompts and reply parsing
for write commands waiting on the user.
"""

from datetime import date
from typing import Callable, List, Optional, Tuple

from cashe.agents.entity_extractor import extract_amount, extract_date
from cashe.agents.fuzzy_matcher import FuzzyMatcher
from cashe.agents.intent_classifier import expected_category_type
from cashe.constants.patterns import CONFIRMATION_PATTERNS, SELECTION_PATTERNS, normalize_text
from cashe.constants.responses import (
    EDIT_FIELD_KEYWORDS,
    EDIT_FIELDS,
    FIELD_PROMPTS,
    NUMBER_EMOJIS,
    RESPONSES,
)
from cashe.schemas.core import (
    DisambiguationOption,
    Intent,
    MessageButton,
    ParsedEntities,
    UserAccount,
    UserContext,
)
from cashe.utils.dates import (
    current_statement_month,
    first_installment_month,
    local_today,
    parse_statement_key,
    shift_month,
    statement_close_date,
    statement_key,
)
from cashe.utils.errors import ValidationError
from cashe.utils.formatting import DateFormatter, MoneyFormatter, interpolate
from cashe.utils.logger import get_logger

logger = get_logger("confirmation_flow")

MAX_LIST_OPTIONS = 10
DEFAULT_CLOSING_DAY = 1

CONFIRM_BUTTONS = [
    MessageButton(label="✅ Confirmar", token="confirm_yes"),
    MessageButton(label="✏️ Editar", token="confirm_edit"),
    MessageButton(label="❌ Cancelar", token="confirm_cancel"),
]
CANCEL_BUTTON = MessageButton(label="❌ Cancelar", token="confirm_cancel")

# Fields answered with free text rather than a list
VALUE_FIELDS = ("amount", "date", "note", "stamp_tax")
ACCOUNT_LIKE_FIELDS = ("account", "from_account", "to_account", "target_card", "source_account")

DISAMBIGUATION_HEADERS = {
    "account": "MULTIPLES_CUENTAS",
    "from_account": "SELECCIONAR_CUENTA_ORIGEN",
    "to_account": "SELECCIONAR_CUENTA_DESTINO",
    "target_card": "SELECCIONAR_TARJETA",
    "source_account": "SELECCIONAR_CUENTA_PAGO",
    "category": "MULTIPLES_CATEGORIAS",
    "statement_month": "SELECCIONAR_RESUMEN",
}

MISSING_FIELD_PROMPTS = {
    "amount": "FALTA_MONTO",
    "account": "SELECCIONAR_CUENTA",
    "category": "SELECCIONAR_CATEGORIA",
    "from_account": "SELECCIONAR_CUENTA_ORIGEN",
    "to_account": "SELECCIONAR_CUENTA_DESTINO",
    "target_card": "SELECCIONAR_TARJETA",
    "source_account": "SELECCIONAR_CUENTA_PAGO",
    "stamp_tax": "FALTA_SELLOS",
    "statement_month": "SELECCIONAR_RESUMEN",
}


def resolve_statement_month(value: Optional[str], card: Optional[UserAccount], today: date) -> str:
    """Concrete 'YYYY-MM' for a statement reference; 'actual' or None is the last closed one."""
    if value and value != "actual":
        return value
    closing_day = (card.closing_day if card else None) or DEFAULT_CLOSING_DAY
    return statement_key(*current_statement_month(today, closing_day))


def statement_options(card: Optional[UserAccount], today: date) -> List[DisambiguationOption]:
    """The open statement, the one due now and the two before it."""
    current = parse_statement_key(resolve_statement_month(None, card, today))
    options = []
    for delta in (1, 0, -1, -2):
        year, month = shift_month(current[0], current[1], delta)
        label = DateFormatter.month_label(year, month)
        if delta == 0:
            label += " (actual)"
        elif delta == 1:
            label += " (en curso)"
        key = statement_key(year, month)
        options.append(DisambiguationOption(id=key, name=DateFormatter.month_label(year, month), display_name=label))
    return options


def category_display_name(context: UserContext, category_id: Optional[str]) -> Optional[str]:
    category = context.category_by_id(category_id)
    if not category:
        return None
    return f"{category.icon or ''} {category.name}".strip()


def account_display_name(context: UserContext, account_id: Optional[str]) -> Optional[str]:
    account = context.account_by_id(account_id)
    return account.name if account else None


def numbered_list(options: List[DisambiguationOption], with_balance: bool = False) -> str:
    lines = []
    for i, option in enumerate(options[:MAX_LIST_OPTIONS], 1):
        text = option.display_name
        if with_balance and option.balance is not None:
            text = f"{text} - {MoneyFormatter.format_currency(option.balance, option.currency or 'ARS')}"
        lines.append(f"{i}. {text}")
    return "\n".join(lines)


class ConfirmationFlow:
    """Builds bot prompts for the confirm/edit/select loop and parses the replies."""

    def __init__(self, clock: Optional[Callable[[], date]] = None):
        self.clock = clock or local_today

    # Previews
    def expense_statement_label(self, entities: ParsedEntities, account: Optional[UserAccount]) -> str:
        """
        Statement a card purchase lands in, as 'Marzo 2026'.

        An explicit first installment date wins; otherwise purchases up to
        the closing day bill next month and later ones the month after.
        """
        if entities.first_installment_date:
            d = entities.first_installment_date
            return DateFormatter.month_label(d.year, d.month)
        closing_day = (account.closing_day if account else None) or DEFAULT_CLOSING_DAY
        purchase_date = entities.date or self.clock()
        return DateFormatter.month_label(*first_installment_month(purchase_date, closing_day))

    def build_preview(self, intent: Intent, entities: ParsedEntities, context: UserContext) -> str:
        """
        Render the preview for a write command.

        Args:
            intent: One of the write intents
            entities: Resolved entities
            context: User accounts and categories for display names

        Returns:
            Filled template, or an empty string for non-write intents
        """
        today = self.clock()
        currency = entities.currency or "ARS"
        total = entities.amount or 0
        installments = entities.installments or 1
        account = context.account_by_id(entities.account_id)
        is_credit_card = bool(account and account.is_credit_card)

        values = {
            "monto": MoneyFormatter.format_currency(total, currency),
            "monto_cuota": MoneyFormatter.format_currency(round(total / installments), currency),
            "cuotas": installments,
            "categoria": category_display_name(context, entities.category_id),
            "cuenta": account.name if account else None,
            "cuenta_origen": account_display_name(context, entities.from_account_id),
            "cuenta_destino": account_display_name(context, entities.to_account_id),
            "fecha": DateFormatter.format_date_display(entities.date or today, today),
            "nota": entities.note,
            "resumen": "-",
        }

        if intent == Intent.REGISTRAR_GASTO:
            if installments > 1 or is_credit_card:
                values["resumen"] = self.expense_statement_label(entities, account)
            if installments > 1:
                template = RESPONSES["PREVIEW_GASTO_CUOTAS"]
            elif is_credit_card:
                template = RESPONSES["PREVIEW_GASTO_TARJETA"]
            else:
                template = RESPONSES["PREVIEW_GASTO"]
        elif intent == Intent.REGISTRAR_INGRESO:
            template = RESPONSES["PREVIEW_INGRESO"]
        elif intent == Intent.REGISTRAR_TRANSFERENCIA:
            template = RESPONSES["PREVIEW_TRANSFERENCIA"]
        elif intent == Intent.PAGAR_TARJETA:
            card = context.account_by_id(entities.target_card_id)
            values.update({
                "tarjeta": card.name if card else entities.target_card,
                "resumen": DateFormatter.statement_label(resolve_statement_month(entities.statement_month, card, today)),
                "cuenta": account_display_name(context, entities.source_account_id) or entities.source_account,
            })
            template = RESPONSES["PREVIEW_PAGAR_TARJETA"]
        elif intent == Intent.AGREGAR_SELLOS:
            card = context.account_by_id(entities.target_card_id)
            key = resolve_statement_month(entities.statement_month, card, today)
            year, month = parse_statement_key(key)
            close_date = statement_close_date(year, month, (card.closing_day if card else None) or DEFAULT_CLOSING_DAY)
            values.update({
                "tarjeta": card.name if card else entities.target_card,
                "resumen": DateFormatter.statement_label(key),
                "monto": MoneyFormatter.format_currency(entities.stamp_tax_amount or 0, "ARS"),
                "fecha": DateFormatter.format_date(close_date),
            })
            template = RESPONSES["PREVIEW_AGREGAR_SELLOS"]
        else:
            return ""

        return interpolate(template, values)

    def build_confirmation(self, intent: Intent, entities: ParsedEntities,
                           context: UserContext) -> Tuple[str, List[MessageButton]]:
        preview = self.build_preview(intent, entities, context)
        return f"{preview}\n\n{RESPONSES['CONFIRMAR_PREGUNTA']}", list(CONFIRM_BUTTONS)

    @staticmethod
    def parse_confirmation(text: str) -> Optional[str]:
        """'yes', 'no', 'edit' or None."""
        normalized = normalize_text(text)
        for answer in ("yes", "no", "edit"):
            if CONFIRMATION_PATTERNS[answer].match(normalized):
                return answer
        return None

    # Edit menu
    def field_display_value(self, field: str, entities: ParsedEntities, context: UserContext) -> str:
        today = self.clock()
        if field == "amount":
            return MoneyFormatter.format_currency(entities.amount, entities.currency or "ARS") if entities.amount else "-"
        if field == "stamp_tax":
            return MoneyFormatter.format_currency(entities.stamp_tax_amount, "ARS") if entities.stamp_tax_amount else "-"
        if field == "date":
            return DateFormatter.format_date_display(entities.date or today, today)
        if field == "note":
            return entities.note or "-"
        if field == "category":
            return category_display_name(context, entities.category_id) or "-"
        if field == "statement_month":
            card = context.account_by_id(entities.target_card_id)
            return DateFormatter.statement_label(resolve_statement_month(entities.statement_month, card, today))
        if field in ACCOUNT_LIKE_FIELDS:
            return account_display_name(context, getattr(entities, f"{field}_id")) or "-"
        return "-"

    def build_edit_menu(self, intent: Intent, entities: ParsedEntities,
                        context: UserContext) -> Tuple[str, List[MessageButton]]:
        """Numbered list of editable fields with their current values."""
        fields = EDIT_FIELDS.get(intent.value, EDIT_FIELDS["REGISTRAR_GASTO"])
        lines = [RESPONSES["EDITAR_PREGUNTA"], ""]
        buttons = []
        for index, field in enumerate(fields):
            value = self.field_display_value(field["key"], entities, context)
            lines.append(f"{NUMBER_EMOJIS[index]} {field['label']} ({value})")
            buttons.append(MessageButton(label=f"{field['icon']} {field['label']}", token=f"edit_{field['key']}"))
        buttons.append(CANCEL_BUTTON)
        return "\n".join(lines), buttons

    @staticmethod
    def parse_edit_field(text: str, intent: Intent) -> Optional[str]:
        """
        Map a reply to an editable field of ``intent``.

        Accepts the menu number, the field key itself (button callbacks) or a
        keyword like 'monto' or 'destino'.
        """
        fields = [f["key"] for f in EDIT_FIELDS.get(intent.value, EDIT_FIELDS["REGISTRAR_GASTO"])]
        normalized = normalize_text(text)

        number = SELECTION_PATTERNS["number"].match(normalized)
        if number:
            index = int(number.group(1))
            return fields[index - 1] if 1 <= index <= len(fields) else None

        if normalized in fields:
            return normalized

        for keyword, field in EDIT_FIELD_KEYWORDS.items():
            if field in fields and keyword in normalized:
                return field
        return None

    # Field prompts
    def field_options(self, field: str, intent: Intent, entities: ParsedEntities,
                      context: UserContext) -> List[DisambiguationOption]:
        """Every choice for a list field."""
        if field == "category":
            category_type = expected_category_type(intent)
            categories = [c for c in context.categories if category_type is None or c.type == category_type]
            return FuzzyMatcher.category_options(categories)
        if field == "target_card":
            return FuzzyMatcher.account_options(context.credit_cards)
        if field == "source_account":
            return FuzzyMatcher.account_options(context.regular_accounts)
        if field == "statement_month":
            return statement_options(context.account_by_id(entities.target_card_id), self.clock())
        if field in ("account", "from_account", "to_account"):
            return FuzzyMatcher.account_options(context.accounts)
        return []

    def build_field_prompt(self, field: str, intent: Intent, entities: ParsedEntities, context: UserContext,
                           missing: bool = False) -> Tuple[str, List[MessageButton], List[DisambiguationOption]]:
        """
        Prompt for one field, either because it is missing or being edited.

        Returns:
            (message, buttons, options) where options is empty for free-text fields
        """
        prompt_key = MISSING_FIELD_PROMPTS.get(field) if missing else FIELD_PROMPTS.get(field)
        header = RESPONSES.get(prompt_key or "", "¿Qué valor querés poner?")

        if field in VALUE_FIELDS:
            return header, [CANCEL_BUTTON], []

        options = self.field_options(field, intent, entities, context)
        prefix = "cat" if field == "category" else "acc" if field in ("account", "from_account", "to_account") else "sel"
        buttons = [MessageButton(label=o.display_name, token=f"{prefix}_{o.id}") for o in options[:MAX_LIST_OPTIONS]]
        buttons.append(CANCEL_BUTTON)
        message = f"{header}\n\n{numbered_list(options)}"
        return message, buttons, options

    def build_disambiguation(self, field: str,
                             options: List[DisambiguationOption]) -> Tuple[str, List[MessageButton]]:
        """Numbered choice between fuzzy candidates."""
        header = RESPONSES[DISAMBIGUATION_HEADERS.get(field, "MULTIPLES_CUENTAS")]
        message = f"{header}\n\n{numbered_list(options, with_balance=True)}"
        buttons = [MessageButton(label=o.display_name, token=f"sel_{o.id}") for o in options[:MAX_LIST_OPTIONS]]
        buttons.append(CANCEL_BUTTON)
        return message, buttons

    # Replies
    @staticmethod
    def parse_selection(text: str, options: List[DisambiguationOption]) -> Optional[DisambiguationOption]:
        """Pick an option by number, by id (button token) or by name."""
        if not options:
            return None
        raw = (text or "").strip()
        normalized = normalize_text(raw)

        number = SELECTION_PATTERNS["number"].match(normalized)
        if number:
            index = int(number.group(1))
            return options[index - 1] if 1 <= index <= len(options) else None

        for option in options:
            if raw == option.id:
                return option

        if len(normalized) < 2:
            return None
        for option in options:
            name = normalize_text(option.name)
            if normalized in name or name in normalized:
                return option
        return None

    @staticmethod
    def apply_selection(entities: ParsedEntities, field: str, option: DisambiguationOption) -> ParsedEntities:
        """Store a chosen option on the entities."""
        updated = entities.model_copy()
        if field == "statement_month":
            updated.statement_month = option.id
        elif field == "category":
            updated.category_id = option.id
            updated.category = option.name
        elif field in ACCOUNT_LIKE_FIELDS:
            setattr(updated, f"{field}_id", option.id)
            setattr(updated, field, option.name)
        return updated

    def apply_value(self, entities: ParsedEntities, field: str, text: str) -> ParsedEntities:
        """
        Validate and store a free-text value.

        Raises:
            ValidationError: amount or date did not parse
        """
        updated = entities.model_copy()
        normalized = normalize_text(text)

        if field in ("amount", "stamp_tax"):
            parsed = extract_amount(normalized)
            if not parsed:
                raise ValidationError(f"Invalid amount: {text!r}", response_key="ERROR_MONTO_INVALIDO")
            if field == "stamp_tax":
                updated.stamp_tax_amount = parsed[0]
            else:
                updated.amount, currency, explicit = parsed
                if explicit:
                    updated.currency, updated.currency_explicit = currency, True
        elif field == "date":
            parsed_date = extract_date(normalized, self.clock())
            if not parsed_date:
                raise ValidationError(f"Invalid date: {text!r}", response_key="ERROR_FECHA_INVALIDA")
            updated.date = parsed_date
        elif field == "note":
            updated.note = text.strip()[:200] or None
        else:
            raise ValidationError(f"Field {field} is not a free-text value", response_key="NO_ENTENDI")

        logger.debug(f"✏️ {field} updated from '{text[:40]}'")
        return updated
