"""
Core Pydantic schemas for the Cashé NLP core.
Covers user context snapshots, parsed entities, resolved commands,
conversation state, ledger records and the bot-facing result shape.
"""

import datetime as dt
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator
from typing_extensions import Annotated


class Platform(str, Enum):
    TELEGRAM = "telegram"
    WHATSAPP = "whatsapp"


class Intent(str, Enum):
    REGISTRAR_GASTO = "REGISTRAR_GASTO"
    REGISTRAR_INGRESO = "REGISTRAR_INGRESO"
    REGISTRAR_TRANSFERENCIA = "REGISTRAR_TRANSFERENCIA"
    PAGAR_TARJETA = "PAGAR_TARJETA"
    AGREGAR_SELLOS = "AGREGAR_SELLOS"
    CONSULTAR_SALDO = "CONSULTAR_SALDO"
    CONSULTAR_GASTOS = "CONSULTAR_GASTOS"
    CONSULTAR_INGRESOS = "CONSULTAR_INGRESOS"
    ULTIMOS_MOVIMIENTOS = "ULTIMOS_MOVIMIENTOS"
    RESUMEN_MES = "RESUMEN_MES"
    CONSULTAR_RESUMEN_TARJETA = "CONSULTAR_RESUMEN_TARJETA"
    CONSULTAR_PRESUPUESTOS = "CONSULTAR_PRESUPUESTOS"
    MENU = "MENU"
    CANCELAR = "CANCELAR"
    AYUDA = "AYUDA"
    DESCONOCIDO = "DESCONOCIDO"


WRITE_INTENTS = frozenset({
    Intent.REGISTRAR_GASTO,
    Intent.REGISTRAR_INGRESO,
    Intent.REGISTRAR_TRANSFERENCIA,
    Intent.PAGAR_TARJETA,
    Intent.AGREGAR_SELLOS,
})

READ_INTENTS = frozenset({
    Intent.CONSULTAR_SALDO,
    Intent.CONSULTAR_GASTOS,
    Intent.CONSULTAR_INGRESOS,
    Intent.ULTIMOS_MOVIMIENTOS,
    Intent.RESUMEN_MES,
    Intent.CONSULTAR_RESUMEN_TARJETA,
    Intent.CONSULTAR_PRESUPUESTOS,
})


class ConversationStateName(str, Enum):
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    AWAITING_EDIT_FIELD = "awaiting_edit_field"
    AWAITING_EDIT_VALUE = "awaiting_edit_value"
    AWAITING_ACCOUNT_SELECTION = "awaiting_account_selection"
    AWAITING_CATEGORY_SELECTION = "awaiting_category_selection"
    AWAITING_DISAMBIGUATION = "awaiting_disambiguation"
    # Guided flows
    AWAITING_CARD_SELECTION = "awaiting_card_selection"
    AWAITING_STATEMENT_SELECTION = "awaiting_statement_selection"
    AWAITING_SOURCE_ACCOUNT = "awaiting_source_account"
    AWAITING_STAMP_TAX_AMOUNT = "awaiting_stamp_tax_amount"
    AWAITING_PERIOD_SELECTION = "awaiting_period_selection"
    AWAITING_AMOUNT_INPUT = "awaiting_amount_input"
    AWAITING_TYPE_SELECTION = "awaiting_type_selection"


# User context (read-only snapshot, fetched every turn)
class UserAccount(BaseModel):
    """A ledger account or credit card owned by the user."""
    id: str = Field(..., description="Account ID")
    name: str = Field(..., description="Display name")
    currency: str = Field(default="ARS", description="ARS or USD")
    balance: Optional[float] = Field(None, description="Cached balance, informational only")
    icon: Optional[str] = None
    is_credit_card: bool = False
    closing_day: Optional[int] = Field(None, ge=1, le=31, description="Statement closing day")
    initial_balance: float = 0.0


class UserCategory(BaseModel):
    """An income or expense category."""
    id: str
    name: str
    type: Literal["income", "expense"]
    icon: Optional[str] = None


class UserSettings(BaseModel):
    default_currency: str = "ARS"
    exchange_rate: Optional[float] = None


class UserContext(BaseModel):
    user_id: str
    accounts: List[UserAccount] = Field(default_factory=list)
    categories: List[UserCategory] = Field(default_factory=list)
    settings: UserSettings = Field(default_factory=UserSettings)

    def account_by_id(self, account_id: Optional[str]) -> Optional[UserAccount]:
        return next((a for a in self.accounts if a.id == account_id), None)

    def category_by_id(self, category_id: Optional[str]) -> Optional[UserCategory]:
        return next((c for c in self.categories if c.id == category_id), None)

    @property
    def credit_cards(self) -> List[UserAccount]:
        return [a for a in self.accounts if a.is_credit_card]

    @property
    def regular_accounts(self) -> List[UserAccount]:
        return [a for a in self.accounts if not a.is_credit_card]


class PlatformUser(BaseModel):
    """Link between a chat identity and an app user."""
    user_id: str
    platform: Platform
    platform_user_id: str
    verified: bool = False


class InboundMessage(BaseModel):
    platform: Platform
    platform_user_id: str
    text: str
    timestamp: datetime = Field(default_factory=datetime.now)


# Parsing
class QueryPeriod(BaseModel):
    """Time window requested by a read query."""
    type: Literal["relative", "range", "month"]
    value: str = Field(..., description="today, this_week, last_3_days, 2026-03, ...")
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ParsedEntities(BaseModel):
    """Raw extraction bag. Every field is optional; filled across turns."""
    amount: Optional[float] = None
    currency: Optional[str] = None
    currency_explicit: bool = False
    category: Optional[str] = None
    category_id: Optional[str] = None
    account: Optional[str] = None
    account_id: Optional[str] = None
    from_account: Optional[str] = None
    from_account_id: Optional[str] = None
    to_account: Optional[str] = None
    to_account_id: Optional[str] = None
    note: Optional[str] = None
    installments: Optional[int] = None
    first_installment_date: Optional[date] = None
    limit: Optional[int] = None
    period: Optional[QueryPeriod] = None
    target_card: Optional[str] = None
    target_card_id: Optional[str] = None
    statement_month: Optional[str] = Field(None, description="'YYYY-MM' due month of a card statement")
    source_account: Optional[str] = None
    source_account_id: Optional[str] = None
    stamp_tax_amount: Optional[float] = None
    original_message: Optional[str] = None
    # dt.date: the field name shadows ``date`` inside the class body
    date: Optional[dt.date] = None

    def overlay(self, other: "ParsedEntities") -> "ParsedEntities":
        """Return a copy where every field set on ``other`` replaces ours."""
        updates = {}
        for name in type(other).model_fields:
            value = getattr(other, name)
            if value is not None and value is not False:
                updates[name] = value
        return self.model_copy(update=updates)


class IntentClassification(BaseModel):
    intent: Intent
    confidence: float = Field(..., ge=0.0, le=1.0)
    matched_pattern_id: Optional[str] = None


class FuzzyMatch(BaseModel):
    """A scored candidate for a free-text reference."""
    item: Union[UserAccount, UserCategory]
    score: float = Field(..., ge=0.0, le=1.0)
    matched_alias: Optional[str] = None


class DisambiguationOption(BaseModel):
    id: str
    name: str
    display_name: str
    icon: Optional[str] = None
    balance: Optional[float] = None
    currency: Optional[str] = None


# Resolved commands: built only once every required field is present
class ResolvedExpense(BaseModel):
    kind: Literal["expense"] = "expense"
    amount: float = Field(..., gt=0)
    currency: str = "ARS"
    account_id: str
    category_id: str
    note: Optional[str] = None
    installments: int = Field(default=1, ge=1, le=48)
    first_installment_date: Optional[date] = None
    date: date


class ResolvedIncome(BaseModel):
    kind: Literal["income"] = "income"
    amount: float = Field(..., gt=0)
    currency: str = "ARS"
    account_id: str
    category_id: str
    date: date
    note: Optional[str] = None


class ResolvedTransfer(BaseModel):
    kind: Literal["transfer"] = "transfer"
    amount: float = Field(..., gt=0)
    from_account_id: str
    to_account_id: str
    date: date
    note: Optional[str] = None


class ResolvedCardPayment(BaseModel):
    kind: Literal["card_payment"] = "card_payment"
    card_id: str
    source_account_id: str
    statement_month: str
    amount: float = Field(..., gt=0)
    date: date


class ResolvedStampTax(BaseModel):
    kind: Literal["stamp_tax"] = "stamp_tax"
    card_id: str
    statement_month: str
    amount: float = Field(..., gt=0)


ResolvedCommand = Annotated[
    Union[ResolvedExpense, ResolvedIncome, ResolvedTransfer, ResolvedCardPayment, ResolvedStampTax],
    Field(discriminator="kind"),
]


# Conversation state
class ConversationStateRecord(BaseModel):
    """Persisted in-progress exchange. One live record per chat identity."""
    platform: Platform
    platform_user_id: str
    user_id: str
    state: ConversationStateName
    intent: Intent
    parsed_data: ParsedEntities = Field(default_factory=ParsedEntities)
    edit_field: Optional[str] = None
    disambiguation_options: Optional[List[DisambiguationOption]] = None
    created_at: datetime
    expires_at: datetime
    version: int = Field(default=0, description="Optimistic concurrency counter")


# Ledger
class Movement(BaseModel):
    id: Optional[str] = None
    user_id: str
    type: Literal["income", "expense"]
    date: date
    amount: float
    currency: str = "ARS"
    account_id: str
    category_id: Optional[str] = None
    note: Optional[str] = None
    installment_purchase_id: Optional[str] = None
    installment_number: Optional[int] = None
    total_installments: Optional[int] = None
    created_at: Optional[datetime] = None


class Transfer(BaseModel):
    id: Optional[str] = None
    user_id: str
    date: date
    from_account_id: str
    to_account_id: str
    from_amount: float
    to_amount: float
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class InstallmentPurchase(BaseModel):
    id: Optional[str] = None
    user_id: str
    description: str
    total_amount: float
    installments: int
    account_id: str
    category_id: Optional[str] = None
    start_date: date


class Budget(BaseModel):
    id: Optional[str] = None
    user_id: str
    category_id: str
    amount: float
    is_active: bool = True


class LedgerFilter(BaseModel):
    """Query filter for movements and transfers."""
    user_id: str
    type: Optional[Literal["income", "expense"]] = None
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    limit: Optional[int] = None


class ActionResult(BaseModel):
    """Outcome of an executed command."""
    success: bool
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)


# Bot-facing output
class MessageButton(BaseModel):
    """Opaque button the chat adapter renders natively."""
    label: str
    token: str


class ProcessMessageResult(BaseModel):
    success: bool = True
    response_text: str
    buttons: List[MessageButton] = Field(default_factory=list)
    new_state: Optional[ConversationStateName] = None
    should_clear_state: bool = False


# LLM fallback output (untrusted)
class LLMEntities(BaseModel):
    """Entities proposed by the LLM. Invalid values are dropped, never raised."""
    monto: Optional[float] = None
    categoria: Optional[str] = None
    cuenta: Optional[str] = None
    cuenta_origen: Optional[str] = None
    cuenta_destino: Optional[str] = None
    nota: Optional[str] = None
    fecha: Optional[date] = None
    cuotas: Optional[int] = None

    model_config = {"extra": "ignore"}

    @field_validator("monto", mode="before")
    @classmethod
    def _valid_amount(cls, v: Any) -> Optional[float]:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        return float(v) if 0 < v < 100_000_000 else None

    @field_validator("categoria", "cuenta", "cuenta_origen", "cuenta_destino", "nota", mode="before")
    @classmethod
    def _valid_text(cls, v: Any) -> Optional[str]:
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip()[:200]

    @field_validator("fecha", mode="before")
    @classmethod
    def _valid_date(cls, v: Any) -> Optional[date]:
        if not isinstance(v, str) or len(v) != 10:
            return None
        try:
            return date.fromisoformat(v)
        except ValueError:
            return None

    @field_validator("cuotas", mode="before")
    @classmethod
    def _valid_installments(cls, v: Any) -> Optional[int]:
        if isinstance(v, bool) or not isinstance(v, (int, float)) or int(v) != v:
            return None
        return int(v) if 1 <= v <= 48 else None


class LLMParseResult(BaseModel):
    intent: Intent = Intent.DESCONOCIDO
    entities: LLMEntities = Field(default_factory=LLMEntities)
    confidence: float = 0.5

    @field_validator("intent", mode="before")
    @classmethod
    def _valid_intent(cls, v: Any) -> Intent:
        if not isinstance(v, str):
            return Intent.DESCONOCIDO
        key = v.strip().upper()
        if key in LLM_INTENT_MAP:
            return LLM_INTENT_MAP[key]
        # Full intent names are accepted for the same catalog
        return next((i for i in LLM_INTENT_MAP.values() if i.value == key), Intent.DESCONOCIDO)

    @field_validator("confidence", mode="before")
    @classmethod
    def _valid_confidence(cls, v: Any) -> float:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return 0.5
        return min(max(float(v), 0.0), 1.0)

    @field_validator("entities", mode="before")
    @classmethod
    def _valid_entities(cls, v: Any) -> Dict[str, Any]:
        return v if isinstance(v, dict) else {}


# Short intent names the LLM is asked to answer with
LLM_INTENT_MAP: Dict[str, Intent] = {
    "GASTO": Intent.REGISTRAR_GASTO,
    "INGRESO": Intent.REGISTRAR_INGRESO,
    "TRANSFERENCIA": Intent.REGISTRAR_TRANSFERENCIA,
    "SALDO": Intent.CONSULTAR_SALDO,
    "GASTOS": Intent.CONSULTAR_GASTOS,
    "INGRESOS": Intent.CONSULTAR_INGRESOS,
    "ULTIMOS": Intent.ULTIMOS_MOVIMIENTOS,
    "RESUMEN_MES": Intent.RESUMEN_MES,
    "PRESUPUESTOS": Intent.CONSULTAR_PRESUPUESTOS,
    "AYUDA": Intent.AYUDA,
    "DESCONOCIDO": Intent.DESCONOCIDO,
}
