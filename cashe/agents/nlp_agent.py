#!/usr/bin/env python3
"""
NLP Agent
Single entry point for the chat bots. Composes the classifier, extractor,
LLM fallback, fuzzy matcher, conversation state and executor for each
inbound message or button callback.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional

from cashe.agents.command_executor import CommandExecutor
from cashe.agents.confirmation_flow import (
    CANCEL_BUTTON,
    CONFIRM_BUTTONS,
    VALUE_FIELDS,
    ConfirmationFlow,
    resolve_statement_month,
)
from cashe.agents.conversation_state import (
    FIELD_STATES,
    StateStore,
    apply_single_candidate_defaults,
    is_reset_message,
    missing_required_fields,
)
from cashe.agents.entity_extractor import EntityExtractor
from cashe.agents.fuzzy_matcher import FuzzyMatcher
from cashe.agents.intent_classifier import IntentClassifier, is_write_intent
from cashe.agents.llm_fallback import LLMFallback, merge_results, should_use_fallback
from cashe.config.ai_config import get_ai_client, get_ai_model, is_ai_enabled
from cashe.constants.responses import MENU_OPTIONS, PERIOD_OPTIONS, RESPONSES
from cashe.schemas.core import (
    ConversationStateName,
    ConversationStateRecord,
    DisambiguationOption,
    Intent,
    MessageButton,
    ParsedEntities,
    Platform,
    ProcessMessageResult,
    QueryPeriod,
    UserContext,
)
from cashe.utils.dates import local_now
from cashe.utils.errors import DisambiguationRequired, StateConflictError, ValidationError
from cashe.utils.formatting import DateFormatter, interpolate
from cashe.utils.logger import chat_label, get_logger
from cashe.utils.repositories import ConversationStateRepository, IdentityRepository, LedgerRepository

logger = get_logger("nlp_agent")

MIN_CONFIDENCE = 0.4

CALLBACK_TEXT = {
    "confirm_yes": "si",
    "confirm_edit": "editar",
    "confirm_cancel": "cancelar",
}
CALLBACK_PREFIXES = ("edit_", "acc_", "cat_", "sel_", "menu_")

MENU_WRITES = {
    "gasto": (Intent.REGISTRAR_GASTO, "MENU_MONTO_GASTO"),
    "ingreso": (Intent.REGISTRAR_INGRESO, "MENU_MONTO_INGRESO"),
    "transferencia": (Intent.REGISTRAR_TRANSFERENCIA, "MENU_MONTO_TRANSFERENCIA"),
}
MENU_CARD_WRITES = {
    "pagar_tarjeta": Intent.PAGAR_TARJETA,
    "sellos": Intent.AGREGAR_SELLOS,
}
MENU_READS = {
    "saldo": Intent.CONSULTAR_SALDO,
    "ultimos": Intent.ULTIMOS_MOVIMIENTOS,
    "resumen": Intent.RESUMEN_MES,
    "tarjeta": Intent.CONSULTAR_RESUMEN_TARJETA,
    "presupuestos": Intent.CONSULTAR_PRESUPUESTOS,
}
MENU_PERIOD_QUERIES = {
    "gastos": Intent.CONSULTAR_GASTOS,
    "ingresos": Intent.CONSULTAR_INGRESOS,
}

SELECTION_STATES = (
    ConversationStateName.AWAITING_DISAMBIGUATION,
    ConversationStateName.AWAITING_ACCOUNT_SELECTION,
    ConversationStateName.AWAITING_CATEGORY_SELECTION,
    ConversationStateName.AWAITING_CARD_SELECTION,
    ConversationStateName.AWAITING_SOURCE_ACCOUNT,
    ConversationStateName.AWAITING_STATEMENT_SELECTION,
)
VALUE_STATES = (
    ConversationStateName.AWAITING_EDIT_VALUE,
    ConversationStateName.AWAITING_STAMP_TAX_AMOUNT,
)


def _menu_options() -> List[DisambiguationOption]:
    return [DisambiguationOption(id=o["key"], name=o["label"].split(" ", 1)[1], display_name=o["label"])
            for o in MENU_OPTIONS]


def _period_options() -> List[DisambiguationOption]:
    return [DisambiguationOption(id=o["key"], name=o["label"], display_name=o["label"]) for o in PERIOD_OPTIONS]


def _option_lines(options: List[DisambiguationOption]) -> str:
    return "\n".join(f"{i}. {o.display_name}" for i, o in enumerate(options, 1))


@dataclass
class Turn:
    """Everything known about the sender at the start of a turn."""
    platform: Platform
    platform_user_id: str
    user_id: str
    context: UserContext
    record: Optional[ConversationStateRecord] = None


class NLPAgent:
    """
    Hybrid NLP orchestrator for the Telegram and WhatsApp bots.

    Every failure below this class is turned into user-facing text here;
    nothing escapes to the webhook handler.
    """

    def __init__(self, identity: IdentityRepository, ledger: LedgerRepository,
                 state_repository: ConversationStateRepository, llm: Optional[LLMFallback] = None,
                 clock: Optional[Callable[[], datetime]] = None, ttl_minutes: Optional[int] = None):
        self.identity = identity
        self.now = clock or local_now

        self.classifier = IntentClassifier()
        self.extractor = EntityExtractor(clock=self.today)
        self.flow = ConfirmationFlow(clock=self.today)
        self.executor = CommandExecutor(ledger, clock=self.today)
        self.states = StateStore(state_repository, ttl_minutes=ttl_minutes, clock=self.now)
        self.llm = llm or LLMFallback()

        logger.info(f"✅ NLP agent initialized (LLM fallback {'on' if self.llm.ai_enabled else 'off'})")

    def today(self) -> date:
        return self.now().date()

    # Entry points
    async def process_message(self, platform: Platform, platform_user_id: str, text: str) -> ProcessMessageResult:
        """
        Handle one inbound chat message.

        Args:
            platform: Chat platform the message came from
            platform_user_id: Sender identity on that platform
            text: Message text

        Returns:
            ProcessMessageResult with the reply, optional buttons and state hints
        """
        text = (text or "").strip()
        turn: Optional[Turn] = None
        try:
            platform_user = await self.identity.get_platform_user(platform, platform_user_id)
            if not platform_user or not platform_user.verified:
                logger.info(f"🔒 Unlinked user {chat_label(platform, platform_user_id)}")
                key = "NO_VINCULADO_TELEGRAM" if platform == Platform.TELEGRAM else "NO_VINCULADO_WHATSAPP"
                return ProcessMessageResult(success=False, response_text=RESPONSES[key])

            context = await self.identity.get_user_context(platform_user.user_id)
            record = await self.states.get(platform, platform_user_id)
            turn = Turn(platform, platform_user_id, platform_user.user_id, context, record)

            if record:
                logger.info(f"🔍 {chat_label(platform, platform_user_id)} in state "
                            f"{record.state.value} ({record.intent.value})")
                return await self._process_stateful(turn, text)
            return await self._process_new(turn, text)

        except StateConflictError as e:
            logger.warning(f"⚠️ {e.message}")
            return ProcessMessageResult(success=False, response_text=RESPONSES["CONFLICTO_ESTADO"])
        except ValidationError as e:
            logger.info(f"✋ Validation failed: {e.message}")
            record = turn.record if turn else None
            if record is None:
                buttons = []
            elif record.state == ConversationStateName.AWAITING_CONFIRMATION:
                buttons = list(CONFIRM_BUTTONS)
            else:
                buttons = [CANCEL_BUTTON]
            return ProcessMessageResult(
                success=False,
                response_text=RESPONSES.get(e.response_key, RESPONSES["ERROR_GENERICO"]),
                buttons=buttons,
                new_state=record.state if record else None,
            )
        except Exception as e:
            logger.error(f"❌ Error processing message from {chat_label(platform, platform_user_id)}: {e}")
            await self._discard_state(platform, platform_user_id)
            return ProcessMessageResult(success=False, response_text=RESPONSES["ERROR_GENERICO"],
                                        should_clear_state=True)

    async def process_callback(self, platform: Platform, platform_user_id: str, token: str) -> ProcessMessageResult:
        """
        Handle a button press by mapping its token to the equivalent text.

        confirm_* tokens become si/editar/cancelar; edit_, acc_, cat_, sel_
        and menu_ tokens carry the field, id or option after the prefix.
        """
        token = (token or "").strip()
        if token in CALLBACK_TEXT:
            return await self.process_message(platform, platform_user_id, CALLBACK_TEXT[token])
        for prefix in CALLBACK_PREFIXES:
            if token.startswith(prefix) and len(token) > len(prefix):
                return await self.process_message(platform, platform_user_id, token[len(prefix):])
        logger.warning(f"⚠️ Unknown callback token '{token[:40]}'")
        return ProcessMessageResult(success=False, response_text=RESPONSES["NO_ENTENDI"])

    async def cleanup_expired_states(self) -> int:
        return await self.states.cleanup_expired()

    # Stateless turn
    async def _process_new(self, turn: Turn, text: str) -> ProcessMessageResult:
        classification = self.classifier.classify(text)
        if classification.matched_pattern_id == "ignore.greeting":
            return ProcessMessageResult(response_text=RESPONSES["HELP_SHORT"])

        intent, confidence = classification.intent, classification.confidence
        entities = self.extractor.extract(text, intent)

        if should_use_fallback(confidence, intent):
            llm_result = await self.llm.parse(text, turn.context, self.today())
            intent, confidence, entities, source = merge_results(intent, confidence, entities, llm_result)
            logger.info(f"🔀 Merged parse: {intent.value} ({confidence:.2f}) from {source}")

        if intent == Intent.DESCONOCIDO or confidence < MIN_CONFIDENCE:
            return ProcessMessageResult(success=False, response_text=RESPONSES["NO_ENTENDI"])
        if intent == Intent.AYUDA:
            return ProcessMessageResult(response_text=RESPONSES["HELP"])
        if intent == Intent.CANCELAR:
            return ProcessMessageResult(response_text=RESPONSES["CANCELADO"])
        if intent == Intent.MENU:
            return await self._show_menu(turn)
        if is_write_intent(intent):
            return await self._advance_write(turn, intent, entities)
        return await self._run_read(turn, intent, entities)

    # Stateful turn
    async def _process_stateful(self, turn: Turn, text: str) -> ProcessMessageResult:
        record = turn.record
        if is_reset_message(text):
            await self._clear(turn)
            logger.info(f"🔄 Reset from {record.state.value}")
            return ProcessMessageResult(response_text=RESPONSES["REINICIADO"], should_clear_state=True)

        state = record.state
        if state == ConversationStateName.AWAITING_CONFIRMATION:
            return await self._handle_confirmation(turn, text)
        if state == ConversationStateName.AWAITING_EDIT_FIELD:
            return await self._handle_edit_field(turn, text)
        if state in VALUE_STATES:
            return await self._handle_value(turn, text)
        if state in SELECTION_STATES:
            return await self._handle_selection(turn, text)
        if state == ConversationStateName.AWAITING_TYPE_SELECTION:
            return await self._handle_menu_selection(turn, text)
        if state == ConversationStateName.AWAITING_AMOUNT_INPUT:
            entities = self.flow.apply_value(record.parsed_data, "amount", text)
            return await self._advance_write(turn, record.intent, entities)
        if state == ConversationStateName.AWAITING_PERIOD_SELECTION:
            return await self._handle_period_selection(turn, text)

        logger.warning(f"⚠️ Unhandled state {state.value}, starting over")
        await self._clear(turn)
        return await self._process_new(turn, text)

    async def _handle_confirmation(self, turn: Turn, text: str) -> ProcessMessageResult:
        record = turn.record
        answer = self.flow.parse_confirmation(text)

        if answer == "yes":
            result = await self.executor.execute_write(turn.user_id, record.intent, record.parsed_data, turn.context)
            await self._clear(turn)
            return ProcessMessageResult(success=result.success, response_text=result.message,
                                        should_clear_state=True)
        if answer == "no":
            await self._clear(turn)
            return ProcessMessageResult(response_text=RESPONSES["CANCELADO"], should_clear_state=True)
        if answer == "edit":
            message, buttons = self.flow.build_edit_menu(record.intent, record.parsed_data, turn.context)
            saved = await self._save(turn, ConversationStateName.AWAITING_EDIT_FIELD, record.intent, record.parsed_data)
            return ProcessMessageResult(response_text=message, buttons=buttons, new_state=saved.state)

        return ProcessMessageResult(
            success=False,
            response_text=f"{RESPONSES['NO_ENTENDI']}\n\n{RESPONSES['CONFIRMAR_OPCIONES']}",
            buttons=list(CONFIRM_BUTTONS),
            new_state=record.state,
        )

    async def _handle_edit_field(self, turn: Turn, text: str) -> ProcessMessageResult:
        record = turn.record
        field = self.flow.parse_edit_field(text, record.intent)
        if not field:
            message, buttons = self.flow.build_edit_menu(record.intent, record.parsed_data, turn.context)
            return ProcessMessageResult(success=False, response_text=f"{RESPONSES['NO_ENTENDI']}\n\n{message}",
                                        buttons=buttons, new_state=record.state)
        return await self._prompt_field(turn, record.intent, record.parsed_data, field, missing=False)

    async def _handle_value(self, turn: Turn, text: str) -> ProcessMessageResult:
        record = turn.record
        if not record.edit_field:
            await self._clear(turn)
            return ProcessMessageResult(success=False, response_text=RESPONSES["ERROR_GENERICO"],
                                        should_clear_state=True)
        entities = self.flow.apply_value(record.parsed_data, record.edit_field, text)
        return await self._continue(turn, record.intent, entities)

    async def _handle_selection(self, turn: Turn, text: str) -> ProcessMessageResult:
        record = turn.record
        field = record.edit_field or "account"
        options = record.disambiguation_options or \
            self.flow.field_options(field, record.intent, record.parsed_data, turn.context)

        selected = self.flow.parse_selection(text, options)
        if not selected:
            if record.state == ConversationStateName.AWAITING_DISAMBIGUATION:
                message, buttons = self.flow.build_disambiguation(field, options)
            else:
                message, buttons, _ = self.flow.build_field_prompt(field, record.intent, record.parsed_data,
                                                                   turn.context)
            return ProcessMessageResult(success=False, response_text=f"{RESPONSES['OPCION_INVALIDA']}\n\n{message}",
                                        buttons=buttons, new_state=record.state)

        logger.info(f"👆 {field} -> {selected.name}")
        entities = self.flow.apply_selection(record.parsed_data, field, selected)
        return await self._continue(turn, record.intent, entities)

    async def _continue(self, turn: Turn, intent: Intent, entities: ParsedEntities) -> ProcessMessageResult:
        if is_write_intent(intent):
            return await self._advance_write(turn, intent, entities)
        return await self._run_read(turn, intent, entities)

    # Writes
    async def _advance_write(self, turn: Turn, intent: Intent, entities: ParsedEntities) -> ProcessMessageResult:
        """
        Move a write command one step forward.

        Resolves references, fills single-candidate defaults, then either asks
        for the first missing field or shows the confirmation preview.
        """
        context = turn.context
        if intent in (Intent.PAGAR_TARJETA, Intent.AGREGAR_SELLOS) and not context.credit_cards:
            await self._clear(turn)
            return ProcessMessageResult(success=False, response_text=RESPONSES["ERROR_SIN_TARJETAS"],
                                        should_clear_state=bool(turn.record))

        try:
            entities = FuzzyMatcher.resolve_entities(entities, context, intent)
        except DisambiguationRequired as e:
            return await self._ask_disambiguation(turn, intent, entities, e)

        entities = apply_single_candidate_defaults(intent, entities, context)
        missing = missing_required_fields(intent, entities)
        if missing:
            return await self._prompt_field(turn, intent, entities, missing[0], missing=True)

        if intent == Intent.PAGAR_TARJETA:
            card = context.account_by_id(entities.target_card_id)
            entities.statement_month = resolve_statement_month(entities.statement_month, card, self.today())
            total = await self.executor.statement_total(turn.user_id, card, entities.statement_month)
            if total <= 0:
                return await self._empty_statement(turn, intent, entities, card.name)
            entities.amount = total

        if entities.date is None and intent != Intent.AGREGAR_SELLOS:
            entities.date = self.today()

        message, buttons = self.flow.build_confirmation(intent, entities, context)
        saved = await self._save(turn, ConversationStateName.AWAITING_CONFIRMATION, intent, entities)
        return ProcessMessageResult(response_text=message, buttons=buttons, new_state=saved.state)

    async def _empty_statement(self, turn: Turn, intent: Intent, entities: ParsedEntities,
                               card_name: str) -> ProcessMessageResult:
        """Nothing to pay on that statement: offer the others."""
        notice = interpolate(RESPONSES["ERROR_RESUMEN_VACIO"], {
            "tarjeta": card_name,
            "resumen": DateFormatter.statement_label(entities.statement_month),
        })
        message, buttons, options = self.flow.build_field_prompt("statement_month", intent, entities, turn.context)
        saved = await self._save(turn, ConversationStateName.AWAITING_STATEMENT_SELECTION, intent, entities,
                                 edit_field="statement_month", options=options)
        return ProcessMessageResult(success=False, response_text=f"{notice}\n\n{message}", buttons=buttons,
                                    new_state=saved.state)

    async def _ask_disambiguation(self, turn: Turn, intent: Intent, entities: ParsedEntities,
                                  error: DisambiguationRequired) -> ProcessMessageResult:
        message, buttons = self.flow.build_disambiguation(error.field, error.options)
        saved = await self._save(turn, ConversationStateName.AWAITING_DISAMBIGUATION, intent, entities,
                                 edit_field=error.field, options=error.options)
        return ProcessMessageResult(response_text=message, buttons=buttons, new_state=saved.state)

    async def _prompt_field(self, turn: Turn, intent: Intent, entities: ParsedEntities, field: str,
                            missing: bool) -> ProcessMessageResult:
        message, buttons, options = self.flow.build_field_prompt(field, intent, entities, turn.context,
                                                                 missing=missing)
        if field not in VALUE_FIELDS and not options:
            await self._clear(turn)
            key = "ERROR_SIN_CATEGORIAS" if field == "category" else "ERROR_SIN_CUENTAS"
            return ProcessMessageResult(success=False, response_text=RESPONSES[key],
                                        should_clear_state=bool(turn.record))

        saved = await self._save(turn, FIELD_STATES[field], intent, entities, edit_field=field,
                                 options=options or None)
        return ProcessMessageResult(response_text=message, buttons=buttons, new_state=saved.state)

    # Reads
    async def _run_read(self, turn: Turn, intent: Intent, entities: ParsedEntities) -> ProcessMessageResult:
        context = turn.context
        try:
            entities = FuzzyMatcher.resolve_entities(entities, context, intent)
        except DisambiguationRequired as e:
            return await self._ask_disambiguation(turn, intent, entities, e)

        if intent == Intent.CONSULTAR_RESUMEN_TARJETA and not entities.target_card_id \
                and len(context.credit_cards) > 1:
            return await self._prompt_field(turn, intent, entities, "target_card", missing=True)

        result = await self.executor.execute_read(turn.user_id, intent, entities, context)
        cleared = turn.record is not None
        await self._clear(turn)
        return ProcessMessageResult(success=result.success, response_text=result.message,
                                    should_clear_state=cleared)

    # Menu
    async def _show_menu(self, turn: Turn, prefix: Optional[str] = None) -> ProcessMessageResult:
        options = _menu_options()
        message = f"{RESPONSES['MENU']}\n\n{_option_lines(options)}"
        if prefix:
            message = f"{prefix}\n\n{message}"
        buttons = [MessageButton(label=o.display_name, token=f"menu_{o.id}") for o in options]
        saved = await self._save(turn, ConversationStateName.AWAITING_TYPE_SELECTION, Intent.MENU,
                                 ParsedEntities(), options=options)
        return ProcessMessageResult(success=prefix is None, response_text=message, buttons=buttons,
                                    new_state=saved.state)

    async def _handle_menu_selection(self, turn: Turn, text: str) -> ProcessMessageResult:
        selected = self.flow.parse_selection(text, turn.record.disambiguation_options or _menu_options())
        if not selected:
            return await self._show_menu(turn, prefix=RESPONSES["OPCION_INVALIDA"])

        key = selected.id
        logger.info(f"📋 Menu option '{key}'")
        if key in MENU_WRITES:
            intent, prompt = MENU_WRITES[key]
            saved = await self._save(turn, ConversationStateName.AWAITING_AMOUNT_INPUT, intent, ParsedEntities(),
                                     edit_field="amount")
            return ProcessMessageResult(response_text=RESPONSES[prompt], buttons=[CANCEL_BUTTON],
                                        new_state=saved.state)
        if key in MENU_CARD_WRITES:
            return await self._advance_write(turn, MENU_CARD_WRITES[key], ParsedEntities())
        if key in MENU_PERIOD_QUERIES:
            options = _period_options()
            saved = await self._save(turn, ConversationStateName.AWAITING_PERIOD_SELECTION, MENU_PERIOD_QUERIES[key],
                                     ParsedEntities(), edit_field="period", options=options)
            buttons = [MessageButton(label=o.display_name, token=f"sel_{o.id}") for o in options]
            buttons.append(CANCEL_BUTTON)
            return ProcessMessageResult(response_text=f"{RESPONSES['SELECCIONAR_PERIODO']}\n\n{_option_lines(options)}",
                                        buttons=buttons, new_state=saved.state)
        if key in MENU_READS:
            return await self._run_read(turn, MENU_READS[key], ParsedEntities())

        await self._clear(turn)
        return ProcessMessageResult(response_text=RESPONSES["HELP"], should_clear_state=True)

    async def _handle_period_selection(self, turn: Turn, text: str) -> ProcessMessageResult:
        record = turn.record
        options = record.disambiguation_options or _period_options()
        selected = self.flow.parse_selection(text, options)
        if not selected:
            buttons = [MessageButton(label=o.display_name, token=f"sel_{o.id}") for o in options]
            buttons.append(CANCEL_BUTTON)
            return ProcessMessageResult(
                success=False,
                response_text=f"{RESPONSES['OPCION_INVALIDA']}\n\n{RESPONSES['SELECCIONAR_PERIODO']}\n\n"
                              f"{_option_lines(options)}",
                buttons=buttons,
                new_state=record.state,
            )
        entities = record.parsed_data.model_copy(update={"period": QueryPeriod(type="relative", value=selected.id)})
        return await self._run_read(turn, record.intent, entities)

    # State helpers
    async def _save(self, turn: Turn, state: ConversationStateName, intent: Intent, entities: ParsedEntities,
                    edit_field: Optional[str] = None,
                    options: Optional[List[DisambiguationOption]] = None) -> ConversationStateRecord:
        saved = await self.states.save(turn.platform, turn.platform_user_id, turn.user_id, state, intent,
                                       entities, edit_field=edit_field, options=options, current=turn.record)
        turn.record = saved
        return saved

    async def _clear(self, turn: Turn) -> None:
        if turn.record is not None:
            await self.states.clear(turn.platform, turn.platform_user_id)
            turn.record = None

    async def _discard_state(self, platform: Platform, platform_user_id: str) -> None:
        try:
            await self.states.clear(platform, platform_user_id)
        except Exception as e:
            logger.error(f"❌ Could not clear state for {chat_label(platform, platform_user_id)}: {e}")


def create_nlp_agent(identity: Optional[IdentityRepository] = None, ledger: Optional[LedgerRepository] = None,
                     state_repository: Optional[ConversationStateRepository] = None) -> NLPAgent:
    """
    Build an agent wired to the configured storage backend and LLM client.

    Any repository left as None comes from ``build_repositories``.
    """
    from cashe.utils.storage import build_repositories

    if identity is None or ledger is None or state_repository is None:
        default_identity, default_ledger, default_states = build_repositories()
        identity = identity or default_identity
        ledger = ledger or default_ledger
        state_repository = state_repository or default_states

    llm = LLMFallback(ai_client=get_ai_client(), ai_model=get_ai_model(), ai_enabled=is_ai_enabled())
    return NLPAgent(identity, ledger, state_repository, llm=llm)
