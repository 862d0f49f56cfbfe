#!/usr/bin/env python3
"""
LLM Fallback - Best-effort re-parse of low-confidence messages through Groq.

The model output is untrusted: it goes through ``LLMParseResult`` validation,
which drops anything malformed instead of raising. Every failure (no key,
timeout, HTTP error, non-JSON reply) degrades to ``None`` so the turn carries
on with the regex result.
"""

import asyncio
import json
import re
from datetime import date
from typing import Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from cashe.schemas.core import Intent, LLMParseResult, ParsedEntities, UserContext
from cashe.utils.config import settings
from cashe.utils.errors import ExternalServiceError
from cashe.utils.logger import get_logger

logger = get_logger("llm_fallback")

SYSTEM_PROMPT = """Sos un asistente de finanzas personales argentino.
Tu trabajo es parsear mensajes en español argentino y extraer información estructurada.

Respondé SOLO con JSON válido, sin texto adicional ni explicaciones.

Formato de respuesta:
{
  "intent": "GASTO|INGRESO|TRANSFERENCIA|SALDO|GASTOS|INGRESOS|ULTIMOS|RESUMEN_MES|PRESUPUESTOS|AYUDA|DESCONOCIDO",
  "entities": {
    "monto": number|null,
    "categoria": string|null,
    "cuenta": string|null,
    "cuenta_origen": string|null,
    "cuenta_destino": string|null,
    "nota": string|null,
    "fecha": "YYYY-MM-DD"|null,
    "cuotas": number|null
  },
  "confidence": 0.0-1.0
}

Consideraciones argentinas:
- Montos: "50k" = 50000, "150 lucas" = 150000, "2 palos" = 2000000
- Cuentas: "mp" = mercadopago, "bru" = brubank, "gal" = galicia
- Categorías: "morfi" = comida, "bondi" = transporte
- Fechas: "ayer", "este mes", "enero", etc.
- Si no estás seguro del intent, usá "DESCONOCIDO" con baja confianza

Ejemplos:
- "gasté 500 en comida" → intent: GASTO, monto: 500, categoria: "comida"
- "cobré 50k" → intent: INGRESO, monto: 50000
- "de galicia a mp 10000" → intent: TRANSFERENCIA, cuenta_origen: "galicia", cuenta_destino: "mercadopago", monto: 10000
- "saldo" → intent: SALDO
- "cuánto gasté en comida" → intent: GASTOS, categoria: "comida\""""

JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

# Regex confidence at or above this never calls the LLM and always keeps its intent
HIGH_CONFIDENCE = 0.7
LOW_CONFIDENCE = 0.5
UNKNOWN_CONFIDENCE = 0.4


def should_use_fallback(regex_confidence: float, intent: Intent) -> bool:
    """Decide whether a regex classification is weak enough to ask the LLM."""
    if regex_confidence >= HIGH_CONFIDENCE:
        return False
    if intent == Intent.DESCONOCIDO and regex_confidence < UNKNOWN_CONFIDENCE:
        return True
    return regex_confidence < LOW_CONFIDENCE


def to_parsed_entities(result: LLMParseResult) -> ParsedEntities:
    """Map the validated Spanish field names onto ``ParsedEntities``."""
    e = result.entities
    return ParsedEntities(
        amount=e.monto,
        category=e.categoria,
        account=e.cuenta,
        from_account=e.cuenta_origen,
        to_account=e.cuenta_destino,
        note=e.nota,
        date=e.fecha,
        installments=e.cuotas,
    )


def merge_results(regex_intent: Intent, regex_confidence: float, regex_entities: ParsedEntities,
                  llm_result: Optional[LLMParseResult]) -> Tuple[Intent, float, ParsedEntities, str]:
    """
    Combine regex and LLM parses.

    Args:
        regex_intent: Intent from the classifier
        regex_confidence: Classifier confidence
        regex_entities: Entities from the extractor
        llm_result: Validated LLM parse, or None when the call degraded

    Returns:
        (intent, confidence, entities, source) where source is regex, llm or hybrid
    """
    if llm_result is None:
        return regex_intent, regex_confidence, regex_entities, "regex"

    try:
        llm_entities = to_parsed_entities(llm_result)
    except PydanticValidationError as e:
        logger.warning(f"⚠️ LLM entities rejected, keeping regex parse: {e.error_count()} errors")
        return regex_intent, regex_confidence, regex_entities, "regex"

    if regex_confidence >= HIGH_CONFIDENCE:
        return regex_intent, regex_confidence, llm_entities.overlay(regex_entities), "hybrid"

    if llm_result.confidence > regex_confidence:
        return llm_result.intent, llm_result.confidence, regex_entities.overlay(llm_entities), "llm"

    return (regex_intent, max(regex_confidence, llm_result.confidence),
            llm_entities.overlay(regex_entities), "hybrid")


class LLMFallback:
    """Async Groq client wrapper returning validated parses or None."""

    def __init__(self, ai_client=None, ai_model: Optional[str] = None, ai_enabled: bool = False,
                 timeout_seconds: Optional[float] = None):
        self.ai_client = ai_client
        self.ai_model = ai_model or settings.llm_model
        self.ai_enabled = ai_enabled and ai_client is not None
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds

    def _build_system_prompt(self, context: Optional[UserContext], today: Optional[date]) -> str:
        prompt = SYSTEM_PROMPT
        if context:
            account_names = ", ".join(a.name for a in context.accounts)
            category_names = ", ".join(c.name for c in context.categories)
            prompt += f"\n\nCuentas del usuario: {account_names}\nCategorías del usuario: {category_names}"
        if today:
            prompt += f"\nFecha de hoy: {today.isoformat()}"
        return prompt

    async def _complete(self, text: str, context: Optional[UserContext], today: Optional[date]) -> str:
        messages = [
            {"role": "system", "content": self._build_system_prompt(context, today)},
            {"role": "user", "content": text},
        ]
        try:
            completion = await asyncio.wait_for(
                self.ai_client.chat.completions.create(
                    model=self.ai_model,
                    messages=messages,
                    temperature=settings.llm_temperature,
                    max_tokens=settings.llm_max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise ExternalServiceError(f"LLM call timed out after {self.timeout_seconds}s")
        except Exception as e:
            raise ExternalServiceError(f"LLM call failed: {e}")

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ExternalServiceError("LLM returned empty content")
        return content

    @staticmethod
    def parse_response(content: str) -> LLMParseResult:
        """
        Extract and validate the JSON object in a model reply.

        Raises:
            ExternalServiceError: when there is no parseable JSON object
        """
        match = JSON_BLOCK.search(content)
        if not match:
            raise ExternalServiceError("No JSON found in LLM response", details={"content": content[:200]})
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ExternalServiceError(f"Malformed JSON in LLM response: {e}")
        if not isinstance(payload, dict):
            raise ExternalServiceError("LLM response is not a JSON object")
        try:
            return LLMParseResult.model_validate(payload)
        except PydanticValidationError as e:
            raise ExternalServiceError(f"LLM response failed validation: {e}")

    async def parse(self, text: str, context: Optional[UserContext] = None,
                    today: Optional[date] = None) -> Optional[LLMParseResult]:
        """
        Re-parse a message with the LLM.

        Args:
            text: Raw user message
            context: User accounts and categories, listed in the prompt
            today: Reference date for relative dates

        Returns:
            LLMParseResult or None if the fallback is disabled or failed
        """
        if not self.ai_enabled:
            logger.debug("LLM fallback disabled, keeping regex result")
            return None

        try:
            content = await self._complete(text, context, today)
            result = self.parse_response(content)
            logger.info(f"🤖 LLM parsed '{text[:50]}' as {result.intent.value} ({result.confidence:.2f})")
            return result
        except ExternalServiceError as e:
            logger.warning(f"⚠️ LLM fallback degraded: {e.message}")
            return None
